# Clerk Auth
# Identity lives in Clerk. Session tokens are RS256 JWTs signed with the
# instance keys published at the Clerk JWKS URL; the `sub` claim is the user id.
# A mirror of each user is kept in Supabase so payment flows can look up
# names and emails without calling Clerk.

"""
Expected Supabase table structure:

clerk_users
- clerk_id: text (primary key) - Clerk user id, e.g. user_2w9PL6...
- email: text (not null)
- username: text (nullable)
- full_name: text (nullable)
- created_via: text (nullable) - e.g. pay_first_email_collection
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
