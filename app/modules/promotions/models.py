# Supabase tables: promo_codes, promo_code_redemptions, direct_bonuses
# This file documents the expected database schema
# Redemption of codes lives in the wallet module; applying direct bonuses to
# wagers happens inside the apply_picks_promotion RPC.

"""
Expected Supabase table structure:

promo_codes:
- id: uuid (primary key)
- code: text (unique, upper case)
- fuel_amount: integer (default: 0)
- mmc_amount: integer (default: 0)
- max_uses: integer (nullable) - null means unlimited
- expires_at: timestamp (nullable)
- is_active: boolean (default: true)
- created_at: timestamp (default: now())

promo_code_redemptions:
- id: uuid (primary key)
- code_id: uuid (foreign key to promo_codes.id)
- user_id: text (Clerk user id)
- created_at: timestamp (default: now())
- unique constraint on (code_id, user_id)

direct_bonuses:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- bonus_percentage: numeric (not null)
- min_bet_amount: numeric (default: 0)
- max_uses_per_user: integer (nullable)
- starts_at: timestamp (not null)
- ends_at: timestamp (nullable)
- is_active: boolean (default: true)
- total_applications: integer (default: 0)
- total_bonus_given_cop: numeric (default: 0)
- created_at: timestamp (default: now())
"""
