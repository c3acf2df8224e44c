# Supabase tables: entries, transactions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

entries (raffle numbers, one row per user)
- user_id: text (unique) - Clerk id
- numbers: text[] - six-digit raffle numbers
- paid_numbers_count: int (default: 0)
- name: text, email: text, region: text ('CO')

transactions (wallet ledger)
- id: uuid (primary key)
- user_id: text
- type: text - recarga | retiro_pending | ...
- amount: number
- description: text - carries the payment reference; used for idempotency
- created_at: timestamp (default: now())
"""
