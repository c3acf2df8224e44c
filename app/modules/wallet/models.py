# Supabase tables: wallet, withdrawal_requests, promo_codes, promo_code_redemptions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

wallet
- user_id: text (unique) - Clerk id
- mmc_coins: int, fuel_coins: int
- balance_cop: number, withdrawable_cop: number

withdrawal_requests
- id: uuid (primary key)
- user_id, amount, method, account
- status: text (default: 'pending')

promo_codes
- id: uuid, code: text (unique, upper case)
- fuel_amount: int, mmc_amount: int, max_uses: int
- expires_at: timestamp (nullable)

promo_code_redemptions
- id: uuid, code_id: uuid, user_id: text

RPC functions:
- increment_wallet_balances(uid, mmc_amount, fuel_amount, cop_amount)
- apply_deposit_promo(p_user_id, p_amount_cop)
- decrement_withdrawable(_uid, _cop) - raises when the balance is too low
"""
