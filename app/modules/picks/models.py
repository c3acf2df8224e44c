# Supabase tables: pick_transactions, picks, pick_results
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

pick_transactions (checkout attempts, one row per order)
- id: uuid (primary key)
- user_id: text (nullable) - Clerk id; null for anonymous checkouts
- anonymous_session_id: text (nullable) - browser session id of an anonymous buyer
- full_name: text, email: text
- order_id: text (unique) - MMC-{user}-{ms}, MMC-ANON-{ms} or PP-{user}-{ms}
- gp_name: text
- picks: jsonb - [{driver, line, betterOrWorse: mejor|peor, session_type: qualy|race}]
- mode: text - full | safety
- multiplier: number, potential_win: number, wager_amount: number
- payment_status: text - pending, paid, failed, expired
- bold_payment_id: text (nullable), paypal_order_id: text (nullable)
- promotion_applied: bool, promotion_bonus_amount: number,
  promotion_total_effective: number, promotion_campaign_name: text
- created_at: timestamp (default: now())

picks (paid wagers owned by a user)
- id: uuid (primary key)
- user_id, gp_name, session_type ('combined'), picks, multiplier, wager_amount,
  potential_win, name, mode, order_id, pick_transaction_id, payment_method,
  promo_application_id (nullable), utm_* and referrer (nullable)

pick_results (one row per settled pick)
- pick_id (unique), user_id, gp_name, session_type, picks, correct_count,
  total_picks, mode, result (won | partial | lost), payout, processed_at

driver_results_for_picks
- gp_name, driver, qualy_position, race_position

promotions
- campaign_name, is_active, valid_from, valid_until, min_bet_amount,
  bonus_type (percentage | fixed), bonus_value, max_bonus_amount, created_at
"""
