# Supabase tables: vip_transactions, vip_users, vip_entries, vip_login_sessions,
# vip_orders, predictions, leaderboard, gp_schedule
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

vip_transactions (VIP pass checkouts)
- id, user_id (nullable for pay-first orders), full_name, email
- plan_id: text - race-pass | season-pass
- order_id: text (unique) - vip-{plan}-{user}-{base36 ms}
- amount_cop: number, selected_gp: text (nullable)
- payment_status: text - pending, paid, paid_no_email, failed
- bold_payment_id, paid_at, bold_webhook_received_at, customer_email, customer_name

vip_users
- id: text (Clerk id, primary key), entry_tx_id, joined_at, full_name, email,
  active_plan, plan_expires_at, race_pass_gp, created_via_pay_first

vip_entries
- user_id, status ('approved'), amount_paid, currency, bold_order_id (unique),
  customer_email, customer_name, account_created, metadata (jsonb)

vip_login_sessions (15-minute single-use tokens for the pay-first flow)
- session_token (unique), clerk_user_id, order_id, expires_at, used, used_at

vip_orders (single paid VIP prediction)
- order_id: text (unique) - vip_{ms}_{uuid8}
- user_id, gp_name, predictions (jsonb), amount_cop
- status: text - pending, completed, failed
- bold_payment_id, processed_at, error_message

predictions
- user_id, gp_name, prediction columns, is_vip, submitted_at,
  submission_week, submission_year

leaderboard
- user_id, is_vip

gp_schedule
- gp_name, qualy_time, race_time
"""
