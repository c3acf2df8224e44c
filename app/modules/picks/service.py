from supabase import Client
from fastapi import HTTPException
from datetime import timedelta
from app.config import settings
from app.core.timeutil import utcnow, utcnow_iso, parse_timestamp
from app.database.supabase_client import first_row
from app.modules.payments import bold
from app.modules.payments.paypal import PayPalClient
from app.modules.notifications.email import EmailService
from app.modules.tracking.facebook import FacebookConversions
from app.modules.picks.payouts import (
    MIN_PICKS, MAX_PICKS, MIN_SAFETY_PICKS, calc_multiplier, is_safety_mode, mode_label, wallet_rewards,
)
from app.modules.picks.settlement import settle_pick
from app.modules.picks.schemas import RegisterPickTransactionRequest, PayPalCreateOrderRequest
from typing import Any, Dict, List, Optional
import time
import logging

logger = logging.getLogger(__name__)

MIN_WAGER = 10000
MIN_PAYPAL_WAGER = 20000
RECOVERY_WINDOW = timedelta(hours=24)
RESULTS_PAGE_SIZE = 1000
TRAFFIC_FIELDS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "referrer")


def normalize_mode(mode: Optional[str]) -> str:
    return "safety" if is_safety_mode(mode or "") else "full"


def compute_promotion_bonus(promotion: Dict[str, Any], amount: float) -> float:
    """Bonus granted by a promotion for a wager; 0 when the wager is under the promotion minimum."""
    if amount < float(promotion.get("min_bet_amount") or 0):
        return 0
    value = float(promotion.get("bonus_value") or 0)
    if promotion.get("bonus_type") == "percentage":
        bonus = round(amount * value / 100)
    elif promotion.get("bonus_type") == "fixed":
        bonus = value
    else:
        bonus = 0
    cap = promotion.get("max_bonus_amount")
    if cap and bonus > float(cap):
        bonus = float(cap)
    return bonus


class PickService:
    def __init__(self, supabase: Client, email: Optional[EmailService] = None,
                 tracker: Optional[FacebookConversions] = None):
        self.supabase = supabase
        self.email = email or EmailService()
        self.tracker = tracker or FacebookConversions()

    # Checkout

    def _validate_picks(self, picks: List[Any], mode: str, amount: float, min_amount: float):
        if len(picks) < MIN_PICKS or len(picks) > MAX_PICKS:
            raise HTTPException(status_code=400, detail="Nº de picks inválido")
        if amount < min_amount:
            raise HTTPException(status_code=400, detail=f"Monto mínimo ${int(min_amount):,}".replace(",", "."))
        if mode == "safety" and len(picks) < MIN_SAFETY_PICKS:
            raise HTTPException(status_code=400, detail="Safety requiere ≥3 picks")

    def get_active_promotion(self) -> Optional[Dict[str, Any]]:
        now = utcnow_iso()
        try:
            result = (
                self.supabase.table("promotions").select("*")
                .eq("is_active", True)
                .gte("valid_until", now)
                .lte("valid_from", now)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error checking promotions: {str(e)}")
            return None
        return first_row(result)

    def register_pick_transaction(self, data: RegisterPickTransactionRequest, user_id: Optional[str]) -> Dict[str, Any]:
        """Store a pending wager and return the Bold checkout payload for it."""
        mode = normalize_mode(data.mode)
        picks = [p.model_dump() for p in data.picks]
        self._validate_picks(picks, mode, data.amount, MIN_WAGER)

        if not user_id:
            if not data.email or not data.fullName:
                raise HTTPException(status_code=400, detail="Email y nombre son requeridos para usuarios anónimos")
            if "@" not in data.email:
                raise HTTPException(status_code=400, detail="Email inválido")
            if not data.anonymousSessionId:
                raise HTTPException(status_code=400, detail="Session ID requerido para usuarios anónimos")

        try:
            # One pending checkout per buyer
            cleanup = self.supabase.table("pick_transactions").delete().eq("payment_status", "pending")
            if user_id:
                cleanup = cleanup.eq("user_id", user_id)
            else:
                cleanup = cleanup.eq("anonymous_session_id", data.anonymousSessionId)
            cleanup.execute()

            multiplier = calc_multiplier(len(picks), mode)
            ms = int(time.time() * 1000)
            order_id = f"MMC-{user_id}-{ms}" if user_id else f"MMC-ANON-{ms}"
            amount_str = bold.format_amount(data.amount)
            integrity_key = bold.integrity_signature(order_id, amount_str, settings.bold_currency, settings.bold_secret_key)

            site_url = settings.site_url.rstrip("/")
            if user_id:
                callback_url = f"{site_url}/dashboard?bold_order_id={order_id}"
            else:
                callback_url = (
                    f"{site_url}/sign-up?session={data.anonymousSessionId}"
                    f"&order={order_id}&redirect_url=/payment-success"
                )

            promotion = self.get_active_promotion()
            bonus = compute_promotion_bonus(promotion, data.amount) if promotion else 0
            promotion_applied = bool(promotion) and data.amount >= float(promotion.get("min_bet_amount") or 0)
            if promotion_applied:
                logger.info(f"Promotion applied to {order_id}: {promotion.get('campaign_name')}, bonus {bonus}")

            self.supabase.table("pick_transactions").insert({
                "user_id": user_id,
                "anonymous_session_id": data.anonymousSessionId,
                "full_name": data.fullName or "Jugador MMC",
                "email": data.email,
                "order_id": order_id,
                "gp_name": data.gpName,
                "picks": picks,
                "mode": mode,
                "multiplier": multiplier,
                "potential_win": multiplier * data.amount,
                "wager_amount": data.amount,
                "payment_status": "pending",
                "promotion_applied": promotion_applied,
                "promotion_bonus_amount": bonus,
                "promotion_total_effective": data.amount + bonus,
                "promotion_campaign_name": promotion.get("campaign_name") if promotion_applied else None,
            }).execute()

            return {
                "orderId": order_id,
                "amount": amount_str,
                "callbackUrl": callback_url,
                "integrityKey": integrity_key,
                "isAnonymous": not user_id,
                "sessionId": data.anonymousSessionId,
                "promotion": {
                    "applied": True,
                    "bonusAmount": bonus,
                    "totalEffective": data.amount + bonus,
                    "campaignName": promotion.get("campaign_name"),
                } if promotion_applied else {"applied": False},
            }
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error registering pick transaction: {str(e)}")
            raise HTTPException(status_code=500, detail="Error guardando transacción")

    def create_paypal_order(self, data: PayPalCreateOrderRequest, user_id: str, paypal: PayPalClient) -> Dict[str, str]:
        mode = normalize_mode(data.mode)
        picks = [p.model_dump() for p in data.picks]
        self._validate_picks(picks, mode, data.amount, MIN_PAYPAL_WAGER)

        multiplier = calc_multiplier(len(picks), mode)
        order_id = f"PP-{user_id}-{int(time.time() * 1000)}"
        amount_usd = f"{data.amount / settings.paypal_cop_per_usd:.2f}"
        site_url = settings.site_url.rstrip("/")

        paypal_order = paypal.create_order(
            reference_id=order_id,
            amount_usd=amount_usd,
            description=f"MMC GO ({len(picks)} picks) - {mode_label(mode)}",
            return_url=f"{site_url}/dashboard?paypal_order_id={order_id}",
            cancel_url=f"{site_url}/mmc-go",
        )
        try:
            self.supabase.table("pick_transactions").insert({
                "user_id": user_id,
                "full_name": data.fullName or "Player MMC",
                "email": data.email,
                "order_id": order_id,
                "gp_name": data.gpName,
                "picks": picks,
                "mode": mode,
                "multiplier": multiplier,
                "potential_win": multiplier * data.amount,
                "wager_amount": data.amount,
                "payment_status": "pending",
                "paypal_order_id": paypal_order["id"],
            }).execute()
        except Exception as e:
            logger.error(f"Error saving PayPal pick transaction {order_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Internal server error")
        return {"orderID": paypal_order["id"], "orderId": order_id}

    def recover(self, transaction_id: str, user_id: str) -> Dict[str, Any]:
        """The caller's pending checkout, for resuming an abandoned payment."""
        result = (
            self.supabase.table("pick_transactions")
            .select("id, picks, wager_amount, potential_win, mode, gp_name, created_at")
            .eq("id", transaction_id)
            .eq("user_id", user_id)
            .eq("payment_status", "pending")
            .limit(1)
            .execute()
        )
        tx = first_row(result)
        if not tx:
            raise HTTPException(status_code=404, detail="Transaction not found")
        created_at = parse_timestamp(tx.get("created_at"))
        if created_at and utcnow() > created_at + RECOVERY_WINDOW:
            raise HTTPException(status_code=410, detail="Recovery link expired")
        return tx

    # Payment

    def find_transaction(self, order_id: str, paypal_order_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.supabase.table("pick_transactions").select("*").eq("order_id", order_id)
        if paypal_order_id:
            query = query.eq("paypal_order_id", paypal_order_id)
        return first_row(query.limit(1).execute())

    def _picks_row_exists(self, order_id: str) -> bool:
        result = self.supabase.table("picks").select("id").eq("order_id", order_id).limit(1).execute()
        return bool(result.data)

    def record_payment(self, tx: Dict[str, Any], provider: str, payment_id: Optional[str]) -> bool:
        """
        Mark a pick transaction paid and hand out what was bought.

        A transaction that is already paid but has no picks row (an earlier
        delivery failed half way) is fulfilled again. Returns False for a plain
        re-delivery. Wallet credit, email and tracking failures are logged and do
        not undo the payment.
        """
        order_id = tx["order_id"]
        user_id = tx.get("user_id")

        if tx.get("payment_status") == "paid":
            if not user_id or self._picks_row_exists(order_id):
                logger.info(f"Pick transaction {order_id} already processed")
                return False
            logger.info(f"Pick transaction {order_id} paid without a picks row, finishing fulfilment")
        else:
            updates: Dict[str, Any] = {"payment_status": "paid"}
            if provider == "paypal":
                updates["paypal_order_id"] = payment_id
            else:
                updates["bold_payment_id"] = payment_id

            result = (
                self.supabase.table("pick_transactions")
                .update(updates)
                .eq("id", tx["id"])
                .eq("payment_status", tx.get("payment_status"))
                .execute()
            )
            if not result.data:
                logger.info(f"Pick transaction {order_id} changed status concurrently, skipping")
                return False

        wager = float(tx.get("wager_amount") or 0)

        if user_id:
            if not self._picks_row_exists(order_id):
                self.supabase.table("picks").insert({
                    "user_id": user_id,
                    "gp_name": tx.get("gp_name"),
                    "session_type": "combined",
                    "picks": tx.get("picks") or [],
                    "multiplier": float(tx.get("multiplier") or 0),
                    "wager_amount": wager,
                    "potential_win": float(tx.get("potential_win") or 0),
                    "name": tx.get("full_name"),
                    "mode": tx.get("mode"),
                    "order_id": order_id,
                    "pick_transaction_id": tx["id"],
                    "payment_method": provider,
                }).execute()

            if wager:
                try:
                    self.supabase.rpc("increment_wallet_balances", {"uid": user_id, **wallet_rewards(wager)}).execute()
                except Exception as e:
                    logger.warning(f"Wallet credit failed for {order_id}: {str(e)}")

            if tx.get("email"):
                try:
                    self.email.send_pick_confirmation(
                        tx["email"], tx.get("full_name") or "Jugador", wager, tx.get("mode"), tx.get("picks") or []
                    )
                except Exception as e:
                    logger.error(f"Pick confirmation email failed for {order_id}: {str(e)}")
        else:
            logger.info(f"Anonymous pick transaction {order_id} paid; waiting for account linking")

        pick_count = len(tx.get("picks") or [])
        try:
            self.tracker.track_purchase(
                order_id=order_id,
                amount_cop=wager,
                content_name=f"MMC GO {mode_label(tx.get('mode') or 'full')} ({pick_count} picks)",
                content_ids=[f"mmc_picks_{pick_count}"],
                email=tx.get("email"),
                full_name=tx.get("full_name"),
                external_id=user_id,
                event_source_url=f"{settings.site_url.rstrip('/')}/mmc-go",
                extra={"content_category": "sports_betting", "num_items": pick_count or 1},
            )
        except Exception as e:
            logger.error(f"Purchase tracking failed for {order_id}: {str(e)}")

        logger.info(f"Pick transaction {order_id} paid via {provider}")
        return True

    def mark_failed(self, order_id: str) -> bool:
        result = (
            self.supabase.table("pick_transactions")
            .update({"payment_status": "failed"})
            .eq("order_id", order_id)
            .eq("payment_status", "pending")
            .execute()
        )
        return bool(result.data)

    # Anonymous checkout linking

    def _apply_promotion(self, tx: Dict[str, Any], user_id: str):
        """Returns (effective_amount, promo_application_id)."""
        effective = float(tx.get("wager_amount") or 0)
        try:
            result = self.supabase.rpc("apply_picks_promotion", {
                "p_user_id": user_id,
                "p_transaction_id": tx["order_id"],
                "p_original_amount": tx.get("wager_amount"),
            }).execute()
        except Exception as e:
            logger.error(f"Error applying promotion for {tx['order_id']}: {str(e)}")
            return effective, None

        rows = result.data or []
        outcome = rows[0] if isinstance(rows, list) and rows else rows
        if not outcome or not outcome.get("success"):
            logger.warning(f"Promotion application failed for {tx['order_id']}: {(outcome or {}).get('error_message')}")
            return effective, None

        effective = float(outcome.get("total_effective_amount") or effective)
        application = first_row(
            self.supabase.table("user_promo_applications").select("id")
            .eq("user_id", user_id).eq("transaction_id", tx["order_id"]).limit(1).execute()
        )
        logger.info(f"Promotional bonus applied to {tx['order_id']}: {outcome.get('bonus_amount')}")
        return effective, application["id"] if application else None

    def _latest_traffic_source(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = (
            self.supabase.table("traffic_sources")
            .select(", ".join(TRAFFIC_FIELDS))
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return first_row(result)

    def complete_anonymous_order(self, session_id: Optional[str], user_id: str) -> Dict[str, Any]:
        """Move every paid checkout of an anonymous session into the caller's picks."""
        if not session_id:
            raise HTTPException(status_code=400, detail="Session ID required")
        try:
            result = (
                self.supabase.table("pick_transactions").select("*")
                .eq("anonymous_session_id", session_id)
                .eq("payment_status", "paid")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching transactions for session {session_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Database error")

        transactions = result.data or []
        if not transactions:
            return {"success": True, "linked": 0, "orders": [], "message": "No paid orders found to link"}

        try:
            # Visits tracked before sign-up belong to the new account
            claim = self.supabase.table("traffic_sources").update({"user_id": user_id}).eq("session_id", session_id)
            claim.is_("user_id", "null").execute()
        except Exception as e:
            logger.warning(f"Could not attribute traffic sources of session {session_id}: {str(e)}")

        orders = []
        for tx in transactions:
            try:
                if not tx.get("gp_name") or not tx.get("order_id") or not isinstance(tx.get("picks"), list):
                    raise ValueError("Missing or invalid required fields")
                if self._picks_row_exists(tx["order_id"]):
                    logger.info(f"Order {tx['order_id']} already linked, skipping")
                    continue

                effective, application_id = float(tx.get("wager_amount") or 0), None
                if tx.get("promotion_applied"):
                    effective, application_id = self._apply_promotion(tx, user_id)

                row = {
                    "user_id": user_id,
                    "gp_name": tx["gp_name"],
                    "session_type": "combined",
                    "picks": tx["picks"],
                    "multiplier": round(float(tx.get("multiplier") or 0)),
                    "potential_win": float(tx.get("potential_win") or 0),
                    "mode": tx.get("mode") or "full",
                    "wager_amount": effective,
                    "name": tx.get("full_name"),
                    "order_id": tx["order_id"],
                    "pick_transaction_id": tx["id"],
                    "payment_method": "paypal" if tx.get("paypal_order_id") else "bold",
                }
                if application_id:
                    row["promo_application_id"] = application_id
                traffic = self._latest_traffic_source(user_id)
                if traffic:
                    row.update({field: traffic.get(field) for field in TRAFFIC_FIELDS})

                self.supabase.table("picks").insert(row).execute()

                if application_id:
                    self.supabase.table("user_promo_applications").update({
                        "status": "used",
                        "used_at": utcnow_iso(),
                    }).eq("id", application_id).execute()

                self.supabase.table("pick_transactions").update({"user_id": user_id}).eq("id", tx["id"]).execute()

                orders.append({
                    "orderId": tx["order_id"],
                    "amount": float(tx.get("wager_amount") or 0),
                    "effectiveAmount": effective,
                    "mode": tx.get("mode"),
                    "picks": len(tx["picks"]),
                    "promotionApplied": bool(tx.get("promotion_applied")),
                })
            except Exception as e:
                logger.error(f"Error linking transaction {tx.get('order_id')}: {str(e)}")

        linked = len(orders)
        logger.info(f"Linked {linked} orders to user {user_id}")
        return {
            "success": True,
            "linked": linked,
            "orders": orders,
            "message": f"Successfully linked {linked} paid order{'' if linked == 1 else 's'} to your account",
            "promotionalSummary": {
                "ordersWithPromotion": sum(1 for o in orders if o["promotionApplied"]),
                "totalBonusApplied": sum(o["effectiveAmount"] - o["amount"] for o in orders if o["promotionApplied"]),
            },
        }

    # Settlement

    def _user_contact(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("clerk_users").select("email, full_name").eq("clerk_id", user_id).limit(1).execute()
        return first_row(result)

    def _all_rows(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        """Every row of a table, read one page at a time (responses are capped at max-rows)."""
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            page = (
                self.supabase.table(table).select(columns)
                .order("id")
                .range(start, start + RESULTS_PAGE_SIZE - 1)
                .execute()
            ).data or []
            rows.extend(page)
            if len(page) < RESULTS_PAGE_SIZE:
                return rows
            start += RESULTS_PAGE_SIZE

    def process_results(self) -> List[Dict[str, Any]]:
        """Settle every pick that has no result yet against the published driver positions."""
        picks = self._all_rows("picks")
        settled_ids = {row["pick_id"] for row in self._all_rows("pick_results", "id, pick_id")}
        driver_results_by_gp: Dict[str, List[Dict[str, Any]]] = {}
        summaries = []

        for pick in picks:
            if pick["id"] in settled_ids:
                continue
            gp_name = pick.get("gp_name")
            if gp_name not in driver_results_by_gp:
                driver_results_by_gp[gp_name] = (
                    self.supabase.table("driver_results_for_picks").select("*").eq("gp_name", gp_name).execute().data or []
                )
            outcome = settle_pick(pick, driver_results_by_gp[gp_name])

            self.supabase.table("pick_results").insert({
                "pick_id": pick["id"],
                "user_id": pick.get("user_id"),
                "gp_name": gp_name,
                "session_type": pick.get("session_type"),
                "picks": pick.get("picks"),
                "mode": pick.get("mode"),
                "processed_at": utcnow_iso(),
                **outcome,
            }).execute()

            contact = self._user_contact(pick["user_id"]) if pick.get("user_id") else None
            if contact and contact.get("email"):
                try:
                    self.email.send_pick_results(
                        contact["email"], contact.get("full_name"), gp_name, pick.get("mode"),
                        outcome["correct_count"], outcome["total_picks"], outcome["result"], outcome["payout"],
                    )
                except Exception as e:
                    logger.error(f"Results email failed for pick {pick['id']}: {str(e)}")

            summaries.append({"id": pick["id"], "result": outcome["result"], "payout": outcome["payout"]})

        logger.info(f"Processed {len(summaries)} pick(s)")
        return summaries

    def expire_pending(self) -> int:
        cutoff = (utcnow() - RECOVERY_WINDOW).isoformat()
        result = (
            self.supabase.table("pick_transactions")
            .update({"payment_status": "expired"})
            .eq("payment_status", "pending")
            .lt("created_at", cutoff)
            .execute()
        )
        return len(result.data or [])
