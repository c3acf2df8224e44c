from supabase import Client
from fastapi import HTTPException
from app.config import settings
from app.core.timeutil import utcnow, utcnow_iso
from app.database.supabase_client import first_row
from app.modules.auth.service import ClerkService
from app.modules.payments import bold
from app.modules.notifications.email import EmailService
from app.modules.tracking.facebook import FacebookConversions
from app.modules.vip.plans import (
    PREDICTION_ORDER_AMOUNT, get_plan, plan_display_name, plan_expiration, has_active_access,
)
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timedelta
import math
import re
import time
import uuid
import logging

logger = logging.getLogger(__name__)

LOGIN_SESSION_TTL = timedelta(minutes=15)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out


def pass_order_id(plan_id: str, user_id: str, ms: Optional[int] = None) -> str:
    """vip-{plan}-{user}-{stamp}; Bold references are limited to 40 characters."""
    safe_user = re.sub(r"[^a-z0-9-]", "-", user_id.lower())[:12]
    stamp = to_base36(ms if ms is not None else int(time.time() * 1000))
    return f"vip-{plan_id}-{safe_user}-{stamp}"


def prediction_order_id() -> str:
    return f"vip_{int(time.time() * 1000)}_{str(uuid.uuid4())[:8]}"


def submission_week(moment: datetime) -> int:
    year_start = datetime(moment.year, 1, 1, tzinfo=moment.tzinfo)
    return math.ceil((moment - year_start).total_seconds() / (7 * 24 * 3600))


class VipService:
    def __init__(self, supabase: Client, email: Optional[EmailService] = None,
                 tracker: Optional[FacebookConversions] = None):
        self.supabase = supabase
        self.email = email or EmailService()
        self.tracker = tracker or FacebookConversions()

    def _site_url(self) -> str:
        return settings.site_url.rstrip("/")

    def _transaction(self, order_id: str, **filters) -> Optional[Dict[str, Any]]:
        query = self.supabase.table("vip_transactions").select("*").eq("order_id", order_id)
        for column, value in filters.items():
            query = query.eq(column, value)
        return first_row(query.limit(1).execute())

    def get_vip_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return first_row(self.supabase.table("vip_users").select("*").eq("id", user_id).limit(1).execute())

    def _race_time(self, gp_name: Optional[str]) -> Optional[str]:
        if not gp_name:
            return None
        gp = first_row(self.supabase.table("gp_schedule").select("race_time").eq("gp_name", gp_name).limit(1).execute())
        return gp.get("race_time") if gp else None

    def next_active_gp(self) -> Optional[Dict[str, Any]]:
        """The next GP still open for predictions (qualifying not started)."""
        result = (
            self.supabase.table("gp_schedule")
            .select("gp_name, qualy_time, race_time")
            .gte("qualy_time", utcnow_iso())
            .order("race_time")
            .limit(1)
            .execute()
        )
        return first_row(result)

    # Pass checkout

    def register_order(self, user_id: str, plan_id: Optional[str]) -> Dict[str, Any]:
        plan = get_plan(plan_id)
        if not plan:
            raise HTTPException(status_code=400, detail="PLAN_NOT_FOUND")

        user = first_row(
            self.supabase.table("clerk_users").select("full_name, email").eq("clerk_id", user_id).limit(1).execute()
        ) or {}

        active_gp = None
        if plan_id == "race-pass":
            gp = self.next_active_gp()
            active_gp = gp.get("gp_name") if gp else None
            if not active_gp:
                raise HTTPException(status_code=400, detail="NO_ACTIVE_GP")

        order_id = pass_order_id(plan_id, user_id)
        amount = str(plan["price"])
        try:
            self.supabase.table("vip_transactions").insert({
                "user_id": user_id,
                "full_name": user.get("full_name") or "Sin nombre",
                "email": user.get("email") or "",
                "plan_id": plan_id,
                "order_id": order_id,
                "amount_cop": plan["price"],
                "payment_status": "pending",
                "selected_gp": active_gp,
            }).execute()
        except Exception as e:
            logger.error(f"Error saving VIP order {order_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="DB_ERROR")

        logger.info(f"VIP order {order_id} registered for {user_id}")
        return {
            "orderId": order_id,
            "amount": amount,
            "description": f"F1 Fantasy VIP – {plan['name']}" + (f" ({active_gp})" if active_gp else ""),
            "integritySignature": bold.integrity_signature(order_id, amount, settings.bold_currency, settings.bold_secret_key),
            "redirectionUrl": f"{self._site_url()}/fantasy-vip-success?orderId={order_id}",
            "activeGp": active_gp,
        }

    def confirm_order(self, user_id: str, order_id: Optional[str]) -> Dict[str, Any]:
        if not order_id:
            raise HTTPException(status_code=400, detail="Missing orderId")
        result = (
            self.supabase.table("vip_transactions")
            .update({"payment_status": "paid", "manual_confirmation_at": utcnow_iso()})
            .eq("order_id", order_id)
            .eq("user_id", user_id)
            .eq("payment_status", "pending")
            .execute()
        )
        return {"success": True, "updated": bool(result.data)}

    def verify_payment(self, user_id: str, order_id: Optional[str]) -> Dict[str, Any]:
        if not order_id:
            raise HTTPException(status_code=400, detail="Missing orderId")
        tx = self._transaction(order_id, user_id=user_id)
        if not tx:
            raise HTTPException(status_code=404, detail="Transaction not found")
        vip_user = self.get_vip_user(user_id)
        return {
            "isPaid": tx.get("payment_status") == "paid",
            "planId": tx.get("plan_id"),
            "amount": tx.get("amount_cop"),
            "paidAt": tx.get("paid_at"),
            "hasVipAccess": bool(vip_user),
            "activePlan": vip_user.get("active_plan") if vip_user else None,
            "expiresAt": vip_user.get("plan_expires_at") if vip_user else None,
        }

    def check_access(self, user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            return {"hasAccess": False, "error": "Not authenticated"}
        vip_user = self.get_vip_user(user_id)
        if not vip_user or not vip_user.get("plan_expires_at"):
            return {"hasAccess": False}
        return {
            "hasAccess": has_active_access(vip_user),
            "plan": vip_user.get("active_plan"),
            "expiresAt": vip_user.get("plan_expires_at"),
        }

    def verify_access(self, order_id: Optional[str], email: Optional[str]) -> Dict[str, Any]:
        if not order_id or not email:
            raise HTTPException(status_code=400, detail="Order ID and email required")
        tx = self._transaction(order_id, payment_status="paid")
        if not tx:
            return {"success": False, "error": "Transaction not found or not paid"}
        if email not in (tx.get("email"), tx.get("customer_email")):
            return {"success": False, "error": "Email does not match transaction"}
        vip_user = self.get_vip_user(tx.get("user_id"))
        if not vip_user:
            return {"success": False, "error": "VIP access not found"}
        return {
            "success": True,
            "verified": True,
            "user": {
                "id": vip_user["id"],
                "email": vip_user.get("email"),
                "plan": vip_user.get("active_plan"),
                "expiresAt": vip_user.get("plan_expires_at"),
            },
        }

    # Access grant

    def _grant_access(self, tx: Dict[str, Any], user_id: str, full_name: str, email: str,
                      pay_first: bool = False) -> Tuple[str, Optional[str]]:
        """Upsert vip_users and vip_entries for a paid pass. Returns (expires_at, race_pass_gp)."""
        race_pass_gp = None
        race_time = None
        if tx.get("plan_id") == "race-pass" and tx.get("selected_gp"):
            race_time = self._race_time(tx["selected_gp"])
            if race_time:
                race_pass_gp = tx["selected_gp"]
        expires_at = plan_expiration(tx.get("plan_id"), race_time).isoformat()

        self.supabase.table("vip_users").upsert({
            "id": user_id,
            "entry_tx_id": str(uuid.uuid4()),
            "joined_at": tx.get("paid_at") or utcnow_iso(),
            "full_name": full_name,
            "email": email,
            "active_plan": tx.get("plan_id"),
            "plan_expires_at": expires_at,
            "race_pass_gp": race_pass_gp,
            "created_via_pay_first": pay_first,
        }, on_conflict="id").execute()

        self.supabase.table("vip_entries").upsert({
            "user_id": user_id,
            "status": "approved",
            "amount_paid": tx.get("amount_cop"),
            "currency": "COP",
            "bold_order_id": tx.get("bold_payment_id") or tx["order_id"],
            "customer_email": email,
            "customer_name": full_name,
            "account_created": True,
            "metadata": {"source": "email_collection_flow" if pay_first else "bold_webhook"},
        }, on_conflict="bold_order_id").execute()
        return expires_at, race_pass_gp

    def _access_granted(self, tx: Dict[str, Any], payment_id: Optional[str]) -> bool:
        refs = [ref for ref in (tx["order_id"], tx.get("bold_payment_id"), payment_id) if ref]
        result = self.supabase.table("vip_entries").select("id").in_("bold_order_id", refs).limit(1).execute()
        return bool(result.data)

    def process_pass_payment(self, order_id: str, payment_id: Optional[str]) -> Dict[str, Any]:
        """Bold approved a VIP pass checkout.

        A pending order is marked paid and access is granted. An order already
        marked paid (confirm-order, or an earlier delivery that failed half way)
        is granted access if no vip_entries row exists for it yet. Anything else
        is a re-delivery and is ignored.
        """
        tx = self._transaction(order_id)
        if not tx:
            logger.warning(f"VIP transaction not found for order {order_id}")
            return {"ok": True, "ignored": True}

        now = utcnow_iso()
        if tx.get("payment_status") == "pending":
            status = "paid" if tx.get("user_id") else "paid_no_email"
            result = (
                self.supabase.table("vip_transactions")
                .update({
                    "payment_status": status,
                    "bold_payment_id": payment_id,
                    "paid_at": now,
                    "bold_webhook_received_at": now,
                })
                .eq("order_id", order_id)
                .eq("payment_status", "pending")
                .execute()
            )
            if not result.data:
                return {"ok": True, "ignored": True}
            if not tx.get("user_id"):
                logger.info(f"VIP order {order_id} paid without account; waiting for email collection")
                return {"ok": True, "processed": True, "status": status}
            tx.update({"bold_payment_id": payment_id, "paid_at": now})
        elif tx.get("payment_status") == "paid" and tx.get("user_id") and not self._access_granted(tx, payment_id):
            logger.info(f"VIP order {order_id} already paid without access; granting now")
            status = "paid"
            changes = {"bold_webhook_received_at": now}
            if payment_id and not tx.get("bold_payment_id"):
                changes["bold_payment_id"] = payment_id
            if not tx.get("paid_at"):
                changes["paid_at"] = tx.get("manual_confirmation_at") or now
            self.supabase.table("vip_transactions").update(changes).eq("order_id", order_id).execute()
            tx.update(changes)
        else:
            logger.info(f"VIP order {order_id} already {tx.get('payment_status')}")
            return {"ok": True, "ignored": True}

        full_name = tx.get("full_name") or "Sin nombre"
        email = tx.get("email") or ""
        expires_at, race_pass_gp = self._grant_access(tx, tx["user_id"], full_name, email)

        if email:
            try:
                self.email.send_vip_confirmation(
                    email, full_name, plan_display_name(tx.get("plan_id")), float(tx.get("amount_cop") or 0),
                    order_id, expires_at, race_pass_gp,
                )
            except Exception as e:
                logger.error(f"VIP confirmation email failed for {order_id}: {str(e)}")
        try:
            self.tracker.track_purchase(
                order_id=order_id,
                amount_cop=float(tx.get("amount_cop") or 0),
                content_name=f"F1 Fantasy VIP - {plan_display_name(tx.get('plan_id'))}",
                content_ids=[tx.get("plan_id") or "vip"],
                email=email,
                full_name=full_name,
                external_id=tx["user_id"],
                event_source_url=f"{self._site_url()}/fantasy-vip-success?orderId={order_id}",
                extra={"content_category": "fantasy_vip", "transaction_id": payment_id},
            )
        except Exception as e:
            logger.error(f"VIP purchase tracking failed for {order_id}: {str(e)}")

        logger.info(f"VIP access granted to {tx['user_id']} until {expires_at}")
        return {"ok": True, "processed": True, "status": status, "plan_expires_at": expires_at}

    def mark_failed(self, order_id: str) -> bool:
        result = (
            self.supabase.table("vip_transactions")
            .update({"payment_status": "failed"})
            .eq("order_id", order_id)
            .eq("payment_status", "pending")
            .execute()
        )
        return bool(result.data)

    # Pay-first flow

    def collect_email(self, order_id: Optional[str], email: Optional[str], clerk: ClerkService) -> Dict[str, Any]:
        if not order_id or not email:
            raise HTTPException(status_code=400, detail="Order ID and email are required")
        if not EMAIL_PATTERN.match(email):
            raise HTTPException(status_code=400, detail="Email inválido")

        tx = self._transaction(order_id, payment_status="paid_no_email")
        if not tx:
            raise HTTPException(status_code=404, detail="Orden no encontrada")

        try:
            existing = clerk.find_users_by_email(email)
            if existing:
                self.supabase.table("vip_transactions").update({
                    "user_id": existing[0]["id"],
                    "email": email,
                    "payment_status": "paid",
                }).eq("order_id", order_id).execute()
                return {"success": False, "user_exists": True, "message": "Usuario ya existe, redirigir a login"}

            customer_name = tx.get("customer_name") or tx.get("full_name") or ""
            parts = customer_name.split(" ")
            new_user = clerk.create_user(email, parts[0] or None, " ".join(parts[1:]) or None)
            user_id = new_user["id"]
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Clerk account creation failed for VIP order {order_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Error interno del servidor")

        self.supabase.table("clerk_users").upsert({
            "clerk_id": user_id,
            "email": email,
            "full_name": customer_name,
            "created_at": utcnow_iso(),
            "created_via": "pay_first_email_collection",
        }, on_conflict="clerk_id").execute()

        self.supabase.table("vip_transactions").update({
            "user_id": user_id,
            "email": email,
            "full_name": customer_name,
            "payment_status": "paid",
            "customer_email": email,
            "customer_name": customer_name,
        }).eq("order_id", order_id).execute()

        self._grant_access(tx, user_id, customer_name, email, pay_first=True)

        session_token = str(uuid.uuid4())
        self.supabase.table("vip_login_sessions").insert({
            "session_token": session_token,
            "clerk_user_id": user_id,
            "order_id": order_id,
            "expires_at": (utcnow() + LOGIN_SESSION_TTL).isoformat(),
            "used": False,
        }).execute()

        logger.info(f"Pay-first VIP account {user_id} created for order {order_id}")
        return {
            "success": True,
            "message": "Cuenta creada exitosamente",
            "user_id": user_id,
            "email": email,
            "login_session_token": session_token,
        }

    def _valid_login_session(self, order_id: str, session_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = (
            self.supabase.table("vip_login_sessions").select("*")
            .eq("order_id", order_id)
            .eq("used", False)
            .gte("expires_at", utcnow_iso())
        )
        if session_token:
            query = query.eq("session_token", session_token)
        return first_row(query.limit(1).execute())

    def check_account_status(self, order_id: Optional[str]) -> Dict[str, Any]:
        if not order_id:
            raise HTTPException(status_code=400, detail="Order ID required")
        tx = self._transaction(order_id)
        if not tx:
            return {"status": "payment_not_found", "message": "Orden no encontrada"}
        status = tx.get("payment_status")
        if status == "pending":
            return {"status": "payment_pending", "message": "Pago en proceso"}
        if status == "failed":
            return {"status": "payment_failed", "message": "Pago falló"}
        if status == "paid_no_email":
            return {"status": "account_creating", "message": "Creando cuenta..."}
        if status != "paid":
            return {"status": "unknown", "message": "Estado desconocido"}

        vip_user = self.get_vip_user(tx.get("user_id"))
        if not vip_user:
            return {"status": "account_creating", "message": "Creando cuenta..."}
        session = self._valid_login_session(order_id)
        return {
            "status": "account_ready",
            "message": "Cuenta lista",
            "account": {
                "email": vip_user.get("email"),
                "full_name": vip_user.get("full_name"),
                "plan_id": vip_user.get("active_plan"),
                "race_pass_gp": vip_user.get("race_pass_gp"),
                "login_session_token": session.get("session_token") if session else None,
                "plan_expires_at": vip_user.get("plan_expires_at"),
            },
        }

    def auto_login(self, session_token: Optional[str], order_id: Optional[str], clerk: ClerkService) -> Dict[str, Any]:
        """Consume a login session token and exchange it for a Clerk sign-in ticket."""
        if not session_token or not order_id:
            raise HTTPException(status_code=400, detail="Session token and order ID required")
        session = self._valid_login_session(order_id, session_token)
        if not session:
            return {"success": False, "error": "Token de sesión inválido o expirado"}

        consumed = (
            self.supabase.table("vip_login_sessions")
            .update({"used": True, "used_at": utcnow_iso()})
            .eq("session_token", session_token)
            .eq("used", False)
            .execute()
        )
        if not consumed.data:
            return {"success": False, "error": "Token de sesión inválido o expirado"}

        user_id = session["clerk_user_id"]
        try:
            sign_in = clerk.create_sign_in_token(user_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Clerk sign-in token failed for {user_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Error interno del servidor")
        return {
            "success": True,
            "message": "Session verificada exitosamente",
            "userId": user_id,
            "signInUrl": sign_in.get("url"),
            "signInToken": sign_in.get("token"),
        }

    # Paid predictions

    def submit_prediction(self, user_id: str, predictions: Dict[str, Any], gp_name: str) -> Tuple[bool, Optional[str]]:
        existing = (
            self.supabase.table("predictions").select("id")
            .eq("user_id", user_id).eq("gp_name", gp_name).limit(1).execute()
        )
        if existing.data:
            return False, "Ya existe una predicción para este GP"

        now = utcnow()
        try:
            self.supabase.table("predictions").insert({
                "user_id": user_id,
                "gp_name": gp_name,
                **(predictions or {}),
                "is_vip": True,
                "submitted_at": now.isoformat(),
                "submission_week": submission_week(now),
                "submission_year": now.year,
            }).execute()
        except Exception as e:
            logger.error(f"Error saving VIP prediction for {user_id}: {str(e)}")
            return False, "Error guardando predicción VIP"

        try:
            self.supabase.table("leaderboard").update({"is_vip": True}).eq("user_id", user_id).execute()
        except Exception as e:
            logger.warning(f"Leaderboard VIP flag failed for {user_id}: {str(e)}")

        contact = first_row(
            self.supabase.table("clerk_users").select("email, full_name").eq("clerk_id", user_id).limit(1).execute()
        )
        if contact and contact.get("email"):
            try:
                self.email.send_prediction_confirmation(
                    contact["email"], contact.get("full_name") or "Piloto", gp_name, predictions or {}
                )
            except Exception as e:
                logger.error(f"Prediction email failed for {user_id}: {str(e)}")
        return True, None

    def create_prediction_order(self, user_id: str, predictions: Optional[Dict[str, Any]],
                                gp_name: Optional[str]) -> Dict[str, Any]:
        if not predictions or not gp_name:
            raise HTTPException(status_code=400, detail="Datos incompletos")

        leaderboard = first_row(
            self.supabase.table("leaderboard").select("is_vip").eq("user_id", user_id).limit(1).execute()
        )
        if leaderboard and leaderboard.get("is_vip"):
            ok, error = self.submit_prediction(user_id, predictions, gp_name)
            if not ok:
                raise HTTPException(status_code=500, detail=error)
            return {"success": True, "isExistingVip": True, "message": "Predicción VIP enviada (ya eres VIP)"}

        order_id = prediction_order_id()
        try:
            self.supabase.table("vip_orders").insert({
                "order_id": order_id,
                "user_id": user_id,
                "gp_name": gp_name,
                "predictions": predictions,
                "amount_cop": PREDICTION_ORDER_AMOUNT,
                "status": "pending",
            }).execute()
        except Exception as e:
            logger.error(f"Error saving VIP prediction order {order_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Error interno del servidor")

        return {
            "orderId": order_id,
            "amount": str(PREDICTION_ORDER_AMOUNT),
            "redirectionUrl": f"{self._site_url()}/fantasy?vip_success={order_id}",
            "integritySignature": bold.integrity_signature(
                order_id, PREDICTION_ORDER_AMOUNT, settings.bold_currency, settings.bold_secret_key
            ),
            "currency": settings.bold_currency,
        }

    def process_prediction_order(self, order_id: str, payment_id: Optional[str]) -> Dict[str, Any]:
        order = first_row(
            self.supabase.table("vip_orders").select("*")
            .eq("order_id", order_id).eq("status", "pending").limit(1).execute()
        )
        if not order:
            return {"ok": False, "error": "Order not found or already processed"}

        ok, error = self.submit_prediction(order["user_id"], order.get("predictions") or {}, order["gp_name"])
        if not ok:
            self.supabase.table("vip_orders").update({
                "status": "failed",
                "error_message": error,
                "processed_at": utcnow_iso(),
            }).eq("order_id", order_id).execute()
            return {"ok": False, "error": error}

        self.supabase.table("vip_orders").update({
            "status": "completed",
            "bold_payment_id": payment_id,
            "processed_at": utcnow_iso(),
        }).eq("order_id", order_id).execute()
        logger.info(f"VIP prediction order {order_id} completed for {order['user_id']}")
        return {
            "ok": True,
            "processed": True,
            "order_id": order_id,
            "user_id": order["user_id"],
            "gp_name": order["gp_name"],
        }
