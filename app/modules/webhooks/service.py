from supabase import Client
from fastapi import HTTPException
from app.core.timeutil import utcnow_iso
from app.modules.picks.service import PickService
from app.modules.vip.service import VipService
from app.modules.entries.service import EntryService
from app.modules.wallet.service import WalletService
from app.modules.notifications.email import EmailService
from app.modules.tracking.facebook import FacebookConversions
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

IGNORED = {"ok": True, "ignored": True}
PAYPAL_PAID_EVENTS = ("CHECKOUT.ORDER.APPROVED", "PAYMENT.CAPTURE.COMPLETED")
BOLD_APPROVED_EVENTS = ("SALE_APPROVED", "PAYMENT_APPROVED")


def bold_reference(data: Dict[str, Any]) -> Optional[str]:
    return (data.get("metadata") or {}).get("reference") or data.get("order_id") or data.get("external_reference")


class WebhookService:
    """Routes verified provider events to the module that owns the order."""

    def __init__(self, supabase: Client, email: Optional[EmailService] = None,
                 tracker: Optional[FacebookConversions] = None):
        self.supabase = supabase
        self.email = email or EmailService()
        self.tracker = tracker or FacebookConversions()
        self.picks = PickService(supabase, self.email, self.tracker)
        self.vip = VipService(supabase, self.email, self.tracker)
        self.entries = EntryService(supabase, self.email)
        self.wallet = WalletService(supabase, self.email)

    # Bold

    def _pick_payment(self, reference: str, payment_id: Optional[str]) -> Dict[str, Any]:
        tx = self.picks.find_transaction(reference)
        if not tx:
            logger.warning(f"Pick transaction not found for Bold reference {reference}")
            return IGNORED
        if not self.picks.record_payment(tx, "bold", payment_id):
            return IGNORED
        return {"ok": True, "processed": True, "orderId": reference}

    def handle_bold_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type")
        data = event.get("data") or {}
        reference = (data.get("metadata") or {}).get("reference")
        payment_id = data.get("payment_id")

        if event_type == "SALE_REJECTED":
            if reference and reference.startswith("MMC-"):
                self.picks.mark_failed(reference)
            elif reference and reference.startswith("vip-"):
                self.vip.mark_failed(reference)
            logger.info(f"Bold sale rejected for {reference}")
            return {"ok": True, "processed": True, "status": "failed"}

        if event_type != "SALE_APPROVED":
            logger.info(f"Bold event {event_type} ignored")
            return IGNORED
        if not reference or not payment_id:
            raise HTTPException(status_code=400, detail="Missing payment data")

        if reference.startswith("MMC-"):
            return self._pick_payment(reference, payment_id)
        if reference.startswith("vip-"):
            return self.vip.process_pass_payment(reference, payment_id)
        if reference.startswith("ORDER-"):
            total = (data.get("amount") or {}).get("total")
            if total is None:
                raise HTTPException(status_code=400, detail="Missing payment data")
            processed = self.entries.add_purchased_numbers(reference, payment_id, total)
            return {"ok": True, "processed": processed} if processed else IGNORED

        logger.info(f"Bold reference {reference} has no handler")
        return IGNORED

    def handle_bold_vip_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        if event.get("type") not in BOLD_APPROVED_EVENTS:
            return IGNORED
        data = event.get("data") or {}
        order_id = bold_reference(data)
        if not order_id:
            return {"ok": False, "error": "No order ID found"}
        payment_id = data.get("payment_id") or data.get("id")
        if order_id.startswith("vip-"):
            return self.vip.process_pass_payment(order_id, payment_id)
        if order_id.startswith("vip_"):
            return self.vip.process_prediction_order(order_id, payment_id)
        return IGNORED

    # PayPal

    def handle_paypal_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        if event.get("event_type") not in PAYPAL_PAID_EVENTS:
            logger.info(f"PayPal event {event.get('event_type')} ignored")
            return IGNORED
        resource = event.get("resource") or {}
        paypal_order_id = resource.get("id")
        units = resource.get("purchase_units") or []
        reference = units[0].get("reference_id") if units else None
        if not reference:
            # Capture events carry the order id under supplementary_data
            related = ((resource.get("supplementary_data") or {}).get("related_ids") or {})
            reference = resource.get("custom_id")
            paypal_order_id = related.get("order_id") or paypal_order_id
        if not reference:
            logger.warning("No reference_id found in PayPal webhook")
            return IGNORED

        tx = self.picks.find_transaction(reference, paypal_order_id)
        if not tx:
            logger.warning(f"Transaction not found for PayPal order {paypal_order_id}")
            return IGNORED
        if not self.picks.record_payment(tx, "paypal", paypal_order_id):
            return IGNORED
        return {"ok": True, "processed": True, "orderId": reference}

    # Clerk

    def handle_clerk_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type")
        data = event.get("data") or {}
        if event_type == "user.created":
            return self._user_created(data)
        if event_type == "user.updated":
            return self._user_updated(data)
        logger.info(f"Clerk event type {event_type} received but no action needed")
        return {"success": True, "message": f"Event type {event_type} received but no action needed."}

    def _identity(self, data: Dict[str, Any]):
        addresses = data.get("email_addresses") or []
        email = addresses[0].get("email_address") if addresses else None
        full_name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()
        if not full_name and email:
            full_name = email.split("@")[0]
        return data.get("id"), email, full_name

    def _user_created(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clerk_id, email, full_name = self._identity(data)
        if not clerk_id or not email:
            raise HTTPException(status_code=400, detail="Required user data missing")

        self.supabase.table("clerk_users").upsert({
            "clerk_id": clerk_id,
            "email": email,
            "username": data.get("username"),
            "full_name": full_name,
            "updated_at": utcnow_iso(),
        }, on_conflict="clerk_id").execute()

        numbers = self.entries.create_initial_entry(clerk_id, full_name, email)
        self.wallet.ensure_wallet(clerk_id)

        try:
            self.email.send_numbers_confirmation(email, full_name, numbers, "registro")
        except Exception as e:
            logger.error(f"Welcome numbers email failed for {email}: {str(e)}")

        logger.info(f"Processed user.created for {clerk_id}")
        return {"success": True, "message": f"User {clerk_id} processed."}

    def _user_updated(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clerk_id, email, full_name = self._identity(data)
        if not clerk_id:
            raise HTTPException(status_code=400, detail="Required user data missing")
        updates = {"full_name": full_name, "updated_at": utcnow_iso()}
        if email:
            updates["email"] = email
        if data.get("username"):
            updates["username"] = data["username"]
        self.supabase.table("clerk_users").update(updates).eq("clerk_id", clerk_id).execute()
        logger.info(f"Processed user.updated for {clerk_id}")
        return {"success": True, "message": f"User {clerk_id} updated."}
