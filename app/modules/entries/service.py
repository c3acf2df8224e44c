from supabase import Client
from fastapi import HTTPException
from app.database.supabase_client import first_row
from app.modules.notifications.email import EmailService
from typing import Any, Dict, List, Optional
import random
import re
import logging

logger = logging.getLogger(__name__)

NUMBERS_PER_PACK = 5
RAFFLE_REFERENCE = re.compile(r"^ORDER-(user_[A-Za-z0-9]+)-(\d+)")


def generate_numbers(count: int = NUMBERS_PER_PACK) -> List[str]:
    return [str(random.randint(100000, 999999)) for _ in range(count)]


def user_id_from_reference(reference: str) -> Optional[str]:
    match = RAFFLE_REFERENCE.match(reference or "")
    return match.group(1) if match else None


class EntryService:
    def __init__(self, supabase: Client, email: Optional[EmailService] = None):
        self.supabase = supabase
        self.email = email or EmailService()

    def get_entry(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("entries").select("*").eq("user_id", user_id).limit(1).execute()
        return first_row(result)

    def create_initial_entry(self, user_id: str, full_name: str, email: str) -> List[str]:
        numbers = generate_numbers()
        self.supabase.table("entries").upsert({
            "user_id": user_id,
            "numbers": numbers,
            "paid_numbers_count": 0,
            "name": full_name,
            "email": email,
            "region": "CO",
        }, on_conflict="user_id").execute()
        return numbers

    def create_entry(self, user_id: str, name: Optional[str], email: Optional[str], region: Optional[str]) -> bool:
        """Create the caller's free entry. Returns False when one already exists."""
        if self.get_entry(user_id):
            return False
        try:
            self.supabase.table("entries").insert({
                "user_id": user_id,
                "numbers": generate_numbers(),
                "paid_numbers_count": 0,
                "name": name or None,
                "email": email or None,
                "region": region or "CO",
            }).execute()
        except Exception as e:
            logger.error(f"Error creating entry for {user_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create entry")
        return True

    def add_paid_pack(self, user_id: str) -> List[str]:
        """Append one paid pack of numbers to an existing entry."""
        entry = self.get_entry(user_id)
        if not entry:
            raise HTTPException(status_code=404, detail=f"No entry row found for user: {user_id}")
        numbers = generate_numbers()
        self.supabase.table("entries").update({
            "numbers": (entry.get("numbers") or []) + numbers,
            "paid_numbers_count": (entry.get("paid_numbers_count") or 0) + NUMBERS_PER_PACK,
        }).eq("user_id", user_id).execute()
        logger.info(f"Added {NUMBERS_PER_PACK} raffle numbers for {user_id}")
        return numbers

    def purchase_description(self, reference: str, payment_id: str) -> str:
        return f"Compra de {NUMBERS_PER_PACK} números extra via Bold (Ref: {reference}, BoldID: {payment_id})"

    def add_purchased_numbers(self, reference: str, payment_id: str, total_amount: float) -> bool:
        """
        Credit an extra-numbers purchase paid through Bold.

        The ledger row description carries the reference and payment id, so a
        re-delivered webhook finds it and returns False without adding numbers twice.
        """
        user_id = user_id_from_reference(reference)
        if not user_id:
            raise HTTPException(status_code=400, detail=f"Invalid reference format: {reference}")

        description = self.purchase_description(reference, payment_id)
        existing = self.supabase.table("transactions").select("id").eq("description", description).limit(1).execute()
        if existing.data:
            logger.info(f"Raffle purchase {reference} already processed")
            return False
        if not self.get_entry(user_id):
            raise HTTPException(status_code=404, detail=f"No entry row found for user: {user_id}")

        self.supabase.table("transactions").insert({
            "user_id": user_id,
            "type": "recarga",
            "amount": total_amount,
            "description": description,
        }).execute()

        numbers = self.add_paid_pack(user_id)

        user = first_row(
            self.supabase.table("clerk_users").select("email, full_name").eq("clerk_id", user_id).limit(1).execute()
        )
        if user and user.get("email"):
            try:
                self.email.send_numbers_confirmation(
                    user["email"], user.get("full_name") or "Usuario", numbers, "compra", reference, total_amount
                )
            except Exception as e:
                logger.error(f"Numbers email failed for {reference}: {str(e)}")
        return True
