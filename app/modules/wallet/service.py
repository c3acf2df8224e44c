from supabase import Client
from fastapi import HTTPException
from app.core.timeutil import utcnow, parse_timestamp
from app.database.supabase_client import first_row
from app.modules.notifications.email import EmailService
from app.modules.picks.payouts import wallet_rewards
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

MIN_WITHDRAW = 10000


class WalletService:
    def __init__(self, supabase: Client, email: Optional[EmailService] = None):
        self.supabase = supabase
        self.email = email or EmailService()

    def get_wallet(self, user_id: str) -> Dict[str, Any]:
        row = first_row(self.supabase.table("wallet").select("*").eq("user_id", user_id).limit(1).execute())
        if not row:
            return {"user_id": user_id, "mmc_coins": 0, "fuel_coins": 0, "balance_cop": 0, "withdrawable_cop": 0}
        return row

    def ensure_wallet(self, user_id: str):
        """Zeroed wallet row for a new account. Failure only logs a warning."""
        try:
            self.supabase.table("wallet").upsert(
                {"user_id": user_id, "mmc_coins": 0, "fuel_coins": 0}, on_conflict="user_id"
            ).execute()
        except Exception as e:
            logger.warning(f"Wallet upsert failed for {user_id}: {str(e)}")

    def deposit(self, user_id: str, order_id: Optional[str], amount: Optional[float]) -> Dict[str, Any]:
        """Credit a Bold wallet deposit. The ledger description makes a repeated call a no-op."""
        if not order_id or not amount or amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid payload")

        description = f"Depósito wallet Bold (Ref:{order_id})"
        existing = self.supabase.table("transactions").select("id").eq("description", description).limit(1).execute()
        if existing.data:
            return {"ok": True, "already": True}

        try:
            self.supabase.rpc("apply_deposit_promo", {"p_user_id": user_id, "p_amount_cop": amount}).execute()
            self.supabase.table("transactions").insert({
                "user_id": user_id,
                "type": "recarga",
                "amount": amount,
                "description": description,
            }).execute()
        except Exception as e:
            logger.error(f"Error crediting deposit {order_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        user = first_row(
            self.supabase.table("clerk_users").select("email").eq("clerk_id", user_id).limit(1).execute()
        )
        if user and user.get("email"):
            rewards = wallet_rewards(amount)
            try:
                self.email.send_coins_confirmation(user["email"], amount, rewards["mmc_amount"], rewards["fuel_amount"])
            except Exception as e:
                logger.error(f"Coins email failed for {order_id}: {str(e)}")

        logger.info(f"Wallet deposit {order_id} credited for {user_id}")
        return {"ok": True, "already": False}

    def withdraw(self, user_id: str, amount: Optional[float], method: Optional[str], account: Optional[str]) -> Dict[str, Any]:
        if not amount or amount < MIN_WITHDRAW:
            raise HTTPException(status_code=400, detail=f"Monto mínimo {MIN_WITHDRAW}")
        if not method or not account:
            raise HTTPException(status_code=400, detail="Método y cuenta requeridos")

        try:
            self.supabase.rpc("decrement_withdrawable", {"_uid": user_id, "_cop": amount}).execute()
        except Exception as e:
            logger.info(f"Withdrawal rejected for {user_id}: {str(e)}")
            raise HTTPException(status_code=400, detail=str(e))

        result = self.supabase.table("withdrawal_requests").insert({
            "user_id": user_id,
            "amount": amount,
            "method": method,
            "account": account,
        }).execute()
        request_row = first_row(result)
        if not request_row:
            raise HTTPException(status_code=400, detail="Failed to create withdrawal request")

        self.supabase.table("transactions").insert({
            "user_id": user_id,
            "type": "retiro_pending",
            "amount": -amount,
            "description": f"Retiro solicitado (#{request_row['id']})",
        }).execute()
        return {"ok": True, "requestId": str(request_row["id"])}

    def redeem_promo_code(self, user_id: str, raw_code: Optional[str]) -> Dict[str, str]:
        code = str(raw_code or "").strip().upper()
        if not code:
            raise HTTPException(status_code=400, detail="Cuerpo inválido")

        promo = first_row(
            self.supabase.table("promo_codes").select("id, fuel_amount, mmc_amount, max_uses, expires_at, is_active")
            .eq("code", code).limit(1).execute()
        )
        if not promo:
            raise HTTPException(status_code=404, detail="Código inválido")
        if promo.get("is_active") is False:
            raise HTTPException(status_code=400, detail="Código inactivo")
        expires_at = parse_timestamp(promo.get("expires_at"))
        if expires_at and expires_at < utcnow():
            raise HTTPException(status_code=400, detail="Código expirado")

        uses = self.supabase.table("promo_code_redemptions").select("id", count="exact").eq("code_id", promo["id"]).execute()
        if promo.get("max_uses") is not None and (uses.count or 0) >= promo["max_uses"]:
            raise HTTPException(status_code=400, detail="Código agotado")

        used = (
            self.supabase.table("promo_code_redemptions").select("id")
            .eq("code_id", promo["id"]).eq("user_id", user_id).limit(1).execute()
        )
        if used.data:
            raise HTTPException(status_code=400, detail="Ya canjeaste este código")

        try:
            self.supabase.table("promo_code_redemptions").insert({"code_id": promo["id"], "user_id": user_id}).execute()
        except Exception as e:
            logger.error(f"Error saving redemption of {code}: {str(e)}")
            raise HTTPException(status_code=500, detail="Error interno")
        try:
            self.supabase.rpc("increment_wallet_balances", {
                "uid": user_id,
                "mmc_amount": promo.get("mmc_amount") or 0,
                "fuel_amount": promo.get("fuel_amount") or 0,
                "cop_amount": 0,
            }).execute()
        except Exception as e:
            logger.error(f"Error crediting promo code {code}: {str(e)}")
            raise HTTPException(status_code=500, detail="Error actualizando billetera")

        return {"message": f"¡Código aplicado! +{promo.get('fuel_amount') or 0} Fuel y +{promo.get('mmc_amount') or 0} MMC"}
