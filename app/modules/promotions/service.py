from supabase import Client
from fastapi import HTTPException
from app.modules.promotions.schemas import (
    PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse,
    DirectBonusCreate, DirectBonusUpdate, DirectBonusResponse,
)
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)


def _changes(data) -> Dict[str, Any]:
    changes = data.model_dump(exclude_unset=True, mode="json")
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    return changes


class PromotionAdminService:
    """Back office for promo codes and direct wager bonuses."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    # Promo codes

    def _used_count(self, code_id: str) -> int:
        result = (
            self.supabase.table("promo_code_redemptions")
            .select("id", count="exact")
            .eq("code_id", code_id)
            .execute()
        )
        return result.count or 0

    def _promo_code(self, row: Dict[str, Any]) -> PromoCodeResponse:
        return PromoCodeResponse(**row, used_count=self._used_count(row["id"]))

    def list_promo_codes(self) -> List[PromoCodeResponse]:
        result = self.supabase.table("promo_codes").select("*").order("created_at", desc=True).execute()
        return [self._promo_code(row) for row in result.data or []]

    def create_promo_code(self, data: PromoCodeCreate) -> PromoCodeResponse:
        code = data.code.strip().upper()
        existing = self.supabase.table("promo_codes").select("id").eq("code", code).limit(1).execute()
        if existing.data:
            raise HTTPException(status_code=409, detail="Code already exists")
        try:
            result = self.supabase.table("promo_codes").insert({
                **data.model_dump(mode="json"),
                "code": code,
                "is_active": True,
            }).execute()
        except Exception as e:
            logger.error(f"Error creating promo code {code}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create promo code")
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create promo code")
        logger.info(f"Promo code {code} created")
        return PromoCodeResponse(**result.data[0])

    def update_promo_code(self, code_id: str, data: PromoCodeUpdate) -> PromoCodeResponse:
        result = self.supabase.table("promo_codes").update(_changes(data)).eq("id", code_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Promo code not found")
        return self._promo_code(result.data[0])

    # Direct bonuses

    def list_direct_bonuses(self) -> List[DirectBonusResponse]:
        result = self.supabase.table("direct_bonuses").select("*").order("starts_at", desc=True).execute()
        return [DirectBonusResponse(**row) for row in result.data or []]

    def create_direct_bonus(self, data: DirectBonusCreate) -> DirectBonusResponse:
        if data.ends_at and data.ends_at <= data.starts_at:
            raise HTTPException(status_code=400, detail="ends_at must be after starts_at")
        try:
            result = self.supabase.table("direct_bonuses").insert({
                **data.model_dump(mode="json"),
                "is_active": True,
                "total_applications": 0,
                "total_bonus_given_cop": 0,
            }).execute()
        except Exception as e:
            logger.error(f"Error creating direct bonus {data.name}: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to create direct bonus")
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create direct bonus")
        logger.info(f"Direct bonus '{data.name}' created ({data.bonus_percentage}%)")
        return DirectBonusResponse(**result.data[0])

    def update_direct_bonus(self, bonus_id: str, data: DirectBonusUpdate) -> DirectBonusResponse:
        result = self.supabase.table("direct_bonuses").update(_changes(data)).eq("id", bonus_id).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Direct bonus not found")
        return DirectBonusResponse(**result.data[0])
