from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.promotions.schemas import (
    PromoCodeCreate, PromoCodeUpdate, PromoCodeResponse,
    DirectBonusCreate, DirectBonusUpdate, DirectBonusResponse,
)
from app.modules.promotions.service import PromotionAdminService
from app.core.dependencies import require_internal_key
from supabase import Client
from typing import List

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_internal_key)])


def get_promotion_service(supabase: Client = Depends(get_supabase)) -> PromotionAdminService:
    return PromotionAdminService(supabase)


@router.get("/promo-codes", response_model=List[PromoCodeResponse])
async def list_promo_codes(service: PromotionAdminService = Depends(get_promotion_service)):
    """All promo codes, newest first, with how many times each was redeemed"""
    return service.list_promo_codes()


@router.post("/promo-codes", response_model=PromoCodeResponse, status_code=201)
async def create_promo_code(
    body: PromoCodeCreate,
    service: PromotionAdminService = Depends(get_promotion_service)
):
    return service.create_promo_code(body)


@router.patch("/promo-codes/{code_id}", response_model=PromoCodeResponse)
async def update_promo_code(
    code_id: str,
    body: PromoCodeUpdate,
    service: PromotionAdminService = Depends(get_promotion_service)
):
    return service.update_promo_code(code_id, body)


@router.get("/direct-bonuses", response_model=List[DirectBonusResponse])
async def list_direct_bonuses(service: PromotionAdminService = Depends(get_promotion_service)):
    return service.list_direct_bonuses()


@router.post("/direct-bonuses", response_model=DirectBonusResponse, status_code=201)
async def create_direct_bonus(
    body: DirectBonusCreate,
    service: PromotionAdminService = Depends(get_promotion_service)
):
    return service.create_direct_bonus(body)


@router.patch("/direct-bonuses/{bonus_id}", response_model=DirectBonusResponse)
async def update_direct_bonus(
    bonus_id: str,
    body: DirectBonusUpdate,
    service: PromotionAdminService = Depends(get_promotion_service)
):
    """Activate or pause a bonus, or move its end date"""
    return service.update_direct_bonus(bonus_id, body)
