from fastapi import APIRouter, Depends, Query, Request
from app.database.supabase_client import get_supabase
from app.modules.vip.schemas import (
    RegisterOrderRequest, RegisterOrderResponse, VerifyPaymentRequest, VerifyAccessRequest,
    CollectEmailRequest, AutoLoginRequest, CreatePredictionOrderRequest,
)
from app.modules.vip.service import VipService
from app.modules.auth.service import ClerkService
from app.core.dependencies import get_current_user_id, get_optional_user_id, get_clerk_service
from app.core.rate_limit import limiter
from app.config import settings
from supabase import Client
from typing import Any, Dict, Optional

router = APIRouter(prefix="/vip", tags=["vip"])


def get_vip_service(supabase: Client = Depends(get_supabase)) -> VipService:
    return VipService(supabase)


@router.post("/register-order", response_model=RegisterOrderResponse)
async def register_order(
    body: RegisterOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: VipService = Depends(get_vip_service)
):
    """Pending VIP pass order plus its Bold checkout data"""
    return service.register_order(user_id, body.planId)


@router.get("/confirm-order")
async def confirm_order(
    orderId: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    return service.confirm_order(user_id, orderId)


@router.post("/verify-payment")
async def verify_payment(
    body: VerifyPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    return service.verify_payment(user_id, body.orderId)


@router.get("/check-access")
async def check_access(
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    return service.check_access(user_id)


@router.post("/verify-access")
@limiter.limit(settings.public_rate_limit)
async def verify_access(
    request: Request,
    body: VerifyAccessRequest,
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    return service.verify_access(body.orderId, body.email)


@router.post("/collect-email")
@limiter.limit(settings.public_rate_limit)
async def collect_email(
    request: Request,
    body: CollectEmailRequest,
    service: VipService = Depends(get_vip_service),
    clerk: ClerkService = Depends(get_clerk_service)
) -> Dict[str, Any]:
    """Pay-first flow: attach an account to an order paid without one"""
    return service.collect_email(body.orderId, body.email, clerk)


@router.get("/check-account-status")
@limiter.limit(settings.public_rate_limit)
async def check_account_status(
    request: Request,
    order: Optional[str] = Query(None),
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    return service.check_account_status(order)


@router.post("/auto-login")
@limiter.limit(settings.public_rate_limit)
async def auto_login(
    request: Request,
    body: AutoLoginRequest,
    service: VipService = Depends(get_vip_service),
    clerk: ClerkService = Depends(get_clerk_service)
) -> Dict[str, Any]:
    return service.auto_login(body.sessionToken, body.orderId, clerk)


@router.post("/create-order")
async def create_prediction_order(
    body: CreatePredictionOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: VipService = Depends(get_vip_service)
) -> Dict[str, Any]:
    """Single paid VIP prediction; users who are already VIP submit directly"""
    return service.create_prediction_order(user_id, body.predictions, body.gpName)
