from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.picks.schemas import (
    RegisterPickTransactionRequest, RegisterPickTransactionResponse,
    PayPalCreateOrderRequest, PayPalCreateOrderResponse,
    CompleteAnonymousOrderRequest, CompleteAnonymousOrderResponse, ProcessPicksResponse,
)
from app.modules.picks.service import PickService
from app.modules.payments.paypal import PayPalClient, get_paypal_client
from app.core.dependencies import get_current_user_id, get_optional_user_id, require_internal_key
from supabase import Client
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["picks"])


def get_pick_service(supabase: Client = Depends(get_supabase)) -> PickService:
    return PickService(supabase)


@router.post("/transactions/register-pick-transaction", response_model=RegisterPickTransactionResponse)
async def register_pick_transaction(
    body: RegisterPickTransactionRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: PickService = Depends(get_pick_service)
):
    """Create a pending wager and return the Bold checkout data. Anonymous buyers are linked after sign-up."""
    return service.register_pick_transaction(body, user_id)


@router.get("/picks/recover")
async def recover_pick_transaction(
    id: str = Query(..., description="pick_transactions id"),
    user_id: str = Depends(get_current_user_id),
    service: PickService = Depends(get_pick_service)
) -> Dict[str, Any]:
    return service.recover(id, user_id)


@router.post("/complete-anonymous-order", response_model=CompleteAnonymousOrderResponse)
async def complete_anonymous_order(
    body: CompleteAnonymousOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: PickService = Depends(get_pick_service)
):
    return service.complete_anonymous_order(body.sessionId, user_id)


@router.post("/paypal/create-order", response_model=PayPalCreateOrderResponse)
async def create_paypal_order(
    body: PayPalCreateOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: PickService = Depends(get_pick_service),
    paypal: PayPalClient = Depends(get_paypal_client)
):
    return service.create_paypal_order(body, user_id, paypal)


@router.post("/admin/process-picks", response_model=ProcessPicksResponse, dependencies=[Depends(require_internal_key)])
async def process_picks(service: PickService = Depends(get_pick_service)):
    """Settle every unsettled pick against driver_results_for_picks"""
    results = service.process_results()
    return ProcessPicksResponse(message="Picks procesados", results=results)
