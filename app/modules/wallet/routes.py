from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.wallet.schemas import (
    WalletResponse, DepositRequest, DepositResponse, WithdrawRequest, WithdrawResponse,
    RedeemPromoCodeRequest, RedeemPromoCodeResponse,
)
from app.modules.wallet.service import WalletService
from app.core.dependencies import get_current_user_id
from supabase import Client

router = APIRouter(tags=["wallet"])


def get_wallet_service(supabase: Client = Depends(get_supabase)) -> WalletService:
    return WalletService(supabase)


@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(
    user_id: str = Depends(get_current_user_id),
    service: WalletService = Depends(get_wallet_service)
):
    return service.get_wallet(user_id)


@router.post("/transactions/deposit", response_model=DepositResponse)
async def deposit(
    body: DepositRequest,
    user_id: str = Depends(get_current_user_id),
    service: WalletService = Depends(get_wallet_service)
):
    """Credit a Bold wallet deposit after the checkout redirect"""
    return service.deposit(user_id, body.orderId, body.amount)


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    body: WithdrawRequest,
    user_id: str = Depends(get_current_user_id),
    service: WalletService = Depends(get_wallet_service)
):
    return service.withdraw(user_id, body.amount, body.method, body.account)


@router.post("/promocodes/redeem", response_model=RedeemPromoCodeResponse)
async def redeem_promo_code(
    body: RedeemPromoCodeRequest,
    user_id: str = Depends(get_current_user_id),
    service: WalletService = Depends(get_wallet_service)
):
    return service.redeem_promo_code(user_id, body.code)
