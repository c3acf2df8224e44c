from pydantic import BaseModel
from typing import Optional


class WalletResponse(BaseModel):
    user_id: str
    mmc_coins: Optional[int] = 0
    fuel_coins: Optional[int] = 0
    balance_cop: Optional[float] = 0
    withdrawable_cop: Optional[float] = 0


class DepositRequest(BaseModel):
    orderId: Optional[str] = None
    amount: Optional[float] = None


class DepositResponse(BaseModel):
    ok: bool = True
    already: bool = False


class WithdrawRequest(BaseModel):
    amount: Optional[float] = None
    method: Optional[str] = None
    account: Optional[str] = None


class WithdrawResponse(BaseModel):
    ok: bool = True
    requestId: str


class RedeemPromoCodeRequest(BaseModel):
    code: Optional[str] = None


class RedeemPromoCodeResponse(BaseModel):
    message: str
