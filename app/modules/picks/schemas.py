from pydantic import BaseModel, Field
from typing import Optional, List, Any


class PickSelection(BaseModel):
    driver: str
    line: float
    betterOrWorse: str  # mejor | peor
    session_type: str = "race"  # qualy | race


class RegisterPickTransactionRequest(BaseModel):
    picks: List[PickSelection]
    mode: str = "full"  # full | safety
    amount: float
    gpName: str
    fullName: Optional[str] = None
    email: Optional[str] = None
    anonymousSessionId: Optional[str] = None


class PromotionSummary(BaseModel):
    applied: bool
    bonusAmount: Optional[float] = None
    totalEffective: Optional[float] = None
    campaignName: Optional[str] = None


class RegisterPickTransactionResponse(BaseModel):
    orderId: str
    amount: str
    callbackUrl: str
    integrityKey: str
    isAnonymous: bool
    sessionId: Optional[str] = None
    promotion: PromotionSummary


class PayPalCreateOrderRequest(BaseModel):
    picks: List[PickSelection]
    mode: str = "full"
    amount: float
    gpName: str
    fullName: Optional[str] = None
    email: Optional[str] = None


class PayPalCreateOrderResponse(BaseModel):
    orderID: str
    orderId: str


class CompleteAnonymousOrderRequest(BaseModel):
    sessionId: Optional[str] = None


class LinkedOrder(BaseModel):
    orderId: str
    amount: float
    effectiveAmount: float
    mode: Optional[str] = None
    picks: int
    promotionApplied: bool


class PromotionalSummary(BaseModel):
    ordersWithPromotion: int
    totalBonusApplied: float


class CompleteAnonymousOrderResponse(BaseModel):
    success: bool = True
    linked: int
    orders: List[LinkedOrder] = Field(default_factory=list)
    message: str
    promotionalSummary: Optional[PromotionalSummary] = None


class PickResultSummary(BaseModel):
    id: Any
    result: str
    payout: float


class ProcessPicksResponse(BaseModel):
    message: str
    results: List[PickResultSummary]
