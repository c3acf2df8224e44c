from fastapi import APIRouter, Depends, HTTPException
from app.config import settings
from app.core.dependencies import get_current_user_id
from app.modules.payments import bold
from app.modules.payments.schemas import BoldHashRequest, BoldHashResponse

router = APIRouter(prefix="/bold", tags=["payments"])


@router.post("/hash", response_model=BoldHashResponse)
async def bold_checkout_hash(
    body: BoldHashRequest,
    user_id: str = Depends(get_current_user_id)
):
    """Checkout data for a pack of extra raffle numbers; the Bold webhook credits the `ORDER-` reference"""
    amount = body.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        raise HTTPException(status_code=400, detail="Invalid amount")
    order_id = bold.raffle_order_id(user_id)
    return BoldHashResponse(
        orderId=order_id,
        amount=amount,
        redirectUrl=f"{settings.site_url.rstrip('/')}/dashboard?bold-tx-status=approved&bold-order-id={order_id}",
        integritySignature=bold.integrity_signature(order_id, amount, settings.bold_currency, settings.bold_secret_key),
        metadata={"reference": order_id},
    )
