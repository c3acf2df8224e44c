from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from app.config import settings
from app.database.supabase_client import get_supabase
from app.modules.payments import bold
from app.modules.payments.paypal import PayPalClient, get_paypal_client
from app.modules.webhooks.service import WebhookService
from supabase import Client
from svix.webhooks import Webhook, WebhookVerificationError
from typing import Any, Callable, Dict
import json
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_webhook_service(supabase: Client = Depends(get_supabase)) -> WebhookService:
    return WebhookService(supabase)


def _parse(raw_body: bytes) -> Dict[str, Any]:
    try:
        return json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")


def _process(name: str, handler: Callable[[Dict[str, Any]], Dict[str, Any]], event: Dict[str, Any]):
    """Run a handler; unexpected errors answer 500 so the provider retries the delivery."""
    try:
        return handler(event)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"{name} webhook processing failed: {str(e)}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


async def _verified_bold_event(request: Request, secret: str) -> Dict[str, Any]:
    raw_body = await request.body()
    signature = request.headers.get("x-bold-signature", "")
    if not bold.verify_webhook_signature(raw_body, signature, secret):
        logger.warning("Bold webhook rejected: invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")
    return _parse(raw_body)


@router.post("/bold")
async def bold_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """Bold sales: picks (MMC-), raffle numbers (ORDER-) and VIP passes (vip-)"""
    event = await _verified_bold_event(request, settings.bold_secret_key)
    logger.info(f"Bold webhook received: {event.get('type')}")
    return _process("Bold", service.handle_bold_event, event)


@router.post("/bold-vip")
async def bold_vip_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    event = await _verified_bold_event(request, settings.bold_webhook_secret_key)
    logger.info(f"Bold VIP webhook received: {event.get('type')}")
    return _process("Bold VIP", service.handle_bold_vip_event, event)


@router.post("/paypal")
async def paypal_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
    paypal: PayPalClient = Depends(get_paypal_client)
):
    raw_body = await request.body()
    event = _parse(raw_body)
    if not paypal.verify_webhook_signature(request.headers, event):
        logger.warning("PayPal webhook rejected: invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")
    logger.info(f"PayPal webhook received: {event.get('event_type')}")
    return _process("PayPal", service.handle_paypal_event, event)


@router.post("/clerk")
async def clerk_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """Clerk user lifecycle events, signed by Svix"""
    if not settings.clerk_webhook_secret:
        logger.error("CLERK_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=500, detail="Server config error: Clerk secret missing")

    msg_id = request.headers.get("svix-id")
    timestamp = request.headers.get("svix-timestamp")
    signature = request.headers.get("svix-signature")
    if not msg_id or not timestamp or not signature:
        raise HTTPException(status_code=400, detail="Missing Svix headers")

    raw_body = await request.body()
    headers = {"svix-id": msg_id, "svix-timestamp": timestamp, "svix-signature": signature}
    try:
        event = Webhook(settings.clerk_webhook_secret).verify(raw_body, headers)
    except (WebhookVerificationError, ValueError) as e:
        # ValueError covers malformed signature entries and non-JSON bodies
        logger.warning(f"Clerk webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Webhook signature verification failed")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    logger.info(f"Clerk webhook received: {event.get('type')}")
    return _process("Clerk", service.handle_clerk_event, event)
