import base64
import httpx
from app.config import settings
from fastapi import HTTPException
from typing import Any, Dict, Mapping, Optional
import logging

logger = logging.getLogger(__name__)

VERIFY_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_id": "paypal-cert-id",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


class PayPalClient:
    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 base_url: Optional[str] = None, webhook_id: Optional[str] = None):
        self.client_id = client_id or settings.paypal_client_id
        self.client_secret = client_secret or settings.paypal_client_secret
        self.base_url = (base_url or settings.paypal_base_url).rstrip("/")
        self.webhook_id = webhook_id or settings.paypal_webhook_id

    def get_access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise HTTPException(status_code=500, detail="PayPal credentials not configured")
        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        response = httpx.post(
            f"{self.base_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {basic}"},
            timeout=15,
        )
        response.raise_for_status()
        return response.json()["access_token"]

    def create_order(self, reference_id: str, amount_usd: str, description: str,
                     return_url: str, cancel_url: str) -> Dict[str, Any]:
        token = self.get_access_token()
        response = httpx.post(
            f"{self.base_url}/v2/checkout/orders",
            json={
                "intent": "CAPTURE",
                "purchase_units": [{
                    "reference_id": reference_id,
                    "custom_id": reference_id,
                    "amount": {"currency_code": "USD", "value": amount_usd},
                    "description": description,
                }],
                "application_context": {"return_url": return_url, "cancel_url": cancel_url},
            },
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            timeout=15,
        )
        data = response.json()
        if response.status_code >= 400:
            raise HTTPException(status_code=502, detail=f"PayPal order creation failed: {data.get('message')}")
        return data

    def verify_webhook_signature(self, headers: Mapping[str, str], event: Dict[str, Any]) -> bool:
        """Ask PayPal to verify the delivery. Any missing header or API failure counts as invalid."""
        values = {field: headers.get(header) for field, header in VERIFY_HEADERS.items()}
        if not all(values.values()) or not self.webhook_id:
            return False
        try:
            token = self.get_access_token()
            response = httpx.post(
                f"{self.base_url}/v1/notifications/verify-webhook-signature",
                json={**values, "webhook_id": self.webhook_id, "webhook_event": event},
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                timeout=15,
            )
            return response.json().get("verification_status") == "SUCCESS"
        except Exception as e:
            logger.error(f"PayPal webhook verification failed: {e}")
            return False


def get_paypal_client() -> PayPalClient:
    return PayPalClient()
