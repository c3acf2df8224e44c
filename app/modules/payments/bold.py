"""
Bold checkout helpers.

Bold signs two different things:
- the checkout button, with an "integrity signature": SHA-256 of
  order id + amount + currency + secret key (no HMAC), checked by Bold;
- webhook deliveries, with `x-bold-signature`: HMAC-SHA256 keyed by the secret
  key over the base64 encoding of the raw request body, checked by us.
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import Union

logger = logging.getLogger(__name__)


def format_amount(amount: Union[int, float, str]) -> str:
    """Bold amounts are whole pesos; 20000.0 and "20000" both sign as "20000"."""
    if isinstance(amount, str):
        amount = float(amount)
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def integrity_signature(order_id: str, amount: Union[int, float, str], currency: str, secret: str) -> str:
    data = f"{order_id}{format_amount(amount)}{currency}{secret}"
    return hashlib.sha256(data.encode()).hexdigest()


def webhook_signature(raw_body: bytes, secret: str) -> str:
    encoded = base64.b64encode(raw_body)
    return hmac.new(secret.encode(), encoded, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    if not signature or not secret:
        return False
    try:
        expected = webhook_signature(raw_body, secret)
        return hmac.compare_digest(signature.strip().lower(), expected)
    except Exception as e:
        logger.error(f"Bold signature verification error: {e}")
        return False


def raffle_order_id(user_id: str) -> str:
    return f"ORDER-{user_id}-{int(time.time() * 1000)}"
