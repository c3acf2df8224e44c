import hashlib
import time
import uuid
import httpx
from app.config import settings
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com"


def hash_identifier(value: Optional[str]) -> Optional[str]:
    """SHA-256 of the trimmed, lower-cased value, as the Conversions API expects for PII"""
    if not value or not value.strip():
        return None
    return hashlib.sha256(value.strip().lower().encode()).hexdigest()


def generate_event_id() -> str:
    return f"evt_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class FacebookConversions:
    """Server-side Meta pixel events. Tracking is never allowed to fail a payment flow."""

    def __init__(self, pixel_id: Optional[str] = None, access_token: Optional[str] = None,
                 graph_version: Optional[str] = None, test_event_code: Optional[str] = None):
        self.pixel_id = pixel_id if pixel_id is not None else settings.meta_pixel_id
        self.access_token = access_token if access_token is not None else settings.meta_capi_token
        self.graph_version = graph_version or settings.meta_graph_version
        self.test_event_code = test_event_code if test_event_code is not None else settings.fb_test_event_code

    @property
    def enabled(self) -> bool:
        return bool(self.pixel_id and self.access_token)

    def build_event(self, event_name: str, event_id: Optional[str] = None, event_source_url: Optional[str] = None,
                    user_data: Optional[Dict[str, Any]] = None, custom_data: Optional[Dict[str, Any]] = None,
                    client_ip: Optional[str] = None, user_agent: Optional[str] = None) -> Dict[str, Any]:
        data = {k: v for k, v in (user_data or {}).items() if v}
        if client_ip:
            data["client_ip_address"] = client_ip
        if user_agent:
            data["client_user_agent"] = user_agent
        event: Dict[str, Any] = {
            "event_name": event_name,
            "event_id": event_id or generate_event_id(),
            "event_time": int(time.time()),
            "event_source_url": event_source_url or settings.site_url,
            "action_source": "website",
            "user_data": data,
        }
        if custom_data:
            event["custom_data"] = custom_data
        return event

    def send_event(self, event_name: str, **kwargs) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            logger.info(f"Facebook tracking disabled - missing credentials ({event_name})")
            return None
        payload: Dict[str, Any] = {
            "data": [self.build_event(event_name, **kwargs)],
            "access_token": self.access_token,
        }
        if self.test_event_code:
            payload["test_event_code"] = self.test_event_code
        try:
            response = httpx.post(
                f"{GRAPH_URL}/{self.graph_version}/{self.pixel_id}/events",
                json=payload,
                timeout=10,
            )
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Facebook tracking error (non-critical): {e}")
            return None
        if response.status_code >= 400:
            logger.error(f"Facebook tracking failed for {event_name}: {result}")
            return None
        logger.info(f"Facebook {event_name} event tracked: events_received={result.get('events_received')}")
        return result

    def track_purchase(self, order_id: str, amount_cop: float, content_name: str, content_ids: list,
                       email: Optional[str] = None, full_name: Optional[str] = None,
                       external_id: Optional[str] = None, event_source_url: Optional[str] = None,
                       client_ip: Optional[str] = None, user_agent: Optional[str] = None,
                       extra: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        name_parts = (full_name or "").strip().split(" ")
        user_data = {
            "em": [hash_identifier(email)] if email else None,
            "fn": [hash_identifier(name_parts[0])] if name_parts[0] else None,
            "ln": [hash_identifier(" ".join(name_parts[1:]))] if len(name_parts) > 1 else None,
            "external_id": [hash_identifier(external_id)] if external_id else None,
        }
        custom_data = {
            "content_ids": content_ids,
            "content_type": "product",
            "content_name": content_name,
            # Reported in thousands of COP so ad dashboards stay readable
            "value": amount_cop / 1000,
            "currency": "COP",
            "num_items": 1,
            "order_id": order_id,
        }
        custom_data.update(extra or {})
        return self.send_event(
            "Purchase",
            event_id=f"purchase_{order_id}",
            event_source_url=event_source_url,
            user_data=user_data,
            custom_data=custom_data,
            client_ip=client_ip,
            user_agent=user_agent,
        )


def get_facebook_conversions() -> FacebookConversions:
    return FacebookConversions()
