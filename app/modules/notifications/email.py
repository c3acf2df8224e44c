import httpx
from app.config import settings
from app.modules.notifications import templates
from typing import Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


class EmailService:
    """Transactional email through the Resend HTTP API. Sending is best-effort: failures are logged, never raised."""

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.api_url = (api_url or settings.resend_api_url).rstrip("/")
        self.sender = sender or settings.email_from
        self.site_url = settings.site_url.rstrip("/")

    def send(self, to: str, subject: str, html: str) -> bool:
        if not self.api_key:
            logger.info(f"Email skipped (Resend not configured): {subject}")
            return False
        if not to or "@" not in to:
            logger.info(f"Email skipped (no valid recipient): {subject}")
            return False
        try:
            response = httpx.post(
                f"{self.api_url}/emails",
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                timeout=10,
            )
        except httpx.HTTPError as e:
            logger.error(f"Error sending email '{subject}' to {to}: {e}")
            return False
        if response.status_code >= 400:
            logger.warning(f"Resend rejected email '{subject}' ({response.status_code}): {response.text}")
            return False
        logger.info(f"Email sent: '{subject}' to {to}")
        return True

    def send_pick_confirmation(self, to: str, name: str, amount: float, mode: str, picks: Iterable[dict]) -> bool:
        subject, html = templates.pick_confirmation(name, amount, mode, picks, self.site_url)
        return self.send(to, subject, html)

    def send_numbers_confirmation(self, to: str, name: str, numbers: List[str], context: str = "registro",
                                  order_id: Optional[str] = None, amount: Optional[float] = None) -> bool:
        subject, html = templates.numbers_confirmation(name, numbers, context, self.site_url, order_id, amount)
        return self.send(to, subject, html)

    def send_coins_confirmation(self, to: str, amount: float, mmc: int, fuel: int) -> bool:
        subject, html = templates.coins_confirmation(amount, mmc, fuel, self.site_url)
        return self.send(to, subject, html)

    def send_vip_confirmation(self, to: str, name: str, plan_name: str, amount: float, order_id: str,
                              expires_at: Optional[str], race_pass_gp: Optional[str] = None) -> bool:
        subject, html = templates.vip_confirmation(name, plan_name, amount, order_id, expires_at, self.site_url, race_pass_gp)
        return self.send(to, subject, html)

    def send_pick_results(self, to: str, name: str, gp_name: str, mode: str, correct: int, total: int,
                          result: str, payout: float) -> bool:
        subject, html = templates.pick_results(name, gp_name, mode, correct, total, result, payout, self.site_url)
        return self.send(to, subject, html)

    def send_prediction_confirmation(self, to: str, name: str, gp_name: str, predictions: dict) -> bool:
        subject, html = templates.prediction_confirmation(name, gp_name, predictions, self.site_url)
        return self.send(to, subject, html)


def get_email_service() -> EmailService:
    return EmailService()
