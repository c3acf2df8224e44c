"""
VIP plans and how long the access they grant lasts.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from app.config import settings
from app.core.timeutil import utcnow, parse_timestamp

PLANS: Dict[str, Dict[str, Any]] = {
    "race-pass": {"price": 20000, "name": "Race Pass"},
    "season-pass": {"price": 80000, "name": "Season Pass"},
}

PREDICTION_ORDER_AMOUNT = 20000
RACE_PASS_GRACE = timedelta(hours=4)
DEFAULT_ACCESS = timedelta(days=30)


def get_plan(plan_id: Optional[str]) -> Optional[Dict[str, Any]]:
    return PLANS.get(plan_id or "")


def plan_display_name(plan_id: str) -> str:
    plan = get_plan(plan_id)
    return plan["name"] if plan else plan_id


def plan_expiration(plan_id: str, race_time: Any = None, now: Optional[datetime] = None) -> datetime:
    """Race pass: four hours after its race (30 days when the race is unknown). Season pass: season end."""
    now = now or utcnow()
    if plan_id == "season-pass":
        return parse_timestamp(settings.season_end)
    if plan_id == "race-pass":
        race = parse_timestamp(race_time)
        if race:
            return race + RACE_PASS_GRACE
    return now + DEFAULT_ACCESS


def has_active_access(vip_user: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> bool:
    if not vip_user:
        return False
    expires_at = parse_timestamp(vip_user.get("plan_expires_at"))
    if not expires_at:
        return False
    return expires_at >= (now or utcnow())
