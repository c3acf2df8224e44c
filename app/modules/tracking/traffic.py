"""
Marketing attribution: one traffic_sources row per landing with UTM
parameters or a referrer. Anonymous rows carry only the browser session id
and are claimed when the session's checkout is linked to an account.
"""

from fastapi import HTTPException
from supabase import Client
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class TrafficSourceService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def record(self, user_id: Optional[str], source: Dict[str, Any]) -> None:
        try:
            self.supabase.table("traffic_sources").insert({"user_id": user_id, **source}).execute()
        except Exception as e:
            logger.error(f"Track source error: {str(e)}")
            raise HTTPException(status_code=500, detail="Failed to track")
