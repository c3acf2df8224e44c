from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class TrackEventRequest(BaseModel):
    event_name: str = "CustomEvent"
    event_id: Optional[str] = None
    event_source_url: Optional[str] = None
    hashed_email: Optional[str] = None
    user_data: Dict[str, Any] = Field(default_factory=dict)
    custom_data: Dict[str, Any] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)


class TrafficSourceRequest(BaseModel):
    session_id: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    referrer: Optional[str] = None
    page_url: Optional[str] = None
