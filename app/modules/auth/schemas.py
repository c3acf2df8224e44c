from pydantic import BaseModel
from typing import Optional


class VipAccess(BaseModel):
    hasAccess: bool
    plan: Optional[str] = None
    expiresAt: Optional[str] = None


class CurrentUserResponse(BaseModel):
    clerk_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    vip: VipAccess
