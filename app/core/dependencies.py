"""
Core dependencies for route protection
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config import settings
from app.modules.auth.service import ClerkService
from typing import Optional
import hmac
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()
security_optional = HTTPBearer(auto_error=False)


def get_clerk_service() -> ClerkService:
    return ClerkService()


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    clerk: ClerkService = Depends(get_clerk_service)
) -> str:
    """Clerk user id from the session token in the Authorization header"""
    claims = clerk.verify_session_token(credentials.credentials)
    return claims["sub"]


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_optional),
    clerk: ClerkService = Depends(get_clerk_service)
) -> Optional[str]:
    """Like get_current_user_id, but anonymous callers (or bad tokens) get None"""
    if credentials is None:
        return None
    try:
        return clerk.verify_session_token(credentials.credentials)["sub"]
    except HTTPException:
        logger.info("Ignoring invalid session token on optional-auth route")
        return None


def check_internal_key(request: Request) -> bool:
    if not settings.internal_api_key:
        logger.error("Security check failed: INTERNAL_API_KEY not configured on server.")
        return False
    received = request.headers.get("x-internal-key")
    if not received:
        logger.warning("Internal API check: missing 'x-internal-key' header.")
        return False
    valid = hmac.compare_digest(received, settings.internal_api_key)
    if not valid:
        logger.warning("Internal API check: invalid key received.")
    return valid


def require_internal_key(request: Request) -> None:
    """Dependency for endpoints only our own services and cron jobs may call"""
    if not check_internal_key(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value
    if request.client:
        return request.client.host
    return "127.0.0.1"
