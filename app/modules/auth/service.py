import hashlib
import time
import httpx
from jose import jwt, JWTError, ExpiredSignatureError
from app.config import settings
from fastapi import HTTPException
from typing import Dict, Any, List, Optional
import logging

logger = logging.getLogger(__name__)

# In-memory cache of verified session claims, keyed by token hash
_AUTH_CLAIMS_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500

_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600


def _fetch_jwks() -> dict:
    """Fetch the Clerk JWKS, cached for an hour. Stale keys are served if the refresh fails."""
    global _jwks_cache, _jwks_cache_time
    now = time.time()
    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache
    try:
        response = httpx.get(settings.clerk_jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = now
        return _jwks_cache
    except Exception as e:
        logger.warning(f"Failed to fetch Clerk JWKS: {e}")
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _signing_key(token: str) -> dict:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid session token")
    kid = header.get("kid")
    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key
    logger.warning(f"No Clerk signing key found for kid={kid}")
    raise HTTPException(status_code=401, detail="Invalid session token")


class ClerkService:
    """Session verification plus the few Clerk Backend API calls the payment flows need."""

    def __init__(self, secret_key: Optional[str] = None, api_url: Optional[str] = None):
        self.secret_key = secret_key or settings.clerk_secret_key
        self.api_url = (api_url or settings.clerk_api_url).rstrip("/")

    def verify_session_token(self, token: str) -> Dict[str, Any]:
        """Verify a Clerk session JWT and return its claims. Uses a short TTL cache."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_CLAIMS_CACHE:
            claims, expiry = _AUTH_CLAIMS_CACHE[cache_key]
            if now < expiry:
                return claims
            del _AUTH_CLAIMS_CACHE[cache_key]

        key = _signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[key.get("alg", "RS256")],
                options={"verify_aud": False},
            )
        except ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Session token has expired")
        except JWTError as e:
            logger.warning(f"Clerk token validation failed: {e}")
            raise HTTPException(status_code=401, detail="Invalid session token")

        parties = settings.get_authorized_parties()
        if parties and claims.get("azp") not in parties:
            raise HTTPException(status_code=401, detail="Invalid session token")
        if not claims.get("sub"):
            raise HTTPException(status_code=401, detail="Invalid session token: missing user ID")

        if len(_AUTH_CLAIMS_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_CLAIMS_CACHE[cache_key] = (claims, now + _AUTH_CACHE_TTL_SEC)
        return claims

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key:
            raise HTTPException(status_code=500, detail="Clerk secret key not configured")
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def find_users_by_email(self, email: str) -> List[Dict[str, Any]]:
        response = httpx.get(
            f"{self.api_url}/users",
            params={"email_address": email},
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        data = response.json()
        # The list endpoint answers with a bare array; newer API versions wrap it
        if isinstance(data, dict):
            return data.get("data", [])
        return data

    def create_user(self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "email_address": [email],
            "skip_password_requirement": True,
            "skip_password_checks": True,
        }
        if first_name:
            payload["first_name"] = first_name
        if last_name:
            payload["last_name"] = last_name
        response = httpx.post(f"{self.api_url}/users", json=payload, headers=self._headers(), timeout=10)
        response.raise_for_status()
        return response.json()

    def create_sign_in_token(self, user_id: str, expires_in_seconds: int = 600) -> Dict[str, Any]:
        """Issue a one-time sign-in ticket; the frontend redeems it with the `ticket` strategy."""
        response = httpx.post(
            f"{self.api_url}/sign_in_tokens",
            json={"user_id": user_id, "expires_in_seconds": expires_in_seconds},
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        return response.json()
