import os
import time
import logging
from typing import Optional, Dict, Any, Tuple

import jwt

logger = logging.getLogger(__name__)


def _secret() -> str:
    # Shared with the magic-link auth provider, which signs the session JWTs.
    return os.getenv("AUTH_JWT_SECRET") or os.getenv("SECRET_KEY") or "dev-secret-change-me"


def create_access_token(subject: str, *, email: str = "", ttl_seconds: int = 60 * 60) -> str:
    """Mint a token shaped like the auth provider's; used by dev tools and tests."""
    now = int(time.time())
    payload = {
        "sub": str(subject),
        "email": email,
        "iat": now,
        "exp": now + ttl_seconds,
        "aud": "authenticated",
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"], audience="authenticated")
    except jwt.PyJWTError as exc:
        logger.info("token_rejected err=%s", exc)
        return None


def parse_auth_header(auth_header: str) -> Tuple[Optional[str], Optional[str]]:
    if not auth_header:
        return None, None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1], "bearer"
    return None, None


def get_bearer_token(auth_header: str) -> Optional[str]:
    token, _scheme = parse_auth_header(auth_header)
    return token
