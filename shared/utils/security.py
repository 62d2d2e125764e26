"""
shared/utils/security.py
JWT verification, email hashing, client IP extraction, and input sanitizing.
"""

import hashlib
import html
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse

from fastapi import Request
from jose import JWTError, jwt

from config.settings import settings


# ── JWT ───────────────────────────────────────────────────────

def create_access_token(
    user_id: str,
    email: str,
    email_verified: bool = True,
    extra: Optional[dict] = None,
) -> tuple[str, str]:
    """
    Mint a session token shaped like the identity provider's.
    Returns (token, jti); jti is used for deny-listing on sign-out and ban.
    """
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": str(user_id),
        "email": email,
        "email_verified": email_verified,
        "jti": jti,
        "iat": now,
        "exp": expire,
        "type": "access",
        **(extra or {}),
    }

    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, jti


def verify_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.
    Raises JWTError on invalid/expired token.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload


def get_token_remaining_ttl(payload: dict) -> int:
    """Returns seconds until token expiry. Used for JWT deny-list TTL."""
    exp = payload.get("exp", 0)
    remaining = exp - datetime.now(timezone.utc).timestamp()
    return max(0, int(remaining))


# ── Identity helpers ──────────────────────────────────────────

def hash_email(email: str) -> str:
    """SHA-256 of the trimmed, lowercased address. Plaintext email is never stored."""
    return hashlib.sha256(email.strip().lower().encode()).hexdigest()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


# ── Input sanitizing ──────────────────────────────────────────

_TAG_RE = re.compile(r"<[^>]*>")
_NICKNAME_RE = re.compile(r"^[a-zA-Z0-9 \-_']+$")

NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 500


def strip_tags(value: str) -> str:
    """Remove HTML markup and decode entities, leaving plain text."""
    return html.unescape(_TAG_RE.sub("", value)).strip()


def is_valid_nickname(nickname: str) -> bool:
    if not NICKNAME_MIN_LENGTH <= len(nickname) <= NICKNAME_MAX_LENGTH:
        return False
    return bool(_NICKNAME_RE.match(nickname))


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
