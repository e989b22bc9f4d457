# lucid_ledger/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from lucid_ledger.core.config import get_settings


def normalize_address(raw: Optional[str]) -> Optional[str]:
    """
    Checksummed and lowercase addresses differ only in case.
    Every address entering the core passes through here exactly once.
    """
    if raw is None:
        return None
    value = str(raw).strip().lower()
    return value or None


def create_access_token(subject: str, claims: Dict[str, Any], expires_minutes: int = 60) -> str:
    """
    Issue an HS256 token carrying claims (normally wallet_address).
    Used by the trusted upstream authenticator and by tests; this service
    itself only decodes tokens.
    """
    settings = get_settings()
    if not settings.jwt_secret_key:
        raise RuntimeError("jwt_secret_key is not configured.")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    if not settings.jwt_secret_key:
        raise RuntimeError("jwt_secret_key is not configured.")
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
