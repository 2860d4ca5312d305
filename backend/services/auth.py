"""
Token Service

Issues and decodes the HS256 access tokens that gate the HR integration API.
"""

from datetime import datetime, timedelta, timezone

import jwt

from backend.config import get_settings


def create_access_token(
    sub: str,
    email: str,
    company_id: str,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    """
    Create a JWT access token.

    Claims match what backend/middleware/rbac.py reads: sub, email,
    company_id, role.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "email": email,
        "company_id": company_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.InvalidTokenError on failure."""
    return jwt.decode(token, get_settings().secret_key, algorithms=["HS256"])
