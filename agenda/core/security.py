from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from agenda.core.config import settings


def create_access_token(tenant_id: int, subject: str | int | None = None) -> str:
    """Bearer token scoping every request to one tenant."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {
        "sub": str(subject if subject is not None else tenant_id),
        "tenant_id": int(tenant_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> int | None:
    """Returns the tenant id, or None for an invalid, expired or non-access token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    try:
        return int(payload["tenant_id"])
    except (KeyError, TypeError, ValueError):
        return None
