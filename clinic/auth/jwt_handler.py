from datetime import datetime, timedelta, timezone

import jwt

from clinic.core import config

BEARER_PREFIX = "bearer "


def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=expire_minutes)
    payload = {"sub": subject, "role": role, "exp": expire, "iat": issued_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def strip_bearer(credential: str | None) -> str:
    if credential is None:
        return ""
    token = credential.strip()
    if token.lower().startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX):].strip()
    return token
