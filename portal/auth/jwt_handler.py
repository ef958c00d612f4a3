from datetime import datetime, timedelta, timezone

import jwt

from portal.core import config

PASSWORD_RESET_PURPOSE = "password_reset"


def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    payload = {"sub": subject, "role": role, "exp": expire, "iat": datetime.now(timezone.utc)}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("purpose"):
        raise jwt.InvalidTokenError("Not an access token")
    return payload


def create_password_reset_token(subject: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.PASSWORD_RESET_EXPIRES_MINUTES)
    payload = {
        "sub": subject,
        "purpose": PASSWORD_RESET_PURPOSE,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_password_reset_token(token: str) -> str:
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
        raise jwt.InvalidTokenError("Not a password reset token")
    return payload["sub"]
