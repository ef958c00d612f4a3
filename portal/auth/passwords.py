"""Password hashing with bcrypt."""

import logging

import bcrypt

from portal.core import config

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int | None = None) -> str:
    if not password:
        raise ValueError("Password cannot be empty")

    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False

    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False
