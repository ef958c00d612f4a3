import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./portal.db")

CORS_ALLOWED_ORIGINS = _get_list(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    ["http://localhost:3000"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

PASSWORD_RESET_EXPIRES_MINUTES = int(os.getenv("PASSWORD_RESET_EXPIRES_MINUTES", "30"))
PASSWORD_RESET_REDIRECT_URL = os.getenv(
    "PASSWORD_RESET_REDIRECT_URL",
    "http://localhost:3000/reset-password",
)

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
LOGIN_TIMEOUT_SECONDS = float(os.getenv("LOGIN_TIMEOUT_SECONDS", "10"))

EXPOSE_RESET_LINKS = _get_bool(os.getenv("EXPOSE_RESET_LINKS"), default=APP_ENV.lower() != "production")


def is_production() -> bool:
    return APP_ENV.lower() == "production"


def validate_runtime_config() -> None:
    if is_production() and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if is_production() and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at the Postgres database in production.")
