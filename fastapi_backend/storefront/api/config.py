import os
from decimal import Decimal
from typing import List


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the service environment or the container .env."
        )
    return value


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# PUBLIC_INTERFACE
def database_dsn() -> str:
    """
    Build the PostgreSQL DSN.

    Uses:
      - POSTGRES_URL (optional full DSN; if provided, it wins)
      - POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_PORT, POSTGRES_HOST
    """
    url = os.getenv("POSTGRES_URL")
    if url:
        return url

    user = _required_env("POSTGRES_USER")
    password = _required_env("POSTGRES_PASSWORD")
    db = _required_env("POSTGRES_DB")
    port = _required_env("POSTGRES_PORT")
    host = os.getenv("POSTGRES_HOST", "localhost")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def db_pool_min() -> int:
    return int(os.getenv("DB_POOL_MIN", "1"))


def db_pool_max() -> int:
    return int(os.getenv("DB_POOL_MAX", "10"))


def jwt_secret() -> str:
    # Required for security; do not default.
    return _required_env("JWT_SECRET")


def jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def jwt_exp_minutes() -> int:
    return int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))  # default: 1 day


def auth_cookie_name() -> str:
    return os.getenv("AUTH_COOKIE_NAME", "token")


def auth_cookie_secure() -> bool:
    return _bool_env("AUTH_COOKIE_SECURE")


def cors_allow_origins() -> List[str]:
    env_val = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [o.strip() for o in env_val.split(",") if o.strip()] or ["*"]


# PUBLIC_INTERFACE
def shipping_fee() -> Decimal:
    """Flat shipping fee added to every order total."""
    return Decimal(os.getenv("SHIPPING_FEE", "30000"))


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def log_format() -> str:
    return os.getenv("LOG_FORMAT", "json")
