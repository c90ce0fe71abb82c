import os

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./staff_auth.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
PUBLIC_APP_URL = os.getenv("PUBLIC_APP_URL", "http://localhost:3000").strip().rstrip("/")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Sessions
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "auth_session").strip() or "auth_session"
SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 8 * 60 * 60)
REMEMBER_ME_TTL_SECONDS = _env_int("REMEMBER_ME_TTL_SECONDS", 30 * 24 * 60 * 60)
SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "1" if IS_PROD else "0")
SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "lax").strip().lower()
if SESSION_COOKIE_SAMESITE not in {"lax", "strict"}:
    SESSION_COOKIE_SAMESITE = "lax"
SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN", "").strip() or None

# Account lockout
MAX_FAILED_LOGIN_ATTEMPTS = _env_int("MAX_FAILED_LOGIN_ATTEMPTS", 5)
LOCKOUT_DURATION_SECONDS = _env_int("LOCKOUT_DURATION_SECONDS", 30 * 60)

# Password reset
RESET_TOKEN_TTL_SECONDS = _env_int("RESET_TOKEN_TTL_SECONDS", 60 * 60)
MIN_PASSWORD_LENGTH = _env_int("MIN_PASSWORD_LENGTH", 8)

# Login throttling (per client)
LOGIN_RATE_LIMIT_ATTEMPTS = _env_int("LOGIN_RATE_LIMIT_ATTEMPTS", 5)
LOGIN_RATE_LIMIT_WINDOW_SECONDS = _env_int("LOGIN_RATE_LIMIT_WINDOW_SECONDS", 15 * 60)

# Password hashing pool, kept apart from the request workers
PASSWORD_HASH_WORKERS = max(1, _env_int("PASSWORD_HASH_WORKERS", 2))
PASSWORD_HASH_TIMEOUT_SECONDS = max(1, _env_int("PASSWORD_HASH_TIMEOUT_SECONDS", 10))
PASSWORD_HASH_MAX_PENDING = max(PASSWORD_HASH_WORKERS, _env_int("PASSWORD_HASH_MAX_PENDING", 16))

# Dev bootstrap
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW", "0")

# Proxies whose X-Forwarded-For is trusted (IPs or CIDRs, comma-separated)
_trusted_proxies_env = os.getenv("TRUSTED_PROXIES", "")
TRUSTED_PROXIES = [proxy.strip() for proxy in _trusted_proxies_env.split(",") if proxy.strip()]
