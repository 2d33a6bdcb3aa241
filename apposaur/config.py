import os

from apposaur.core.exceptions import ConfigurationError

# ====================================================================================
# ENVIRONMENT CONFIGURATION
# ====================================================================================
# All settings come from APPOSAUR_-prefixed environment variables and are
# validated once at import. Every consumer also accepts explicit constructor
# overrides, so these are defaults only.
# ====================================================================================

ENV_PREFIX = "APPOSAUR"


def env(key: str, default: str = "") -> str:
    """
    Read an environment variable with the SDK prefix.

    Example:
        env("BASE_URL") -> value of APPOSAUR_BASE_URL
    """
    return os.getenv(f"{ENV_PREFIX}_{key}", default)


def _float(key: str, default: str, minimum: float = 0.0) -> float:
    raw = env(key, default=default)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be a number, got: {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be >= {minimum}, got: {value}")
    return value


def _int(key: str, default: str, minimum: int = 0) -> int:
    raw = env(key, default=default)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be an integer, got: {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be >= {minimum}, got: {value}")
    return value


def _bool(key: str, default: str) -> bool:
    raw = env(key, default=default).strip().lower()
    if raw in ("1", "true", "yes"):
        return True
    if raw in ("0", "false", "no"):
        return False
    raise ConfigurationError(f"{ENV_PREFIX}_{key} must be true or false, got: {raw!r}")


# Backend
BASE_URL = env("BASE_URL", default="https://api.apposaur.io/sdk").rstrip("/")
API_HEADER_KEY = "x-api-key"
SDK_PLATFORM_HEADER_KEY = "x-sdk-platform"

# Only the App Store subscription offer API is implemented
SUPPORTED_PLATFORMS = ("ios",)

# HTTP client: 2 retries = 3 attempts total, fixed 0.5s delay by default
REQUEST_TIMEOUT = _float("REQUEST_TIMEOUT", default="10.0", minimum=0.1)
RETRY_COUNT = _int("RETRY_COUNT", default="2")
RETRY_DELAY = _float("RETRY_DELAY", default="0.5")
RETRY_BACKOFF = _float("RETRY_BACKOFF", default="1.0", minimum=1.0)

# Attribution: record a transaction as processed even when its report failed
RECORD_FAILED_REPORTS = _bool("RECORD_FAILED_REPORTS", default="true")

# Persistent store (empty = caller supplies a store)
REDIS_URL = env("REDIS_URL", default="")

LOG_LEVEL = env("LOG_LEVEL", default="INFO").upper()
if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"{ENV_PREFIX}_LOG_LEVEL is invalid: {LOG_LEVEL!r}")
