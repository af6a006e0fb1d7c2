"""Network configuration constants for the assessment service and its clients."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_API_PREFIX: str = "/api"
DEFAULT_API_BASE_URL: str = "http://127.0.0.1:8000/api/"
REQUEST_TIMEOUT_SECONDS: float = 30.0
IDEMPOTENT_RETRY_ATTEMPTS: int = 3
RETRY_BACKOFF_SECONDS: float = 0.5
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({502, 503, 504})
