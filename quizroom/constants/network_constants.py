"""Network configuration constants for the quiz results service."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
API_LOG_LEVEL: str = "info"
LOCALHOST_FALLBACK: str = "127.0.0.1"
UNKNOWN_DEVICE: str = "unknown"
