import os
from dataclasses import dataclass

SLIP_MAX_BYTES = 5 * 1024 * 1024


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """
    Client settings.

    Fields:
      - api_url: base URL of the storefront REST API, including the /api prefix
      - db_path: sqlite file backing the durable token tier
      - request_timeout: per-request timeout in seconds
      - poll_interval: seconds between order detail fetches
      - countdown_interval: seconds between payment-window countdown ticks
      - slip_max_bytes: upload ceiling for payment slips
    """

    api_url: str = "http://localhost:8080/api"
    db_path: str = "data/client.sqlite"
    request_timeout: float = 15.0
    poll_interval: float = 5.0
    countdown_interval: float = 0.5
    slip_max_bytes: int = SLIP_MAX_BYTES

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_url=os.getenv("SHOP_API_URL", cls.api_url).rstrip("/"),
            db_path=os.getenv("SHOP_DB_PATH", cls.db_path),
            request_timeout=_env_float("SHOP_REQUEST_TIMEOUT", cls.request_timeout),
            poll_interval=_env_float("SHOP_POLL_INTERVAL", cls.poll_interval),
            slip_max_bytes=_env_int("SHOP_SLIP_MAX_BYTES", cls.slip_max_bytes),
        )
