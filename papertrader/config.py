"""Runtime configuration loaded from environment variables."""
from __future__ import annotations

from dataclasses import dataclass
import os

DEFAULT_BACKEND_URL = "http://localhost:8080"
DEFAULT_WS_URL = "ws://localhost:8080/ws"
DEFAULT_PAIRS_URL = "https://api.kraken.com/0/public/AssetPairs"
DEFAULT_RECONNECT_INTERVAL_SEC = 3.0
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_HEALTH_CHECK_SEC = 5.0
DEFAULT_STALE_AFTER_SEC = 10.0
DEFAULT_INITIAL_DATA_RETRIES = 3
DEFAULT_INITIAL_DATA_RETRY_SEC = 2.0
DEFAULT_HTTP_TIMEOUT_SEC = 10.0
DEFAULT_INITIAL_BALANCE = 10000.0
DEFAULT_NOTICE_SEC = 3.0
DEFAULT_SEARCH_DEBOUNCE_SEC = 0.3
DEFAULT_REFRESH_SEC = 0.25


@dataclass(frozen=True)
class ClientConfig:
    backend_url: str = DEFAULT_BACKEND_URL
    ws_url: str = DEFAULT_WS_URL
    pairs_url: str = DEFAULT_PAIRS_URL
    reconnect_interval_sec: float = DEFAULT_RECONNECT_INTERVAL_SEC
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    health_check_sec: float = DEFAULT_HEALTH_CHECK_SEC
    stale_after_sec: float = DEFAULT_STALE_AFTER_SEC
    initial_data_retries: int = DEFAULT_INITIAL_DATA_RETRIES
    initial_data_retry_sec: float = DEFAULT_INITIAL_DATA_RETRY_SEC
    http_timeout_sec: float = DEFAULT_HTTP_TIMEOUT_SEC
    initial_balance: float = DEFAULT_INITIAL_BALANCE
    notice_sec: float = DEFAULT_NOTICE_SEC
    search_debounce_sec: float = DEFAULT_SEARCH_DEBOUNCE_SEC
    refresh_sec: float = DEFAULT_REFRESH_SEC
    log_file: str | None = None
    log_level: str = "INFO"


def load_config() -> ClientConfig:
    """Load config from environment with defaults for a local backend."""
    return ClientConfig(
        backend_url=os.getenv("PAPERTRADER_BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/"),
        ws_url=os.getenv("PAPERTRADER_WS_URL", DEFAULT_WS_URL),
        pairs_url=os.getenv("PAPERTRADER_PAIRS_URL", DEFAULT_PAIRS_URL),
        reconnect_interval_sec=float(
            os.getenv("PAPERTRADER_RECONNECT_INTERVAL_SEC", DEFAULT_RECONNECT_INTERVAL_SEC)
        ),
        max_reconnect_attempts=int(
            os.getenv("PAPERTRADER_MAX_RECONNECT_ATTEMPTS", str(DEFAULT_MAX_RECONNECT_ATTEMPTS))
        ),
        health_check_sec=float(
            os.getenv("PAPERTRADER_HEALTH_CHECK_SEC", DEFAULT_HEALTH_CHECK_SEC)
        ),
        stale_after_sec=float(
            os.getenv("PAPERTRADER_STALE_AFTER_SEC", DEFAULT_STALE_AFTER_SEC)
        ),
        initial_data_retries=int(
            os.getenv("PAPERTRADER_INITIAL_DATA_RETRIES", str(DEFAULT_INITIAL_DATA_RETRIES))
        ),
        initial_data_retry_sec=float(
            os.getenv("PAPERTRADER_INITIAL_DATA_RETRY_SEC", DEFAULT_INITIAL_DATA_RETRY_SEC)
        ),
        http_timeout_sec=float(
            os.getenv("PAPERTRADER_HTTP_TIMEOUT_SEC", DEFAULT_HTTP_TIMEOUT_SEC)
        ),
        initial_balance=float(
            os.getenv("PAPERTRADER_INITIAL_BALANCE", DEFAULT_INITIAL_BALANCE)
        ),
        notice_sec=float(os.getenv("PAPERTRADER_NOTICE_SEC", DEFAULT_NOTICE_SEC)),
        search_debounce_sec=float(
            os.getenv("PAPERTRADER_SEARCH_DEBOUNCE_SEC", DEFAULT_SEARCH_DEBOUNCE_SEC)
        ),
        refresh_sec=float(os.getenv("PAPERTRADER_REFRESH_SEC", DEFAULT_REFRESH_SEC)),
        log_file=os.getenv("PAPERTRADER_LOG_FILE") or None,
        log_level=os.getenv("PAPERTRADER_LOG_LEVEL", "INFO").upper(),
    )
