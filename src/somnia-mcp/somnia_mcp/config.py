import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

DEFAULT_NETWORK = "Somnia Testnet"
DEFAULT_LOG_BLOCK_SPAN = 1000
DEFAULT_MONITOR_POLL_SECONDS = 2.0


@dataclass
class Config:
    network: str = DEFAULT_NETWORK
    private_key: Optional[str] = None
    rpc_url_override: Optional[str] = None
    request_timeout: int = 10
    max_retries: int = 3
    backoff_seconds: float = 0.5
    log_block_span: int = DEFAULT_LOG_BLOCK_SPAN
    monitor_poll_seconds: float = DEFAULT_MONITOR_POLL_SECONDS
    log_level: str = "INFO"
    log_file: Optional[str] = None


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default).strip()
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'.") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must be non-negative, got '{raw}'.")
    return value


def load_config() -> Config:
    """Load configuration from environment variables."""
    network = os.getenv("NETWORK", DEFAULT_NETWORK).strip() or DEFAULT_NETWORK
    private_key = (os.getenv("PRIVATE_KEY") or "").strip() or None
    rpc_url = (os.getenv("RPC_URL") or "").strip() or None

    timeout = _env_number("REQUEST_TIMEOUT", "10", int)
    max_retries = _env_number("REQUEST_RETRIES", "3", int)
    backoff = _env_number("REQUEST_BACKOFF_SECONDS", "0.5", float)
    span = _env_number("LOG_BLOCK_SPAN", str(DEFAULT_LOG_BLOCK_SPAN), int)
    poll = _env_number("MONITOR_POLL_SECONDS", str(DEFAULT_MONITOR_POLL_SECONDS), float)
    if span < 1:
        raise ConfigurationError("LOG_BLOCK_SPAN must be at least 1.")

    return Config(
        network=network,
        private_key=private_key,
        rpc_url_override=rpc_url,
        request_timeout=timeout,
        max_retries=max_retries,
        backoff_seconds=backoff,
        log_block_span=span,
        monitor_poll_seconds=poll,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        log_file=(os.getenv("LOG_FILE") or "").strip() or None,
    )
