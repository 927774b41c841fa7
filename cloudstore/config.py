import dataclasses

import dotenv
import httpx

from cloudstore.utils import as_bool
from cloudstore.utils import env


dotenv.load_dotenv()

VERIFY_MODES = ("md5", "crc32c", "all", "none")


@dataclasses.dataclass
class Config:
    """Client configuration settings."""

    # Service endpoints
    storage_api_url: str = env("CLOUDSTORE_API_URL:https://storage.googleapis.com")
    public_host: str = env("CLOUDSTORE_PUBLIC_HOST:storage.googleapis.com")

    # Pre-issued bearer token; empty means the injected httpx client handles auth
    access_token: str = env("CLOUDSTORE_ACCESS_TOKEN:")

    # HTTP transport
    http_timeout_seconds: float = env("CLOUDSTORE_HTTP_TIMEOUT_SECONDS:60", convert=float)
    http_connect_timeout_seconds: float = env("CLOUDSTORE_HTTP_CONNECT_TIMEOUT_SECONDS:10", convert=float)
    http_max_retries: int = env("CLOUDSTORE_HTTP_MAX_RETRIES:3", convert=int)
    http_retry_backoff_seconds: float = env("CLOUDSTORE_HTTP_RETRY_BACKOFF_SECONDS:1.0", convert=float)

    # Downloads
    download_chunk_size_bytes: int = env("CLOUDSTORE_DOWNLOAD_CHUNK_SIZE_BYTES:1048576", convert=int)  # 1 MiB
    default_verify: str = env("CLOUDSTORE_DOWNLOAD_VERIFY:md5", convert=lambda x: x.strip().lower())

    # Rewrite polling
    rewrite_max_iterations: int = env("CLOUDSTORE_REWRITE_MAX_ITERATIONS:1000", convert=int)
    # 0 disables the wall-clock deadline
    rewrite_deadline_seconds: float = env("CLOUDSTORE_REWRITE_DEADLINE_SECONDS:0", convert=float)
    rewrite_backoff_base_ms: int = env("CLOUDSTORE_REWRITE_BACKOFF_BASE_MS:1000", convert=int)
    rewrite_backoff_max_ms: int = env("CLOUDSTORE_REWRITE_BACKOFF_MAX_MS:10000", convert=int)

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)
    environment: str = env("ENVIRONMENT:development")

    @property
    def httpx_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.http_timeout_seconds, connect=self.http_connect_timeout_seconds)


def get_config() -> Config:
    """Get client configuration."""
    cfg = Config()

    if not cfg.storage_api_url or not cfg.storage_api_url.strip():
        raise ValueError("CLOUDSTORE_API_URL is required but empty")

    if cfg.default_verify not in VERIFY_MODES:
        raise ValueError(f"CLOUDSTORE_DOWNLOAD_VERIFY must be one of {VERIFY_MODES}, got {cfg.default_verify!r}")

    if cfg.rewrite_max_iterations < 1:
        raise ValueError("CLOUDSTORE_REWRITE_MAX_ITERATIONS must be at least 1")

    cfg.storage_api_url = cfg.storage_api_url.rstrip("/")
    return cfg
