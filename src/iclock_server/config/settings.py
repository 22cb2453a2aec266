"""Settings model — pydantic-settings with env var support."""

from __future__ import annotations

from pydantic_settings import BaseSettings

ENV_PREFIX = "ICLOCK_"


class Settings(BaseSettings):
    """Server settings.

    Use ``ConfigLoader.load_settings()`` to build with YAML + env var layering.
    Direct construction (e.g. in tests) skips YAML loading.
    """

    database_url: str = "sqlite+aiosqlite:///iclock.db"
    log_level: str = "INFO"
    log_format: str = "text"
    # Device protocol
    success_return_code: str = "0"
    ack_text: str = "OK"
    device_poll_interval: int = 10
    device_timezone: int = 0
    # Queue behaviour
    max_delivery_attempts: int = 3
    enqueue_retry_limit: int = 5
    seed_new_devices: bool = True
    log_page_limit: int = 200

    model_config = {"env_prefix": ENV_PREFIX}
