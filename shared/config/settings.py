"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Server
    presence_gateway_port: int = 8001

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Heartbeat timing, in seconds
    presence_ping_interval: float = 10.0  # Time between two heartbeat sweeps
    presence_ping_timeout: float = 5.0  # Grace period for the pong on top of the interval
    # Evict peers that stayed stale longer than this; None keeps them until they return
    presence_stale_client_timeout: float | None = None

    # Outbound frames buffered per WebSocket before sends are rejected
    presence_outbound_queue_size: int = 256

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_presence_timing(self) -> list[str]:
        """
        Validate heartbeat timing configuration.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        return validate_timing(
            self.presence_ping_interval,
            self.presence_ping_timeout,
            self.presence_stale_client_timeout,
        )


def validate_timing(
    ping_interval: float,
    ping_timeout: float,
    stale_client_timeout: float | None,
) -> list[str]:
    """
    Check heartbeat timing values.

    Args:
        ping_interval: Seconds between sweeps.
        ping_timeout: Extra seconds a peer gets to answer a ping.
        stale_client_timeout: Seconds a stale peer is kept, or None.

    Returns:
        List of problems found, empty when the values are usable.
    """
    errors = []

    if ping_interval <= 0:
        errors.append(f"ping_interval must be positive, got {ping_interval}")

    if ping_timeout < 0:
        errors.append(f"ping_timeout must not be negative, got {ping_timeout}")

    if stale_client_timeout is not None and stale_client_timeout <= 0:
        errors.append(
            f"stale_client_timeout must be positive when set, got {stale_client_timeout}"
        )

    return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
