"""
Centralized exceptions for consistent error handling.

The registry core never raises into the host at runtime; these exceptions
travel between the core and its channel adapters, or report a bad
configuration when a manager is constructed.

Usage:
    from shared.utils.exceptions import ChannelClosedError, ConfigurationError

    raise ChannelClosedError(channel_id="ws-3f2a")
    raise ConfigurationError(["ping_interval must be positive, got 0"])
"""

from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class PresenceError(Exception):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging of the failure context.
    """

    def __init__(
        self,
        detail: str,
        log_level: str = "warning",
        **log_context: Any,
    ):
        # Log the error with context
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, error=type(self).__name__, **log_context)

        self.detail = detail
        self.context = log_context
        super().__init__(detail)


class ChannelClosedError(PresenceError):
    """
    Send attempted on a channel that was already closed.

    Usage:
        raise ChannelClosedError()
        raise ChannelClosedError(channel_id=self.channel_id)
    """

    def __init__(self, detail: str = "Channel is closed", **log_context: Any):
        # Expected during races with peer teardown, keep it quiet
        super().__init__(detail, log_level="debug", **log_context)


class ConfigurationError(PresenceError, ValueError):
    """
    Invalid heartbeat or manager configuration.

    Usage:
        errors = validate_timing(interval, timeout, stale_timeout)
        if errors:
            raise ConfigurationError(errors)
    """

    def __init__(self, errors: list[str], **log_context: Any):
        self.errors = list(errors)
        super().__init__(
            "Invalid configuration: " + "; ".join(self.errors),
            log_level="error",
            **log_context,
        )
