"""Logging setup for the locale directory."""

from multilang.observability.logging import (
    OperationContext,
    PlayerContext,
    configure_logging,
    get_logger,
    get_player_id,
    get_trace_id,
)

__all__ = [
    "OperationContext",
    "PlayerContext",
    "configure_logging",
    "get_logger",
    "get_player_id",
    "get_trace_id",
]
