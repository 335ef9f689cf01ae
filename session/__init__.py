"""Durable, resumable session state."""

from .errors import SessionError, SessionLockedError, SessionMismatchError, SessionNotFoundError
from .manager import SessionManager
from .types import (
    RunConfig,
    SessionInfo,
    SessionState,
    SessionStatus,
    ToolCallRecord,
    ToolCallResult,
)

__all__ = [
    "RunConfig",
    "SessionError",
    "SessionInfo",
    "SessionLockedError",
    "SessionManager",
    "SessionMismatchError",
    "SessionNotFoundError",
    "SessionState",
    "SessionStatus",
    "ToolCallRecord",
    "ToolCallResult",
]
