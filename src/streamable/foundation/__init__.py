"""Foundation layer: errors and configuration shared by the core and runtime."""

from .config import StreamableSettings, clear_settings_cache, get_settings
from .errors import (
    ErrorCode,
    ExplicitFault,
    InvalidCompletionPayload,
    InvalidSubordinateResult,
    StreamError,
    StreamFault,
)

__all__ = [
    "StreamableSettings",
    "clear_settings_cache",
    "get_settings",
    "ErrorCode",
    "StreamFault",
    "StreamError",
    "ExplicitFault",
    "InvalidCompletionPayload",
    "InvalidSubordinateResult",
]
