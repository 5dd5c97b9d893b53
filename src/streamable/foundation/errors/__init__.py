"""Unified error handling for streamable.

- ErrorCode: Classification of stream faults
- StreamFault: Structured, serializable fault record
- StreamError and subclasses: Exceptions raised for usage errors and wrapped faults
"""

from .errors import (
    ErrorCode,
    ExplicitFault,
    InvalidCompletionPayload,
    InvalidSubordinateResult,
    StreamError,
    StreamFault,
)

__all__ = [
    "ErrorCode",
    "StreamFault",
    "StreamError",
    "ExplicitFault",
    "InvalidCompletionPayload",
    "InvalidSubordinateResult",
]
