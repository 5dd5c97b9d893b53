"""Standardized error handling for streams.

Provides error codes and structured fault records for stream failures.
Uses Pydantic for validation and serialization.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCode(StrEnum):
    """Classification of how a stream ended up faulted (or misused)."""
    PRODUCER_EXCEPTION = "PRODUCER_EXCEPTION"                    # Producer or combinator callback raised
    EXPLICIT_FAULT = "EXPLICIT_FAULT"                            # Producer called its fault handle
    INVALID_COMPLETION_PAYLOAD = "INVALID_COMPLETION_PAYLOAD"    # complete() called with data
    INVALID_SUBORDINATE_RESULT = "INVALID_SUBORDINATE_RESULT"    # Legacy batch source gave a non-sequence


class StreamFault(BaseModel):
    """Structured record of a stream fault.

    Attributes:
        stream: Name of the stream that faulted
        message: Human-readable error message
        code: Machine-readable classification
        details: Optional detailed information (e.g., stack trace)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Stream Fault",
            "description": "Structured fault from a stream producer",
            "examples": [{
                "stream": "stream-3",
                "message": "connection reset",
                "code": "PRODUCER_EXCEPTION",
            }],
        },
    )

    stream: Annotated[str, Field(min_length=1, description="Name of the faulted stream")]
    message: str = Field(default="", description="Human-readable error message")
    code: ErrorCode = Field(default=ErrorCode.PRODUCER_EXCEPTION, description="Fault classification")
    details: str | None = Field(default=None, description="Optional detailed error info")

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | BaseException) -> str:
        """Accept exception objects and extract message."""
        if isinstance(v, BaseException):
            return str(v) or type(v).__name__
        return v

    @computed_field
    @property
    def is_usage_error(self) -> bool:
        """Whether the fault comes from misusing the stream API rather than from the producer's work."""
        return self.code in (ErrorCode.INVALID_COMPLETION_PAYLOAD, ErrorCode.INVALID_SUBORDINATE_RESULT)

    @classmethod
    def create(
        cls,
        stream: str,
        message: str,
        code: ErrorCode = ErrorCode.PRODUCER_EXCEPTION,
        *,
        details: str | None = None,
    ) -> Self:
        """Factory method for construction."""
        return cls(stream=stream, message=message, code=code, details=details)

    @classmethod
    def from_exception(
        cls,
        stream: str,
        exc: BaseException,
        code: ErrorCode | None = None,
        *,
        include_trace: bool = False,
    ) -> Self:
        """Create from exception; StreamError subclasses keep their own code."""
        if code is None:
            code = exc.fault.code if isinstance(exc, StreamError) else ErrorCode.PRODUCER_EXCEPTION
        details = "".join(traceback.format_exception(exc)) if include_trace else None
        return cls(stream=stream, message=exc, code=code, details=details)

    def render(self) -> str:
        """Format fault for display."""
        parts = [f"Stream fault ({self.stream}) [{self.code}]: {self.message}"]
        if self.details:
            parts.append(f"\n{self.details}")
        return "".join(parts)

    __str__ = render


class StreamError(Exception):
    """Base exception for stream errors, wrapping a StreamFault."""

    code: ErrorCode = ErrorCode.PRODUCER_EXCEPTION
    default_message: str = "Stream error"

    def __init__(self, message: str | None = None, *, stream: str = "<unbound>") -> None:
        self.fault = StreamFault.create(stream, message or self.default_message, self.code)
        super().__init__(self.fault.message)


class ExplicitFault(StreamError):
    """Fault raised through a producer's fault handle with a non-exception value."""

    code = ErrorCode.EXPLICIT_FAULT
    default_message = "Stream faulted by its producer"

    def __init__(self, value: object = None, *, stream: str = "<unbound>") -> None:
        self.value = value
        super().__init__(None if value is None else str(value), stream=stream)


class InvalidCompletionPayload(StreamError, TypeError):
    """complete() was called with a value; completion never carries data."""

    code = ErrorCode.INVALID_COMPLETION_PAYLOAD
    default_message = (
        "A stream cannot be completed with a value. "
        "The value of a stream is always the sequence of emitted items"
    )


class InvalidSubordinateResult(StreamError, TypeError):
    """A legacy batch source resolved to something other than a sequence."""

    code = ErrorCode.INVALID_SUBORDINATE_RESULT
    default_message = (
        "While combining the results of multiple sources, "
        "one of the (non-stream) sources resolved to a value which was not a sequence"
    )
