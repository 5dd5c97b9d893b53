"""streamable - push-based, multi-value promises for asyncio.

A Stream behaves like a future that can deliver many items: listeners see
each item as the producer emits it, then exactly one terminal event
(completion or fault). A "collect everything" path turns a stream into a
regular asyncio future when the whole result is needed.

Quick Start:
    >>> from streamable import Stream
    >>>
    >>> def produce(complete, fault, emit):
    ...     emit(1)
    ...     emit(2)
    ...     complete()
    >>>
    >>> stream = Stream(produce)
    >>> stream.emit(print).catch(log_error).done(lambda: print("finished"))

Producers:
    >>> Stream([1, 2, 3])              # finite sequence
    >>> Stream(some_generator())       # pull-style iterator
    >>> Stream(fetch_user(42))         # awaitable, one item
    >>> Stream(agen_function)          # async iterator

Futures:
    >>> first = await stream.emit()    # next item
    >>> await stream.done()            # completion (raises on fault)
    >>> items = await stream.then()    # every item, O(N) memory

Combinators:
    >>> from streamable import union, exclude, intersect_by_hash
    >>> everyone = union([staff, contractors])
    >>> active = exclude(everyone, suspended, lambda a, b: a.id == b.id)
    >>> shared = intersect_by_hash([team_a, team_b], hasher=lambda m: m.id)
"""

from .core import (
    CancelHook,
    EventKind,
    Producer,
    Sink,
    Stream,
    StreamState,
    as_producer,
)
from .foundation import (
    ErrorCode,
    ExplicitFault,
    InvalidCompletionPayload,
    InvalidSubordinateResult,
    StreamableSettings,
    StreamError,
    StreamFault,
    clear_settings_cache,
    get_settings,
)
from .runtime.concurrency import (
    collect,
    completion,
    exclude,
    intersect_by_comparison,
    intersect_by_hash,
    next_fault,
    next_item,
    split_promise,
    union,
)
from .runtime.observability import configure_logging, get_logger

__version__ = "0.3.0"

__all__ = [
    # Core
    "Stream",
    "Sink",
    "StreamState",
    "EventKind",
    "CancelHook",
    "Producer",
    "as_producer",
    # Combinators
    "union",
    "exclude",
    "intersect_by_hash",
    "intersect_by_comparison",
    # Future bridge
    "next_item",
    "next_fault",
    "completion",
    "collect",
    "split_promise",
    # Errors
    "ErrorCode",
    "StreamFault",
    "StreamError",
    "ExplicitFault",
    "InvalidCompletionPayload",
    "InvalidSubordinateResult",
    # Config & logging
    "StreamableSettings",
    "get_settings",
    "clear_settings_cache",
    "configure_logging",
    "get_logger",
]
