"""Stream: a push-based, multi-value promise.

A Stream delivers each item its producer emits to the item listeners
registered at that moment, then terminates exactly once, either by
completing (no payload) or by faulting (one exception). Items are never
stored: a listener registered after an item was dispatched never sees it.

The producer is never run synchronously. Construction schedules it one
event-loop iteration later, so listeners attached right after the
constructor returns see the first item.

Example:
    >>> stream = Stream([1, 2, 3])
    >>> stream.emit(print).done(lambda: print("done"))
    >>> # 1, 2, 3, done (on the next loop iteration)

    >>> items = await Stream(fetch_pages).then()
    >>> first = await Stream(fetch_pages).emit()
"""

from __future__ import annotations

import asyncio
import itertools
import operator
from collections.abc import Awaitable, Iterable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar, overload

from streamable.foundation.config import get_settings
from streamable.foundation.errors import (
    ErrorCode,
    ExplicitFault,
    InvalidCompletionPayload,
    StreamError,
    StreamFault,
)
from streamable.runtime.observability import get_logger

from .cancel import CancelHook
from .listeners import EventKind, Listener, ListenerRegistry
from .producers import (
    AsyncIteratorProducer,
    AwaitableProducer,
    ExternalProducer,
    FunctionProducer,
    IteratorProducer,
    Producer,
    ProducerFn,
    SequenceProducer,
    as_producer,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

T = TypeVar("T")
R = TypeVar("R")

_log = get_logger("streamable.stream")
_ids = itertools.count(1)


class StreamState(StrEnum):
    """Stream lifecycle states."""
    PENDING = "pending"      # Producer not started yet
    RUNNING = "running"      # Producer started or first event seen
    COMPLETED = "completed"  # Terminal: completed
    FAULTED = "faulted"      # Terminal: faulted


_TERMINAL = frozenset({StreamState.COMPLETED, StreamState.FAULTED})


class Sink:
    """Producer-facing handles of one stream: emit, fault, complete.

    Enforces the terminal rules: events after completion or fault are
    ignored, and completion never carries a payload.
    """

    __slots__ = ("_stream", "_hook")

    def __init__(self, stream: Stream[Any]) -> None:
        self._stream = stream
        self._hook = CancelHook()

    @property
    def name(self) -> str:
        return self._stream._name

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._stream._loop

    @property
    def terminated(self) -> bool:
        """Whether the stream already completed or faulted."""
        return self._stream._state in _TERMINAL

    @property
    def cancelled(self) -> bool:
        """Whether a listener invoked the default hook handed out with hook-less emits."""
        return self._hook.cancelled

    def emit(self, item: Any, cancel: CancelHook | None = None) -> None:
        """Dispatch item to the current item listeners, with cancel (or the sink's own hook)."""
        stream = self._stream
        if self.terminated:
            stream._log.debug("item ignored after terminal event", state=stream._state)
            return
        stream._mark_running()
        if stream._trace:
            stream._log.debug("emit", item=repr(item))
        stream._listeners.dispatch_item(item, cancel or self._hook)

    def fault(self, error: object = None) -> None:
        """Fault the stream. Non-exception values are wrapped in ExplicitFault."""
        if isinstance(error, BaseException):
            self.fail(error, error.fault.code if isinstance(error, StreamError) else ErrorCode.EXPLICIT_FAULT)
        else:
            self.fail(ExplicitFault(error, stream=self.name), ErrorCode.EXPLICIT_FAULT)

    def complete(self, *payload: object) -> None:
        """Complete the stream.

        Raises:
            InvalidCompletionPayload: If called with a value
        """
        stream = self._stream
        if payload:
            raise InvalidCompletionPayload(stream=stream._name)
        if self.terminated:
            stream._log.debug("completion ignored after terminal event", state=stream._state)
            return
        stream._state = StreamState.COMPLETED
        stream._log.debug("stream completed")
        try:
            raised = stream._listeners.dispatch_completion()
        finally:
            stream._listeners.clear()
        self._report(raised, EventKind.COMPLETION)

    def fail(self, error: BaseException, code: ErrorCode | None = None) -> None:
        """Fault the stream with error, classified by code (derived from error when omitted)."""
        stream = self._stream
        if self.terminated:
            stream._log.debug("fault ignored after terminal event", state=stream._state, error=repr(error))
            return
        stream._state = StreamState.FAULTED
        info = stream._fault_info = StreamFault.from_exception(stream._name, error, code, include_trace=stream._trace)
        stream._log.warning("stream faulted", code=info.code, error=repr(error),
                            **({"trace": info.details} if info.details else {}))
        try:
            raised = stream._listeners.dispatch_fault(error)
        finally:
            stream._listeners.clear()
        self._report(raised, EventKind.FAULT)

    def _report(self, raised: list[Exception], kind: EventKind) -> None:
        """Hand exceptions from terminal listeners to the loop's exception handler."""
        for exc in raised:
            self._stream._log.error("terminal listener raised", event=kind, error=repr(exc))
            self.loop.call_exception_handler({
                "message": f"Exception in {kind} listener of {self.name}",
                "exception": exc,
            })

    def guard(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run fn, turning an exception into a fault (or re-raising it once the stream is terminal)."""
        try:
            fn(*args)
        except Exception as exc:
            if self.terminated:
                self._stream._log.error("exception raised after terminal event", error=repr(exc))
                raise
            self.fail(exc)

    def settle_task(self, task: asyncio.Future[Any]) -> None:
        """Done-callback for producer tasks: a failed or cancelled task faults the stream."""
        error = asyncio.CancelledError() if task.cancelled() else task.exception()
        if error is None:
            return
        if not self.terminated:
            self.fail(error)
            return
        self.loop.call_exception_handler({
            "message": f"Unhandled exception in producer of {self.name}",
            "exception": error,
            "future": task,
        })


class Stream(Generic[T]):
    """Asynchronous producer of zero or more items with a single terminal event.

    Args:
        producer: A producer function ``fn(complete, fault, emit)``, a finite
            sequence, an awaitable, an iterator / generator (function), an
            async iterator, or a Producer instance.
        name: Name used in logs and fault records
        loop: Event loop to schedule on (default: the running loop)

    Raises:
        TypeError: If producer has no supported shape
        RuntimeError: If no loop is given and none is running
    """

    __slots__ = (
        "_name", "_loop", "_producer", "_listeners", "_state",
        "_sink", "_fault_info", "_log", "_trace", "_handle",
    )

    def __init__(
        self,
        producer: ProducerFn | Iterable[T] | Awaitable[T] | AsyncIterable[T] | Producer,
        *,
        name: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._producer = as_producer(producer)
        self._loop = loop or asyncio.get_running_loop()
        self._name = name or f"stream-{next(_ids)}"
        self._listeners = ListenerRegistry()
        self._state = StreamState.PENDING
        self._fault_info: StreamFault | None = None
        self._sink = Sink(self)
        self._log = _log.bind_stream(self._name, producer=self._producer.kind)

        settings = get_settings()
        self._trace = settings.debug
        delay = settings.scheduling.start_delay
        if delay > 0:
            self._handle: asyncio.Handle = self._loop.call_later(delay, self._start)
        else:
            self._handle = self._loop.call_soon(self._start)

    # ─────────────────────────────────────────────────────────────────────
    # Explicit constructors
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def from_function(cls, fn: ProducerFn, *, name: str | None = None) -> Stream[Any]:
        """Stream driven by ``fn(complete, fault, emit)``."""
        return cls(FunctionProducer(fn), name=name)

    @classmethod
    def from_sequence(cls, items: Sequence[T], *, name: str | None = None) -> Stream[T]:
        return cls(SequenceProducer(items), name=name)

    @classmethod
    def from_awaitable(cls, source: Awaitable[T], *, name: str | None = None) -> Stream[T]:
        return cls(AwaitableProducer(source), name=name)

    @classmethod
    def from_iterator(cls, source: Iterable[T] | Callable[[], Iterable[T]], *, name: str | None = None) -> Stream[T]:
        return cls(IteratorProducer(source), name=name)  # type: ignore[arg-type]

    @classmethod
    def from_async_iterator(cls, source: AsyncIterable[T] | Callable[[], AsyncIterable[T]], *,
                            name: str | None = None) -> Stream[T]:
        return cls(AsyncIteratorProducer(source), name=name)  # type: ignore[arg-type]

    @classmethod
    def open(cls, *, name: str | None = None) -> tuple[Stream[Any], Sink]:
        """Create a stream driven from outside through the returned sink.

        Events pushed into the sink before listeners are attached are lost.

        Example:
            >>> stream, sink = Stream.open()
            >>> stream.emit(print)
            >>> sink.emit("hello")
            >>> sink.complete()
        """
        stream = cls(ExternalProducer(), name=name)
        return stream, stream._sink

    @classmethod
    def resolve(cls, value: T, *, name: str | None = None) -> Stream[T]:
        """Stream that emits value once, then completes."""
        return cls(SequenceProducer((value,)), name=name)

    @staticmethod
    def split_promise(source: Awaitable[Sequence[T]], *, name: str | None = None) -> Stream[T]:
        """Stream of the elements of the sequence source resolves to."""
        from streamable.runtime.concurrency.interop import split_promise
        return split_promise(source, name=name)

    # ─────────────────────────────────────────────────────────────────────
    # Combinators
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def union(streams: Iterable[Any], *, name: str | None = None) -> Stream[Any]:
        from streamable.runtime.concurrency.combinators import union
        return union(streams, name=name)

    @staticmethod
    def exclude(big: Any, small: Any, comparator: Callable[[Any, Any], bool] = operator.eq, *,
                name: str | None = None) -> Stream[Any]:
        from streamable.runtime.concurrency.combinators import exclude
        return exclude(big, small, comparator, name=name)

    @staticmethod
    def intersect_by_hash(streams: Iterable[Any], hasher: Callable[[Any], Any], *,
                          name: str | None = None) -> Stream[Any]:
        from streamable.runtime.concurrency.combinators import intersect_by_hash
        return intersect_by_hash(streams, hasher, name=name)

    @staticmethod
    def intersect_by_comparison(streams: Iterable[Any], comparator: Callable[[Any, Any], bool], *,
                                name: str | None = None) -> Stream[Any]:
        from streamable.runtime.concurrency.combinators import intersect_by_comparison
        return intersect_by_comparison(streams, comparator, name=name)

    # ─────────────────────────────────────────────────────────────────────
    # Listener registration
    # ─────────────────────────────────────────────────────────────────────

    @overload
    def emit(self) -> asyncio.Future[T]: ...
    @overload
    def emit(self, callback: Listener) -> Stream[T]: ...

    def emit(self, callback: Listener | None = None) -> Stream[T] | asyncio.Future[T]:
        """Register an item listener, or get a future for the next item.

        Listeners taking two positional arguments also receive the item's
        CancelHook. The no-argument future never rejects.
        """
        if callback is None:
            from streamable.runtime.concurrency.interop import next_item
            return next_item(self)
        self._listeners.add(EventKind.ITEM, callback)
        return self

    @overload
    def catch(self) -> asyncio.Future[BaseException]: ...
    @overload
    def catch(self, callback: Callable[[BaseException], Any]) -> Stream[T]: ...

    def catch(self, callback: Callable[[BaseException], Any] | None = None) -> Stream[T] | asyncio.Future[BaseException]:
        """Register a fault listener, or get a future resolving (not rejecting) with the error."""
        if callback is None:
            from streamable.runtime.concurrency.interop import next_fault
            return next_fault(self)
        self._listeners.add(EventKind.FAULT, callback)
        return self

    @overload
    def done(self) -> asyncio.Future[None]: ...
    @overload
    def done(self, callback: Callable[[], Any]) -> Stream[T]: ...

    def done(self, callback: Callable[[], Any] | None = None) -> Stream[T] | asyncio.Future[None]:
        """Register a completion listener, or get a future that resolves on completion and rejects on fault."""
        if callback is None:
            from streamable.runtime.concurrency.interop import completion
            return completion(self)
        self._listeners.add(EventKind.COMPLETION, callback)
        return self

    def deregister(self, kind: EventKind | str, callback: Listener) -> None:
        """Remove one registration of callback from the "item", "fault" or "completion" list."""
        self._listeners.remove(kind, callback)

    def then(self, callback: Callable[[list[T]], R] | None = None) -> asyncio.Future[R]:
        """Collect every item, then resolve with ``callback(items)`` (or the list itself).

        Buffers all items until completion: O(N) memory, so not for unbounded streams.
        The future rejects if the stream faults or the callback raises.
        """
        from streamable.runtime.concurrency.interop import collect
        return collect(self, callback)

    # ─────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def terminated(self) -> bool:
        return self._state in _TERMINAL

    @property
    def fault_info(self) -> StreamFault | None:
        """Structured record of the fault, once the stream has faulted."""
        return self._fault_info

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def producer(self) -> Producer:
        return self._producer

    def listener_count(self, kind: EventKind | str) -> int:
        return self._listeners.count(kind)

    def __repr__(self) -> str:
        return f"<Stream {self._name} state={self._state} producer={self._producer.kind}>"

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────

    def _mark_running(self) -> None:
        if self._state is StreamState.PENDING:
            self._state = StreamState.RUNNING

    def _start(self) -> None:
        if self.terminated:
            return
        self._mark_running()
        self._log.debug("stream started")
        self._sink.guard(self._producer.run, self._sink)
