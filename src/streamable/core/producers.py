"""Producer adapters: the shapes of value a Stream can be built from.

Each adapter is chosen once, at construction, either explicitly
(Stream.from_sequence(...) and friends) or by as_producer() classifying
the constructor argument. A producer's run() is called exactly once, one
scheduling tick after the stream is created, and drives the stream's sink.

Shapes:
    - FunctionProducer: fn(complete, fault, emit), sync or async
    - SequenceProducer: finite ordered sequence, emitted in order
    - AwaitableProducer: single value from a future/task/coroutine
    - IteratorProducer: pull-style iterator or zero-argument generator function
    - AsyncIteratorProducer: async iterator or async generator function
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Callable

from .cancel import CancelHook

if TYPE_CHECKING:
    from .stream import Sink

ProducerFn = Callable[[Callable[[], None], Callable[[object], None], Callable[..., None]], Any]

__all__ = [
    "Producer",
    "FunctionProducer",
    "SequenceProducer",
    "AwaitableProducer",
    "IteratorProducer",
    "AsyncIteratorProducer",
    "ExternalProducer",
    "as_producer",
    "emit_each",
    "is_item_sequence",
]


class Producer(ABC):
    """Base class for producer adapters."""

    __slots__ = ()

    kind: str = "producer"

    @abstractmethod
    def run(self, sink: Sink) -> None:
        """Start producing into sink. Called once, inside the deferred start tick."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FunctionProducer(Producer):
    """Callback-style producer invoked with (complete, fault, emit).

    Whether it emits synchronously or later is up to the function. An
    ``async def`` producer is scheduled as a task; an exception escaping it
    faults the stream. Cancellation hooks are only honored if the function
    passes its own hook to emit() and checks it.
    """

    __slots__ = ("fn", "_task")

    kind = "function"

    def __init__(self, fn: ProducerFn) -> None:
        self.fn = fn
        self._task: asyncio.Future[Any] | None = None

    def run(self, sink: Sink) -> None:
        result = self.fn(sink.complete, sink.fault, sink.emit)
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)
            self._task.add_done_callback(sink.settle_task)


class SequenceProducer(Producer):
    """Emits each element of a finite sequence in order, then completes."""

    __slots__ = ("items",)

    kind = "sequence"

    def __init__(self, items: Sequence[object]) -> None:
        self.items = items

    def run(self, sink: Sink) -> None:
        emit_each(sink, self.items)
        sink.complete()


class AwaitableProducer(Producer):
    """Emits the value an awaitable resolves to, then completes; faults on rejection."""

    __slots__ = ("source", "_future")

    kind = "awaitable"

    def __init__(self, source: Awaitable[object]) -> None:
        self.source = source
        self._future: asyncio.Future[object] | None = None

    def run(self, sink: Sink) -> None:
        self._future = asyncio.ensure_future(self.source)
        self._future.add_done_callback(lambda fut: sink.guard(self._resolved, sink, fut))

    @staticmethod
    def _resolved(sink: Sink, fut: asyncio.Future[object]) -> None:
        if fut.cancelled():
            sink.fail(asyncio.CancelledError())
        elif (exc := fut.exception()) is not None:
            sink.fail(exc)
        else:
            sink.emit(fut.result())
            sink.complete()


class IteratorProducer(Producer):
    """Pulls items one by one from an iterator, then completes.

    Accepts an iterator, a non-sequence iterable (set, dict view, ...), or a
    zero-argument generator function, which is called when the stream starts.
    Stopping before exhaustion (cancellation, or a listener raising) closes
    generators so their cleanup runs right away.
    """

    __slots__ = ("source",)

    kind = "iterator"

    def __init__(self, source: Iterable[object] | Callable[[], Iterator[object]]) -> None:
        self.source = source

    def run(self, sink: Sink) -> None:
        source = self.source() if inspect.isgeneratorfunction(self.source) else self.source
        iterator = iter(source)  # type: ignore[call-overload]
        hook = CancelHook()
        exhausted = False
        try:
            for item in iterator:
                sink.emit(item, hook)
                if hook.cancelled or sink.terminated:
                    break
            else:
                exhausted = True
        finally:
            # Stopped early: cancelled, terminated, or a listener raised.
            if not exhausted and hasattr(iterator, "close"):
                iterator.close()
        sink.complete()


class AsyncIteratorProducer(Producer):
    """Drains an async iterator (or async generator function) in a task, then completes."""

    __slots__ = ("source", "_task")

    kind = "async_iterator"

    def __init__(self, source: AsyncIterable[object] | Callable[[], AsyncIterator[object]]) -> None:
        self.source = source
        self._task: asyncio.Task[None] | None = None

    def run(self, sink: Sink) -> None:
        source = self.source() if inspect.isasyncgenfunction(self.source) else self.source
        self._task = asyncio.ensure_future(self._drain(source, sink))  # type: ignore[arg-type]
        self._task.add_done_callback(sink.settle_task)

    @staticmethod
    async def _drain(source: AsyncIterable[object], sink: Sink) -> None:
        iterator = aiter(source)
        hook = CancelHook()
        exhausted = False
        try:
            async for item in iterator:
                sink.emit(item, hook)
                if hook.cancelled or sink.terminated:
                    break
            else:
                exhausted = True
        finally:
            if not exhausted and hasattr(iterator, "aclose"):
                await iterator.aclose()
        sink.complete()


class ExternalProducer(Producer):
    """No-op producer for streams driven from outside through their sink (Stream.open)."""

    __slots__ = ()

    kind = "external"

    def run(self, sink: Sink) -> None:
        pass


def is_item_sequence(value: object) -> bool:
    """Whether value is an ordered sequence of items (text and bytes are not)."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def emit_each(sink: Sink, items: Iterable[object], hook: CancelHook | None = None) -> bool:
    """Emit items in order with one shared hook, stopping early on cancellation.

    Returns:
        True if every item was emitted
    """
    hook = hook or CancelHook()
    for item in items:
        if hook.cancelled or sink.terminated:
            return False
        sink.emit(item, hook)
    return not hook.cancelled


def as_producer(source: object) -> Producer:
    """Classify a constructor argument into a producer adapter.

    Raises:
        TypeError: If source matches none of the supported shapes
    """
    match source:
        case Producer():
            return source
        case str() | bytes() | bytearray() | Mapping():
            raise TypeError(f"Cannot stream items from a {type(source).__name__}; wrap it in a list")
        case _ if inspect.isgeneratorfunction(source):
            return IteratorProducer(source)  # type: ignore[arg-type]
        case _ if inspect.isasyncgenfunction(source):
            return AsyncIteratorProducer(source)  # type: ignore[arg-type]
        case _ if callable(source):
            return FunctionProducer(source)  # type: ignore[arg-type]
        case _ if inspect.isawaitable(source):
            return AwaitableProducer(source)
        case AsyncIterable():
            return AsyncIteratorProducer(source)
        case Sequence():
            return SequenceProducer(source)
        case Iterable():
            return IteratorProducer(source)
    raise TypeError(f"Cannot build a stream from {type(source).__name__}")
