"""Stream/future interoperability.

Bridges between push-based Streams and single-resolution asyncio futures:
    - next_item: future for the next emitted item (never rejects)
    - next_fault: future resolving with the stream's error (never rejects)
    - completion: future resolving on completion, rejecting on fault
    - collect: future for callback(all items), the O(N) "then" path
    - split_promise: stream of the elements an awaitable sequence resolves to

Futures returned here detach their listeners once settled, including when
the caller cancels them.

Example:
    >>> first = await next_item(stream)
    >>> total = await collect(stream, sum)
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from streamable.core.listeners import EventKind
from streamable.core.producers import emit_each, is_item_sequence
from streamable.foundation.config import get_settings
from streamable.foundation.errors import InvalidSubordinateResult
from streamable.runtime.observability import get_logger

if TYPE_CHECKING:
    from streamable.core.stream import Sink, Stream

T = TypeVar("T")

__all__ = [
    "next_item",
    "next_fault",
    "completion",
    "collect",
    "split_promise",
    "chain_future",
]

_log = get_logger("streamable.interop")


def _on_settled(future: asyncio.Future[Any], detach: Callable[[], None]) -> None:
    future.add_done_callback(lambda _: detach())


def chain_future(source: asyncio.Future[T], target: asyncio.Future[T]) -> None:
    """Copy the outcome of source into target once source settles."""
    def copy(fut: asyncio.Future[T]) -> None:
        if target.done():
            return
        if fut.cancelled():
            target.cancel()
        elif (exc := fut.exception()) is not None:
            target.set_exception(exc)
        else:
            target.set_result(fut.result())
    source.add_done_callback(copy)


def next_item(stream: Stream[T]) -> asyncio.Future[T]:
    """Future resolving with the next item the stream emits.

    Resolves at most once and never rejects: if the stream terminates
    without emitting again, the future stays pending.
    """
    future: asyncio.Future[T] = stream.loop.create_future()

    def on_item(item: T) -> None:
        stream.deregister(EventKind.ITEM, on_item)
        if not future.done():
            future.set_result(item)

    stream.emit(on_item)
    _on_settled(future, lambda: stream.deregister(EventKind.ITEM, on_item))
    return future


def next_fault(stream: Stream[Any]) -> asyncio.Future[BaseException]:
    """Future resolving (not rejecting) with the stream's error; stays pending if it never faults."""
    future: asyncio.Future[BaseException] = stream.loop.create_future()

    def on_fault(error: BaseException) -> None:
        if not future.done():
            future.set_result(error)

    stream.catch(on_fault)
    _on_settled(future, lambda: stream.deregister(EventKind.FAULT, on_fault))
    return future


def completion(stream: Stream[Any]) -> asyncio.Future[None]:
    """Future resolving with None when the stream completes, rejecting with its error on fault."""
    future: asyncio.Future[None] = stream.loop.create_future()

    def on_done() -> None:
        if not future.done():
            future.set_result(None)

    def on_fault(error: BaseException) -> None:
        if not future.done():
            future.set_exception(error)

    def detach() -> None:
        stream.deregister(EventKind.COMPLETION, on_done)
        stream.deregister(EventKind.FAULT, on_fault)

    stream.done(on_done).catch(on_fault)
    _on_settled(future, detach)
    return future


def collect(stream: Stream[T], callback: Callable[[list[T]], Any] | None = None) -> asyncio.Future[Any]:
    """Accumulate every item and resolve with ``callback(items)`` on completion.

    Without a callback the future resolves with the list itself. An
    awaitable returned by the callback is awaited. The future rejects with
    the stream's error on fault, or with whatever the callback raises.

    Memory is O(N) in the number of items; a warning is logged once when
    the buffer passes SchedulingSettings.collect_warn_threshold.
    """
    future: asyncio.Future[Any] = stream.loop.create_future()
    items: list[T] = []
    threshold = get_settings().scheduling.collect_warn_threshold

    def on_item(item: T) -> None:
        items.append(item)
        if threshold and len(items) == threshold + 1:
            _log.warning("then() is buffering a large stream", stream=stream.name, threshold=threshold)

    def on_done() -> None:
        detach()
        if future.done():
            return
        if callback is None:
            future.set_result(items)
            return
        try:
            result = callback(items)
        except Exception as exc:
            future.set_exception(exc)
            return
        if inspect.isawaitable(result):
            chain_future(asyncio.ensure_future(result), future)
        else:
            future.set_result(result)

    def on_fault(error: BaseException) -> None:
        detach()
        if not future.done():
            future.set_exception(error)

    def detach() -> None:
        stream.deregister(EventKind.ITEM, on_item)
        stream.deregister(EventKind.COMPLETION, on_done)
        stream.deregister(EventKind.FAULT, on_fault)

    stream.emit(on_item).done(on_done).catch(on_fault)
    future.add_done_callback(lambda fut: detach() if fut.cancelled() else None)
    return future


def split_promise(source: Awaitable[Sequence[T]], *, name: str | None = None) -> Stream[T]:
    """Stream emitting, in order, each element of the sequence source resolves to.

    Faults with the source's error if it rejects, and with
    InvalidSubordinateResult if it resolves to something other than a
    sequence.
    """
    from streamable.core.stream import Stream

    stream, sink = Stream.open(name=name)
    future = asyncio.ensure_future(source)
    future.add_done_callback(lambda fut: sink.guard(_split, sink, fut))
    return stream


def _split(sink: Sink, fut: asyncio.Future[Any]) -> None:
    if fut.cancelled():
        sink.fail(asyncio.CancelledError())
        return
    if (exc := fut.exception()) is not None:
        sink.fail(exc)
        return
    items = fut.result()
    if not is_item_sequence(items):
        sink.fail(InvalidSubordinateResult(stream=sink.name))
        return
    emit_each(sink, items)
    sink.complete()
