"""Set combinators over Streams.

Each combinator returns a new Stream fed by listeners it attaches to its
inputs at call time, before any input has started producing.

Key Operations:
    - union: Every item of every input, as it arrives
    - exclude: Items of one input with no match in another (waits for both)
    - intersect_by_hash: Items seen in all inputs, matched by a key function
    - intersect_by_comparison: Same, matched by a pairwise equality function

Shared rules:
    - The output completes once every input has completed.
    - The first input fault faults the output with the same error, and the
      combinator detaches from the remaining inputs.
    - An exception from a hasher or comparator faults the output.
    - A cancellation hook invoked by an output listener stops further
      re-emission. It is not forwarded to the inputs.

Inputs may also be awaitables resolving to a sequence of items. That form
is deprecated and delivers the whole sequence at once when it resolves.

Example:
    >>> both = intersect_by_hash([users_a, users_b], hasher=lambda u: u.id)
    >>> await both.then()
"""

from __future__ import annotations

import asyncio
import inspect
import operator
import warnings
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from streamable.core.listeners import EventKind
from streamable.core.producers import is_item_sequence
from streamable.core.stream import Stream
from streamable.foundation.config import get_settings
from streamable.foundation.errors import InvalidSubordinateResult
from streamable.runtime.observability import get_logger

if TYPE_CHECKING:
    from streamable.core.stream import Sink

__all__ = [
    "union",
    "exclude",
    "intersect_by_hash",
    "intersect_by_comparison",
]

_log = get_logger("streamable.combinators")

ItemHandler = Callable[[int, Any], None]


def _check_sources(sources: Iterable[object], op: str) -> list[object]:
    checked = list(sources)
    for source in checked:
        if isinstance(source, Stream):
            continue
        if not inspect.isawaitable(source):
            raise TypeError(f"{op}() expects Stream inputs, got {type(source).__name__}")
        if get_settings().scheduling.warn_deprecated_inputs:
            warnings.warn(
                f"{op}() received an awaitable batch input; pass Stream instances instead",
                DeprecationWarning,
                stacklevel=3,
            )
        _log.debug("deprecated awaitable input", op=op)
    return checked


def _subscribe(sink: Sink, sources: list[object], on_item: ItemHandler, on_all_done: Callable[[], None]) -> None:
    """Wire every source into a combinator's sink.

    on_item(index, item) runs for each item of source ``index``;
    on_all_done() runs once every source has completed.
    """
    remaining = len(sources)
    detachers: list[Callable[[], None]] = []

    def detach() -> None:
        for undo in detachers:
            undo()
        detachers.clear()

    def run(fn: Callable[..., None], *args: Any) -> None:
        # Hasher/comparator/listener errors fault the output like an input fault.
        try:
            fn(*args)
        except Exception as exc:
            if sink.terminated:
                raise
            failed(exc)

    def finished() -> None:
        nonlocal remaining
        remaining -= 1
        if remaining == 0 and not sink.terminated:
            run(on_all_done)

    def failed(error: BaseException, source: Stream[Any] | None = None) -> None:
        if sink.terminated:
            return
        detach()
        info = source.fault_info if source is not None else None
        sink.fail(error, info.code if info else None)

    def deliver(index: int, item: Any) -> None:
        if not sink.terminated and not sink.cancelled:
            run(on_item, index, item)

    if not sources:
        sink.loop.call_soon(run, on_all_done)
        return

    for index, source in enumerate(sources):
        if isinstance(source, Stream):
            detachers.append(_attach(source, index, deliver, finished, failed))
        else:
            detachers.append(_attach_batch(source, index, sink, deliver, finished, failed))  # type: ignore[arg-type]


def _attach(
    source: Stream[Any],
    index: int,
    deliver: ItemHandler,
    finished: Callable[[], None],
    failed: Callable[..., None],
) -> Callable[[], None]:
    def on_item(item: Any) -> None:
        deliver(index, item)

    def on_fault(error: BaseException) -> None:
        failed(error, source)

    source.emit(on_item).done(finished).catch(on_fault)

    def detach() -> None:
        source.deregister(EventKind.ITEM, on_item)
        source.deregister(EventKind.COMPLETION, finished)
        source.deregister(EventKind.FAULT, on_fault)

    return detach


def _attach_batch(
    source: Any,
    index: int,
    sink: Sink,
    deliver: ItemHandler,
    finished: Callable[[], None],
    failed: Callable[..., None],
) -> Callable[[], None]:
    future = asyncio.ensure_future(source)

    def resolved(fut: asyncio.Future[Any]) -> None:
        if sink.terminated:
            return
        if fut.cancelled():
            failed(asyncio.CancelledError())
            return
        if (exc := fut.exception()) is not None:
            failed(exc)
            return
        items = fut.result()
        if not is_item_sequence(items):
            failed(InvalidSubordinateResult(stream=sink.name))
            return
        for item in items:
            deliver(index, item)
        finished()

    future.add_done_callback(resolved)
    return lambda: future.remove_done_callback(resolved)


def union(streams: Iterable[Any], *, name: str | None = None) -> Stream[Any]:
    """Re-emit every item of every input as it arrives.

    No deduplication. Order is preserved within one input only; items of
    different inputs interleave as they are produced.

    Example:
        >>> merged = union([Stream([1, 2, 3]), Stream([4, 5, 6])])
        >>> sorted(await merged.then())
        [1, 2, 3, 4, 5, 6]
    """
    sources = _check_sources(streams, "union")
    stream, sink = Stream.open(name=name)
    _subscribe(sink, sources, lambda _index, item: sink.emit(item), sink.complete)
    return stream


def exclude(
    big: Any,
    small: Any,
    comparator: Callable[[Any, Any], bool] = operator.eq,
    *,
    name: str | None = None,
) -> Stream[Any]:
    """Items of big with no match in small, in big's order.

    Both inputs are fully drained before anything is emitted, so this is
    unsuitable for unbounded inputs. ``comparator(item_of_big, item_of_small)``
    decides matches; it defaults to ``==``. O(len(big) * len(small)).

    Example:
        >>> await exclude(Stream([1, 2, 3]), Stream([1, 3])).then()
        [2]
    """
    sources = _check_sources((big, small), "exclude")
    stream, sink = Stream.open(name=name)
    drained: tuple[list[Any], list[Any]] = ([], [])

    def join() -> None:
        kept, excluded = drained
        for item in kept:
            if sink.cancelled:
                break
            if not any(comparator(item, other) for other in excluded):
                sink.emit(item)
        sink.complete()

    _subscribe(sink, sources, lambda index, item: drained[index].append(item), join)
    return stream


def intersect_by_hash(
    streams: Iterable[Any],
    hasher: Callable[[Any], Hashable],
    *,
    name: str | None = None,
) -> Stream[Any]:
    """Items whose key occurs in every input, each emitted once.

    Counts ``hasher(item)`` over all inputs and emits the item that brings
    its key's count to the number of inputs, so output order follows the
    arrival of that last occurrence. Occurrences are counted across inputs
    as a whole: a key repeated inside one input counts more than once. The
    hasher must map equal items, and only equal items, to the same key.

    Example:
        >>> common = intersect_by_hash([team_a, team_b], hasher=lambda m: m["id"])
    """
    sources = _check_sources(streams, "intersect_by_hash")
    needed = len(sources)
    stream, sink = Stream.open(name=name)
    counts: dict[Hashable, int] = {}

    def observe(_index: int, item: Any) -> None:
        key = hasher(item)
        count = counts[key] = counts.get(key, 0) + 1
        if count == needed:
            sink.emit(item)

    _subscribe(sink, sources, observe, sink.complete)
    return stream


@dataclass(slots=True)
class _Distinct:
    item: Any
    seen: int = 1
    emitted: bool = False


def intersect_by_comparison(
    streams: Iterable[Any],
    comparator: Callable[[Any, Any], bool],
    *,
    name: str | None = None,
) -> Stream[Any]:
    """Items that occur in every input, matched with ``comparator``, each emitted once.

    Keeps one record per distinct item and scans them linearly for each new
    item: O(N * D) for N items and D distinct items, O(N**2) at worst. Prefer
    intersect_by_hash when items have a key. The emitted value is the first
    occurrence of the item.
    """
    sources = _check_sources(streams, "intersect_by_comparison")
    needed = len(sources)
    stream, sink = Stream.open(name=name)
    records: list[_Distinct] = []

    def observe(_index: int, item: Any) -> None:
        for record in records:
            if comparator(record.item, item):
                record.seen += 1
                if not record.emitted and record.seen == needed:
                    record.emitted = True
                    sink.emit(record.item)
                return
        record = _Distinct(item)
        records.append(record)
        if needed == 1:
            record.emitted = True
            sink.emit(item)

    _subscribe(sink, sources, observe, sink.complete)
    return stream
