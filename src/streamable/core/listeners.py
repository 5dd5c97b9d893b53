"""Per-stream listener registry.

Holds one ordered listener list per event kind. Dispatch always walks a
snapshot of the list, so listeners may register or deregister themselves
(or others) while an event is being delivered.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable

from .cancel import CancelHook

Listener = Callable[..., Any]


class EventKind(StrEnum):
    """Event kinds a stream dispatches."""
    ITEM = "item"              # An item was emitted
    FAULT = "fault"            # Terminal: the stream failed
    COMPLETION = "completion"  # Terminal: the stream finished


@dataclass(slots=True, frozen=True)
class _Entry:
    callback: Listener
    takes_hook: bool


def accepts_cancel_hook(callback: Listener) -> bool:
    """Whether an item listener declares a second positional parameter for the cancellation hook.

    ``*args`` does not count, so ``emit(print)`` prints only the item.
    """
    try:
        params = inspect.signature(callback).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return sum(p.kind in positional for p in params) >= 2


class ListenerRegistry:
    """Ordered listener lists for item, fault and completion events."""

    __slots__ = ("_lists",)

    def __init__(self) -> None:
        self._lists: dict[EventKind, list[_Entry]] = {kind: [] for kind in EventKind}

    def add(self, kind: EventKind | str, callback: Listener) -> None:
        """Append a listener for the given event kind."""
        if not callable(callback):
            raise TypeError(f"Listener must be callable, got {type(callback).__name__}")
        kind = EventKind(kind)
        takes_hook = kind is EventKind.ITEM and accepts_cancel_hook(callback)
        self._lists[kind].append(_Entry(callback, takes_hook))

    def remove(self, kind: EventKind | str, callback: Listener) -> bool:
        """Remove the first registration of callback.

        Returns:
            True if a listener was found and removed
        """
        entries = self._lists[EventKind(kind)]
        for i, entry in enumerate(entries):
            if entry.callback == callback:
                del entries[i]
                return True
        return False

    def count(self, kind: EventKind | str) -> int:
        return len(self._lists[EventKind(kind)])

    def clear(self) -> None:
        for entries in self._lists.values():
            entries.clear()

    def dispatch_item(self, item: object, hook: CancelHook) -> None:
        for entry in tuple(self._lists[EventKind.ITEM]):
            if entry.takes_hook:
                entry.callback(item, hook)
            else:
                entry.callback(item)

    def dispatch_fault(self, error: BaseException) -> list[Exception]:
        """Deliver error to every fault listener; returns what the listeners raised."""
        return _deliver_all(self._lists[EventKind.FAULT], error)

    def dispatch_completion(self) -> list[Exception]:
        """Deliver completion to every listener; returns what the listeners raised."""
        return _deliver_all(self._lists[EventKind.COMPLETION])


def _deliver_all(entries: list[_Entry], *args: object) -> list[Exception]:
    # Terminal events fire once, so one raising listener must not starve the rest.
    raised: list[Exception] = []
    for entry in tuple(entries):
        try:
            entry.callback(*args)
        except Exception as exc:
            raised.append(exc)
    return raised
