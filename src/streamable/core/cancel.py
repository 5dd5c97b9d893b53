"""Cancellation hooks handed to item listeners.

A CancelHook travels with each emitted item. Calling it asks the adapter
loop that produced the item to stop; the adapter checks the flag between
items, so the item currently being dispatched is still delivered to every
listener in the round.
"""

from __future__ import annotations


class CancelHook:
    """Callable, one-way cancellation flag.

    Example:
        >>> def first_two(item, cancel):
        ...     seen.append(item)
        ...     if len(seen) == 2:
        ...         cancel()
        >>> Stream(range(100)).emit(first_two)
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def __call__(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancelHook(cancelled={self._cancelled})"
