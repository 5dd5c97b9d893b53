"""Stream composition and future interop.

Key Components:
    - Combinators: union, exclude, intersect_by_hash, intersect_by_comparison
    - Future bridge: next_item, next_fault, completion, collect, split_promise

Design Philosophy:
    - Single event loop, no threads or locks
    - One deferral per stream at construction, synchronous dispatch afterwards
    - Faults always reach the output's fault listeners

Example:
    >>> from streamable.runtime.concurrency import union, collect
    >>> merged = union([Stream(page_one), Stream(page_two)])
    >>> rows = await collect(merged)
"""

from __future__ import annotations

from .combinators import (
    exclude,
    intersect_by_comparison,
    intersect_by_hash,
    union,
)
from .interop import (
    chain_future,
    collect,
    completion,
    next_fault,
    next_item,
    split_promise,
)

__all__ = [
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
    "chain_future",
]
