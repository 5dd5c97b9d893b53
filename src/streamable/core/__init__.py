"""Core Stream primitive: listener registry, producer adapters, cancellation hooks."""

from .cancel import CancelHook
from .listeners import EventKind, ListenerRegistry
from .producers import (
    AsyncIteratorProducer,
    AwaitableProducer,
    ExternalProducer,
    FunctionProducer,
    IteratorProducer,
    Producer,
    SequenceProducer,
    as_producer,
)
from .stream import Sink, Stream, StreamState

__all__ = [
    "CancelHook",
    "EventKind",
    "ListenerRegistry",
    "Producer",
    "FunctionProducer",
    "SequenceProducer",
    "AwaitableProducer",
    "IteratorProducer",
    "AsyncIteratorProducer",
    "ExternalProducer",
    "as_producer",
    "Sink",
    "Stream",
    "StreamState",
]
