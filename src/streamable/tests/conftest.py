"""Shared fixtures: fresh settings and silent logging for every test."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from streamable import clear_settings_cache, configure_logging


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop cached settings and STREAMABLE_* overrides around each test."""
    for var in ("STREAMABLE_SCHED_START_DELAY", "STREAMABLE_DEBUG", "STREAMABLE_LOG_LEVEL", "STREAMABLE_LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    configure_logging("none", "debug")
    yield
    clear_settings_cache()


class Recorder:
    """Records every event a stream delivers, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def item(self, value: object) -> None:
        self.events.append(("item", value))

    def fault(self, error: BaseException) -> None:
        self.events.append(("fault", error))

    def done(self) -> None:
        self.events.append(("done", None))

    def attach(self, stream):  # noqa: ANN001, ANN201
        return stream.emit(self.item).catch(self.fault).done(self.done)

    @property
    def items(self) -> list[object]:
        return [v for k, v in self.events if k == "item"]

    @property
    def kinds(self) -> list[str]:
        return [k for k, _ in self.events]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def new_recorder() -> type[Recorder]:
    """For tests that watch more than one stream."""
    return Recorder


async def drain_loop(rounds: int = 5) -> None:
    """Let scheduled start-ups and their synchronous emissions run."""
    import asyncio
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():  # noqa: ANN201
    return drain_loop


@contextmanager
def captured_loop_errors() -> Iterator[list[dict[str, object]]]:
    """Collect contexts passed to the running loop's exception handler."""
    import asyncio
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    contexts: list[dict[str, object]] = []
    loop.set_exception_handler(lambda _loop, context: contexts.append(context))
    try:
        yield contexts
    finally:
        loop.set_exception_handler(previous)


@pytest.fixture
def loop_errors():  # noqa: ANN201
    return captured_loop_errors
