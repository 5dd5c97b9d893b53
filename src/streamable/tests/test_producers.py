"""Tests for producer classification and adapters."""

from __future__ import annotations

import asyncio

import pytest

from streamable import ErrorCode, Stream, as_producer
from streamable.core.producers import (
    AsyncIteratorProducer,
    AwaitableProducer,
    FunctionProducer,
    IteratorProducer,
    SequenceProducer,
)


# ─────────────────────────────────────────────────────────────────────────────
# Classification
# ─────────────────────────────────────────────────────────────────────────────


class TestClassification:

    def test_shapes(self) -> None:
        def gen():
            yield 1

        async def agen():
            yield 1

        assert isinstance(as_producer([1, 2]), SequenceProducer)
        assert isinstance(as_producer((1, 2)), SequenceProducer)
        assert isinstance(as_producer(iter([1])), IteratorProducer)
        assert isinstance(as_producer({1, 2}), IteratorProducer)
        assert isinstance(as_producer(gen), IteratorProducer)
        assert isinstance(as_producer(gen()), IteratorProducer)
        assert isinstance(as_producer(agen), AsyncIteratorProducer)
        assert isinstance(as_producer(agen()), AsyncIteratorProducer)
        assert isinstance(as_producer(lambda c, f, e: None), FunctionProducer)

    @pytest.mark.asyncio
    async def test_awaitables(self) -> None:
        future = asyncio.get_running_loop().create_future()
        assert isinstance(as_producer(future), AwaitableProducer)
        future.cancel()

    def test_producer_instance_passes_through(self) -> None:
        producer = SequenceProducer([1])
        assert as_producer(producer) is producer

    @pytest.mark.parametrize("value", ["text", b"bytes", {"a": 1}, 42, None])
    def test_unsupported_values_rejected(self, value: object) -> None:
        with pytest.raises(TypeError):
            as_producer(value)

    @pytest.mark.asyncio
    async def test_stream_raises_synchronously(self) -> None:
        with pytest.raises(TypeError):
            Stream("abc")  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Iterators
# ─────────────────────────────────────────────────────────────────────────────


class TestIteratorProducer:

    @pytest.mark.asyncio
    async def test_generator_function_called_at_start(self, settle) -> None:
        started: list[bool] = []

        def gen():
            started.append(True)
            yield from range(3)

        stream = Stream(gen)
        assert started == []
        assert await stream.then() == [0, 1, 2]
        assert started == [True]

    @pytest.mark.asyncio
    async def test_cancel_closes_generator(self, settle) -> None:
        closed: list[bool] = []

        def gen():
            try:
                for i in range(100):
                    yield i
            finally:
                closed.append(True)

        seen: list[int] = []

        def take_three(item: int, cancel) -> None:
            seen.append(item)
            if len(seen) == 3:
                cancel()

        stream = Stream(gen()).emit(take_three)
        await stream.done()
        assert seen == [0, 1, 2]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_raising_iterator_faults(self) -> None:
        def gen():
            yield 1
            raise LookupError("page missing")

        stream = Stream(gen)
        with pytest.raises(LookupError):
            await stream.then()
        assert stream.fault_info.code is ErrorCode.PRODUCER_EXCEPTION
        assert "page missing" in stream.fault_info.message

    @pytest.mark.asyncio
    async def test_set_drained(self) -> None:
        assert sorted(await Stream({3, 1, 2}).then()) == [1, 2, 3]


class TestAsyncIteratorProducer:

    @pytest.mark.asyncio
    async def test_async_generator_items(self) -> None:
        async def pages():
            for page in range(3):
                await asyncio.sleep(0)
                yield page

        assert await Stream(pages).then() == [0, 1, 2]
        assert await Stream.from_async_iterator(pages()).then() == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_async_cancel_closes_iterator(self) -> None:
        closed: list[bool] = []

        async def ticks():
            try:
                i = 0
                while True:
                    await asyncio.sleep(0)
                    yield i
                    i += 1
            finally:
                closed.append(True)

        seen: list[int] = []

        def take_two(item: int, cancel) -> None:
            seen.append(item)
            if len(seen) == 2:
                cancel()

        await Stream(ticks).emit(take_two).done()
        assert seen == [0, 1]
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_async_error_faults(self) -> None:
        async def broken():
            yield 1
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            await Stream(broken).done()


# ─────────────────────────────────────────────────────────────────────────────
# Awaitables
# ─────────────────────────────────────────────────────────────────────────────


class TestAwaitableProducer:

    @pytest.mark.asyncio
    async def test_resolved_value_emitted_once(self) -> None:
        async def fetch() -> dict[str, int]:
            await asyncio.sleep(0)
            return {"id": 7}

        assert await Stream(fetch()).then() == [{"id": 7}]

    @pytest.mark.asyncio
    async def test_future_resolved_later(self) -> None:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        stream = Stream(future)
        loop.call_later(0.001, future.set_result, "ready")
        assert await stream.emit() == "ready"

    @pytest.mark.asyncio
    async def test_rejection_faults_stream(self) -> None:
        async def fail() -> None:
            raise PermissionError("denied")

        stream = Stream(fail())
        error = await stream.catch()
        assert isinstance(error, PermissionError)
        assert stream.fault_info.code is ErrorCode.PRODUCER_EXCEPTION

    @pytest.mark.asyncio
    async def test_cancelled_future_faults_stream(self) -> None:
        future = asyncio.get_running_loop().create_future()
        stream = Stream(future)
        future.cancel()
        assert isinstance(await stream.catch(), asyncio.CancelledError)


# ─────────────────────────────────────────────────────────────────────────────
# Early exit & task failures
# ─────────────────────────────────────────────────────────────────────────────


class TestEarlyExitCleanup:
    """Iterators stopped before exhaustion are closed right away."""

    @pytest.mark.asyncio
    async def test_raising_listener_closes_generator(self) -> None:
        closed: list[bool] = []

        def gen():
            try:
                yield from range(10)
            finally:
                closed.append(True)

        def reject_first(item: int) -> None:
            raise ValueError("listener")

        iterator = gen()
        stream = Stream(iterator).emit(reject_first)
        error = await stream.catch()
        assert str(error) == "listener"
        assert closed == [True]
        assert iterator.gi_frame is None

    @pytest.mark.asyncio
    async def test_raising_listener_closes_async_generator(self) -> None:
        closed: list[bool] = []

        async def ticks():
            try:
                for i in range(10):
                    await asyncio.sleep(0)
                    yield i
            finally:
                closed.append(True)

        def reject_second(item: int) -> None:
            if item == 1:
                raise ValueError("listener")

        stream = Stream(ticks).emit(reject_second)
        with pytest.raises(ValueError):
            await stream.done()
        await asyncio.sleep(0)
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_exhausted_generator_completes_normally(self) -> None:
        closed: list[bool] = []

        def gen():
            try:
                yield 1
            finally:
                closed.append(True)

        assert await Stream(gen).then() == [1]
        assert closed == [True]


class TestAsyncFunctionProducer:

    @pytest.mark.asyncio
    async def test_escaping_exception_faults_stream(self) -> None:
        boom = ConnectionResetError("peer gone")

        async def produce(complete, fault, emit) -> None:
            emit(1)
            await asyncio.sleep(0)
            raise boom

        stream = Stream(produce)
        collected = stream.then()
        with pytest.raises(ConnectionResetError) as info:
            await collected
        assert info.value is boom
        assert stream.fault_info.code is ErrorCode.PRODUCER_EXCEPTION

    @pytest.mark.asyncio
    async def test_exception_after_completion_goes_to_loop(self, loop_errors, settle) -> None:
        boom = RuntimeError("after complete")

        async def produce(complete, fault, emit) -> None:
            complete()
            raise boom

        stream = Stream(produce)
        with loop_errors() as errors:
            await stream.done()
            await settle()
        assert stream.fault_info is None
        assert [ctx["exception"] for ctx in errors] == [boom]
        assert "producer of" in errors[0]["message"]
