"""asyncio 互通测试"""

import asyncio

import pytest

from fraction_flow import (
    AsyncLoopAdapter,
    BigFraction,
    Deferred,
    TaskFailure,
    await_deferred,
    from_coroutine,
)


@pytest.fixture
def loop_adapter():
    adapter = AsyncLoopAdapter("test-loop")
    yield adapter
    adapter.stop()


def test_from_coroutine_delivers_result(loop_adapter):
    async def compute():
        await asyncio.sleep(0.01)
        return BigFraction(1, 2).add(BigFraction(1, 3))

    deferred = from_coroutine(compute, adapter=loop_adapter)
    assert deferred.block() == BigFraction(5, 6)


def test_from_coroutine_is_cold(loop_adapter):
    calls = []

    async def compute():
        calls.append("run")
        return 1

    deferred = from_coroutine(compute, adapter=loop_adapter)
    assert calls == []
    assert deferred.block() == 1
    assert calls == ["run"]


def test_from_coroutine_failure(loop_adapter):
    async def broken():
        raise ValueError("coroutine failed")

    deferred = from_coroutine(broken, adapter=loop_adapter)
    with pytest.raises(TaskFailure) as info:
        deferred.block()
    assert isinstance(info.value.error, ValueError)


def test_from_coroutine_composes(loop_adapter):
    async def half():
        return BigFraction(1, 2)

    async def third():
        return BigFraction(1, 3)

    combined = Deferred.zip(
        from_coroutine(half, adapter=loop_adapter),
        from_coroutine(third, adapter=loop_adapter),
        BigFraction.add,
    ).map(str)
    assert combined.block() == "5/6"


def test_await_deferred(single_context):
    async def runner():
        deferred = Deferred.from_work(lambda: BigFraction(7, 2)).schedule_on(single_context)
        return await await_deferred(deferred.map(BigFraction.to_mixed_string))

    assert asyncio.run(runner()) == "3 1/2"


def test_await_deferred_reraises_original_error(single_context):
    async def runner():
        deferred = Deferred.from_work(lambda: BigFraction.parse("oops")).schedule_on(single_context)
        await await_deferred(deferred)

    with pytest.raises(ValueError):
        asyncio.run(runner())


def test_adapter_restarts_after_stop():
    adapter = AsyncLoopAdapter("restart-loop")

    async def one():
        return 1

    assert from_coroutine(one, adapter=adapter).block() == 1
    adapter.stop()
    assert from_coroutine(one, adapter=adapter).block() == 1
    adapter.stop()
