import asyncio

import pytest

from zkflow.utils.singleflight import SingleFlight


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_execution():
    flight = SingleFlight()
    calls = []

    async def work():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "done"

    results = await asyncio.gather(*(flight.do("k", work) for _ in range(3)))

    assert results == ["done", "done", "done"]
    assert calls == [1]
    assert not flight.in_flight("k")


@pytest.mark.asyncio
async def test_different_keys_run_independently():
    flight = SingleFlight()
    calls = []

    async def work(name):
        calls.append(name)
        await asyncio.sleep(0)
        return name

    results = await asyncio.gather(flight.do("a", lambda: work("a")), flight.do("b", lambda: work("b")))

    assert results == ["a", "b"]
    assert sorted(calls) == ["a", "b"]


@pytest.mark.asyncio
async def test_failure_is_shared_then_key_released():
    flight = SingleFlight()
    attempts = []

    async def failing():
        attempts.append(1)
        await asyncio.sleep(0.01)
        raise RuntimeError("nope")

    results = await asyncio.gather(
        flight.do("k", failing), flight.do("k", failing), return_exceptions=True
    )

    assert all(isinstance(result, RuntimeError) for result in results)
    assert len(attempts) == 1
    assert not flight.in_flight("k")

    async def succeeding():
        return "ok"

    assert await flight.do("k", succeeding) == "ok"


@pytest.mark.asyncio
async def test_sequential_calls_run_again():
    flight = SingleFlight()
    counter = []

    async def work():
        counter.append(1)
        return len(counter)

    assert await flight.do("k", work) == 1
    assert await flight.do("k", work) == 2
