import asyncio

from agenthaus.utils.locks import KeyedLock


async def test_same_key_is_serialized_and_dropped_after_use():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("agent-1"):
            order.append(f"{name} in")
            await asyncio.sleep(0.01)
            order.append(f"{name} out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a in", "a out", "b in", "b out"]
    assert len(locks) == 0


async def test_lock_is_released_when_body_raises():
    locks = KeyedLock()

    try:
        async with locks.hold("agent-1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0
    async with locks.hold("agent-1"):
        assert len(locks) == 1


async def test_cancelled_waiter_does_not_leak():
    locks = KeyedLock()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with locks.hold("k"):
            entered.set()
            await release.wait()

    async def waiter():
        async with locks.hold("k"):
            pass

    first = asyncio.create_task(holder())
    await entered.wait()
    second = asyncio.create_task(waiter())
    await asyncio.sleep(0)
    second.cancel()
    release.set()
    await first
    await asyncio.gather(second, return_exceptions=True)

    assert len(locks) == 0
