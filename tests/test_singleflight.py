"""Tests for SingleFlight."""

import asyncio

import pytest

from workbench_core.singleflight import SingleFlight


class TestSingleFlight:
    """Tests for SingleFlight deduplication."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_result(self) -> None:
        """Concurrent callers with one key run the function once."""
        sf = SingleFlight()
        calls = 0

        async def work() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "container"

        results = await asyncio.gather(*(sf.do("boot", work) for _ in range(5)))

        assert results == ["container"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self) -> None:
        sf = SingleFlight()
        calls: list[str] = []

        async def work(key: str) -> str:
            calls.append(key)
            await asyncio.sleep(0)
            return key

        results = await asyncio.gather(sf.do("a", lambda: work("a")), sf.do("b", lambda: work("b")))

        assert results == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_exception_shared_and_key_released(self) -> None:
        """Every waiter sees the failure; a later call runs again."""
        sf = SingleFlight()
        attempts = 0

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            await asyncio.sleep(0)
            if attempts == 1:
                raise RuntimeError("boot failed")
            return "ok"

        results = await asyncio.gather(sf.do("boot", flaky), sf.do("boot", flaky), return_exceptions=True)
        assert all(isinstance(result, RuntimeError) for result in results)
        assert not sf.in_flight("boot")

        assert await sf.do("boot", flaky) == "ok"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_in_flight(self) -> None:
        sf = SingleFlight()
        release = asyncio.Event()

        async def work() -> int:
            await release.wait()
            return 1

        task = asyncio.create_task(sf.do("boot", work))
        await asyncio.sleep(0)
        assert sf.in_flight("boot")

        release.set()
        assert await task == 1
        await asyncio.sleep(0)
        assert not sf.in_flight("boot")

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_others(self) -> None:
        sf = SingleFlight()
        release = asyncio.Event()

        async def work() -> str:
            await release.wait()
            return "done"

        first = asyncio.create_task(sf.do("boot", work))
        second = asyncio.create_task(sf.do("boot", work))
        await asyncio.sleep(0)

        first.cancel()
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first
