"""Tests for the single-flight model gate."""

import asyncio

import pytest

from face_auth.core.exceptions import ModelNotLoadedError, ModelUnavailableError
from face_auth.ml.gate import ModelGate

from conftest import FakeModelProvider


async def wait_until_loading(gate: ModelGate) -> None:
    for _ in range(100):
        if gate.is_loading:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("model load never started")


class TestModelGate:

    @pytest.mark.asyncio
    async def test_ready_after_load(self):
        provider = FakeModelProvider()
        gate = ModelGate(provider, source="models")

        assert not gate.is_ready
        model = await gate.ensure_ready()

        assert model is provider
        assert gate.is_ready
        assert provider.sources == ["models"]

    @pytest.mark.asyncio
    async def test_model_before_ready(self):
        gate = ModelGate(FakeModelProvider())
        with pytest.raises(ModelNotLoadedError):
            gate.model

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_load(self):
        provider = FakeModelProvider(block=True)
        gate = ModelGate(provider)

        first = asyncio.ensure_future(gate.ensure_ready())
        second = asyncio.ensure_future(gate.ensure_ready())
        await wait_until_loading(gate)
        await asyncio.sleep(0.01)
        provider.release()

        results = await asyncio.gather(first, second)

        assert results == [provider, provider]
        assert provider.load_count == 1
        assert gate.load_count == 1

    @pytest.mark.asyncio
    async def test_many_callers_single_load(self):
        provider = FakeModelProvider(block=True)
        gate = ModelGate(provider)

        waiters = [asyncio.ensure_future(gate.ensure_ready()) for _ in range(10)]
        await wait_until_loading(gate)
        provider.release()
        await asyncio.gather(*waiters)

        assert provider.load_count == 1

    @pytest.mark.asyncio
    async def test_ready_gate_returns_immediately(self):
        provider = FakeModelProvider()
        gate = ModelGate(provider)
        await gate.ensure_ready()
        await gate.ensure_ready()
        assert provider.load_count == 1

    @pytest.mark.asyncio
    async def test_failure_is_retryable(self):
        provider = FakeModelProvider(fail_loads=1)
        gate = ModelGate(provider)

        with pytest.raises(ModelUnavailableError):
            await gate.ensure_ready()
        assert not gate.is_ready
        assert not gate.is_loading

        await gate.ensure_ready()
        assert gate.is_ready
        assert provider.load_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_waiters_all_see_failure(self):
        provider = FakeModelProvider(fail_loads=1, block=True)
        gate = ModelGate(provider)

        waiters = [asyncio.ensure_future(gate.ensure_ready()) for _ in range(3)]
        await wait_until_loading(gate)
        provider.release()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, ModelUnavailableError) for r in results)
        assert provider.load_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_load(self):
        provider = FakeModelProvider(block=True)
        gate = ModelGate(provider)

        waiter = asyncio.ensure_future(gate.ensure_ready())
        await wait_until_loading(gate)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        provider.release()
        await gate.ensure_ready()
        assert gate.is_ready
        assert provider.load_count == 1
