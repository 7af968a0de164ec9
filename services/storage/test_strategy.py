"""Unit tests for the remote-then-local strategy."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from shared.errors import LocalWriteFailure, NetworkFailure, RemoteRejected, RemoteTimeout
from shared.models import Medium
from services.storage.strategy import RemoteThenLocal


@pytest.fixture
def strategy():
    return RemoteThenLocal(timeout=0.05)


@pytest.mark.asyncio
async def test_remote_success_skips_local(strategy):
    remote = AsyncMock(return_value="url")
    local = Mock(return_value="data-url")

    medium, result = await strategy.run("upload", remote, local)

    assert (medium, result) == (Medium.REMOTE, "url")
    local.assert_not_called()


@pytest.mark.asyncio
async def test_no_remote_call_goes_local(strategy):
    local = Mock(return_value="value")

    medium, result = await strategy.run("get", None, local)

    assert (medium, result) == (Medium.LOCAL, "value")


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    NetworkFailure("unreachable"),
    RemoteTimeout("slow"),
    RemoteRejected("oversize", status_code=400),
])
async def test_remote_failures_fall_back_once(strategy, error):
    remote = AsyncMock(side_effect=error)
    local = Mock(return_value="local")

    medium, result = await strategy.run("save", remote, local)

    assert (medium, result) == (Medium.LOCAL, "local")
    remote.assert_awaited_once()
    local.assert_called_once()


@pytest.mark.asyncio
async def test_remote_timeout_bound_falls_back(strategy):
    async def never_finishes():
        await asyncio.sleep(10)

    local = Mock(return_value="local")

    medium, _ = await strategy.run("save", never_finishes, local)

    assert medium is Medium.LOCAL


@pytest.mark.asyncio
async def test_remote_resolves_before_local_starts(strategy):
    events = []

    async def remote():
        events.append("remote-start")
        await asyncio.sleep(0)
        events.append("remote-end")
        raise NetworkFailure("down")

    def local():
        events.append("local")

    await strategy.run("save", remote, local)

    assert events == ["remote-start", "remote-end", "local"]


@pytest.mark.asyncio
async def test_rejected_remote_result_falls_back(strategy):
    remote = AsyncMock(return_value=None)
    local = Mock(return_value=[1, 2])

    medium, result = await strategy.run("get", remote, local, accept_remote=lambda r: r is not None)

    assert (medium, result) == (Medium.LOCAL, [1, 2])


@pytest.mark.asyncio
async def test_awaitable_local_result_is_awaited(strategy):
    async def local():
        await asyncio.sleep(0)
        return "stored"

    medium, result = await strategy.run("upload", None, local)

    assert (medium, result) == (Medium.LOCAL, "stored")


@pytest.mark.asyncio
async def test_local_failure_propagates(strategy):
    remote = AsyncMock(side_effect=NetworkFailure("down"))
    local = Mock(side_effect=LocalWriteFailure("disk"))

    with pytest.raises(LocalWriteFailure):
        await strategy.run("save", remote, local)


@pytest.mark.asyncio
async def test_unexpected_remote_errors_are_not_swallowed(strategy):
    remote = AsyncMock(side_effect=KeyError("bug"))
    local = Mock()

    with pytest.raises(KeyError):
        await strategy.run("save", remote, local)
    local.assert_not_called()


def test_defaults():
    strategy = RemoteThenLocal()

    assert strategy.timeout == 60.0
    assert strategy.upload_timeout == 120.0
    assert strategy.evict_on_quota is False
