"""Tests for keyed cancellation tokens"""
import asyncio

import pytest

from system_utils.cancellation import LYRICS, CancellationRegistry
from system_utils.errors import RequestCancelledError


def test_new_token_cancels_previous():
    registry = CancellationRegistry()
    first = registry.get_token(LYRICS)
    second = registry.get_token(LYRICS)

    assert first.cancelled
    assert not second.cancelled
    assert registry.has_active_request(LYRICS)


async def test_in_flight_operation_observes_cancellation_at_next_checkpoint():
    registry = CancellationRegistry()
    reached = asyncio.Event()
    proceed = asyncio.Event()

    async def operation():
        token = registry.get_token(LYRICS)
        token.raise_if_cancelled()
        reached.set()
        await proceed.wait()  # simulated network call
        token.raise_if_cancelled()
        return "done"

    task = asyncio.create_task(operation())
    await reached.wait()

    registry.get_token(LYRICS)
    proceed.set()

    with pytest.raises(RequestCancelledError):
        await task


def test_cancel_and_cancel_all():
    registry = CancellationRegistry()
    a = registry.get_token("a")
    b = registry.get_token("b")

    registry.cancel("a")
    assert a.cancelled and not b.cancelled
    assert not registry.has_active_request("a")

    # Idle key: no-op
    registry.cancel("a")
    registry.cancel("never-used")

    registry.cancel_all()
    assert b.cancelled
    assert not registry.has_active_request("b")


def test_release_only_drops_current_token():
    registry = CancellationRegistry()
    old = registry.get_token("k")
    new = registry.get_token("k")

    registry.release("k", old)
    assert registry.has_active_request("k")

    registry.release("k", new)
    assert not registry.has_active_request("k")
    assert not new.cancelled
