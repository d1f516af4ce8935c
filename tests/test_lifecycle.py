"""Tests for the lifecycle manager and the single instance lock."""

import asyncio
import sys
import uuid
from unittest.mock import MagicMock

import pytest

from automagic.core.errors import AlreadyRunningError
from automagic.core.lifecycle import LifecycleManager, get_lifecycle_manager
from automagic.core.single_instance import SingleInstanceLock


class TestLifecycleManager:
    """Tests for LifecycleManager."""

    @pytest.mark.asyncio
    async def test_startup_and_reverse_shutdown(self):
        order: list[str] = []

        class Component:
            def __init__(self, name):
                self.name = name

            def start(self):
                order.append(f"start {self.name}")

            async def shutdown(self):
                order.append(f"stop {self.name}")

        manager = LifecycleManager()
        manager.register("a", Component("a"))
        manager.register("b", Component("b"))

        await manager.startup()
        await manager.shutdown()

        assert order == ["start a", "start b", "stop b", "stop a"]

    @pytest.mark.asyncio
    async def test_startup_is_idempotent(self):
        component = MagicMock(spec=["startup", "shutdown"])
        component.startup.return_value = None
        manager = LifecycleManager()
        manager.register("c", component)

        await manager.startup()
        await manager.startup()

        component.startup.assert_called_once()
        assert manager.is_started

    @pytest.mark.asyncio
    async def test_failing_shutdown_does_not_block_others(self):
        broken = MagicMock(spec=["shutdown"])
        broken.shutdown.side_effect = RuntimeError("boom")
        healthy = MagicMock(spec=["shutdown"])
        healthy.shutdown.return_value = None

        manager = LifecycleManager()
        manager.register("healthy", healthy)
        manager.register("broken", broken)
        await manager.startup()
        await manager.shutdown()

        healthy.shutdown.assert_called_once()
        assert not manager.is_started

    @pytest.mark.asyncio
    async def test_shutdown_without_startup_is_noop(self):
        component = MagicMock(spec=["shutdown"])
        manager = LifecycleManager()
        manager.register("c", component)

        await manager.shutdown()

        component.shutdown.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_start_rolls_back_started_components(self):
        first = MagicMock(spec=["shutdown"])
        first.shutdown.return_value = None
        failing = MagicMock(spec=["start", "shutdown"])
        failing.start.side_effect = OSError("address in use")

        manager = LifecycleManager()
        manager.register("first", first)
        manager.register("failing", failing)

        with pytest.raises(OSError):
            await manager.startup()

        first.shutdown.assert_called_once()
        failing.shutdown.assert_not_called()
        assert not manager.is_started

    @pytest.mark.asyncio
    async def test_hanging_shutdown_is_bounded(self):
        stopped: list[str] = []

        class Hanging:
            async def shutdown(self):
                await asyncio.sleep(10)

        class Quick:
            def shutdown(self):
                stopped.append("quick")

        manager = LifecycleManager(stop_timeout=0.01)
        manager.register("quick", Quick())
        manager.register("hanging", Hanging())
        await manager.startup()

        await asyncio.wait_for(manager.shutdown(), timeout=1)

        assert stopped == ["quick"]

    def test_duplicate_name_rejected(self):
        manager = LifecycleManager()
        manager.register("scheduler", object())

        with pytest.raises(ValueError):
            manager.register("scheduler", object())

        assert manager.component_names == ["scheduler"]

    def test_singleton(self):
        assert get_lifecycle_manager() is get_lifecycle_manager()


@pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="abstract unix sockets are Linux only"
)
class TestSingleInstanceLock:
    """Tests for SingleInstanceLock."""

    @pytest.fixture
    def lock_name(self):
        return f"automagic_test_{uuid.uuid4().hex}"

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, lock_name):
        lock = SingleInstanceLock(lock_name)

        await lock.acquire()
        assert lock.is_held

        lock.shutdown()
        assert not lock.is_held

    @pytest.mark.asyncio
    async def test_new_instance_takes_over(self, lock_name):
        """Test the running instance stops when a newer one starts."""
        taken_over = asyncio.Event()
        old = SingleInstanceLock(lock_name, on_takeover=taken_over.set)
        new = SingleInstanceLock(lock_name, retry_delay=0.01)

        await old.acquire()
        await new.acquire()

        await asyncio.wait_for(taken_over.wait(), timeout=1)
        assert not old.is_held
        assert new.is_held

        new.shutdown()

    @pytest.mark.asyncio
    async def test_async_takeover_callback_is_awaited(self, lock_name):
        called = asyncio.Event()

        async def on_takeover():
            called.set()

        old = SingleInstanceLock(lock_name, on_takeover=on_takeover)
        new = SingleInstanceLock(lock_name, retry_delay=0.01)

        await old.acquire()
        await new.acquire()

        await asyncio.wait_for(called.wait(), timeout=1)
        new.shutdown()

    @pytest.mark.asyncio
    async def test_gives_up_when_socket_stays_bound(self, lock_name, monkeypatch):
        """Test AlreadyRunningError when the holder never lets go."""
        holder = SingleInstanceLock(lock_name)
        await holder.acquire()
        release = holder.shutdown
        # Holder ignores takeover requests
        monkeypatch.setattr(holder, "shutdown", lambda: None)

        newcomer = SingleInstanceLock(lock_name, bind_attempts=3, retry_delay=0.01)

        with pytest.raises(AlreadyRunningError):
            await newcomer.acquire()

        release()
