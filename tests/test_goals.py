# tests/test_goals.py
"""
Tests for bot_core.goals (GoalWaiter / GoalWaitHandle / GoalRegistry).
"""

from __future__ import annotations

import asyncio

import pytest

from bot_core.goals import GoalOutcome, GoalRegistry, GoalWaiter
from bot_core.testing.fakes import FakeSession, RecordingSink, settle


def make_waiter(session: FakeSession):
    sink = RecordingSink()
    registry = GoalRegistry()
    return GoalWaiter(session, registry, sink, default_timeout_s=30.0), registry, sink


def test_goal_reached_resolves_once_even_if_deadline_follows():
    async def scenario() -> None:
        session = FakeSession()
        waiter, registry, sink = make_waiter(session)
        calls = {"reached": 0, "timeout": 0}

        def on_reached() -> None:
            calls["reached"] += 1

        def on_timeout() -> None:
            calls["timeout"] += 1

        handle = waiter.wait(on_reached=on_reached, timeout_s=0.02, on_timeout=on_timeout)
        assert session.listener_count("goal_reached") == 1
        assert len(registry) == 1

        session.emit("goal_reached")
        session.emit("goal_reached")
        await asyncio.sleep(0.05)

        assert await handle is GoalOutcome.REACHED
        assert calls == {"reached": 1, "timeout": 0}
        assert sink.events == []
        assert session.listener_count("goal_reached") == 0
        assert len(registry) == 0

    asyncio.run(scenario())


def test_deadline_clears_goal_and_reports_timeout():
    async def scenario() -> None:
        session = FakeSession()
        waiter, registry, sink = make_waiter(session)
        calls = {"reached": 0, "timeout": 0}

        def on_reached() -> None:
            calls["reached"] += 1

        def on_timeout() -> None:
            calls["timeout"] += 1

        handle = waiter.wait(on_reached=on_reached, timeout_s=0.01, on_timeout=on_timeout)
        outcome = await handle

        assert outcome is GoalOutcome.TIMED_OUT
        assert calls == {"reached": 0, "timeout": 1}
        assert session.goals == [None]
        assert sink.events == [
            {"event": "error", "message": "Pathfinding timed out after 10ms"}
        ]
        assert session.listener_count("goal_reached") == 0

        # A late notification is a no-op.
        session.emit("goal_reached")
        assert handle.outcome is GoalOutcome.TIMED_OUT
        assert calls == {"reached": 0, "timeout": 1}
        assert len(sink.events) == 1
        assert len(registry) == 0

    asyncio.run(scenario())


def test_cancel_all_resolves_without_callbacks():
    async def scenario() -> None:
        session = FakeSession()
        waiter, registry, sink = make_waiter(session)
        fired = []

        first = waiter.wait(on_reached=lambda: fired.append("a"), on_timeout=lambda: fired.append("b"))
        second = waiter.wait(on_reached=lambda: fired.append("c"))

        assert registry.cancel_all() == 2
        assert await first is GoalOutcome.CANCELLED
        assert await second is GoalOutcome.CANCELLED

        session.emit("goal_reached")
        await settle()

        assert fired == []
        assert sink.events == []
        assert session.listener_count("goal_reached") == 0
        assert registry.cancel_all() == 0

    asyncio.run(scenario())


def test_pursue_subscribes_before_setting_goal():
    async def scenario() -> None:
        session = FakeSession()
        session.reach_goals = True
        waiter, registry, _ = make_waiter(session)

        handle = waiter.pursue({"type": "block", "x": 1, "y": 64, "z": 1}, timeout_s=1.0)

        assert await handle is GoalOutcome.REACHED
        assert session.goals == [{"type": "block", "x": 1, "y": 64, "z": 1}]
        assert len(registry) == 0

    asyncio.run(scenario())


def test_pursue_releases_wait_when_session_refuses_goal():
    async def scenario() -> None:
        session = FakeSession()
        waiter, registry, _ = make_waiter(session)

        def refuse(goal, dynamic=False):
            raise RuntimeError("no pathfinder")

        session.set_goal = refuse  # type: ignore[assignment]

        with pytest.raises(RuntimeError):
            waiter.pursue({"type": "near", "x": 0, "y": 0, "z": 0, "range": 2})

        assert len(registry) == 0
        assert session.listener_count("goal_reached") == 0

    asyncio.run(scenario())


def test_cancelling_the_awaiting_task_releases_the_handle():
    async def scenario() -> None:
        session = FakeSession()
        waiter, registry, _ = make_waiter(session)
        handle = waiter.wait()

        async def waiting() -> None:
            await handle

        task = asyncio.ensure_future(waiting())
        await settle()
        task.cancel()
        await settle()

        assert handle.resolved is True
        assert len(registry) == 0
        assert session.listener_count("goal_reached") == 0

    asyncio.run(scenario())
