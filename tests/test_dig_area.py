# tests/test_dig_area.py
"""
Tests for the dig_area bulk operation and its cancellation.

Covers:
- Target ordering (top layer first, then x, then z)
- Air is skipped and not counted
- Cancellation at the next step boundary
- `stop` while a dig is in progress
- Progress acks
"""

from __future__ import annotations

import asyncio

from bot_core.bulk import BulkRun, BulkState, CancelFlag
from bot_core.commands.world import area_targets
from bot_core.testing.fakes import FakeSession, build_context, drain, settle
from env.schema import DigAreaConfig
from spec.types import Command, Vec3


def test_area_targets_top_layer_first():
    targets = area_targets(Vec3(0, 0, 0), 2, 2, 1)
    assert targets == [
        Vec3(0, 1, 0),
        Vec3(1, 1, 0),
        Vec3(0, 0, 0),
        Vec3(1, 0, 0),
    ]


def test_bulk_run_stops_at_step_boundary():
    async def scenario() -> None:
        flag = CancelFlag()
        visited = []

        async def step(n: int) -> bool:
            visited.append(n)
            if n == 2:
                flag.set()
            return True

        result = await BulkRun([1, 2, 3, 4], flag).run(step)

        assert visited == [1, 2]
        assert result.state is BulkState.CANCELLED
        assert result.processed == 2
        assert result.cursor == 2
        assert result.total == 4

    asyncio.run(scenario())


def test_dig_area_skips_air_and_reports_processed():
    async def scenario() -> None:
        session = FakeSession(
            position=Vec3(0, 0, 0),
            blocks={
                (0, 0, 0): "air",
                (0, 0, 1): "stone",
                (1, 0, 0): "stone",
                (1, 0, 1): "dirt",
            },
        )
        h = build_context(session)

        h.queue.dispatch(
            Command("dig_area", {"x": 0, "y": 0, "z": 0, "width": 2, "height": 1, "depth": 2})
        )
        await drain(h.queue)

        assert h.sink.events[0] == {
            "event": "ack",
            "action": "dig_area",
            "message": "Starting to dig 2x1x2 area (4 blocks)",
        }
        assert h.sink.of("dig_area_done") == [{"event": "dig_area_done", "processed": 3}]
        assert session.dug == [Vec3(0, 0, 1), Vec3(1, 0, 0), Vec3(1, 0, 1)]

    asyncio.run(scenario())


def test_dig_area_cancelled_after_current_block():
    async def scenario() -> None:
        blocks = {(x, 0, z): "stone" for x in range(2) for z in range(2)}
        session = FakeSession(position=Vec3(0, 0, 0), blocks=blocks)
        h = build_context(session)
        session.on_dig = lambda block: h.ctx.cancel_flag.set()

        h.queue.dispatch(
            Command("dig_area", {"x": 0, "y": 0, "z": 0, "width": 2, "height": 1, "depth": 2})
        )
        await drain(h.queue)

        assert h.sink.of("dig_area_cancelled") == [{"event": "dig_area_cancelled", "processed": 1}]
        assert h.sink.of("dig_area_done") == []
        assert len(session.dug) == 1
        assert h.queue.busy is False

    asyncio.run(scenario())


def test_stop_during_dig_area_lets_current_dig_finish():
    async def scenario() -> None:
        blocks = {(x, 0, 0): "stone" for x in range(3)}
        session = FakeSession(position=Vec3(0, 0, 0), blocks=blocks)
        session.dig_gate = asyncio.Event()
        h = build_context(session)

        h.queue.dispatch(
            Command("dig_area", {"x": 0, "y": 0, "z": 0, "width": 3, "height": 1, "depth": 1})
        )
        h.queue.dispatch(Command("dig", {"x": 1, "y": 0, "z": 0}))
        await settle()
        assert h.queue.queue_length == 1

        h.queue.dispatch(Command("stop"))
        assert h.queue.queue_length == 0
        assert h.queue.busy is True

        session.dig_gate.set()
        await drain(h.queue)

        assert session.dug == [Vec3(0, 0, 0)]
        assert h.sink.of("dig_area_cancelled") == [{"event": "dig_area_cancelled", "processed": 1}]
        assert h.sink.of("stopped") == [{"event": "stopped"}]

    asyncio.run(scenario())


def test_dig_area_clears_a_stale_cancel_request():
    async def scenario() -> None:
        session = FakeSession(position=Vec3(0, 0, 0), blocks={(0, 0, 0): "stone"})
        h = build_context(session)
        h.ctx.cancel_flag.set()

        h.queue.dispatch(
            Command("dig_area", {"x": 0, "y": 0, "z": 0, "width": 1, "height": 1, "depth": 1})
        )
        await drain(h.queue)

        assert h.sink.of("dig_area_done") == [{"event": "dig_area_done", "processed": 1}]

    asyncio.run(scenario())


def test_dig_area_progress_and_size_caps():
    async def scenario() -> None:
        blocks = {(x, 0, z): "stone" for x in range(3) for z in range(4)}
        session = FakeSession(position=Vec3(1, 0, 1), blocks=blocks)
        h = build_context(session, dig_area=DigAreaConfig(max_width=3, max_depth=4))

        h.queue.dispatch(
            Command("dig_area", {"x": 0, "y": 0, "z": 0, "width": 50, "height": 1, "depth": 50})
        )
        await drain(h.queue)

        messages = [e.get("message") for e in h.sink.of("ack")]
        assert messages[0] == "Starting to dig 3x1x4 area (12 blocks)"
        assert "Progress: 10/12 blocks" in messages
        assert h.sink.of("dig_area_done") == [{"event": "dig_area_done", "processed": 12}]

    asyncio.run(scenario())


def test_dig_area_walks_to_far_blocks_when_pathfinder_available():
    async def scenario() -> None:
        session = FakeSession(position=Vec3(0, 0, 0), blocks={(8, 0, 0): "stone"})
        session.reach_goals = True
        h = build_context(session)

        h.queue.dispatch(
            Command("dig_area", {"x": 8, "y": 0, "z": 0, "width": 1, "height": 1, "depth": 1})
        )
        await drain(h.queue)

        assert session.goals == [{"type": "near", "range": 3, "x": 8, "y": 0, "z": 0}]
        assert session.dug == [Vec3(8, 0, 0)]

    asyncio.run(scenario())
