# tests/test_commands_info.py
"""
Tests for immediate query and movement commands.
"""

from __future__ import annotations

import asyncio

from bot_core.testing.fakes import FakeSession, build_context, drain, settle
from spec.types import Command, Entity, Item, PlayerInfo, Vec3


def test_position_before_and_after_spawn():
    async def scenario() -> None:
        h = build_context(FakeSession(position=None))
        h.queue.dispatch(Command("position"))
        assert h.sink.events == [{"event": "position", "error": "not_spawned"}]

        h.session.pos = Vec3(1.5, 64.0, -2.0)
        h.sink.clear()
        h.queue.dispatch(Command("position"))
        assert h.sink.events == [
            {
                "event": "position",
                "x": 1.5,
                "y": 64.0,
                "z": -2.0,
                "yaw": 0.0,
                "pitch": 0.0,
                "dimension": "overworld",
            }
        ]

    asyncio.run(scenario())


def test_status_reflects_queue_while_busy():
    async def scenario() -> None:
        session = FakeSession()
        session.dig_gate = asyncio.Event()
        session.set_block(0, 64, 1, "stone")
        session.set_block(0, 64, 2, "stone")
        h = build_context(session)

        h.queue.dispatch(Command("dig", {"x": 0, "y": 64, "z": 1}))
        h.queue.dispatch(Command("dig", {"x": 0, "y": 64, "z": 2}))
        await settle()
        h.queue.dispatch(Command("status"))

        status = h.sink.of("status")[0]
        assert status["action_busy"] is True
        assert status["queue_length"] == 1
        assert status["position"] == {"x": 0, "y": 64, "z": 0}
        assert status["digging"] is False

        session.dig_gate.set()
        await drain(h.queue)

    asyncio.run(scenario())


def test_inventory_and_players_listing():
    async def scenario() -> None:
        session = FakeSession()
        session.inventory = [Item(name="torch", count=16, slot=37)]
        steve = Entity(entity_id=7, type="player", name="steve", position=Vec3(3, 64, 3))
        session.player_list = [
            PlayerInfo(username="steve", ping=40, entity=steve),
            PlayerInfo(username="alex", ping=120),
        ]
        h = build_context(session)

        h.queue.dispatch(Command("inventory"))
        h.queue.dispatch(Command("players"))

        assert h.sink.of("inventory") == [
            {"event": "inventory", "items": [{"name": "torch", "count": 16, "slot": 37}]}
        ]
        assert h.sink.of("players")[0]["list"] == [
            {"username": "steve", "ping": 40, "entity": True},
            {"username": "alex", "ping": 120, "entity": False},
        ]

    asyncio.run(scenario())


def test_survey_summarizes_surroundings():
    async def scenario() -> None:
        session = FakeSession(position=Vec3(10.4, 64.0, -3.6), blocks={(10, 64, -2): "oak_log"})
        session.survey_result = {"blocks": ["oak_log(1)"], "entities": []}
        h = build_context(session)

        h.queue.dispatch(Command("survey", {"range": 8}))

        survey = h.sink.of("survey")[0]
        assert survey["position"] == {"x": 10, "y": 64, "z": -4}
        assert survey["blocks"] == ["oak_log(1)"]
        assert survey["health"] == 20.0

    asyncio.run(scenario())


def test_quit_requests_shutdown():
    async def scenario() -> None:
        h = build_context()
        h.queue.dispatch(Command("quit"))
        assert h.quit_requests == [0]

    asyncio.run(scenario())


def test_look_validates_angles():
    async def scenario() -> None:
        h = build_context()
        h.queue.dispatch(Command("look", {"yaw": 1.0, "pitch": 0.5}))
        h.queue.dispatch(Command("look", {"yaw": "north"}))

        assert h.session.calls == [("look", (1.0, 0.5))]
        assert h.sink.of("error") == [
            {"event": "error", "action": "look", "message": "Invalid look angles: north, None"}
        ]

    asyncio.run(scenario())


def test_follow_without_pathfinder_releases_controls_later():
    async def scenario() -> None:
        session = FakeSession(has_pathfinder=False)
        steve = Entity(entity_id=7, type="player", name="steve", position=Vec3(0, 64, 5))
        session.player_list = [PlayerInfo(username="steve", entity=steve)]
        h = build_context(session)

        h.queue.dispatch(Command("follow", {"target": "steve"}))

        assert ("control", ("forward", True)) in session.calls
        assert h.ctx.control_timer.pending is True
        assert h.queue.busy is False

        h.queue.dispatch(Command("stop"))
        assert h.ctx.control_timer.pending is False

    asyncio.run(scenario())


def test_goto_finishes_when_goal_reached():
    async def scenario() -> None:
        session = FakeSession()
        session.reach_goals = True
        h = build_context(session)

        h.queue.dispatch(Command("goto", {"x": 5, "y": 64, "z": 5}))
        await drain(h.queue)

        assert h.sink.names() == ["ack", "goto_done"]
        assert session.goals == [{"type": "near", "range": 2, "x": 5, "y": 64, "z": 5}]

    asyncio.run(scenario())


def test_stop_resolves_pending_goal_wait():
    async def scenario() -> None:
        session = FakeSession()
        h = build_context(session)

        h.queue.dispatch(Command("move", {"x": 5, "y": 64, "z": 5}))
        await settle()
        assert len(h.registry) == 1

        h.queue.dispatch(Command("stop"))
        await drain(h.queue)

        assert len(h.registry) == 0
        assert session.listener_count("goal_reached") == 0
        assert "move_done" not in h.sink.names()
        assert h.sink.names()[-1] == "stopped"

    asyncio.run(scenario())
