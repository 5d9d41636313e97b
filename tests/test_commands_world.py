# tests/test_commands_world.py
"""
Tests for single-block world commands and find_and_dig.
"""

from __future__ import annotations

import asyncio

from bot_core.testing.fakes import FakeSession, build_context, drain
from spec.types import Command, Vec3


def run_command(session: FakeSession, command: Command):
    async def scenario():
        h = build_context(session)
        h.queue.dispatch(command)
        await drain(h.queue)
        return h

    return asyncio.run(scenario())


def test_dig_reports_block_and_coordinates():
    session = FakeSession(blocks={(1, 64, 2): "oak_log"})
    h = run_command(session, Command("dig", {"x": 1, "y": 64, "z": 2}))

    assert h.sink.of("dig_done") == [
        {"event": "dig_done", "block": "oak_log", "x": 1, "y": 64, "z": 2}
    ]
    assert session.blocks[(1, 64, 2)] == "air"


def test_dig_rejects_air_and_bad_coordinates():
    session = FakeSession(blocks={(1, 64, 2): "air"})
    h = run_command(session, Command("dig", {"x": 1, "y": 64, "z": 2}))
    assert h.sink.of("error") == [
        {"event": "error", "action": "dig", "message": "No block at 1, 64, 2"}
    ]

    h = run_command(FakeSession(), Command("dig", {"x": "a", "y": 64}))
    assert h.sink.of("error") == [
        {"event": "error", "action": "dig", "message": "Invalid coordinates: a, 64, None"}
    ]


def test_dig_failure_from_session_is_reported():
    session = FakeSession(blocks={(0, 64, 0): "obsidian"})
    session.dig_error = RuntimeError("cannot dig obsidian by hand")
    h = run_command(session, Command("dig", {"x": 0, "y": 64, "z": 0}))

    assert h.sink.of("error") == [
        {"event": "error", "action": "dig", "message": "cannot dig obsidian by hand"}
    ]
    assert h.queue.busy is False


def test_dig_looking_at_uses_cursor_block():
    session = FakeSession(position=Vec3(0, 64, 0), blocks={(0, 64, 1): "stone"})
    h = run_command(session, Command("dig_looking_at"))
    assert session.dug == [Vec3(0, 64, 1)]
    assert h.sink.of("ack")[0]["block"] == "stone"

    h = run_command(FakeSession(), Command("dig_looking_at"))
    assert h.sink.of("error")[0]["message"] == "No block in line of sight"


def test_place_uses_named_face():
    session = FakeSession(blocks={(3, 63, 3): "grass_block"})
    h = run_command(session, Command("place", {"x": 3, "y": 63, "z": 3, "face": "north"}))

    assert session.calls == [("place_block", (Vec3(3, 63, 3), Vec3(0, 0, -1)))]
    assert h.sink.of("ack") == [
        {"event": "ack", "action": "place", "face": "north", "x": 3, "y": 63, "z": 3}
    ]


def test_find_and_dig_walks_then_digs():
    session = FakeSession(position=Vec3(0, 64, 0), blocks={(10, 64, 0): "coal_ore"})
    session.reach_goals = True
    h = run_command(session, Command("find_and_dig", {"block_type": "coal_ore"}))

    assert session.goals == [{"type": "near", "range": 2, "x": 10, "y": 64, "z": 0}]
    assert session.dug == [Vec3(10, 64, 0)]
    assert h.sink.of("find_and_dig_done") == [
        {"event": "find_and_dig_done", "block": "coal_ore", "x": 10, "y": 64, "z": 0}
    ]


def test_find_and_dig_unknown_and_missing_block_types():
    session = FakeSession()
    session.known_blocks = {"stone", "coal_ore"}
    h = run_command(session, Command("find_and_dig", {"block_type": "unobtainium"}))
    assert h.sink.of("error")[0]["message"] == "Unknown block type: unobtainium"

    h = run_command(FakeSession(), Command("find_and_dig", {"block_type": "diamond_ore"}))
    assert h.sink.of("error")[0]["message"] == "No diamond_ore found within 32 blocks"


def test_find_and_dig_without_pathfinder_too_far():
    session = FakeSession(
        position=Vec3(0, 64, 0),
        has_pathfinder=False,
        blocks={(20, 64, 0): "iron_ore"},
    )
    h = run_command(session, Command("find_and_dig", {"block_type": "iron_ore"}))

    assert h.sink.names() == ["error", "find_and_dig_error"]
    assert h.sink.events[0]["message"] == (
        "iron_ore found at 20, 64, 0 but too far (20 blocks) and no pathfinder"
    )
    assert h.sink.events[1] == {
        "event": "find_and_dig_error",
        "error": "iron_ore too far and no pathfinder",
    }
    assert session.dug == []


def test_find_and_dig_dig_failure_emits_terminal_error():
    session = FakeSession(
        position=Vec3(0, 64, 0),
        has_pathfinder=False,
        blocks={(1, 64, 0): "iron_ore"},
    )
    session.dig_error = RuntimeError("tool broke")
    h = run_command(session, Command("find_and_dig", {"block_type": "iron_ore"}))

    assert h.sink.names() == ["error", "find_and_dig_error"]
    assert h.sink.events[1]["error"] == "tool broke"
