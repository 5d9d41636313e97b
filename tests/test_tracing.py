# tests/test_tracing.py

from __future__ import annotations

import asyncio

from bot_core.commands import build_command_table
from bot_core.testing.fakes import FakeSession, build_context
from bot_core.tracing import ActionTracer
from spec.types import Command, Vec3


def test_tracer_keeps_bounded_history():
    tracer = ActionTracer(max_records=2)
    for kind in ("dig", "place", "craft"):
        tracer.record(command=Command(kind), success=True, error=None, duration_s=0.01)

    records = tracer.get_records()
    assert [r.kind for r in records] == ["place", "craft"]
    assert records[0].position is None


def test_exclusive_commands_are_traced_with_outcome():
    async def scenario() -> ActionTracer:
        tracer = ActionTracer()
        table = build_command_table(tracer)
        session = FakeSession(position=Vec3(0, 64, 0), blocks={(0, 63, 0): "dirt"})
        h = build_context(session)

        await table.execute_exclusive(h.ctx, Command("dig", {"x": 0, "y": 63, "z": 0}))
        await table.execute_exclusive(h.ctx, Command("dig", {"x": 5, "y": 63, "z": 0}))
        return tracer

    records = asyncio.run(scenario()).get_records()

    assert [r.success for r in records] == [True, False]
    assert records[1].error == "No block at 5, 63, 0"
    assert records[0].params == {"x": 0, "y": 63, "z": 0}
    assert records[0].position == {"x": 0, "y": 64, "z": 0}


def test_command_table_classification():
    table = build_command_table()

    assert table.classify("status").value == "immediate"
    assert table.classify("follow").value == "immediate"
    assert table.classify("dig_area").value == "exclusive"
    assert table.classify("not_a_command").value == "exclusive"
    assert len(table.kinds) == 31
