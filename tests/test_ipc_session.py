# tests/test_ipc_session.py
"""
IpcSession against a scripted in-process agent on a local TCP socket.

Covers:
- Login, capability hello and spawn handshake
- State packets feeding the WorldTracker
- Request/response mapping (ok, no_recipe, rejection)
- Agent disconnect surfacing as an `end` notification and closing the socket
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from bot_core.errors import SessionError, SessionRejected
from bot_core.net.ipc import IpcSession
from env.schema import SessionConfig
from spec.types import Block, Vec3


class ScriptedAgent:
    """Minimal game-side agent: spawns the bot and answers requests."""

    def __init__(self) -> None:
        self.received: List[Dict[str, Any]] = []
        self.server: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def start(self) -> None:
        self.server = await asyncio.start_server(self._serve, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]

    def stop(self) -> None:
        self.server.close()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        def send(message: Dict[str, Any]) -> None:
            writer.write(json.dumps(message).encode("utf-8") + b"\n")

        login = json.loads(await reader.readline())
        self.received.append(login)
        send({"type": "hello", "payload": {"pathfinder": True}})
        send({"type": "position_update", "payload": {"x": 1.5, "y": 64, "z": 2.5}})
        send({"type": "block_update", "payload": {"x": 1, "y": 63, "z": 2, "name": "stone"}})
        send({"type": "event", "payload": {"name": "spawn", "args": []}})
        await writer.drain()

        while True:
            line = await reader.readline()
            if not line:
                break
            message = json.loads(line)
            self.received.append(message)
            if message["type"] == "stop_digging":
                break
            if "id" not in message:
                continue
            if message["type"] == "craft":
                payload = {"ok": False, "error": "no recipe", "code": "no_recipe"}
            elif message["type"] == "sleep":
                payload = {"ok": False, "error": "You can only sleep at night"}
            else:
                payload = {"ok": True}
            send({"type": "response", "id": message["id"], "payload": payload})
            await writer.drain()
        writer.close()


def config_for(agent: ScriptedAgent) -> SessionConfig:
    return SessionConfig(username="Digger", ipc_host="127.0.0.1", ipc_port=agent.port)


def test_connect_handshake_and_requests():
    async def scenario() -> None:
        agent = ScriptedAgent()
        await agent.start()
        session = IpcSession(config_for(agent))
        spawns = []
        session.subscribe("spawn", lambda: spawns.append(True))

        try:
            await asyncio.wait_for(session.connect(), 5.0)

            assert spawns == [True]
            assert session.has_pathfinder is True
            assert session.position == Vec3(1.5, 64.0, 2.5)
            assert agent.received[0]["type"] == "login"
            assert agent.received[0]["payload"]["username"] == "Digger"

            stone = session.block_at(Vec3(1, 63, 2))
            await asyncio.wait_for(session.dig(stone), 5.0)

            with pytest.raises(LookupError):
                await asyncio.wait_for(session.craft("furnace", 1), 5.0)
            with pytest.raises(SessionRejected, match="only sleep at night"):
                await asyncio.wait_for(session.sleep(Block("red_bed", Vec3(0, 64, 0))), 5.0)

            types = [m["type"] for m in agent.received]
            assert types == ["login", "dig", "craft", "sleep"]
        finally:
            session.quit("test over")
            agent.stop()

    asyncio.run(scenario())


def test_agent_disconnect_emits_end_and_closes_socket():
    async def scenario() -> None:
        agent = ScriptedAgent()
        await agent.start()
        session = IpcSession(config_for(agent))
        ends: List[str] = []
        session.subscribe("end", ends.append)

        try:
            await asyncio.wait_for(session.connect(), 5.0)
            assert session.connected is True
            session.stop_digging()

            for _ in range(200):
                if ends:
                    break
                await asyncio.sleep(0.01)

            assert ends == ["connection closed"]
            assert session.connected is False
        finally:
            session.quit()
            agent.stop()

    asyncio.run(scenario())


def test_connect_fails_when_agent_unreachable():
    async def scenario() -> None:
        agent = ScriptedAgent()
        await agent.start()
        port = agent.port
        agent.stop()
        await agent.server.wait_closed()

        session = IpcSession(SessionConfig(ipc_host="127.0.0.1", ipc_port=port))
        with pytest.raises(SessionError):
            await asyncio.wait_for(session.connect(), 5.0)

    asyncio.run(scenario())
