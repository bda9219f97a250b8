from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from mpris_indicator.indicator import MprisIndicator


PLAYER_ACTIONS = ("play_pause", "next", "previous", "stop", "raise")


class IndicatorIpcServer:
    """JSON-lines control socket over a running :class:`MprisIndicator`."""

    def __init__(self, indicator: MprisIndicator, socket_path: str) -> None:
        self._indicator = indicator
        self._socket_path = Path(socket_path)
        self._server: asyncio.AbstractServer | None = None

    async def start(self) -> None:
        self._socket_path.unlink(missing_ok=True)
        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self._socket_path),
        )

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._socket_path.unlink(missing_ok=True)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            try:
                line = await reader.readline()
                if not line:
                    return
                response = await self.dispatch(json.loads(line.decode("utf-8")))
            except Exception as exc:  # noqa: BLE001
                response = {"ok": False, "error": str(exc)}
            writer.write((json.dumps(response) + "\n").encode("utf-8"))
            await writer.drain()
        finally:
            writer.close()
            await writer.wait_closed()

    async def dispatch(self, request: dict[str, Any]) -> dict[str, Any]:
        action = str(request.get("action", "")).strip()
        if action == "status":
            return {"ok": True, "state": self._indicator.state.to_payload()}
        if action == "refresh_icons":
            await self._indicator.refresh_icons()
            return {"ok": True, "state": self._indicator.state.to_payload()}
        if action not in PLAYER_ACTIONS:
            return {"ok": False, "error": f"unknown action: {action}"}

        bus_name = str(request.get("player") or "")
        session = self._indicator.find_player(bus_name or None)
        if session is None:
            return {"ok": False, "error": f"no such player: {bus_name}" if bus_name else "no player"}

        if action == "play_pause":
            await session.play_pause()
        elif action == "next":
            await session.next()
        elif action == "previous":
            await session.previous()
        elif action == "stop":
            await session.stop()
        elif action == "raise":
            if not await session.activate():
                return {"ok": False, "error": f"{session.bus_name} cannot be raised"}
        return {"ok": True, "player": session.bus_name, "state": self._indicator.state.to_payload()}


async def send_ipc(socket_path: str, action: str, **payload: Any) -> dict[str, Any]:
    try:
        reader, writer = await asyncio.open_unix_connection(socket_path)
    except FileNotFoundError:
        return {"ok": False, "error": "daemon socket not found"}
    except OSError as exc:
        return {"ok": False, "error": str(exc)}
    request = {"action": action, **payload}
    writer.write((json.dumps(request) + "\n").encode("utf-8"))
    await writer.drain()
    line = await reader.readline()
    writer.close()
    await writer.wait_closed()
    if not line:
        return {"ok": False, "error": "empty response"}
    return json.loads(line.decode("utf-8"))
