from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import shutil

from mpris_indicator.config import AppConfig, load_config
from mpris_indicator.indicator import MprisIndicator
from mpris_indicator.ipc import IndicatorIpcServer, send_ipc
from mpris_indicator.models import IndicatorState, PlaybackStatus


LOGGER = logging.getLogger(__name__)
STATUS_GLYPHS = {
    PlaybackStatus.PLAYING.value: "▶",
    PlaybackStatus.PAUSED.value: "⏸",
    PlaybackStatus.STOPPED.value: "■",
}


class _IconChangeLogger:
    def __init__(self) -> None:
        self._last: tuple[str | None, str | None] | None = None

    def __call__(self, state: IndicatorState) -> None:
        current = (state.icon_name, state.active_player)
        if current == self._last:
            return
        self._last = current
        if state.visible:
            LOGGER.info("Active icon %s (%s)", state.icon_name, state.active_player or "none")
        else:
            LOGGER.info("No players, indicator hidden")


async def run_daemon(config: AppConfig) -> None:
    indicator = MprisIndicator(config)
    indicator.subscribe(_IconChangeLogger())
    ipc = IndicatorIpcServer(indicator=indicator, socket_path=config.control_socket_path)

    await indicator.activate()
    await ipc.start()
    LOGGER.info("Indicator daemon listening on %s", config.control_socket_path)

    try:
        await asyncio.Event().wait()
    finally:
        await ipc.stop()
        await indicator.deactivate()


async def run_status_command(config: AppConfig) -> None:
    indicator = MprisIndicator(config)
    await indicator.activate()
    try:
        await asyncio.wait_for(indicator.wait_ready(), timeout=config.settle_seconds + 5.0)
        await asyncio.sleep(config.settle_seconds)
        print(json.dumps(indicator.state.to_payload(), indent=2))
    finally:
        await indicator.deactivate()


async def run_ctl_command(config: AppConfig, action: str, player: str | None) -> None:
    payload = {"player": player} if player else {}
    response = await send_ipc(config.control_socket_path, action, **payload)
    if not response.get("ok", False):
        raise SystemExit(f"ctl command failed: {response.get('error', 'unknown error')}")
    print(json.dumps(response, indent=2))


async def run_waybar_command(config: AppConfig) -> None:
    response = await send_ipc(config.control_socket_path, "status")
    if not response.get("ok", False):
        print(
            json.dumps(
                {
                    "text": "",
                    "class": ["offline"],
                    "tooltip": "mpris-indicator daemon not running",
                }
            )
        )
        return
    print(json.dumps(waybar_payload(response.get("state", {}), config.waybar_max_length)))


def waybar_payload(state: dict, max_length: int) -> dict:
    players = state.get("players", [])
    if not state.get("visible") or not players:
        return {"text": "", "class": ["empty"], "tooltip": "No media players"}

    active_name = state.get("active_player")
    active = next((p for p in players if p.get("bus_name") == active_name), None)
    tooltip = "\n".join(_player_line(player) for player in players)
    if active is None:
        return {
            "text": "",
            "alt": state.get("icon_name") or "",
            "class": ["ambiguous"],
            "tooltip": tooltip,
        }

    status = str(active.get("status", PlaybackStatus.UNKNOWN.value))
    text = _player_line(active)
    if len(text) > max_length:
        text = text[: max_length - 1] + "…"
    return {
        "text": text,
        "alt": state.get("icon_name") or "",
        "class": [status.lower()],
        "tooltip": tooltip,
    }


def _player_line(player: dict) -> str:
    glyph = STATUS_GLYPHS.get(str(player.get("status")), "■")
    artist = str(player.get("artist", "")).strip()
    title = str(player.get("title", "")).strip()
    if artist and title:
        return f"{glyph} {artist} - {title}"
    return f"{glyph} {artist or title or player.get('bus_name', '')}"


def run_doctor(config: AppConfig) -> None:
    checks = {
        "session_bus_address": os.getenv("DBUS_SESSION_BUS_ADDRESS", ""),
        "gtk_launch_found": shutil.which("gtk-launch") is not None,
        "control_socket_path": config.control_socket_path,
        "generic_icon_name": config.generic_icon_name,
        "preexisting_delta_threshold_ms": config.preexisting_delta_threshold_ms,
        "icon_search_paths": [str(path) for path in config.icon_search_paths],
    }
    print(json.dumps(checks, indent=2))


async def run(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    command = args.command or "run"

    if command == "run":
        await run_daemon(config)
        return
    if command == "status":
        await run_status_command(config)
        return
    if command == "ctl":
        await run_ctl_command(config, args.action, args.player)
        return
    if command == "waybar":
        await run_waybar_command(config)
        return
    if command == "doctor":
        run_doctor(config)
        return

    raise SystemExit(f"Unknown command: {command}")
