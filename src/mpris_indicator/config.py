from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import tomllib

from mpris_indicator.icons import GENERIC_ICON_NAME
from mpris_indicator.selector import PREEXISTING_DELTA_THRESHOLD_MS


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "mpris-indicator" / "config.toml"
DEFAULT_SOCKET_PATH = "/tmp/mpris-indicator.sock"


@dataclass(slots=True)
class AppConfig:
    control_socket_path: str = DEFAULT_SOCKET_PATH
    settle_seconds: float = 0.5
    generic_icon_name: str = GENERIC_ICON_NAME
    preexisting_delta_threshold_ms: float = PREEXISTING_DELTA_THRESHOLD_MS
    cover_fetch_timeout_seconds: float = 10.0
    icon_search_paths: tuple[Path, ...] = ()
    waybar_max_length: int = 48


def load_config(path: Path | None = None) -> AppConfig:
    resolved = path or DEFAULT_CONFIG_PATH
    if resolved.exists():
        raw = tomllib.loads(resolved.read_text(encoding="utf-8"))
    else:
        raw = {}
    app = raw.get("app", {})
    selection = raw.get("selection", {})
    covers = raw.get("covers", {})
    icons = raw.get("icons", {})
    waybar = raw.get("waybar", {})

    configured_socket = str(app.get("control_socket_path", DEFAULT_SOCKET_PATH))

    return AppConfig(
        control_socket_path=os.getenv("MPRIS_INDICATOR_SOCKET", configured_socket),
        settle_seconds=float(app.get("settle_seconds", 0.5)),
        generic_icon_name=str(selection.get("generic_icon_name", GENERIC_ICON_NAME)),
        preexisting_delta_threshold_ms=float(
            selection.get("preexisting_delta_threshold_ms", PREEXISTING_DELTA_THRESHOLD_MS)
        ),
        cover_fetch_timeout_seconds=float(covers.get("fetch_timeout_seconds", 10.0)),
        icon_search_paths=tuple(
            Path(str(item)).expanduser() for item in icons.get("search_paths", [])
        ),
        waybar_max_length=max(1, int(waybar.get("max_length", 48))),
    )
