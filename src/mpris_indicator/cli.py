from __future__ import annotations

import argparse
from pathlib import Path

from mpris_indicator.ipc import PLAYER_ACTIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="mpris-indicator: pick the representative MPRIS media player"
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml", default=None)
    parser.add_argument("--log-level", default="INFO", help="Python log level (INFO, DEBUG, ...)")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the indicator daemon")
    subparsers.add_parser("status", help="Print a one-shot snapshot of all players")
    subparsers.add_parser("doctor", help="Check runtime dependencies and config")

    ctl = subparsers.add_parser("ctl", help="Control a player through the running daemon")
    ctl.add_argument("action", choices=["status", "refresh_icons", *PLAYER_ACTIONS])
    ctl.add_argument("--player", help="Bus name of the player (default: active player)")
    subparsers.add_parser("waybar", help="Emit Waybar JSON from daemon state")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
