from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shutil
from typing import Protocol


LOGGER = logging.getLogger(__name__)
ICON_EXTENSIONS = (".svg", ".png", ".xpm")


class AppHandle(Protocol):
    async def activate(self) -> None: ...


class AppLookup(Protocol):
    def lookup(self, desktop_id: str) -> AppHandle | None: ...


def xdg_data_dirs() -> list[Path]:
    data_home = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    data_dirs = os.getenv("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"
    return [Path(data_home), *(Path(item) for item in data_dirs.split(":") if item)]


class IconThemeDirectory:
    """Answers ``has_icon`` from an index of icon files under the XDG icon roots.

    Every theme below a root counts, so a name present only in an inactive
    theme is still reported. Build the index with :meth:`load` before the
    first lookup and again when the theme changes; ``has_icon`` itself never
    touches the filesystem.
    """

    def __init__(self, extra_paths: Iterable[Path] = ()) -> None:
        self._roots = [
            *extra_paths,
            Path.home() / ".icons",
            *(base / "icons" for base in xdg_data_dirs()),
            Path("/usr/share/pixmaps"),
        ]
        self._names: frozenset[str] = frozenset()

    def has_icon(self, name: str) -> bool:
        return name in self._names

    async def load(self) -> None:
        self._names = await asyncio.to_thread(self._scan)

    def _scan(self) -> frozenset[str]:
        names: set[str] = set()
        for root in self._roots:
            if not root.is_dir():
                continue
            for path in root.rglob("*"):
                if path.suffix in ICON_EXTENSIONS:
                    names.add(path.stem)
        LOGGER.debug("Indexed %d icon names", len(names))
        return frozenset(names)


@dataclass(slots=True, frozen=True)
class DesktopApp:
    desktop_id: str
    path: Path

    async def activate(self) -> None:
        launcher = shutil.which("gtk-launch")
        if launcher is None:
            raise RuntimeError("gtk-launch not found, cannot activate application")
        process = await asyncio.create_subprocess_exec(
            launcher,
            self.desktop_id,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        await process.wait()


class DesktopAppLookup:
    def __init__(self, search_dirs: Iterable[Path] | None = None) -> None:
        bases = list(search_dirs) if search_dirs is not None else xdg_data_dirs()
        self._dirs = [base / "applications" for base in bases]

    def lookup(self, desktop_id: str) -> DesktopApp | None:
        if not desktop_id:
            return None
        filename = f"{desktop_id}.desktop"
        for directory in self._dirs:
            path = directory / filename
            if path.is_file():
                return DesktopApp(desktop_id=desktop_id, path=path)
        return None
