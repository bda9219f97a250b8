from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from pathlib import Path
from urllib.parse import unquote, urlsplit

import httpx

from mpris_indicator.models import CoverArt


LOGGER = logging.getLogger(__name__)
CoverListener = Callable[[CoverArt], None]


class CoverFetchError(RuntimeError):
    pass


class CoverFetcher:
    """Loads cover art bytes from ``http(s)://`` and ``file://`` URIs."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def fetch(self, uri: str) -> bytes:
        parts = urlsplit(uri)
        scheme = parts.scheme.lower()
        if scheme in ("http", "https"):
            try:
                response = await self._http.get(uri)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise CoverFetchError(f"cover request failed: {exc}") from exc
            return response.content
        if scheme == "file":
            path = Path(unquote(parts.path))
            try:
                return await asyncio.to_thread(path.read_bytes)
            except OSError as exc:
                raise CoverFetchError(f"cover file unreadable: {exc}") from exc
        raise CoverFetchError(f"unsupported cover URI scheme: {scheme or '<none>'}")


class CoverResolver:
    """Keeps at most one cover fetch in flight and reports what to display.

    A new :meth:`resolve` cancels the previous fetch. A cancelled fetch
    never reaches the listener; a failed one shows the fallback icon.
    """

    def __init__(self, fetcher: CoverFetcher, on_cover: CoverListener) -> None:
        self._fetcher = fetcher
        self._on_cover = on_cover
        self._task: asyncio.Task[None] | None = None
        self._current: CoverArt | None = None

    @property
    def current(self) -> CoverArt | None:
        return self._current

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def resolve(self, ref: str, fallback_icon: str) -> None:
        self.cancel()
        if not ref:
            self._show(CoverArt(icon_name=fallback_icon))
            return
        self._task = asyncio.get_running_loop().create_task(
            self._load(ref, fallback_icon), name=f"cover:{ref}"
        )

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _load(self, ref: str, fallback_icon: str) -> None:
        try:
            data = await self._fetcher.fetch(ref)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cover %s unavailable: %s", ref, exc)
            self._show(CoverArt(icon_name=fallback_icon))
            return
        self._show(CoverArt(data=data, uri=ref))

    def _show(self, cover: CoverArt) -> None:
        if cover == self._current:
            return
        self._current = cover
        self._on_cover(cover)
