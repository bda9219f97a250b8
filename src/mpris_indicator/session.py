from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from contextlib import ExitStack
from dataclasses import dataclass, replace
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol

from mpris_indicator.bus import PeerIdentity, PropertiesListener, Unsubscribe
from mpris_indicator.cover import CoverFetcher, CoverResolver
from mpris_indicator.icons import GENERIC_ICON_NAME, IconLookup, get_player_icon_name
from mpris_indicator.models import (
    ButtonState,
    Capabilities,
    CoverArt,
    LifecycleState,
    PlaybackStatus,
    PlayerSummary,
    TrackMetadata,
)

if TYPE_CHECKING:
    from mpris_indicator.desktop import AppHandle, AppLookup


LOGGER = logging.getLogger(__name__)
SessionListener = Callable[["PlayerSession"], None]
Clock = Callable[[], float]

STATUS_KEYS = frozenset({"PlaybackStatus", "CanGoNext", "CanGoPrevious", "CanPlay", "CanPause"})


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Peer(Protocol):
    bus_name: str

    async def fetch_identity(self) -> PeerIdentity: ...

    async def fetch_player_properties(self) -> dict[str, Any]: ...

    def subscribe(self, listener: PropertiesListener) -> Unsubscribe: ...

    async def raise_window(self) -> None: ...

    async def play_pause(self) -> None: ...

    async def play(self) -> None: ...

    async def stop(self) -> None: ...

    async def next(self) -> None: ...

    async def previous(self) -> None: ...


@dataclass(slots=True)
class SessionContext:
    """Collaborators shared by every session of one registry."""

    icons: IconLookup
    apps: AppLookup
    cover_fetcher: CoverFetcher
    generic_icon_name: str = GENERIC_ICON_NAME
    clock: Clock = monotonic_ms


class PlayerSession:
    """State of one MPRIS peer, from discovery until it leaves the bus."""

    def __init__(
        self,
        peer: Peer,
        context: SessionContext,
        *,
        on_status_changed: SessionListener | None = None,
        on_updated: SessionListener | None = None,
    ) -> None:
        self.bus_name = peer.bus_name
        self.state = LifecycleState.DISCOVERING
        self.capabilities = Capabilities()
        self.buttons = ButtonState()
        self.display_name = ""
        self.desktop_entry = ""
        self.artist = ""
        self.title = ""
        self.cover_ref = ""
        self.icon_name = context.generic_icon_name
        self.last_active = context.clock()
        self._peer = peer
        self._context = context
        self._on_status_changed = on_status_changed
        self._on_updated = on_updated
        self._status: PlaybackStatus | None = None
        self._properties: dict[str, Any] = {}
        self._pending: list[tuple[dict[str, Any], list[str]]] = []
        self._app: AppHandle | None = None
        self._cover = CoverResolver(context.cover_fetcher, self._on_cover)
        self._subscriptions = ExitStack()
        self._init_task: asyncio.Task[None] | None = None

    @property
    def status(self) -> PlaybackStatus:
        if self._status is None:
            return PlaybackStatus.UNKNOWN
        return self._status

    @property
    def status_priority(self) -> int:
        return self.status.priority

    @property
    def cover(self) -> CoverArt:
        return self._cover.current or CoverArt(icon_name=self.icon_name)

    @property
    def can_activate(self) -> bool:
        return self._app is not None or self.capabilities.can_raise

    def start(self) -> None:
        try:
            self._subscriptions.callback(self._peer.subscribe(self.apply_property_update))
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Could not subscribe to %s: %s", self.bus_name, exc)
        self._init_task = asyncio.get_running_loop().create_task(
            self._initialize(), name=f"mpris-init:{self.bus_name}"
        )

    async def wait_ready(self) -> None:
        if self._init_task is not None:
            await asyncio.wait({self._init_task})

    def apply_property_update(
        self, changed: Mapping[str, Any], invalidated: Iterable[str] = ()
    ) -> None:
        if self.state is LifecycleState.DESTROYED:
            return
        if self.state is LifecycleState.DISCOVERING:
            self._pending.append((dict(changed), list(invalidated)))
            return
        self._properties.update(changed)
        invalidated = list(invalidated)
        for key in invalidated:
            self._properties.pop(key, None)
        self._refresh(set(changed) | set(invalidated))

    async def activate(self) -> bool:
        if self.state is LifecycleState.DESTROYED:
            return False
        if self._app is not None:
            await self._app.activate()
            return True
        if self.capabilities.can_raise:
            await self._peer.raise_window()
            return True
        return False

    async def play_pause(self) -> None:
        if self.capabilities.can_play and self.capabilities.can_pause:
            await self._peer.play_pause()
        elif self.capabilities.can_play:
            await self._peer.play()

    async def next(self) -> None:
        if self.capabilities.can_go_next:
            await self._peer.next()

    async def previous(self) -> None:
        if self.capabilities.can_go_previous:
            await self._peer.previous()

    async def stop(self) -> None:
        await self._peer.stop()

    def refresh_icon(self) -> None:
        if self.state is not LifecycleState.READY:
            return
        self.icon_name = self._lookup_icon()
        self._update_metadata()
        self._notify(self._on_updated)

    def destroy(self) -> None:
        if self.state is LifecycleState.DESTROYED:
            return
        self.state = LifecycleState.DESTROYED
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._cover.cancel()
        self._pending.clear()
        try:
            self._subscriptions.close()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Releasing subscriptions of %s failed: %s", self.bus_name, exc)

    def summary(self) -> PlayerSummary:
        return PlayerSummary(
            bus_name=self.bus_name,
            display_name=self.display_name,
            icon_name=self.icon_name,
            artist=self.artist,
            title=self.title,
            status=self.status,
            cover=self.cover,
            buttons=self.buttons,
            can_activate=self.can_activate,
        )

    async def _initialize(self) -> None:
        try:
            identity = await self._peer.fetch_identity()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Could not resolve identity of %s: %s", self.bus_name, exc)
            identity = PeerIdentity()
        self._apply_identity(identity)

        try:
            properties = await self._peer.fetch_player_properties()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Could not read player properties of %s: %s", self.bus_name, exc)
            properties = {}
        self._properties.update(properties)

        self.state = LifecycleState.READY
        LOGGER.debug("%s ready (%s)", self.bus_name, self.display_name or "unnamed")
        self._refresh(set(STATUS_KEYS) | {"Metadata"})
        pending, self._pending = self._pending, []
        for changed, invalidated in pending:
            self.apply_property_update(changed, invalidated)

    def _apply_identity(self, identity: PeerIdentity) -> None:
        self.display_name = identity.identity
        self.desktop_entry = identity.desktop_entry
        self.capabilities = replace(self.capabilities, can_raise=identity.can_raise)
        self.icon_name = self._lookup_icon()
        if self.desktop_entry:
            self._app = self._context.apps.lookup(self.desktop_entry)

    def _lookup_icon(self) -> str:
        return get_player_icon_name(
            self.desktop_entry, self._context.icons, fallback=self._context.generic_icon_name
        )

    def _refresh(self, keys: set[str]) -> None:
        status_changed = False
        if keys & STATUS_KEYS:
            status_changed = self._update_props()
        if status_changed or "Metadata" in keys:
            self._update_metadata()
        if status_changed:
            self._notify(self._on_status_changed)
        self._notify(self._on_updated)

    def _update_props(self) -> bool:
        props = self._properties
        self.capabilities = Capabilities(
            can_go_next=bool(props.get("CanGoNext", False)),
            can_go_previous=bool(props.get("CanGoPrevious", False)),
            can_play=bool(props.get("CanPlay", False)),
            can_pause=bool(props.get("CanPause", False)),
            can_raise=self.capabilities.can_raise,
        )
        status = PlaybackStatus.parse(props.get("PlaybackStatus"))
        self.buttons = ButtonState.from_capabilities(self.capabilities, status)
        if status is self._status:
            return False
        self._status = status
        self.last_active = self._context.clock()
        return True

    def _update_metadata(self) -> None:
        metadata = TrackMetadata.from_mpris(self._properties.get("Metadata"))
        if self.status_priority < 2:
            self.artist = metadata.artist or self.display_name
            self.title = metadata.title or ""
            self.cover_ref = metadata.art_url or ""
        else:
            self.artist = self.display_name
            self.title = ""
            self.cover_ref = ""
        self._cover.resolve(self.cover_ref, self.icon_name)

    def _on_cover(self, cover: CoverArt) -> None:
        if self.state is LifecycleState.DESTROYED:
            return
        self._notify(self._on_updated)

    def _notify(self, listener: SessionListener | None) -> None:
        if listener is None:
            return
        try:
            listener(self)
        except Exception:
            LOGGER.exception("Session listener failed for %s", self.bus_name)

    def __repr__(self) -> str:
        return f"PlayerSession({self.bus_name!r}, {self.state.value}, {self.status.value})"
