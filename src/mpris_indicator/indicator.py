from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import ExitStack
import logging

from dbus_next.aio import MessageBus
from dbus_next.constants import BusType
import httpx

from mpris_indicator.bus import BusNameWatcher, MprisPeer
from mpris_indicator.config import AppConfig
from mpris_indicator.cover import CoverFetcher
from mpris_indicator.desktop import AppLookup, DesktopAppLookup, IconThemeDirectory
from mpris_indicator.icons import IconLookup
from mpris_indicator.models import IndicatorState
from mpris_indicator.registry import PlayerRegistry
from mpris_indicator.session import PlayerSession, SessionContext


StateListener = Callable[[IndicatorState], None]
LOGGER = logging.getLogger(__name__)


class MprisIndicator:
    """Host-facing facade: one registry per activation, torn down on deactivate."""

    def __init__(
        self,
        config: AppConfig,
        *,
        icons: IconLookup | None = None,
        apps: AppLookup | None = None,
    ) -> None:
        self._config = config
        self._icon_theme = IconThemeDirectory(config.icon_search_paths) if icons is None else None
        self._icons: IconLookup = icons if icons is not None else self._icon_theme
        self._apps = apps or DesktopAppLookup()
        self._listeners: list[StateListener] = []
        self._state = IndicatorState()
        self._bus: MessageBus | None = None
        self._owns_bus = False
        self._http: httpx.AsyncClient | None = None
        self._registry: PlayerRegistry | None = None
        self._subscriptions = ExitStack()

    @property
    def state(self) -> IndicatorState:
        return self._state

    @property
    def registry(self) -> PlayerRegistry | None:
        return self._registry

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def activate(self, bus: MessageBus | None = None) -> None:
        if self._registry is not None:
            return
        if self._icon_theme is not None:
            await self._icon_theme.load()
        if bus is None:
            self._bus = await MessageBus(bus_type=BusType.SESSION).connect()
            self._owns_bus = True
        else:
            self._bus = bus
            self._owns_bus = False
        self._http = httpx.AsyncClient(
            timeout=self._config.cover_fetch_timeout_seconds, follow_redirects=True
        )
        context = SessionContext(
            icons=self._icons,
            apps=self._apps,
            cover_fetcher=CoverFetcher(self._http),
            generic_icon_name=self._config.generic_icon_name,
        )
        self._registry = PlayerRegistry(
            self._create_peer,
            context,
            on_change=self._publish,
            threshold_ms=self._config.preexisting_delta_threshold_ms,
        )
        try:
            watcher = BusNameWatcher(self._bus)
            self._subscriptions.callback(watcher.subscribe(self._registry.apply_owner_change))
            self._registry.seed(await watcher.list_player_names())
        except BaseException:
            await self.deactivate()
            raise
        LOGGER.info("Indicator active with %d player(s)", len(self._registry))

    async def deactivate(self) -> None:
        if self._registry is None:
            return
        registry, self._registry = self._registry, None
        try:
            self._subscriptions.close()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Releasing bus subscriptions failed: %s", exc)
        registry.destroy()
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        if self._bus is not None and self._owns_bus:
            self._bus.disconnect()
        self._bus = None
        self._publish()
        LOGGER.info("Indicator deactivated")

    async def wait_ready(self) -> None:
        if self._registry is None:
            return
        await asyncio.gather(*(session.wait_ready() for session in self._registry.snapshot()))

    def find_player(self, bus_name: str | None = None) -> PlayerSession | None:
        if self._registry is None:
            return None
        if bus_name:
            return self._registry.get(bus_name)
        return self._registry.select().player

    async def refresh_icons(self) -> None:
        if self._icon_theme is not None:
            await self._icon_theme.load()
        if self._registry is not None:
            for session in self._registry.snapshot():
                session.refresh_icon()
        self._publish()

    def _create_peer(self, bus_name: str) -> MprisPeer:
        if self._bus is None:
            raise RuntimeError("indicator is not active")
        return MprisPeer(self._bus, bus_name)

    def _publish(self) -> None:
        self._state = self._compute_state()
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOGGER.exception("Indicator listener failed")

    def _compute_state(self) -> IndicatorState:
        if self._registry is None:
            return IndicatorState()
        selection = self._registry.select()
        return IndicatorState(
            icon_name=selection.icon_name,
            active_player=selection.player.bus_name if selection.player else None,
            players=tuple(session.summary() for session in self._registry.snapshot()),
        )
