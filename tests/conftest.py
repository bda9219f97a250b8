from __future__ import annotations

import asyncio
from typing import Any

import pytest

from mpris_indicator.bus import PeerIdentity
from mpris_indicator.session import SessionContext


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakePeer:
    def __init__(
        self,
        bus_name: str,
        identity: PeerIdentity | None = None,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self.bus_name = bus_name
        self.identity = identity or PeerIdentity(identity="Fake Player")
        self.properties = dict(properties or {})
        self.identity_error: Exception | None = None
        self.properties_error: Exception | None = None
        self.identity_gate: asyncio.Event | None = None
        self.listeners: list = []
        self.calls: list[str] = []

    async def fetch_identity(self) -> PeerIdentity:
        if self.identity_gate is not None:
            await self.identity_gate.wait()
        if self.identity_error is not None:
            raise self.identity_error
        return self.identity

    async def fetch_player_properties(self) -> dict[str, Any]:
        if self.properties_error is not None:
            raise self.properties_error
        return dict(self.properties)

    def subscribe(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def emit(self, changed: dict[str, Any], invalidated: list[str] | None = None) -> None:
        for listener in list(self.listeners):
            listener(dict(changed), list(invalidated or []))

    async def raise_window(self) -> None:
        self.calls.append("Raise")

    async def play_pause(self) -> None:
        self.calls.append("PlayPause")

    async def play(self) -> None:
        self.calls.append("Play")

    async def stop(self) -> None:
        self.calls.append("Stop")

    async def next(self) -> None:
        self.calls.append("Next")

    async def previous(self) -> None:
        self.calls.append("Previous")


class FakePeerFactory:
    """Hands out a fresh FakePeer per call, configured by bus name."""

    def __init__(self) -> None:
        self.identities: dict[str, PeerIdentity] = {}
        self.properties: dict[str, dict[str, Any]] = {}
        self.created: list[FakePeer] = []

    def __call__(self, bus_name: str) -> FakePeer:
        peer = FakePeer(
            bus_name,
            self.identities.get(bus_name),
            self.properties.get(bus_name, {"PlaybackStatus": "Stopped"}),
        )
        self.created.append(peer)
        return peer

    def latest(self, bus_name: str) -> FakePeer:
        return [peer for peer in self.created if peer.bus_name == bus_name][-1]


class FakeIcons:
    def __init__(self, names: set[str] | None = None) -> None:
        self.names = set(names or ())

    def has_icon(self, name: str) -> bool:
        return name in self.names


class FakeApp:
    def __init__(self, desktop_id: str) -> None:
        self.desktop_id = desktop_id
        self.activations = 0

    async def activate(self) -> None:
        self.activations += 1


class FakeApps:
    def __init__(self, desktop_ids: set[str] | None = None) -> None:
        self.apps = {desktop_id: FakeApp(desktop_id) for desktop_id in desktop_ids or ()}

    def lookup(self, desktop_id: str) -> FakeApp | None:
        return self.apps.get(desktop_id)


class FakeCoverFetcher:
    """Every fetch blocks on a future the test resolves."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, asyncio.Future[bytes]]] = []

    async def fetch(self, uri: str) -> bytes:
        future: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self.requests.append((uri, future))
        return await future

    def future_for(self, uri: str) -> asyncio.Future[bytes]:
        return [future for requested, future in self.requests if requested == uri][-1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def icons() -> FakeIcons:
    return FakeIcons({"vlc", "spotify-client", "rhythmbox-symbolic"})


@pytest.fixture
def apps() -> FakeApps:
    return FakeApps({"vlc"})


@pytest.fixture
def cover_fetcher() -> FakeCoverFetcher:
    return FakeCoverFetcher()


@pytest.fixture
def context(icons, apps, cover_fetcher, clock) -> SessionContext:
    return SessionContext(icons=icons, apps=apps, cover_fetcher=cover_fetcher, clock=clock)


@pytest.fixture
def peer_factory() -> FakePeerFactory:
    return FakePeerFactory()
