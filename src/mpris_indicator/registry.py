from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
import logging

from mpris_indicator.selector import (
    PREEXISTING_DELTA_THRESHOLD_MS,
    Selection,
    select_active_player,
)
from mpris_indicator.session import Peer, PlayerSession, SessionContext


LOGGER = logging.getLogger(__name__)
PeerFactory = Callable[[str], Peer]
ChangeListener = Callable[[], None]


class OwnerChange(str, Enum):
    ARRIVED = "arrived"
    DEPARTED = "departed"
    RENAMED = "renamed"


def classify_owner_change(old_owner: str, new_owner: str) -> OwnerChange | None:
    if new_owner and not old_owner:
        return OwnerChange.ARRIVED
    if old_owner and not new_owner:
        return OwnerChange.DEPARTED
    if old_owner and new_owner:
        return OwnerChange.RENAMED
    return None


class PlayerRegistry:
    """Owns one :class:`PlayerSession` per live MPRIS bus name.

    Sessions are kept in discovery order. Every mutation, and every update a
    session reports, is forwarded to ``on_change``.
    """

    def __init__(
        self,
        peer_factory: PeerFactory,
        context: SessionContext,
        *,
        on_change: ChangeListener | None = None,
        threshold_ms: float = PREEXISTING_DELTA_THRESHOLD_MS,
    ) -> None:
        self._peer_factory = peer_factory
        self._context = context
        self._on_change = on_change
        self._threshold_ms = threshold_ms
        self._sessions: dict[str, PlayerSession] = {}
        self._live_event_seen = False
        self.assume_preexisting_peers = False

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, bus_name: object) -> bool:
        return bus_name in self._sessions

    def get(self, bus_name: str) -> PlayerSession | None:
        return self._sessions.get(bus_name)

    def snapshot(self) -> tuple[PlayerSession, ...]:
        return tuple(self._sessions.values())

    def seed(self, bus_names: Iterable[str]) -> None:
        added = [name for name in sorted(bus_names) if name not in self._sessions]
        for name in added:
            self._add(name)
        if added and not self._live_event_seen:
            self.assume_preexisting_peers = True
        LOGGER.info("Found %d player(s) already on the bus", len(added))
        self._changed()

    def apply_owner_change(self, bus_name: str, old_owner: str, new_owner: str) -> None:
        change = classify_owner_change(old_owner, new_owner)
        if change is OwnerChange.ARRIVED:
            self.on_peer_arrived(bus_name)
        elif change is OwnerChange.DEPARTED:
            self.on_peer_departed(bus_name)
        elif change is OwnerChange.RENAMED:
            self.on_peer_renamed(bus_name)

    def on_peer_arrived(self, bus_name: str) -> None:
        self._mark_live_event()
        if bus_name in self._sessions:
            return
        LOGGER.info("Player appeared: %s", bus_name)
        self._add(bus_name)
        self._changed()

    def on_peer_departed(self, bus_name: str) -> None:
        self._mark_live_event()
        session = self._sessions.pop(bus_name, None)
        if session is None:
            return
        LOGGER.info("Player vanished: %s", bus_name)
        session.destroy()
        self._changed()

    def on_peer_renamed(self, bus_name: str) -> None:
        self._mark_live_event()
        LOGGER.info("Player changed owner: %s", bus_name)
        session = self._sessions.pop(bus_name, None)
        if session is not None:
            session.destroy()
        self._add(bus_name)
        self._changed()

    def select(self, generic_icon_name: str | None = None) -> Selection[PlayerSession]:
        selection = select_active_player(
            self.snapshot(),
            self.assume_preexisting_peers,
            generic_icon_name=generic_icon_name or self._context.generic_icon_name,
            threshold_ms=self._threshold_ms,
        )
        if self.assume_preexisting_peers and not selection.assume_preexisting_peers:
            LOGGER.debug("Players diverged, ranking by status and recency")
        self.assume_preexisting_peers = selection.assume_preexisting_peers
        return selection

    def destroy(self) -> None:
        sessions, self._sessions = self._sessions, {}
        for session in sessions.values():
            session.destroy()
        self._on_change = None

    def _add(self, bus_name: str) -> None:
        session = PlayerSession(
            self._peer_factory(bus_name),
            self._context,
            on_status_changed=self._on_session_status_changed,
            on_updated=self._on_session_changed,
        )
        self._sessions[bus_name] = session
        session.start()

    def _mark_live_event(self) -> None:
        self._live_event_seen = True
        self.assume_preexisting_peers = False

    def _on_session_status_changed(self, session: PlayerSession) -> None:
        LOGGER.debug("%s is now %s", session.bus_name, session.status.value)

    def _on_session_changed(self, session: PlayerSession) -> None:
        if self._sessions.get(session.bus_name) is session:
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
