from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from mpris_indicator.icons import GENERIC_ICON_NAME


PREEXISTING_DELTA_THRESHOLD_MS = 250.0


class RankedPlayer(Protocol):
    @property
    def status_priority(self) -> int: ...

    @property
    def last_active(self) -> float: ...

    @property
    def icon_name(self) -> str: ...


PlayerT = TypeVar("PlayerT", bound=RankedPlayer)


@dataclass(frozen=True)
class Selection(Generic[PlayerT]):
    icon_name: str | None
    player: PlayerT | None
    assume_preexisting_peers: bool


def average_last_active_delta(players: Sequence[RankedPlayer]) -> float:
    """Mean absolute deviation of the players' ``last_active`` stamps."""
    values = [player.last_active for player in players]
    mean = sum(values) / len(values)
    return sum(abs(value - mean) for value in values) / len(values)


def status_and_recency_key(player: RankedPlayer) -> tuple[int, float]:
    return (player.status_priority, -player.last_active)


def select_active_player(
    players: Sequence[PlayerT],
    assume_preexisting_peers: bool,
    *,
    generic_icon_name: str = GENERIC_ICON_NAME,
    threshold_ms: float = PREEXISTING_DELTA_THRESHOLD_MS,
) -> Selection[PlayerT]:
    """Choose the player whose icon represents the whole set.

    The highest status wins, ties go to the most recent status change. While
    players found at startup have not been interacted with, their stamps
    carry no recency information: only an unambiguous Playing (or, with
    nothing playing, Paused) player is chosen and a tie yields the generic
    icon. The returned ``assume_preexisting_peers`` is what the caller
    should keep.
    """
    if not players:
        return Selection(None, None, assume_preexisting_peers)
    if len(players) == 1:
        return Selection(players[0].icon_name, players[0], assume_preexisting_peers)

    if assume_preexisting_peers:
        if average_last_active_delta(players) < threshold_ms:
            chosen = _sole_with_priority(players, 0)
            if chosen is None and not any(p.status_priority == 0 for p in players):
                chosen = _sole_with_priority(players, 1)
            if chosen is None:
                return Selection(generic_icon_name, None, True)
            return Selection(chosen.icon_name, chosen, True)
        assume_preexisting_peers = False

    top = sorted(players, key=status_and_recency_key)[0]
    return Selection(top.icon_name, top, assume_preexisting_peers)


def _sole_with_priority(players: Sequence[PlayerT], priority: int) -> PlayerT | None:
    matching = [player for player in players if player.status_priority == priority]
    return matching[0] if len(matching) == 1 else None
