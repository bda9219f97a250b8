from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


PLAY_ICON_NAME = "media-playback-start-symbolic"
PAUSE_ICON_NAME = "media-playback-pause-symbolic"


class PlaybackStatus(str, Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: object) -> PlaybackStatus:
        text = str(value).strip().lower() if isinstance(value, str) else ""
        for status in (cls.PLAYING, cls.PAUSED, cls.STOPPED):
            if status.value.lower() == text:
                return status
        return cls.UNKNOWN

    @property
    def priority(self) -> int:
        """Sort rank, lower is more relevant."""
        if self is PlaybackStatus.PLAYING:
            return 0
        if self is PlaybackStatus.PAUSED:
            return 1
        return 2


class LifecycleState(str, Enum):
    DISCOVERING = "Discovering"
    READY = "Ready"
    DESTROYED = "Destroyed"


@dataclass(slots=True, frozen=True)
class Capabilities:
    can_go_next: bool = False
    can_go_previous: bool = False
    can_play: bool = False
    can_pause: bool = False
    can_raise: bool = False


@dataclass(slots=True, frozen=True)
class TrackMetadata:
    """Recognised keys of an MPRIS ``Metadata`` map.

    A field is ``None`` when its key is absent or carries a value of the
    wrong type.
    """

    artists: tuple[str, ...] | None = None
    stream_title: str | None = None
    title: str | None = None
    art_url: str | None = None

    @classmethod
    def from_mpris(cls, metadata: Mapping[str, Any] | None) -> TrackMetadata:
        if not isinstance(metadata, Mapping):
            return cls()
        return cls(
            artists=_as_str_tuple(metadata.get("xesam:artist")),
            stream_title=_as_str(metadata.get("rhythmbox:streamTitle")),
            title=_as_str(metadata.get("xesam:title")),
            art_url=_as_str(metadata.get("mpris:artUrl")),
        )

    @property
    def artist(self) -> str:
        if self.stream_title is not None:
            return self.stream_title
        if self.artists is not None:
            return ", ".join(self.artists)
        return ""


@dataclass(slots=True, frozen=True)
class ButtonState:
    previous_reactive: bool = False
    play_pause_reactive: bool = False
    play_pause_icon: str = PLAY_ICON_NAME
    stop_visible: bool = False
    next_reactive: bool = False

    @classmethod
    def from_capabilities(cls, caps: Capabilities, status: PlaybackStatus) -> ButtonState:
        if caps.can_play and caps.can_pause:
            icon = PAUSE_ICON_NAME if status is PlaybackStatus.PLAYING else PLAY_ICON_NAME
            return cls(
                previous_reactive=caps.can_go_previous,
                play_pause_reactive=True,
                play_pause_icon=icon,
                stop_visible=False,
                next_reactive=caps.can_go_next,
            )
        return cls(
            previous_reactive=caps.can_go_previous,
            play_pause_reactive=caps.can_play,
            play_pause_icon=PLAY_ICON_NAME,
            stop_visible=caps.can_play,
            next_reactive=caps.can_go_next,
        )


@dataclass(slots=True, frozen=True)
class CoverArt:
    """Either fetched image bytes or the name of a themed icon."""

    icon_name: str = ""
    data: bytes = b""
    uri: str = field(default="", compare=False)

    @property
    def is_image(self) -> bool:
        return bool(self.data)


@dataclass(slots=True, frozen=True)
class PlayerSummary:
    bus_name: str
    display_name: str
    icon_name: str
    artist: str
    title: str
    status: PlaybackStatus
    cover: CoverArt
    buttons: ButtonState
    can_activate: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "bus_name": self.bus_name,
            "display_name": self.display_name,
            "icon_name": self.icon_name,
            "artist": self.artist,
            "title": self.title,
            "status": self.status.value,
            "cover": {
                "icon_name": self.cover.icon_name,
                "uri": self.cover.uri,
                "has_image": self.cover.is_image,
            },
            "buttons": {
                "previous": self.buttons.previous_reactive,
                "play_pause": self.buttons.play_pause_reactive,
                "play_pause_icon": self.buttons.play_pause_icon,
                "stop_visible": self.buttons.stop_visible,
                "next": self.buttons.next_reactive,
            },
            "can_activate": self.can_activate,
        }


@dataclass(slots=True, frozen=True)
class IndicatorState:
    icon_name: str | None = None
    active_player: str | None = None
    players: tuple[PlayerSummary, ...] = ()

    @property
    def visible(self) -> bool:
        return bool(self.players)

    def to_payload(self) -> dict[str, Any]:
        return {
            "visible": self.visible,
            "icon_name": self.icon_name,
            "active_player": self.active_player,
            "players": [player.to_payload() for player in self.players],
        }


def _as_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _as_str_tuple(value: object) -> tuple[str, ...] | None:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(item for item in value if isinstance(item, str))
    return None
