from __future__ import annotations

from typing import Protocol


GENERIC_ICON_NAME = "audio-x-generic-symbolic"

# Desktop ids whose themed icon is conventionally named "<id>-client".
CLIENT_SUFFIX_DESKTOP_IDS = frozenset({"spotify"})


class IconLookup(Protocol):
    def has_icon(self, name: str) -> bool: ...


def candidate_icon_names(desktop_id: str) -> list[str]:
    if not desktop_id:
        return []
    if desktop_id.lower() in CLIENT_SUFFIX_DESKTOP_IDS:
        return [
            f"{desktop_id}-symbolic",
            f"{desktop_id}-client-symbolic",
            desktop_id,
            f"{desktop_id}-client",
        ]
    return [f"{desktop_id}-symbolic", desktop_id]


def get_player_icon_name(
    desktop_id: str, icons: IconLookup, *, fallback: str = GENERIC_ICON_NAME
) -> str:
    """Pick the icon shown for a player, preferring symbolic variants."""
    for name in candidate_icon_names(desktop_id):
        if icons.has_icon(name):
            return name
    return fallback
