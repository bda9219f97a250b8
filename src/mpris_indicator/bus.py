from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dbus_next import Variant
from dbus_next.aio import MessageBus


MPRIS_PREFIX = "org.mpris.MediaPlayer2."
OBJECT_PATH = "/org/mpris/MediaPlayer2"
ROOT_INTERFACE = "org.mpris.MediaPlayer2"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"

MPRIS_INTROSPECTION = """<node>
<interface name="org.mpris.MediaPlayer2">
  <method name="Raise" />
  <property name="CanRaise" type="b" access="read" />
  <property name="Identity" type="s" access="read" />
  <property name="DesktopEntry" type="s" access="read" />
</interface>
<interface name="org.mpris.MediaPlayer2.Player">
  <method name="PlayPause" />
  <method name="Next" />
  <method name="Previous" />
  <method name="Stop" />
  <method name="Play" />
  <property name="CanGoNext" type="b" access="read" />
  <property name="CanGoPrevious" type="b" access="read" />
  <property name="CanPlay" type="b" access="read" />
  <property name="CanPause" type="b" access="read" />
  <property name="Metadata" type="a{sv}" access="read" />
  <property name="PlaybackStatus" type="s" access="read" />
</interface>
<interface name="org.freedesktop.DBus.Properties">
  <method name="GetAll">
    <arg type="s" direction="in" name="interface_name" />
    <arg type="a{sv}" direction="out" name="properties" />
  </method>
  <signal name="PropertiesChanged">
    <arg type="s" name="interface_name" />
    <arg type="a{sv}" name="changed_properties" />
    <arg type="as" name="invalidated_properties" />
  </signal>
</interface>
</node>"""

DBUS_INTROSPECTION = """<node>
<interface name="org.freedesktop.DBus">
  <method name="ListNames">
    <arg type="as" direction="out" name="names" />
  </method>
  <signal name="NameOwnerChanged">
    <arg type="s" name="name" />
    <arg type="s" name="old_owner" />
    <arg type="s" name="new_owner" />
  </signal>
</interface>
</node>"""

PropertiesListener = Callable[[dict[str, Any], list[str]], None]
NameOwnerListener = Callable[[str, str, str], None]
Unsubscribe = Callable[[], None]


def is_player_bus_name(name: str) -> bool:
    return name.startswith(MPRIS_PREFIX)


def unpack(value: Any) -> Any:
    """Strip ``Variant`` wrappers recursively."""
    if isinstance(value, Variant):
        return unpack(value.value)
    if isinstance(value, dict):
        return {key: unpack(item) for key, item in value.items()}
    if isinstance(value, list):
        return [unpack(item) for item in value]
    return value


@dataclass(slots=True, frozen=True)
class PeerIdentity:
    identity: str = ""
    desktop_entry: str = ""
    can_raise: bool = False


class MprisPeer:
    """Client side of one remote ``org.mpris.MediaPlayer2`` object."""

    def __init__(self, bus: MessageBus, bus_name: str) -> None:
        self.bus_name = bus_name
        proxy = bus.get_proxy_object(bus_name, OBJECT_PATH, MPRIS_INTROSPECTION)
        self._root = proxy.get_interface(ROOT_INTERFACE)
        self._player = proxy.get_interface(PLAYER_INTERFACE)
        self._properties = proxy.get_interface(PROPERTIES_INTERFACE)

    async def fetch_identity(self) -> PeerIdentity:
        props = unpack(await self._properties.call_get_all(ROOT_INTERFACE))
        return PeerIdentity(
            identity=str(props.get("Identity") or ""),
            desktop_entry=str(props.get("DesktopEntry") or ""),
            can_raise=bool(props.get("CanRaise", False)),
        )

    async def fetch_player_properties(self) -> dict[str, Any]:
        return unpack(await self._properties.call_get_all(PLAYER_INTERFACE))

    def subscribe(self, listener: PropertiesListener) -> Unsubscribe:
        def handler(interface_name: str, changed: dict[str, Variant], invalidated: list[str]) -> None:
            if interface_name == PLAYER_INTERFACE:
                listener(unpack(changed), list(invalidated))

        self._properties.on_properties_changed(handler)
        return lambda: self._properties.off_properties_changed(handler)

    async def raise_window(self) -> None:
        await self._root.call_raise()

    async def play_pause(self) -> None:
        await self._player.call_play_pause()

    async def play(self) -> None:
        await self._player.call_play()

    async def stop(self) -> None:
        await self._player.call_stop()

    async def next(self) -> None:
        await self._player.call_next()

    async def previous(self) -> None:
        await self._player.call_previous()


class BusNameWatcher:
    """Lists and follows ownership of MPRIS bus names."""

    def __init__(self, bus: MessageBus) -> None:
        proxy = bus.get_proxy_object(DBUS_NAME, DBUS_PATH, DBUS_INTROSPECTION)
        self._dbus = proxy.get_interface(DBUS_NAME)

    async def list_player_names(self) -> list[str]:
        names = await self._dbus.call_list_names()
        return sorted(name for name in names if is_player_bus_name(name))

    def subscribe(self, listener: NameOwnerListener) -> Unsubscribe:
        def handler(name: str, old_owner: str, new_owner: str) -> None:
            if is_player_bus_name(name):
                listener(name, old_owner, new_owner)

        self._dbus.on_name_owner_changed(handler)
        return lambda: self._dbus.off_name_owner_changed(handler)
