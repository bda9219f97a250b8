"""Tests for configuration, command line and output helpers."""

from __future__ import annotations

from pathlib import Path

from dbus_next import Variant
import pytest

from mpris_indicator.app import waybar_payload
from mpris_indicator.bus import BusNameWatcher, is_player_bus_name, unpack
from mpris_indicator.cli import parse_args
from mpris_indicator.config import DEFAULT_SOCKET_PATH, load_config
from mpris_indicator.desktop import DesktopAppLookup, IconThemeDirectory
from mpris_indicator.icons import GENERIC_ICON_NAME
from mpris_indicator.models import TrackMetadata


def test_load_config_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("MPRIS_INDICATOR_SOCKET", raising=False)

    config = load_config(tmp_path / "missing.toml")

    assert config.control_socket_path == DEFAULT_SOCKET_PATH
    assert config.generic_icon_name == GENERIC_ICON_NAME
    assert config.preexisting_delta_threshold_ms == 250.0


def test_load_config_from_toml(tmp_path, monkeypatch):
    monkeypatch.setenv("MPRIS_INDICATOR_SOCKET", "/run/user/1000/indicator.sock")
    path = tmp_path / "config.toml"
    path.write_text(
        """
[app]
control_socket_path = "/tmp/ignored.sock"

[selection]
generic_icon_name = "multimedia-player-symbolic"
preexisting_delta_threshold_ms = 500

[icons]
search_paths = ["/opt/icons"]

[waybar]
max_length = 20
""",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.control_socket_path == "/run/user/1000/indicator.sock"
    assert config.generic_icon_name == "multimedia-player-symbolic"
    assert config.preexisting_delta_threshold_ms == 500.0
    assert [str(p) for p in config.icon_search_paths] == ["/opt/icons"]
    assert config.waybar_max_length == 20


def test_parse_ctl_args():
    args = parse_args(["--log-level", "DEBUG", "ctl", "next", "--player", "org.mpris.MediaPlayer2.vlc"])

    assert args.command == "ctl"
    assert args.action == "next"
    assert args.player == "org.mpris.MediaPlayer2.vlc"


def test_waybar_payload_for_active_player():
    state = {
        "visible": True,
        "icon_name": "vlc",
        "active_player": "org.mpris.MediaPlayer2.vlc",
        "players": [
            {
                "bus_name": "org.mpris.MediaPlayer2.vlc",
                "status": "Playing",
                "artist": "Alice",
                "title": "A very long song title indeed",
            }
        ],
    }

    payload = waybar_payload(state, max_length=16)

    assert payload["text"] == "▶ Alice - A ver…"
    assert payload["class"] == ["playing"]
    assert payload["alt"] == "vlc"


def test_waybar_payload_without_players():
    assert waybar_payload({"visible": False, "players": []}, 40)["class"] == ["empty"]


def test_unpack_strips_variants():
    metadata = {
        "xesam:artist": Variant("as", ["Alice"]),
        "xesam:title": Variant("s", "Song"),
    }

    assert unpack(Variant("a{sv}", metadata)) == {"xesam:artist": ["Alice"], "xesam:title": "Song"}


def test_track_metadata_presence():
    metadata = TrackMetadata.from_mpris({"xesam:artist": "Solo", "mpris:artUrl": 7})

    assert metadata.artists == ("Solo",)
    assert metadata.art_url is None
    assert metadata.title is None
    assert TrackMetadata.from_mpris(None) == TrackMetadata()


def test_bus_name_filter():
    assert is_player_bus_name("org.mpris.MediaPlayer2.vlc")
    assert not is_player_bus_name("org.freedesktop.Notifications")
    assert not is_player_bus_name("org.mpris.MediaPlayer2")


class _FakeInterface:
    def __init__(self) -> None:
        self.handlers = []

    async def call_list_names(self):
        return ["org.mpris.MediaPlayer2.vlc", ":1.5", "org.mpris.MediaPlayer2.audacious"]

    def on_name_owner_changed(self, handler):
        self.handlers.append(handler)

    def off_name_owner_changed(self, handler):
        self.handlers.remove(handler)


class _FakeBus:
    def __init__(self) -> None:
        self.interface = _FakeInterface()

    def get_proxy_object(self, name, path, introspection):
        return self

    def get_interface(self, name):
        return self.interface


@pytest.mark.asyncio
async def test_watcher_filters_names():
    bus = _FakeBus()
    watcher = BusNameWatcher(bus)
    seen = []

    names = await watcher.list_player_names()
    unsubscribe = watcher.subscribe(lambda *args: seen.append(args))
    for handler in bus.interface.handlers:
        handler("org.gnome.Shell", "", ":1.2")
        handler("org.mpris.MediaPlayer2.mpv", "", ":1.3")
    unsubscribe()

    assert names == ["org.mpris.MediaPlayer2.audacious", "org.mpris.MediaPlayer2.vlc"]
    assert seen == [("org.mpris.MediaPlayer2.mpv", "", ":1.3")]
    assert bus.interface.handlers == []


@pytest.mark.asyncio
async def test_icon_theme_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "share"))
    monkeypatch.setenv("XDG_DATA_DIRS", str(tmp_path / "none"))
    theme = tmp_path / "extra" / "hicolor" / "scalable" / "apps"
    theme.mkdir(parents=True)
    (theme / "test-player-symbolic.svg").write_text("<svg/>", encoding="utf-8")

    icons = IconThemeDirectory([tmp_path / "extra"])
    assert not icons.has_icon("test-player-symbolic")

    await icons.load()

    assert icons.has_icon("test-player-symbolic")
    assert not icons.has_icon("no-such-player-icon")


@pytest.mark.asyncio
async def test_icon_lookups_do_not_touch_the_filesystem(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "share"))
    monkeypatch.setenv("XDG_DATA_DIRS", str(tmp_path / "none"))
    theme = tmp_path / "extra" / "hicolor" / "48x48" / "apps"
    theme.mkdir(parents=True)
    (theme / "test-player.png").write_bytes(b"")
    icons = IconThemeDirectory([tmp_path / "extra"])
    await icons.load()

    def forbidden(*args, **kwargs):
        raise AssertionError("filesystem access during lookup")

    monkeypatch.setattr(Path, "rglob", forbidden)
    monkeypatch.setattr(Path, "is_dir", forbidden)

    assert icons.has_icon("test-player")
    assert not icons.has_icon("test-player-symbolic")


def test_desktop_app_lookup(tmp_path):
    applications = tmp_path / "applications"
    applications.mkdir()
    (applications / "vlc.desktop").write_text("[Desktop Entry]\nName=VLC\n", encoding="utf-8")

    lookup = DesktopAppLookup([tmp_path])

    assert lookup.lookup("vlc").path == applications / "vlc.desktop"
    assert lookup.lookup("spotify") is None
    assert lookup.lookup("") is None


def test_waybar_length_is_at_least_one(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[waybar]\nmax_length = 0\n", encoding="utf-8")
    config = load_config(path)
    state = {
        "visible": True,
        "active_player": "org.mpris.MediaPlayer2.vlc",
        "players": [{"bus_name": "org.mpris.MediaPlayer2.vlc", "status": "Playing", "title": "Song"}],
    }

    assert config.waybar_max_length == 1
    assert waybar_payload(state, config.waybar_max_length)["text"] == "…"
