"""Tests for dibridge.__main__ entrypoint functions."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dibridge.__main__ import Bridge, apply_reload, build_bridge, main, setup_logging
from dibridge.config import BridgeOptions, Config
from dibridge.core.errors import DuplicateMappingError
from dibridge.formatting.emoji import EmojiEntry
from dibridge.gateway.mappings import ChannelMapping

_MINIMAL = {"discord_token": "tok", "guild_id": 1234, "irc_server": "irc.example.org"}

# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------


class TestSetupLogging:
    def test_info_by_default(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        with patch("dibridge.__main__.logger") as mock_logger, patch("dibridge.__main__._intercept_logging"):
            setup_logging(verbose=False)

        mock_logger.remove.assert_called_once()
        assert mock_logger.add.call_args[1]["level"] == "INFO"

    def test_verbose_sets_debug_level(self):
        with patch("dibridge.__main__.logger") as mock_logger, patch("dibridge.__main__._intercept_logging"):
            setup_logging(verbose=True)

        assert mock_logger.add.call_args[1]["level"] == "DEBUG"

    def test_log_level_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")

        with patch("dibridge.__main__.logger") as mock_logger, patch("dibridge.__main__._intercept_logging") as hook:
            setup_logging()

        assert mock_logger.add.call_args[1]["level"] == "WARNING"
        hook.assert_called_once_with("WARNING")

    def test_format_includes_time_and_level(self):
        with patch("dibridge.__main__.logger") as mock_logger, patch("dibridge.__main__._intercept_logging"):
            setup_logging()

        fmt = mock_logger.add.call_args[1]["format"]
        assert "{time:" in fmt
        assert "{level:" in fmt
        assert "{message}" in fmt


# ---------------------------------------------------------------------------
# build_bridge
# ---------------------------------------------------------------------------


class TestBuildBridge:
    @pytest.mark.asyncio
    async def test_wires_components(self):
        config = Config({**_MINIMAL, "channel_mappings": {"#chan key": 111}, "irc_listener_prejoin_commands": ["X"]})

        bridge = build_bridge(config, BridgeOptions(show_join_quit=True))

        assert bridge.router.mappings.lookup_by_discord("111") == ChannelMapping("#chan", "111", "key")
        assert bridge.irc._handler is bridge.listener
        assert bridge.discord._router is bridge.router
        assert bridge.listener.show_join_quit is True
        assert bridge.router.emoji is bridge.discord.emoji

    @pytest.mark.asyncio
    async def test_emoji_synced_by_discord_reaches_router(self):
        bridge = build_bridge(Config(dict(_MINIMAL)), BridgeOptions())

        bridge.discord.emoji.put(EmojiEntry("smile", "42"))

        assert bridge.router.emoji.substitute("hello :smile: world") == "hello <:smile:42> world"

    @pytest.mark.asyncio
    async def test_sasl_passed_to_client(self):
        config = Config({**_MINIMAL, "sasl_login": "login", "sasl_password": "secret"})

        bridge = build_bridge(config, BridgeOptions())

        assert bridge.irc.sasl_username == "login"
        assert bridge.irc.sasl_password == "secret"

    @pytest.mark.asyncio
    async def test_duplicate_mappings_rejected(self):
        config = Config({**_MINIMAL, "channel_mappings": {"#a": 1, "#b": 1}})

        with pytest.raises(DuplicateMappingError):
            build_bridge(config, BridgeOptions())


# ---------------------------------------------------------------------------
# apply_reload
# ---------------------------------------------------------------------------


def _bridge() -> Bridge:
    router = MagicMock()
    router.set_mappings = AsyncMock()
    return Bridge(router=router, irc=MagicMock(), listener=MagicMock(show_join_quit=False), discord=MagicMock())


class TestApplyReload:
    @pytest.mark.asyncio
    async def test_applies_mappings_filters_and_presence(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "discord_token: tok\nguild_id: 1\nirc_server: irc.example.org\n"
            "show_join_quit: true\nchannel_mappings:\n  '#chan': 111\n"
        )
        bridge = _bridge()

        with patch("dibridge.__main__.cfg", Config()):
            await apply_reload(bridge, path)

        bridge.router.set_mappings.assert_awaited_once_with({"#chan": "111"})
        bridge.router.update_filters.assert_called_once()
        assert bridge.listener.show_join_quit is True

    @pytest.mark.asyncio
    async def test_invalid_config_keeps_previous_settings(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("guild_id: 1\n")
        bridge = _bridge()

        with patch("dibridge.__main__.cfg", Config()):
            await apply_reload(bridge, path)

        bridge.router.set_mappings.assert_not_awaited()
        bridge.router.update_filters.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_yaml_keeps_previous_settings(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed\n")
        bridge = _bridge()

        with patch("dibridge.__main__.cfg", Config()):
            await apply_reload(bridge, path)

        bridge.router.set_mappings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_mappings_keep_previous_filters(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discord_token: tok\nguild_id: 1\nirc_server: irc.example.org\n")
        bridge = _bridge()
        bridge.router.set_mappings.side_effect = DuplicateMappingError("dup", code="duplicate_mapping")

        with patch("dibridge.__main__.cfg", Config()):
            await apply_reload(bridge, path)

        bridge.router.update_filters.assert_not_called()
        assert bridge.listener.show_join_quit is False

    @pytest.mark.asyncio
    async def test_rejected_mappings_keep_previous_global_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "discord_token: tok\nguild_id: 1\nirc_server: irc.example.org\n"
            "channel_mappings:\n  '#a': 111\n  '#b': 111\n"
        )
        bridge = _bridge()
        bridge.router.set_mappings.side_effect = DuplicateMappingError("dup", code="duplicate_mapping")
        previous = Config({**_MINIMAL, "channel_mappings": {"#old": "999"}})

        with patch("dibridge.__main__.cfg", previous):
            await apply_reload(bridge, path)

        assert previous.channel_mappings == {"#old": "999"}
        assert previous.guild_id == "1234"

    @pytest.mark.asyncio
    async def test_accepted_reload_updates_global_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discord_token: tok\nguild_id: 1\nirc_server: irc.example.org\nchannel_mappings:\n  '#new': 222\n")
        bridge = _bridge()
        current = Config({**_MINIMAL, "channel_mappings": {"#old": "999"}})

        with patch("dibridge.__main__.cfg", current):
            await apply_reload(bridge, path)

        assert current.channel_mappings == {"#new": "222"}


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_missing_config_exits(self, tmp_path):
        with patch("dibridge.__main__.setup_logging"), pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "missing.yaml")])

        assert exc_info.value.code == 1

    def test_invalid_config_exits(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("guild_id: 1\n")

        with (
            patch("dibridge.__main__.setup_logging"),
            patch("dibridge.__main__.cfg", Config()),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["-c", str(path)])

        assert exc_info.value.code == 1

    def test_runs_bridge_with_options(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("discord_token: tok\nguild_id: 1\nirc_server: irc.example.org\n")
        run = AsyncMock()

        with (
            patch("dibridge.__main__.setup_logging") as logging_setup,
            patch("dibridge.__main__.cfg", Config()),
            patch("dibridge.__main__._run", run),
        ):
            main(["-c", str(path), "--debug", "--dev"])

        logging_setup.assert_called_once_with(True)
        _, options, config_path = run.await_args.args
        assert options == BridgeOptions(dev_mode=True, debug=True)
        assert config_path == path

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "dibridge" in capsys.readouterr().out
