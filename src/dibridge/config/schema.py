"""Config schema and accessor."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from dibridge.core.constants import DEFAULT_AVATAR_URL, DEFAULT_IRC_NICK
from dibridge.core.errors import BridgeConfigurationError
from dibridge.formatting.filters import FilterSet

# Secrets may come from the environment instead of the config file
_ENV_OVERRIDE_KEYS = {
    "discord_token": "BRIDGE_DISCORD_TOKEN",
    "irc_password": "BRIDGE_IRC_PASSWORD",
    "sasl_password": "BRIDGE_IRC_SASL_PASSWORD",
}

_REQUIRED_KEYS = ("discord_token", "guild_id", "irc_server")


def _load_env_overrides() -> dict[str, str]:
    """Load env overrides once per reload."""
    return {key: os.environ.get(env, "") for key, env in _ENV_OVERRIDE_KEYS.items()}


def _str_list(val: Any) -> list[str]:
    if isinstance(val, list):
        return [str(v) for v in val]
    return []


@dataclass(frozen=True)
class BridgeOptions:
    """Runtime switches passed explicitly to the components that need them."""

    dev_mode: bool = False
    debug: bool = False
    debug_presence: bool = False
    show_join_quit: bool = False


class Config:
    """Config accessor over the raw YAML mapping."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload)."""
        env = _load_env_overrides()
        if validate:
            self._validate(data or {}, env)
        self._data = data or {}
        self._env = env
        logger.debug("Config reloaded: {} mappings", len(self.channel_mappings))

    @staticmethod
    def _validate(data: Mapping[str, Any], env: Mapping[str, str]) -> None:
        """Validate config structure; raise BridgeConfigurationError on failure."""
        for key in _REQUIRED_KEYS:
            if not data.get(key) and not env.get(key):
                raise BridgeConfigurationError(
                    f"{key} is required",
                    code="missing_required_key",
                    details={"key": key},
                )
        mappings = data.get("channel_mappings")
        if mappings is not None and not isinstance(mappings, dict):
            raise BridgeConfigurationError(
                "channel_mappings must be a mapping of IRC channel to Discord channel ID",
                code="invalid_mappings",
                details={"type": type(mappings).__name__},
            )

    def validate(self) -> None:
        self._validate(self._data, self._env)

    @property
    def raw(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def _secret(self, key: str) -> str:
        return self._env.get(key) or str(self._data.get(key) or "")

    # Discord

    @property
    def discord_token(self) -> str:
        return self._secret("discord_token")

    @property
    def guild_id(self) -> str:
        return str(self._data.get("guild_id", ""))

    @property
    def avatar_url(self) -> str:
        return str(self._data.get("avatar_url") or DEFAULT_AVATAR_URL)

    @property
    def channel_mappings(self) -> dict[str, str]:
        """IRC channel (optionally "#chan key") to Discord channel ID."""
        m = self._data.get("channel_mappings")
        if not isinstance(m, dict):
            return {}
        return {str(k): str(v) for k, v in m.items()}

    # IRC

    @property
    def irc_server(self) -> str:
        return str(self._data.get("irc_server", ""))

    @property
    def irc_password(self) -> str:
        return self._secret("irc_password")

    @property
    def irc_nick(self) -> str:
        return str(self._data.get("irc_nick") or DEFAULT_IRC_NICK)

    @property
    def irc_tls(self) -> bool:
        return bool(self._data.get("irc_tls", True))

    def irc_tls_verify(self, dev_mode: bool = False) -> bool:
        """Certificate verification; off by default in dev mode, always overridable."""
        if "irc_tls_verify" in self._data:
            return bool(self._data["irc_tls_verify"])
        return not dev_mode

    @property
    def sasl_login(self) -> str:
        return str(self._data.get("sasl_login", ""))

    @property
    def sasl_password(self) -> str:
        return self._secret("sasl_password")

    @property
    def irc_listener_prejoin_commands(self) -> list[str]:
        return _str_list(self._data.get("irc_listener_prejoin_commands"))

    @property
    def irc_throttle_limit(self) -> int:
        return int(self._data.get("irc_throttle_limit", 10))

    # Filtering

    @property
    def irc_ignores(self) -> list[str]:
        return _str_list(self._data.get("irc_ignores"))

    @property
    def discord_ignores(self) -> list[str]:
        return _str_list(self._data.get("discord_ignores"))

    @property
    def discord_allowed(self) -> list[str]:
        return _str_list(self._data.get("discord_allowed"))

    @property
    def irc_filtered_messages(self) -> list[str]:
        return _str_list(self._data.get("irc_filtered_messages"))

    @property
    def discord_filtered_messages(self) -> list[str]:
        return _str_list(self._data.get("discord_filtered_messages"))

    def filters(self) -> FilterSet:
        return FilterSet.build(
            irc_ignores=self.irc_ignores,
            irc_filtered_messages=self.irc_filtered_messages,
            discord_filtered_messages=self.discord_filtered_messages,
            discord_ignores=self.discord_ignores,
            discord_allowed=self.discord_allowed,
        )

    # Behaviour

    @property
    def show_join_quit(self) -> bool:
        return bool(self._data.get("show_join_quit", False))

    @property
    def debug_presence(self) -> bool | None:
        val = self._data.get("debug_presence")
        return None if val is None else bool(val)

    @property
    def max_concurrent_sends(self) -> int | None:
        val = self._data.get("max_concurrent_sends")
        return int(val) if val else None

    @property
    def inbox_size(self) -> int:
        return int(self._data.get("inbox_size", 0))

    def options(self, *, dev_mode: bool = False, debug: bool = False, debug_presence: bool = False) -> BridgeOptions:
        """Combine CLI switches with config; a debug_presence key in the file wins."""
        presence = self.debug_presence
        return BridgeOptions(
            dev_mode=dev_mode,
            debug=debug,
            debug_presence=debug_presence if presence is None else presence,
            show_join_quit=self.show_join_quit,
        )


cfg: Config = Config({})
