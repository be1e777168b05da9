"""Channel mapping store: IRC channel <-> Discord channel, with live reconfiguration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from loguru import logger

from dibridge.core.errors import DuplicateMappingError


@dataclass(frozen=True)
class ChannelMapping:
    """One IRC channel bridged to one Discord channel."""

    irc_channel: str
    discord_channel_id: str
    join_key: str | None = None


@dataclass(frozen=True)
class MappingDiff:
    """IRC channels to leave and mappings to join after a reconfiguration."""

    part: tuple[str, ...] = ()
    join: tuple[ChannelMapping, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.part or self.join)


def parse_mapping_entries(entries: Mapping[str, str]) -> list[ChannelMapping]:
    """Parse ``{"#irc[ key]": "discord_id"}``; malformed keys are logged and skipped."""
    mappings: list[ChannelMapping] = []
    for irc, discord_id in entries.items():
        parts = str(irc).split(" ")
        if len(parts) > 2:
            logger.error(
                "IRC channel {!r} (to Discord {}) is invalid: expected at most one space. Ignoring.",
                irc,
                discord_id,
            )
            continue
        mappings.append(
            ChannelMapping(
                irc_channel=parts[0],
                discord_channel_id=str(discord_id),
                join_key=parts[1] if len(parts) == 2 else None,
            )
        )
    return mappings


def _check_duplicates(mappings: list[ChannelMapping]) -> None:
    seen_irc: set[str] = set()
    seen_discord: set[str] = set()
    for m in mappings:
        irc = m.irc_channel.lower()
        if irc in seen_irc or m.discord_channel_id in seen_discord:
            raise DuplicateMappingError(
                "channel_mappings contains duplicate entries",
                code="duplicate_mapping",
                details={"irc_channel": m.irc_channel, "discord_channel_id": m.discord_channel_id},
            )
        seen_irc.add(irc)
        seen_discord.add(m.discord_channel_id)


class MappingStore:
    """Owns the mapping table. The table is an immutable snapshot swapped in whole."""

    def __init__(self) -> None:
        self._mappings: tuple[ChannelMapping, ...] = ()
        self._loaded = False

    def set_mappings(self, entries: Mapping[str, str]) -> MappingDiff:
        """Replace the mapping table, or raise DuplicateMappingError and keep the old one.

        The first load returns an empty diff. Later loads return the IRC channels to
        PART and the mappings to JOIN; an IRC channel that was only reassigned (removed
        and re-added) is not parted.
        """
        mappings = parse_mapping_entries(entries)
        _check_duplicates(mappings)

        old = self._mappings
        was_loaded = self._loaded
        self._mappings = tuple(mappings)
        self._loaded = True
        logger.info("Mappings: loaded {} channel mappings", len(mappings))

        if not was_loaded:
            return MappingDiff()

        added = tuple(m for m in mappings if m not in old)
        removed = [m for m in old if m not in mappings]
        added_irc = {m.irc_channel.lower() for m in added}
        part = tuple(m.irc_channel for m in removed if m.irc_channel.lower() not in added_irc)
        if part or added:
            logger.info("Mappings: parting {}, joining {}", list(part), [m.irc_channel for m in added])
        return MappingDiff(part=part, join=added)

    def lookup_by_irc(self, channel: str) -> ChannelMapping | None:
        """Get mapping for an IRC channel (case-insensitive)."""
        channel = channel.lower()
        for m in self._mappings:
            if m.irc_channel.lower() == channel:
                return m
        return None

    def lookup_by_discord(self, discord_channel_id: str) -> ChannelMapping | None:
        """Get mapping for a Discord channel ID."""
        for m in self._mappings:
            if m.discord_channel_id == discord_channel_id:
                return m
        return None

    def all_mappings(self) -> list[ChannelMapping]:
        """Return all channel mappings."""
        return list(self._mappings)

    def join_key(self, channel: str) -> str | None:
        m = self.lookup_by_irc(channel)
        return m.join_key if m else None

    def join_params(self, mappings: Iterable[ChannelMapping] | None = None) -> tuple[str, ...]:
        """JOIN parameters for the given mappings (default: all).

        Keyed channels come first so the key list lines up with them, e.g.
        ``("#secret,#public", "hunter2")``.
        """
        keyed: list[str] = []
        keys: list[str] = []
        plain: list[str] = []
        for m in self._mappings if mappings is None else mappings:
            if m.join_key:
                keyed.append(m.irc_channel)
                keys.append(m.join_key)
            else:
                plain.append(m.irc_channel)
        channels = ",".join(keyed + plain)
        if not channels:
            return ()
        if keys:
            return (channels, ",".join(keys))
        return (channels,)
