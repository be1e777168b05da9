"""Decide how a Discord user appears on IRC and deliver their lines.

With RELAYMSG the bridge posts under a spoofed nick ("alice/d"); the server
enforces uniqueness for those, so no length or collision fallback is needed.
Without it, lines are sent from the bridge's own nick as "<alice> text".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cachetools import TTLCache
from loguru import logger

from dibridge.core.constants import RELAY_FALLBACK_DECORATION, RELAY_TAG
from dibridge.events import DiscordMessage, DiscordUser
from dibridge.formatting.irc_lines import split_irc_line
from dibridge.formatting.nick import sanitize_nickname
from dibridge.identity.caps import NOT_NEGOTIATED, RelayCapability

if TYPE_CHECKING:
    from dibridge.adapters.base import IRCConnection


@dataclass(frozen=True)
class RelaySpoof:
    """Send via RELAYMSG as a spoofed nick."""

    nickname: str


@dataclass(frozen=True)
class ClassicPuppet:
    """Send as the bridge, prefixing the line with the nick."""

    nickname: str


IdentityDecision = RelaySpoof | ClassicPuppet


def decoration_for(capability: RelayCapability) -> str:
    """Suffix for spoofed nicks; empty when RELAYMSG is unavailable."""
    if not capability.negotiated:
        return ""
    if capability.separator:
        return capability.separator + RELAY_TAG
    # No reserved separator given: add a courtesy [d] suffix
    return RELAY_FALLBACK_DECORATION


class IdentityResolver:
    """Represents Discord users on IRC. Used only from the router's dispatcher."""

    def __init__(
        self,
        irc: IRCConnection,
        *,
        maxsize: int = 1024,
        ttl: int = 3600,
    ) -> None:
        self._irc = irc
        self._capability = NOT_NEGOTIATED
        self._decoration = ""
        self._nick_cache: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=float(ttl))

    @property
    def decoration(self) -> str:
        return self._decoration

    @property
    def relay_enabled(self) -> bool:
        return self._decoration != ""

    def use_capability(self, capability: RelayCapability) -> None:
        """Adopt the negotiated outcome for the current connection."""
        self._capability = capability
        self._decoration = decoration_for(capability)
        self._nick_cache.clear()
        logger.info(
            "Identity: {} (decoration={!r})",
            "RELAYMSG spoofing" if self.relay_enabled else "classic puppeting",
            self._decoration,
        )

    def generate_nickname(self, user: DiscordUser) -> str:
        key = f"{user.id}:{user.username}"
        try:
            return self._nick_cache[key]
        except KeyError:
            nick = sanitize_nickname(user.username) + self._decoration
            self._nick_cache[key] = nick
            return nick

    def resolve(self, user: DiscordUser) -> IdentityDecision:
        nick = self.generate_nickname(user)
        if self.relay_enabled:
            return RelaySpoof(nick)
        return ClassicPuppet(nick)

    def is_puppet_nick(self, nick: str) -> bool:
        """True for nicks we spoofed ourselves (their echoes must not loop back)."""
        return self.relay_enabled and nick.endswith(self._decoration)

    def send_message(self, channel: str, msg: DiscordMessage) -> None:
        """Deliver each line of msg to channel ("#chan" or "#chan key")."""
        channel = channel.split(" ", 1)[0]
        decision = self.resolve(msg.author)

        for line in msg.content.split("\n"):
            for chunk in split_irc_line(line):
                if isinstance(decision, RelaySpoof):
                    text = f"\x01ACTION {chunk}\x01" if msg.is_action else chunk
                    self._irc.send_command("RELAYMSG", channel, decision.nickname, text)
                else:
                    self._irc.privmsg(channel, f"<{decision.nickname}> {chunk}")

        logger.debug(
            "Identity: sent to {} as {} ({})",
            channel,
            decision.nickname,
            type(decision).__name__,
        )

    def close(self) -> None:
        self._nick_cache.clear()
        self._capability = NOT_NEGOTIATED
        self._decoration = ""
