"""Event types: inbound bridge events and the closed set of IRC listener events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class IRCMessage:
    """Inbound IRC line bound for Discord. Empty username marks a system message."""

    irc_channel: str
    username: str
    text: str
    is_action: bool = False

    @property
    def is_system(self) -> bool:
        return not self.username


@dataclass(frozen=True)
class DiscordUser:
    """The parts of a Discord author needed to represent them on IRC."""

    id: str
    username: str
    discriminator: str = "0"


@dataclass(frozen=True)
class DiscordMessage:
    """Inbound Discord message bound for IRC."""

    discord_channel_id: str
    author_id: str
    author_username: str
    author_discriminator: str
    content: str
    is_action: bool = False

    @property
    def author(self) -> DiscordUser:
        return DiscordUser(self.author_id, self.author_username, self.author_discriminator)


# IRC listener events. Hostmasks are "nick!user@host".


@dataclass(frozen=True)
class Welcome:
    """Registration finished (RPL_WELCOME); capability negotiation is over."""

    nickname: str
    capabilities: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChannelJoined:
    """Our own JOIN completed (end of NAMES)."""

    channel: str


@dataclass(frozen=True)
class Join:
    channel: str
    nick: str
    hostmask: str


@dataclass(frozen=True)
class Part:
    channel: str
    nick: str
    hostmask: str
    reason: str | None = None


@dataclass(frozen=True)
class Quit:
    nick: str
    hostmask: str
    reason: str | None = None


@dataclass(frozen=True)
class Kick:
    channel: str
    target: str
    by: str
    hostmask: str
    reason: str | None = None


@dataclass(frozen=True)
class Nick:
    old: str
    new: str
    hostmask: str


@dataclass(frozen=True)
class PrivateMessage:
    """PRIVMSG, NOTICE or CTCP ACTION."""

    target: str
    nick: str
    hostmask: str
    text: str
    is_action: bool = False
    is_notice: bool = False
    tags: dict[str, Any] | None = None


IRCEvent = Welcome | ChannelJoined | Join | Part | Quit | Kick | Nick | PrivateMessage


class IRCEventHandler(Protocol):
    """Single typed entry point for every IRC listener event."""

    async def handle_irc_event(self, evt: IRCEvent) -> None: ...
