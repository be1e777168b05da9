"""IRC listener: decides which IRC activity reaches Discord, and in what form."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from dibridge.events import (
    ChannelJoined,
    IRCEvent,
    Join,
    Kick,
    Nick,
    Part,
    PrivateMessage,
    Quit,
    Welcome,
)
from dibridge.formatting.irc_to_discord import irc_to_discord

if TYPE_CHECKING:
    from dibridge.adapters.irc.client import IRCClient
    from dibridge.gateway.router import MessageRouter
    from dibridge.identity.caps import CapabilityNegotiator
    from dibridge.identity.resolver import IdentityResolver


def _user_at_host(hostmask: str) -> str:
    return hostmask.split("!", 1)[1] if "!" in hostmask else hostmask


class IRCListener:
    """Consumes IRC event variants from the client and submits them to the router."""

    def __init__(
        self,
        irc: IRCClient,
        router: MessageRouter,
        identity: IdentityResolver,
        negotiator: CapabilityNegotiator,
        *,
        prejoin_commands: Sequence[str] = (),
        show_join_quit: bool = False,
        debug_presence: bool = False,
    ) -> None:
        self._irc = irc
        self._router = router
        self._identity = identity
        self._negotiator = negotiator
        self._prejoin_commands = tuple(prejoin_commands)
        self.show_join_quit = show_join_quit
        self._debug_presence = debug_presence

    async def handle_irc_event(self, evt: IRCEvent) -> None:
        if isinstance(evt, PrivateMessage):
            await self._on_message(evt)
        elif isinstance(evt, Welcome):
            self._on_welcome(evt)
        elif isinstance(evt, ChannelJoined):
            logger.info("Listener has joined IRC channel {}", evt.channel)
        elif isinstance(evt, Kick):
            await self._on_kick(evt)
        elif isinstance(evt, Join | Part | Quit | Nick):
            await self._on_presence(evt)

    def _is_own_nick(self, nick: str) -> bool:
        return nick.lower() == self._irc.nickname.lower()

    def _is_bridge_nick(self, nick: str) -> bool:
        """Our own connection, or a RELAYMSG nick we spoofed."""
        return self._is_own_nick(nick) or self._identity.is_puppet_nick(nick)

    # Registration

    def _on_welcome(self, evt: Welcome) -> None:
        for command in self._prejoin_commands:
            self._irc.send_raw(command.replace("${NICK}", evt.nickname))

        self._identity.use_capability(self._negotiator.settle(evt.capabilities))
        self.join_channels()

    def join_channels(self) -> None:
        params = self._router.mappings.join_params()
        if not params:
            logger.warning("No channel mappings; not joining any IRC channels")
            return
        self._irc.send_command("JOIN", *params)

    # Messages

    async def _on_message(self, evt: PrivateMessage) -> None:
        if not evt.target.startswith("#"):
            # Never answer private messages or NOTICEs
            return

        tags = evt.tags or {}
        relayed_by_us = self._is_own_nick(str(tags.get("draft/relaymsg") or tags.get("relaymsg") or ""))
        if relayed_by_us or self._is_bridge_nick(evt.nick):
            return

        filters = self._router.filters
        if filters.is_ignored_hostmask(evt.hostmask):
            logger.debug("Ignoring message from {}", evt.hostmask)
            return
        if filters.is_filtered_irc_message(evt.text):
            logger.debug("Dropping filtered IRC message from {}", evt.nick)
            return

        text = f"_{evt.text}_" if evt.is_action else evt.text
        await self._router.submit_irc_message(evt.target, evt.nick, irc_to_discord(text), evt.is_action)

    # Presence

    async def _on_kick(self, evt: Kick) -> None:
        if self._is_own_nick(evt.target):
            logger.warning("Kicked from {} by {} ({}); rejoining", evt.channel, evt.by, evt.reason or "")
            key = self._router.mappings.join_key(evt.channel)
            self._irc.send_command("JOIN", *((evt.channel, key) if key else (evt.channel,)))
            return
        if not self.show_join_quit or self._is_bridge_nick(evt.target):
            return
        if self._router.filters.is_ignored_hostmask(evt.hostmask):
            return
        message = f"{evt.target} was kicked by {evt.by}: {evt.reason or ''}"
        await self._router.submit_irc_message(evt.channel, "", message)

    async def _on_presence(self, evt: Join | Part | Quit | Nick) -> None:
        if not self.show_join_quit:
            return
        nick = evt.old if isinstance(evt, Nick) else evt.nick
        if self._is_bridge_nick(nick):
            return
        if self._router.filters.is_ignored_hostmask(evt.hostmask):
            return

        ident = _user_at_host(evt.hostmask)
        if isinstance(evt, Join):
            await self._router.submit_irc_message(evt.channel, "", f"{evt.nick} joined ({ident})")
        elif isinstance(evt, Part):
            message = f"{evt.nick} left ({ident})"
            if evt.reason:
                message += f": {evt.reason}"
            await self._router.submit_irc_message(evt.channel, "", message)
        elif isinstance(evt, Quit):
            reason = evt.reason if evt.reason is not None else evt.nick
            await self._fan_out(evt.nick, f"{evt.nick} quit ({ident}) Quit: {reason}")
        else:
            await self._fan_out(evt.new, f"_{evt.old} changed their nick to {evt.new}_")

    async def _fan_out(self, nick: str, message: str) -> None:
        """Announce in every mapped channel that nick is in."""
        for mapping in self._router.mappings.all_mappings():
            if self._irc.channel_has_user(mapping.irc_channel, nick):
                if self._debug_presence:
                    logger.debug("Presence: {} is in {}", nick, mapping.irc_channel)
                await self._router.submit_irc_message(mapping.irc_channel, "", message)
