"""IRC client: pydle connection that feeds typed events to a listener."""

from __future__ import annotations

import asyncio
import contextlib
import random
from typing import Any

import pydle
from loguru import logger

from dibridge.adapters.irc.throttle import TokenBucket
from dibridge.events import (
    ChannelJoined,
    IRCEvent,
    IRCEventHandler,
    Join,
    Kick,
    Nick,
    Part,
    PrivateMessage,
    Quit,
    Welcome,
)
from dibridge.identity.caps import CapabilityNegotiator

# Backoff: min 2s, max 60s, jitter
_BACKOFF_MIN = 2
_BACKOFF_MAX = 60
_MAX_ATTEMPTS = 10


def parse_server(server: str, *, tls: bool = True) -> tuple[str, int]:
    """Split "host:port"; the port defaults to 6697 with TLS and 6667 without."""
    host, sep, port = server.rpartition(":")
    if sep and port.isdigit():
        return host, int(port)
    return server, 6697 if tls else 6667


async def _connect_with_backoff(client: IRCClient, hostname: str, port: int, **connect_kwargs: Any) -> None:
    """Connect with exponential backoff and jitter on failure; reconnect on disconnect."""
    attempt = 0
    while True:
        try:
            await client.connect(hostname=hostname, port=port, **connect_kwargs)
            # connect() returns once the read loop has started; wait for the connection to drop
            await client.wait_disconnected()
            if client.closing:
                return
            attempt = 0
            wait = _BACKOFF_MIN * random.uniform(0.5, 1.5)
            logger.info("IRC disconnected, reconnecting in {:.1f}s", wait)
            await asyncio.sleep(wait)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            attempt += 1
            if attempt >= _MAX_ATTEMPTS:
                logger.exception("IRC connect failed after {} attempts", _MAX_ATTEMPTS)
                raise
            delay = min(_BACKOFF_MAX, _BACKOFF_MIN * (2 ** (attempt - 1)))
            wait = delay * random.uniform(0.5, 1.5)
            logger.warning(
                "IRC connect failed (attempt {}): {}, retrying in {:.1f}s",
                attempt,
                exc,
                wait,
            )
            await asyncio.sleep(wait)


class IRCClient(pydle.Client):
    """The bridge's single IRC connection.

    Outbound lines are queued and drained by a throttled consumer, so callers
    never await network I/O. Inbound activity is turned into IRC event
    variants and handed to the listener.
    """

    # Reconnects are driven by _connect_with_backoff
    RECONNECT_ON_ERROR = False

    def __init__(
        self,
        nick: str,
        *,
        negotiator: CapabilityNegotiator | None = None,
        throttle_limit: int = 10,
        **kwargs: Any,
    ) -> None:
        super().__init__(nick, **kwargs)
        self.negotiator = negotiator if negotiator is not None else CapabilityNegotiator()
        self._handler: IRCEventHandler | None = None
        self._outbound: asyncio.Queue[tuple[str | None, tuple[str, ...]]] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self._throttle = TokenBucket(limit=throttle_limit)
        self._message_tags: dict[str, Any] = {}
        self._disconnected = asyncio.Event()
        self.closing = False

    def set_handler(self, handler: IRCEventHandler) -> None:
        self._handler = handler

    async def _emit(self, evt: IRCEvent) -> None:
        if self._handler is None:
            logger.debug("IRC: no listener for {}", type(evt).__name__)
            return
        try:
            await self._handler.handle_irc_event(evt)
        except Exception as exc:
            logger.exception("IRC listener failed on {}: {}", type(evt).__name__, exc)

    def _hostmask(self, nick: str) -> str:
        user = self.users.get(nick) or {}
        return f"{nick}!{user.get('username') or '*'}@{user.get('hostname') or '*'}"

    # Lifecycle

    def start(self, server: str, *, tls: bool = True, tls_verify: bool = True, password: str | None = None) -> None:
        hostname, port = parse_server(server, tls=tls)
        self.closing = False
        self._connect_task = asyncio.create_task(
            _connect_with_backoff(
                self,
                hostname,
                port,
                tls=tls,
                tls_verify=tls_verify,
                password=password or None,
            )
        )
        logger.info("IRC connection started: {}:{} (tls={})", hostname, port, tls)

    async def wait_disconnected(self) -> None:
        await self._disconnected.wait()

    async def close(self) -> None:
        """Disconnect and stop reconnecting."""
        self.closing = True
        if self.connected:
            with contextlib.suppress(Exception):
                await self.quit("Bridge shutting down")
        await self._stop_consumer()
        if self._connect_task:
            self._connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._connect_task
            self._connect_task = None

    async def _stop_consumer(self) -> None:
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
            self._consumer_task = None

    # Outbound

    def send_command(self, command: str, *params: str) -> None:
        self._outbound.put_nowait((command, params))

    def send_raw(self, line: str) -> None:
        self._outbound.put_nowait((None, (line,)))

    def privmsg(self, target: str, text: str) -> None:
        self.send_command("PRIVMSG", target, text)

    @property
    def pending_lines(self) -> int:
        return self._outbound.qsize()

    async def _consume_outbound(self) -> None:
        """Drain the outbound queue with token bucket throttling."""
        while True:
            try:
                command, params = await self._outbound.get()
                await self._throttle.take()
                if command is None:
                    await self.raw(params[0].rstrip("\r\n") + "\r\n")
                else:
                    await self.rawmsg(command, *params)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("IRC send failed: {}", exc)

    # Roster

    def channel_has_user(self, channel: str, nick: str) -> bool:
        info = self.channels.get(channel)
        if not info:
            return False
        return any(self.is_same_nick(nick, member) for member in info.get("users", ()))

    # Capabilities

    async def on_capability_draft_relaymsg_available(self, value):
        """Request draft/relaymsg for spoofed nicks."""
        return self.negotiator.offer("draft/relaymsg", value)

    async def on_capability_overdrivenetworks_com_relaymsg_available(self, value):
        """Request overdrivenetworks.com/relaymsg (alternate relaymsg cap name)."""
        return self.negotiator.offer("overdrivenetworks.com/relaymsg", value)

    async def on_capability_message_tags_available(self, value):
        """Request message-tags so relayed echoes carry the draft/relaymsg tag."""
        return True

    # Inbound

    async def on_connect(self):
        await super().on_connect()
        self._disconnected.clear()
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self._consume_outbound())
        logger.info("IRC registered as {}", self.nickname)
        await self._emit(Welcome(nickname=self.nickname, capabilities=dict(getattr(self, "_capabilities", {}))))

    async def on_disconnect(self, expected):
        await super().on_disconnect(expected)
        self.negotiator.reset()
        await self._stop_consumer()
        self._disconnected.set()
        if not expected:
            logger.warning("IRC connection lost")

    async def on_raw_366(self, message):
        """End of NAMES: our JOIN is complete."""
        await super().on_raw_366(message)
        if len(message.params) >= 2:
            await self._emit(ChannelJoined(channel=message.params[1]))

    async def on_raw_privmsg(self, message):
        """Keep the message tags around for on_channel_message / on_ctcp_action."""
        self._message_tags = getattr(message, "tags", None) or {}
        try:
            await super().on_raw_privmsg(message)
        finally:
            self._message_tags = {}

    async def on_raw_notice(self, message):
        self._message_tags = getattr(message, "tags", None) or {}
        try:
            await super().on_raw_notice(message)
        finally:
            self._message_tags = {}

    async def on_channel_message(self, target, by, message):
        await super().on_channel_message(target, by, message)
        await self._emit(
            PrivateMessage(
                target=target,
                nick=by,
                hostmask=self._hostmask(by),
                text=message,
                tags=dict(self._message_tags),
            )
        )

    async def on_channel_notice(self, target, by, message):
        await super().on_channel_notice(target, by, message)
        await self._emit(
            PrivateMessage(
                target=target,
                nick=by,
                hostmask=self._hostmask(by),
                text=message,
                is_notice=True,
                tags=dict(self._message_tags),
            )
        )

    async def on_ctcp_action(self, by, target, contents):
        await self._emit(
            PrivateMessage(
                target=target,
                nick=by,
                hostmask=self._hostmask(by),
                text=contents or "",
                is_action=True,
                tags=dict(self._message_tags),
            )
        )

    async def on_join(self, channel, user):
        await super().on_join(channel, user)
        await self._emit(Join(channel=channel, nick=user, hostmask=self._hostmask(user)))

    async def on_part(self, channel, user, message=None):
        await super().on_part(channel, user, message)
        await self._emit(Part(channel=channel, nick=user, hostmask=self._hostmask(user), reason=message))

    async def on_quit(self, user, message=None):
        # Fires while the user is still in our channel rosters
        await super().on_quit(user, message)
        await self._emit(Quit(nick=user, hostmask=self._hostmask(user), reason=message))

    async def on_kick(self, channel, target, by, reason=None):
        await super().on_kick(channel, target, by, reason)
        await self._emit(Kick(channel=channel, target=target, by=by, hostmask=self._hostmask(by), reason=reason))

    async def on_nick_change(self, old, new):
        await super().on_nick_change(old, new)
        await self._emit(Nick(old=old, new=new, hostmask=self._hostmask(new)))
