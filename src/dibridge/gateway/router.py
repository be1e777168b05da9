"""Message router: the single dispatcher between IRC and Discord.

Listeners only ever await ``submit_*``; everything else (mapping lookups,
filtering, transformation, reconfiguration, teardown) happens on the
dispatcher task, which is the sole owner of the mapping store.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from dibridge.core.constants import DEFAULT_AVATAR_URL
from dibridge.core.errors import BridgeError
from dibridge.events import DiscordMessage, IRCMessage
from dibridge.formatting import (
    EmojiCache,
    FilterSet,
    avatar_from_template,
    pad_username,
    preserve_whitespace,
)
from dibridge.gateway.mappings import MappingDiff, MappingStore

if TYPE_CHECKING:
    from dibridge.adapters.base import DiscordConnection, IRCConnection
    from dibridge.identity.resolver import IdentityResolver


@dataclass
class _Reconfigure:
    entries: Mapping[str, str]
    result: asyncio.Future[MappingDiff]


@dataclass
class _Shutdown:
    done: asyncio.Future[None] = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class MessageRouter:
    """Routes inbound IRC and Discord messages to the other side."""

    def __init__(
        self,
        store: MappingStore,
        identity: IdentityResolver,
        irc: IRCConnection,
        discord: DiscordConnection,
        *,
        emoji: EmojiCache | None = None,
        filters: FilterSet | None = None,
        avatar_url: str = DEFAULT_AVATAR_URL,
        inbox_size: int = 0,
        max_concurrent_sends: int | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._irc = irc
        self._discord = discord
        self._emoji = emoji if emoji is not None else EmojiCache()
        self._filters = filters if filters is not None else FilterSet()
        self._avatar_url = avatar_url
        self._inbox: asyncio.Queue[object] = asyncio.Queue(maxsize=inbox_size)
        self._send_limit = asyncio.Semaphore(max_concurrent_sends) if max_concurrent_sends else None
        self._sends: set[asyncio.Task] = set()
        self._task: asyncio.Task | None = None
        self._shutdown: _Shutdown | None = None
        self._closed = False

    @property
    def mappings(self) -> MappingStore:
        return self._store

    @property
    def filters(self) -> FilterSet:
        return self._filters

    @property
    def emoji(self) -> EmojiCache:
        return self._emoji

    @property
    def pending_sends(self) -> int:
        return len(self._sends)

    def update_filters(self, filters: FilterSet) -> None:
        """Swap in a new filter snapshot (e.g. after a config reload)."""
        self._filters = filters

    # Submission: the only suspension point for listeners

    async def submit_irc_message(
        self,
        irc_channel: str,
        username: str,
        text: str,
        is_action: bool = False,
    ) -> None:
        evt = IRCMessage(irc_channel, username, text, is_action=is_action)
        await self._submit(evt)

    async def submit_discord_event(
        self,
        discord_channel_id: str,
        author_id: str,
        author_username: str,
        author_discriminator: str,
        content: str,
        is_action: bool = False,
    ) -> None:
        evt = DiscordMessage(
            discord_channel_id,
            author_id,
            author_username,
            author_discriminator,
            content,
            is_action=is_action,
        )
        await self._submit(evt)

    async def _submit(self, evt: object) -> None:
        if self._shutdown is not None:
            logger.debug("Router closing; dropping {}", type(evt).__name__)
            return
        await self._inbox.put(evt)

    async def set_mappings(self, entries: Mapping[str, str]) -> MappingDiff:
        """Replace the mapping set through the dispatcher.

        Raises DuplicateMappingError (the previous set stays in place) or returns
        the applied diff once the PART/JOIN commands have been queued.
        """
        if self._task is None or self._task.done():
            return self._apply_mappings(entries)
        result: asyncio.Future[MappingDiff] = asyncio.get_running_loop().create_future()
        await self._inbox.put(_Reconfigure(entries, result))
        return await result

    # Lifecycle

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._dispatch(), name="dibridge-router")
        logger.info("Router started with {} mappings", len(self._store.all_mappings()))

    async def close(self) -> None:
        """Tear down the bridge; returns once Discord, IRC and identity are closed."""
        if self._shutdown is not None:
            await self._shutdown.done
            return
        self._shutdown = _Shutdown()
        if self._task is None or self._task.done():
            await self._teardown()
            self._shutdown.done.set_result(None)
            return
        await self._inbox.put(self._shutdown)
        await self._shutdown.done

    @property
    def closed(self) -> bool:
        return self._closed

    # Dispatcher

    async def _dispatch(self) -> None:
        while True:
            item = await self._inbox.get()
            if isinstance(item, _Shutdown):
                try:
                    await self._teardown()
                finally:
                    item.done.set_result(None)
                return
            try:
                if isinstance(item, IRCMessage):
                    self._handle_irc(item)
                elif isinstance(item, DiscordMessage):
                    self._handle_discord(item)
                elif isinstance(item, _Reconfigure):
                    self._handle_reconfigure(item)
                else:
                    logger.warning("Router: unknown inbox item {!r}", item)
            except Exception as exc:
                logger.exception("Router: failed to handle {}: {}", type(item).__name__, exc)

    def _handle_irc(self, msg: IRCMessage) -> None:
        mapping = self._store.lookup_by_irc(msg.irc_channel)
        if mapping is None:
            logger.warning("Ignoring message sent from an unmapped IRC channel {}", msg.irc_channel)
            return

        content = self._emoji.substitute(preserve_whitespace(msg.text))
        channel_id = mapping.discord_channel_id

        if msg.is_system:
            self._spawn_send(
                functools.partial(self._discord.channel_send, channel_id, content),
                channel_id=channel_id,
                author="",
                content=content,
            )
            return

        username = pad_username(msg.username)
        avatar = self._discord.get_avatar(msg.username) or avatar_from_template(self._avatar_url, msg.username)
        self._spawn_send(
            functools.partial(self._discord.send_as, channel_id, username, avatar, content),
            channel_id=channel_id,
            author=username,
            content=content,
        )

    def _handle_discord(self, msg: DiscordMessage) -> None:
        mapping = self._store.lookup_by_discord(msg.discord_channel_id)
        if mapping is None:
            logger.warning("Ignoring message sent from an unmapped Discord channel {}", msg.discord_channel_id)
            return
        if not self._filters.is_bridged_discord_user(msg.author_id):
            logger.debug("Dropping Discord message from unbridged user {}", msg.author_id)
            return
        if self._filters.is_filtered_discord_message(msg.content):
            logger.debug("Dropping filtered Discord message from {}", msg.author_username)
            return
        self._identity.send_message(mapping.irc_channel, msg)

    def _handle_reconfigure(self, item: _Reconfigure) -> None:
        try:
            diff = self._apply_mappings(item.entries)
        except BridgeError as exc:
            logger.error("Mapping reconfiguration rejected: {}", exc)
            item.result.set_exception(exc)
            return
        except Exception as exc:
            logger.exception("Mapping reconfiguration failed: {}", exc)
            item.result.set_exception(exc)
            return
        item.result.set_result(diff)

    def _apply_mappings(self, entries: Mapping[str, str]) -> MappingDiff:
        diff = self._store.set_mappings(entries)
        if diff.part:
            self._irc.send_command("PART", ",".join(diff.part))
        if diff.join:
            self._irc.send_command("JOIN", *self._store.join_params(diff.join))
        return diff

    # Discord sends: tracked fire-and-forget, failures logged and never retried

    def _spawn_send(
        self,
        send: Callable[[], Awaitable[None]],
        *,
        channel_id: str,
        author: str,
        content: str,
    ) -> None:
        task = asyncio.create_task(self._run_send(send, channel_id, author, content))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _run_send(
        self,
        send: Callable[[], Awaitable[None]],
        channel_id: str,
        author: str,
        content: str,
    ) -> None:
        try:
            if self._send_limit is None:
                await send()
            else:
                async with self._send_limit:
                    await send()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "Failed to send to Discord channel {} (author={!r}, content={!r})",
                channel_id,
                author,
                content,
            )

    async def _teardown(self) -> None:
        logger.info("Router shutting down")
        for name, conn in (("Discord", self._discord), ("IRC", self._irc)):
            try:
                await conn.close()
            except Exception as exc:
                logger.exception("Error closing {} connection: {}", name, exc)
        self._identity.close()

        pending = list(self._sends)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._closed = True
        logger.info("Router stopped")
