"""Discord adapter: bot for inbound messages and emoji, webhooks for send-as."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from cachetools import TTLCache
from discord import Guild, Intents, Message, TextChannel
from discord.ext import commands
from discord.webhook import Webhook
from loguru import logger

from dibridge.adapters.base import AdapterBase
from dibridge.adapters.discord import webhook as discord_webhook
from dibridge.core.errors import BridgeError
from dibridge.formatting.emoji import EmojiCache, EmojiEntry

if TYPE_CHECKING:
    from dibridge.gateway.router import MessageRouter


def split_action(content: str) -> tuple[str, bool]:
    """Discord renders _text_ as italics; treat a fully italic message as an action."""
    if len(content) > 2 and content.startswith("_") and content.endswith("_"):
        return content[1:-1], True
    return content, False


def message_content(message: Message) -> str:
    """Mentions resolved to names, followed by one attachment URL per line."""
    parts = [message.clean_content] if message.clean_content else []
    parts.extend(a.url for a in message.attachments)
    return "\n".join(parts)


class DiscordAdapter(AdapterBase):
    """Discord side of the bridge for a single guild."""

    def __init__(self, token: str, guild_id: str, emoji: EmojiCache | None = None) -> None:
        self._token = token
        self._guild_id = str(guild_id)
        self._emoji = emoji if emoji is not None else EmojiCache()
        self._router: MessageRouter | None = None
        self._webhook_cache: TTLCache[str, Webhook] = TTLCache(maxsize=100, ttl=86400)
        self._webhook_lock = asyncio.Lock()
        self._bot: commands.Bot | None = None
        self._bot_task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return "discord"

    @property
    def emoji(self) -> EmojiCache:
        return self._emoji

    def bind(self, router: MessageRouter) -> None:
        """Set the router that inbound messages are submitted to."""
        self._router = router

    def _guild(self) -> Guild | None:
        if not self._bot:
            return None
        return self._bot.get_guild(int(self._guild_id))

    # Outbound (DiscordConnection)

    async def channel_send(self, channel_id: str, content: str) -> None:
        if not self._bot:
            raise BridgeError("Discord bot not started", code="discord_not_ready")
        channel = self._bot.get_channel(int(channel_id))
        if not channel or not isinstance(channel, TextChannel):
            raise BridgeError(
                f"Discord channel {channel_id} not found or not a text channel",
                code="discord_channel_missing",
                details={"channel_id": channel_id},
            )
        await channel.send(content[: discord_webhook.MAX_CONTENT_LEN])

    async def send_as(self, channel_id: str, username: str, avatar_url: str, content: str) -> None:
        if not self._bot:
            raise BridgeError("Discord bot not started", code="discord_not_ready")
        async with self._webhook_lock:
            webhook = await discord_webhook.get_or_create_webhook(self._bot, channel_id, self._webhook_cache)
        if webhook is None:
            raise BridgeError(
                f"No webhook for Discord channel {channel_id}",
                code="webhook_unavailable",
                details={"channel_id": channel_id},
            )
        await discord_webhook.webhook_send(webhook, username, avatar_url, content)

    def get_avatar(self, username: str) -> str | None:
        """Avatar of the guild member with this name, if there is one."""
        guild = self._guild()
        if guild is None:
            return None
        member = guild.get_member_named(username)
        if member is None:
            return None
        return str(member.display_avatar.url)

    async def close(self) -> None:
        await self.stop()

    # Emoji

    def sync_emoji(self, guild: Guild) -> None:
        if str(guild.id) != self._guild_id:
            return
        self._emoji.update(EmojiEntry(name=e.name, id=str(e.id), animated=e.animated) for e in guild.emojis)

    # Inbound

    async def _on_message(self, message: Message) -> None:
        if message.guild is None or str(message.guild.id) != self._guild_id:
            return
        # Our own webhook output and our own bot messages
        if message.webhook_id:
            return
        if self._bot and self._bot.user and message.author.id == self._bot.user.id:
            return
        if self._router is None:
            logger.warning("Discord message received before router was bound; dropping")
            return

        content, is_action = split_action(message_content(message))
        if not content:
            return

        await self._router.submit_discord_event(
            str(message.channel.id),
            str(message.author.id),
            message.author.name,
            str(message.author.discriminator),
            content,
            is_action,
        )

    # Lifecycle

    def _build_bot(self) -> commands.Bot:
        intents = Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True
        intents.emojis_and_stickers = True

        bot = commands.Bot(command_prefix="!", intents=intents)

        @bot.event
        async def on_ready() -> None:
            logger.info("Discord bot ready: {}", bot.user)
            guild = bot.get_guild(int(self._guild_id))
            if guild is None:
                logger.warning("Discord bot is not a member of guild {}", self._guild_id)
                return
            self.sync_emoji(guild)

        @bot.event
        async def on_guild_available(guild: Guild) -> None:
            self.sync_emoji(guild)

        @bot.event
        async def on_guild_emojis_update(guild: Guild, before, after) -> None:
            self.sync_emoji(guild)

        @bot.event
        async def on_message(message: Message) -> None:
            await self._on_message(message)

        return bot

    async def start(self) -> None:
        """Start the Discord bot."""
        if not self._token:
            raise BridgeError("Discord token not configured", code="missing_discord_token")
        self._bot = self._build_bot()
        self._bot_task = asyncio.create_task(self._bot.start(self._token))
        logger.info("Discord adapter started for guild {}", self._guild_id)

    async def stop(self) -> None:
        """Stop the Discord bot."""
        if self._bot:
            await self._bot.close()
        if self._bot_task:
            self._bot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._bot_task
        self._bot = None
        self._bot_task = None
