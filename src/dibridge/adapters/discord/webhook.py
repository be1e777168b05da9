"""Discord webhook utilities: one bridge webhook per channel, send-as."""

from __future__ import annotations

from collections.abc import MutableMapping

from discord import AllowedMentions, TextChannel
from discord.ext import commands
from discord.webhook import Webhook
from loguru import logger

WEBHOOK_NAME = "dibridge"
DISCORD_WEBHOOKS_PER_CHANNEL = 15
MAX_USERNAME_LEN = 80
MAX_CONTENT_LEN = 2000

# IRC users may ping people and roles, never @everyone/@here
SEND_AS_MENTIONS = AllowedMentions(everyone=False, users=True, roles=True)


async def get_or_create_webhook(
    bot: commands.Bot,
    channel_id: str,
    webhook_cache: MutableMapping[str, Webhook],
) -> Webhook | None:
    """Get or create the bridge webhook for a channel. Caller must hold the send lock."""
    webhook = webhook_cache.get(channel_id)
    if webhook:
        return webhook

    channel = bot.get_channel(int(channel_id))
    if not channel or not isinstance(channel, TextChannel):
        logger.warning("Discord channel {} not found or not a text channel", channel_id)
        return None

    webhooks = await channel.webhooks()
    app_id = str(getattr(bot, "application_id", None) or "")
    for wh in webhooks:
        if wh.name == WEBHOOK_NAME and (not app_id or str(getattr(wh, "application_id", None) or "") in ("", app_id)):
            webhook = wh
            logger.debug("Reusing webhook '{}' for channel {}", wh.name, channel_id)
            break
    if not webhook and len(webhooks) < DISCORD_WEBHOOKS_PER_CHANNEL:
        webhook = await channel.create_webhook(name=WEBHOOK_NAME, reason="IRC bridge relay")
        logger.info("Created webhook for channel {}", channel_id)
    if not webhook:
        logger.warning(
            "No webhook available for channel {}: Discord allows {} webhooks/channel.",
            channel_id,
            DISCORD_WEBHOOKS_PER_CHANNEL,
        )
        return None
    webhook_cache[channel_id] = webhook
    return webhook


async def webhook_send(webhook: Webhook, username: str, avatar_url: str | None, content: str) -> None:
    """Post content under username/avatar."""
    await webhook.send(
        content=content[:MAX_CONTENT_LEN],
        username=username[:MAX_USERNAME_LEN],
        avatar_url=avatar_url or None,
        allowed_mentions=SEND_AS_MENTIONS,
        wait=True,
    )
