"""Discord adapter package."""

from dibridge.adapters.discord.adapter import DiscordAdapter, message_content, split_action
from dibridge.adapters.discord.webhook import get_or_create_webhook, webhook_send

__all__ = ["DiscordAdapter", "get_or_create_webhook", "message_content", "split_action", "webhook_send"]
