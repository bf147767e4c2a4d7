"""Discord client used as the bridge's gateway session."""

from __future__ import annotations

import logging

import discord

logger = logging.getLogger(__name__)


class NoteBridgeClient(discord.Client):
    """Gateway session for the note bridge.

    The client only carries intents and a couple of lookups; its event
    handlers are attached by :class:`~discord_note_bridge.connection.ConnectionManager`
    each time a session is created, so they close over the manager's state.
    """

    def __init__(self) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.dm_messages = True
        intents.message_content = True

        super().__init__(intents=intents)

    @property
    def tag(self) -> str:
        return str(self.user) if self.user else "?"

    async def fetch_text_channel(self, channel_id: int) -> discord.TextChannel | None:
        """Return the channel if it is a text channel, using the cache first."""
        channel = self.get_channel(channel_id)
        if channel is None:
            channel = await self.fetch_channel(channel_id)
        if isinstance(channel, discord.TextChannel):
            return channel
        logger.debug("Channel %d is not a text channel: %r", channel_id, channel)
        return None
