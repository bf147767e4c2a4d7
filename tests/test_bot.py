"""Tests for NoteBridgeClient lookups."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import discord
import pytest

from discord_note_bridge.bot import NoteBridgeClient


@pytest.fixture
async def client():
    c = NoteBridgeClient()
    yield c
    await c.close()


class TestTag:
    async def test_placeholder_before_login(self, client):
        assert client.tag == "?"

    async def test_uses_user_name(self, client):
        with patch.object(NoteBridgeClient, "user", new_callable=PropertyMock) as user:
            user.return_value = "bridge#0001"
            assert client.tag == "bridge#0001"


class TestFetchTextChannel:
    async def test_cached_text_channel(self, client):
        channel = MagicMock(spec=discord.TextChannel)
        client.get_channel = MagicMock(return_value=channel)
        client.fetch_channel = AsyncMock()

        assert await client.fetch_text_channel(5) is channel
        client.fetch_channel.assert_not_awaited()

    async def test_fetches_when_not_cached(self, client):
        channel = MagicMock(spec=discord.TextChannel)
        client.get_channel = MagicMock(return_value=None)
        client.fetch_channel = AsyncMock(return_value=channel)

        assert await client.fetch_text_channel(5) is channel
        client.fetch_channel.assert_awaited_once_with(5)

    async def test_non_text_channel_is_none(self, client):
        client.get_channel = MagicMock(return_value=MagicMock(spec=discord.VoiceChannel))

        assert await client.fetch_text_channel(5) is None
