"""Tests for setup_bridge() wiring."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from conftest import ClientFactory, command_data, make_interaction

from discord_note_bridge.config import BridgeConfig, Settings
from discord_note_bridge.setup import BridgeComponents, setup_bridge


def _config(tmp_path, **settings) -> BridgeConfig:
    return BridgeConfig(
        settings=Settings(**settings),
        vault_dir=str(tmp_path / "vault"),
        db_path=str(tmp_path / "data" / "settings.db"),
        max_reconnect_attempts=3,
    )


@pytest.mark.asyncio
async def test_setup_bridge_wires_components(tmp_path: object) -> None:
    """The dispatcher is attached to the manager and shares its settings."""
    result = await setup_bridge(
        _config(tmp_path, bot_token="tok", owner_id="42"),
        client_factory=ClientFactory(),
    )

    assert isinstance(result, BridgeComponents)
    assert result.manager.dispatcher is result.dispatcher
    assert result.manager.policy.max_attempts == 3
    assert result.manager.settings.bot_token == "tok"


@pytest.mark.asyncio
async def test_setup_bridge_seeds_and_prefers_persisted_settings(tmp_path: object) -> None:
    """A first run persists the environment; later runs prefer stored values."""
    first = await setup_bridge(_config(tmp_path, bot_token="tok", channel_id="1"))
    await first.settings_store.save(Settings(bot_token="tok", channel_id="2"))

    second = await setup_bridge(_config(tmp_path, bot_token="tok", channel_id="1"))

    assert second.manager.settings.channel_id == "2"


@pytest.mark.asyncio
async def test_setup_bridge_picks_up_rotated_environment_secrets(tmp_path: object) -> None:
    """A restart with a new token or owner uses them and keeps the stored channel."""
    first = await setup_bridge(_config(tmp_path, bot_token="revoked", owner_id="1"))
    await first.settings_store.save(
        Settings(bot_token="revoked", owner_id="1", channel_id="2")
    )

    second = await setup_bridge(
        _config(tmp_path, bot_token="fresh", owner_id="9", channel_id="1")
    )

    assert second.manager.settings.bot_token == "fresh"
    assert second.manager.settings.owner_id == "9"
    assert second.manager.settings.channel_id == "2"
    assert (await second.settings_store.load()).bot_token == "fresh"


@pytest.mark.asyncio
async def test_setchannel_updates_manager_and_database(tmp_path: object) -> None:
    """Saving from a handler reaches both the manager and the store."""
    result = await setup_bridge(
        _config(tmp_path, bot_token="tok", owner_id="42", channel_id="1"),
        notify=MagicMock(),
    )
    interaction = make_interaction(data=command_data("setchannel", channel="777"))

    await result.dispatcher.handle_interaction(interaction)

    assert result.manager.settings.channel_id == "777"
    assert (await result.settings_store.load()).channel_id == "777"
    interaction.edit_original_response.assert_awaited_once_with(
        content="Target channel updated: `#777` (ID: `777`)"
    )


@pytest.mark.asyncio
async def test_mirrored_messages_land_in_target_note(tmp_path: object) -> None:
    result = await setup_bridge(
        _config(tmp_path, bot_token="tok", target_note_path="Inbox"),
        notify=MagicMock(),
    )

    await result.manager.callbacks.on_message_received("hello")

    assert (tmp_path / "vault" / "Inbox.md").read_text() == "hello\n"  # type: ignore[operator]
