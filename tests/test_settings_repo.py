"""Tests for SettingsRepository and SettingsStore: persisted bridge settings."""

from __future__ import annotations

import pytest

from discord_note_bridge.config import Settings, obfuscate
from discord_note_bridge.database.models import init_db
from discord_note_bridge.database.settings_repo import SettingsRepository, SettingsStore


@pytest.fixture
async def repo(tmp_path):
    db_path = str(tmp_path / "data" / "test.db")
    await init_db(db_path)
    return SettingsRepository(db_path)


@pytest.fixture
def store(repo) -> SettingsStore:
    return SettingsStore(repo)


class TestSettingsRepository:
    async def test_set_many_inserts(self, repo):
        await repo.set_many({"channelId": "1", "ownerId": "2"})
        assert await repo.get_all() == {"channelId": "1", "ownerId": "2"}

    async def test_set_many_overwrites_existing(self, repo):
        await repo.set_many({"channelId": "1"})
        await repo.set_many({"channelId": "2"})
        assert (await repo.get_all())["channelId"] == "2"

    async def test_get_all_empty(self, repo):
        assert await repo.get_all() == {}


class TestSettingsStore:
    async def test_round_trip(self, store, settings):
        await store.save(settings)
        assert await store.load() == settings

    async def test_secrets_are_obfuscated_at_rest(self, store, repo, settings):
        await store.save(settings)

        stored = await repo.get_all()
        assert stored["botToken"] == obfuscate("token")
        assert stored["botToken"] != "token"
        assert stored["clientId"] == obfuscate("1234")
        assert stored["channelId"] == "555"

    async def test_load_empty_uses_defaults(self, store):
        defaults = Settings(bot_token="env-token", channel_id="9")
        assert await store.load(defaults) == defaults

    async def test_stored_command_values_override_defaults(self, store, settings):
        await store.save(settings)
        loaded = await store.load(Settings(channel_id="1", target_note_path="Other"))

        assert loaded.channel_id == "555"
        assert loaded.target_note_path == "Inbox/Discord"

    async def test_environment_owned_values_override_stored(self, store, settings):
        await store.save(settings)
        loaded = await store.load(Settings(bot_token="env-token", client_id="99", owner_id="7"))

        assert loaded.bot_token == "env-token"
        assert loaded.client_id == "99"
        assert loaded.owner_id == "7"
        assert loaded.channel_id == "555"

    async def test_stored_token_fills_missing_environment(self, store, settings):
        await store.save(settings)
        loaded = await store.load(Settings(owner_id="7"))

        assert loaded.bot_token == "token"
        assert loaded.client_id == "1234"
        assert loaded.owner_id == "7"

    async def test_empty_stored_values_fall_back(self, store, repo):
        await repo.set_many({"botToken": "", "ownerId": "7"})
        loaded = await store.load(Settings(bot_token="env-token"))

        assert loaded.bot_token == "env-token"
        assert loaded.owner_id == "7"

    async def test_legacy_plaintext_token_is_kept(self, store, repo):
        await repo.set_many({"botToken": "not*base64!"})
        loaded = await store.load()
        assert loaded.bot_token == "not*base64!"
