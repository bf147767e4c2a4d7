"""Persistence for bridge settings.

``SettingsRepository`` is a plain key-value table. ``SettingsStore`` maps the
flat :class:`~discord_note_bridge.config.Settings` record onto it and applies
the reversible obfuscation to the token and client id.
"""

from __future__ import annotations

import dataclasses
import logging

import aiosqlite

from ..config import ENV_OWNED_KEYS, OBFUSCATED_KEYS, Settings, deobfuscate, obfuscate

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Simple key-value store for bot settings, persisted in SQLite."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def set_many(self, values: dict[str, str]) -> None:
        """Create or overwrite several keys in one transaction."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                "INSERT INTO settings (key, value) VALUES (?, ?)"
                " ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(values.items()),
            )
            await db.commit()

    async def get_all(self) -> dict[str, str]:
        """Get all settings as a dict."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT key, value FROM settings ORDER BY key")
            rows = await cursor.fetchall()
            return {row[0]: row[1] for row in rows}


class SettingsStore:
    """Loads and saves the whole :class:`Settings` record."""

    def __init__(self, repo: SettingsRepository) -> None:
        self.repo = repo

    async def load(self, defaults: Settings | None = None) -> Settings:
        """Merge persisted settings over ``defaults``.

        Stored channel and note values win so slash-command edits survive a
        restart. For the environment-owned keys a non-empty default wins, so a
        rotated token or owner takes effect; the stored value only fills a gap.
        """
        stored = await self.repo.get_all()
        record = (defaults or Settings()).to_record()
        for key, value in stored.items():
            if key not in record or not value:
                continue
            if key in ENV_OWNED_KEYS and record[key]:
                continue
            record[key] = deobfuscate(value) if key in OBFUSCATED_KEYS else value
        return Settings.from_record(record)

    async def save(self, settings: Settings) -> None:
        record = {
            key: obfuscate(value) if key in OBFUSCATED_KEYS else value
            for key, value in settings.to_record().items()
        }
        await self.repo.set_many(record)
        logger.debug(
            "Saved settings: %s",
            dataclasses.replace(settings, bot_token="***" if settings.bot_token else ""),
        )
