"""Bridge settings and environment configuration.

``Settings`` is a frozen value object: callers never mutate it in place, they
build a new one with :func:`dataclasses.replace` and hand it to whoever holds
a snapshot (the connection manager, the settings store).
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TARGET_NOTE = "Discord_Messages"
DEFAULT_VAULT_DIR = "vault"
DEFAULT_DB_PATH = "data/settings.db"
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5

# Persisted record keys, camelCase.
KEY_BOT_TOKEN = "botToken"
KEY_CLIENT_ID = "clientId"
KEY_OWNER_ID = "ownerId"
KEY_CHANNEL_ID = "channelId"
KEY_TARGET_NOTE_PATH = "targetNotePath"

OBFUSCATED_KEYS = frozenset({KEY_BOT_TOKEN, KEY_CLIENT_ID})
# Only the environment sets these; slash commands write the other two.
ENV_OWNED_KEYS = frozenset({KEY_BOT_TOKEN, KEY_CLIENT_ID, KEY_OWNER_ID})


@dataclass(frozen=True)
class Settings:
    """Identity and routing values for one bridge instance."""

    bot_token: str = ""
    client_id: str = ""
    owner_id: str = ""
    channel_id: str = ""
    target_note_path: str = DEFAULT_TARGET_NOTE

    def to_record(self) -> dict[str, str]:
        """Flat record as persisted (values not yet obfuscated)."""
        return {
            KEY_BOT_TOKEN: self.bot_token,
            KEY_CLIENT_ID: self.client_id,
            KEY_OWNER_ID: self.owner_id,
            KEY_CHANNEL_ID: self.channel_id,
            KEY_TARGET_NOTE_PATH: self.target_note_path,
        }

    @classmethod
    def from_record(cls, record: dict[str, str]) -> Settings:
        return cls(
            bot_token=record.get(KEY_BOT_TOKEN, ""),
            client_id=record.get(KEY_CLIENT_ID, ""),
            owner_id=record.get(KEY_OWNER_ID, ""),
            channel_id=record.get(KEY_CHANNEL_ID, ""),
            target_note_path=record.get(KEY_TARGET_NOTE_PATH) or DEFAULT_TARGET_NOTE,
        )


def obfuscate(value: str) -> str:
    """Reversibly encode a secret for storage. This is not encryption."""
    if not value:
        return ""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def deobfuscate(value: str) -> str:
    """Inverse of :func:`obfuscate`. Undecodable input is returned unchanged."""
    if not value:
        return ""
    try:
        return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError):
        logger.warning("Stored secret is not base64; using it as-is")
        return value


@dataclass(frozen=True)
class BridgeConfig:
    """Process-level configuration read from the environment."""

    settings: Settings
    vault_dir: str = DEFAULT_VAULT_DIR
    db_path: str = DEFAULT_DB_PATH
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    log_level: str = "INFO"


def load_config() -> BridgeConfig:
    """Load configuration from ``.env`` and the process environment."""
    load_dotenv()

    settings = Settings(
        bot_token=os.getenv("DISCORD_BOT_TOKEN", ""),
        client_id=os.getenv("DISCORD_CLIENT_ID", ""),
        owner_id=os.getenv("DISCORD_OWNER_ID", ""),
        channel_id=os.getenv("DISCORD_CHANNEL_ID", ""),
        target_note_path=os.getenv("NOTE_BRIDGE_TARGET_NOTE", "") or DEFAULT_TARGET_NOTE,
    )

    attempts_raw = os.getenv("NOTE_BRIDGE_MAX_RECONNECT_ATTEMPTS", "")
    max_attempts = DEFAULT_MAX_RECONNECT_ATTEMPTS
    if attempts_raw:
        if attempts_raw.isdigit():
            max_attempts = int(attempts_raw)
        else:
            logger.warning(
                "Ignoring NOTE_BRIDGE_MAX_RECONNECT_ATTEMPTS=%r (not an integer)", attempts_raw
            )

    return BridgeConfig(
        settings=settings,
        vault_dir=os.getenv("NOTE_BRIDGE_VAULT_DIR", DEFAULT_VAULT_DIR),
        db_path=os.getenv("NOTE_BRIDGE_DB_PATH", DEFAULT_DB_PATH),
        max_reconnect_attempts=max_attempts,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
