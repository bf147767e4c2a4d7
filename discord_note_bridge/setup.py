"""One-call wiring for the note bridge.

Builds the settings store, vault, connection manager, command handlers and
dispatcher, and connects them to each other. The caller only has to call
``components.manager.initialize()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .backoff import ReconnectPolicy
from .commands.dispatcher import CommandDispatcher
from .commands.handlers import NoteCommandHandlers
from .connection import ConnectionManager, HostCallbacks
from .database.models import init_db
from .database.settings_repo import SettingsRepository, SettingsStore
from .utils.logger import log_notice
from .vault.store import VaultStore

if TYPE_CHECKING:
    from .config import BridgeConfig, Settings

logger = logging.getLogger(__name__)


@dataclass
class BridgeComponents:
    """References to the wired bridge components."""

    settings_store: SettingsStore
    vault: VaultStore
    manager: ConnectionManager
    handlers: NoteCommandHandlers
    dispatcher: CommandDispatcher


async def setup_bridge(
    config: BridgeConfig,
    *,
    on_status_update: Callable[[str], None] | None = None,
    notify: Callable[[str], None] = log_notice,
    policy: ReconnectPolicy | None = None,
    client_factory: Callable | None = None,
) -> BridgeComponents:
    """Initialize storage and wire every component.

    Settings persisted by an earlier run take precedence over the environment
    for each non-empty key. The merged record is written back so a first run
    seeds the database.
    """
    await init_db(config.db_path)
    settings_store = SettingsStore(SettingsRepository(config.db_path))
    settings = await settings_store.load(defaults=config.settings)
    await settings_store.save(settings)

    vault = VaultStore(config.vault_dir)

    if policy is None:
        policy = ReconnectPolicy(max_attempts=config.max_reconnect_attempts)

    # Resolved at call time, once the handlers exist
    async def on_message_received(content: str) -> None:
        await handlers.save_message(content)

    callbacks = HostCallbacks(
        on_message_received=on_message_received,
        on_status_update=on_status_update or _log_status,
        notify=notify,
    )
    manager_kwargs = {"policy": policy}
    if client_factory is not None:
        manager_kwargs["client_factory"] = client_factory
    manager = ConnectionManager(settings, callbacks, **manager_kwargs)

    async def save_settings(new_settings: Settings) -> None:
        await settings_store.save(new_settings)
        manager.update_settings(new_settings)

    handlers = NoteCommandHandlers(
        vault=vault,
        settings_provider=lambda: manager.settings,
        save_settings=save_settings,
        channel_lookup=manager.get_channel,
        notify=notify,
    )

    dispatcher = CommandDispatcher(
        handlers,
        settings_provider=lambda: manager.settings,
        list_documents=vault.list_documents,
        notify=notify,
    )
    manager.dispatcher = dispatcher

    components = BridgeComponents(
        settings_store=settings_store,
        vault=vault,
        manager=manager,
        handlers=handlers,
        dispatcher=dispatcher,
    )
    logger.info("Bridge ready: vault=%s db=%s", config.vault_dir, config.db_path)
    return components


def _log_status(label: str) -> None:
    logger.info("Status: %s", label)
