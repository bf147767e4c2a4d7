"""discord-note-bridge: Discord slash commands and channel mirroring for a Markdown vault.

Quick start::

    from discord_note_bridge import load_config, setup_bridge

    components = await setup_bridge(load_config())
    await components.manager.initialize()

"""

from .backoff import ErrorKind, ReconnectPolicy, classify_error
from .bot import NoteBridgeClient
from .commands.dispatcher import CommandDispatcher, ReplyHandle
from .commands.handlers import NoteCommandHandlers
from .commands.registry import COMMANDS, command_payloads, parse_command
from .config import BridgeConfig, Settings, load_config
from .connection import ConnectionManager, ConnectionState, HostCallbacks
from .database.settings_repo import SettingsRepository, SettingsStore
from .discord_ui.chunker import chunk_lines
from .errors import BridgeError
from .setup import BridgeComponents, setup_bridge
from .vault.store import Document, VaultStore

__all__ = [
    # Connection
    "ConnectionManager",
    "ConnectionState",
    "HostCallbacks",
    "NoteBridgeClient",
    "ReconnectPolicy",
    "ErrorKind",
    "classify_error",
    # Commands
    "COMMANDS",
    "CommandDispatcher",
    "NoteCommandHandlers",
    "ReplyHandle",
    "command_payloads",
    "parse_command",
    # Storage
    "Document",
    "VaultStore",
    "SettingsRepository",
    "SettingsStore",
    # Config and setup
    "BridgeConfig",
    "Settings",
    "load_config",
    "BridgeComponents",
    "setup_bridge",
    # Misc
    "BridgeError",
    "chunk_lines",
]
