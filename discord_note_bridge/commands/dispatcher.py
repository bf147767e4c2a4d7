"""Interaction routing for the note commands.

Every interaction the session receives goes through
:meth:`CommandDispatcher.handle_interaction`. The dispatcher:

- enforces the single-owner rule before anything else runs,
- validates the payload against the command registry before any I/O,
- defers, then hands a :class:`CommandInvocation` to the matching handler,
- answers every command exactly once, even when a handler raises,
- answers every autocomplete request, falling back to an empty list.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord
from discord import app_commands

from ..errors import BridgeError, ValidationError
from ..utils.logger import log_notice
from .registry import (
    COMMANDS,
    MAX_AUTOCOMPLETE_SUGGESTIONS,
    MAX_CHOICE_NAME_LENGTH,
    Command,
    CreateNote,
    ListNotes,
    OutputNote,
    SetChannel,
    SetNotePath,
    command_payloads,
    extract_options,
    focused_option,
    parse_command,
)

if TYPE_CHECKING:
    from ..config import Settings
    from ..vault.store import Document
    from .handlers import NoteCommandHandlers

logger = logging.getLogger(__name__)

NO_PERMISSION = "You don't have permission to use this command."
GENERIC_FAILURE = "An error occurred while processing your command."

# (command, option) pairs that get note path suggestions
AUTOCOMPLETE_TARGETS = frozenset(
    (spec.name, option.name)
    for spec in COMMANDS.values()
    for option in spec.options
    if option.autocomplete
)


class ReplyHandle:
    """Single-answer wrapper around an interaction response.

    Once deferred, :meth:`send` edits the deferred reply instead of opening a
    second response, so callers never have to know which state they are in.
    """

    def __init__(self, interaction: discord.Interaction) -> None:
        self._interaction = interaction
        self.deferred = False
        self.answered = False

    async def defer(self) -> None:
        await self._interaction.response.defer()
        self.deferred = True

    async def send(self, content: str, *, ephemeral: bool = False) -> None:
        if self.deferred:
            await self._interaction.edit_original_response(content=content)
        else:
            await self._interaction.response.send_message(content, ephemeral=ephemeral)
        self.answered = True

    async def follow_up(self, content: str) -> None:
        await self._interaction.followup.send(content, ephemeral=False)

    async def send_chunks(self, chunks: Sequence[str]) -> None:
        """First chunk answers the command, the rest follow in order."""
        if not chunks:
            return
        await self.send(chunks[0])
        for chunk in chunks[1:]:
            await self.follow_up(chunk)


@dataclass
class CommandInvocation:
    """One validated command call."""

    command: Command
    user_id: str
    reply: ReplyHandle


class CommandDispatcher:
    """Routes application command and autocomplete interactions."""

    def __init__(
        self,
        handlers: NoteCommandHandlers,
        settings_provider: Callable[[], Settings],
        list_documents: Callable[[], Awaitable[list[Document]]],
        notify: Callable[[str], None] = log_notice,
    ) -> None:
        self.handlers = handlers
        self._settings = settings_provider
        self._list_documents = list_documents
        self._notify = notify
        self._routes: dict[type, Callable[[CommandInvocation], Awaitable[None]]] = {
            SetNotePath: handlers.set_note_path,
            CreateNote: handlers.create_note,
            ListNotes: handlers.list_notes,
            SetChannel: handlers.set_channel,
            OutputNote: handlers.output_note,
        }

    def _is_authorized(self, user_id: str) -> bool:
        owner_id = self._settings().owner_id
        return not owner_id or user_id == owner_id

    async def handle_interaction(self, interaction: discord.Interaction) -> None:
        """Entry point for ``on_interaction``. Never raises."""
        reply: ReplyHandle | None = None
        try:
            if interaction.type == discord.InteractionType.application_command:
                reply = ReplyHandle(interaction)
                await self.on_command(interaction, reply)
            elif interaction.type == discord.InteractionType.autocomplete:
                await self.on_autocomplete(interaction)
        except Exception:
            logger.exception("Error handling interaction %s", getattr(interaction, "id", "?"))
            if reply is not None and not reply.answered:
                try:
                    await reply.send(GENERIC_FAILURE, ephemeral=True)
                except discord.HTTPException:
                    logger.exception("Failed to send error response")

    async def on_command(self, interaction: discord.Interaction, reply: ReplyHandle) -> None:
        user_id = str(interaction.user.id)
        if not self._is_authorized(user_id):
            logger.warning("Rejected command from non-owner user %s", user_id)
            await reply.send(NO_PERMISSION, ephemeral=True)
            return

        data = interaction.data or {}
        name = str(data.get("name", ""))
        try:
            command = parse_command(name, extract_options(data))
        except ValidationError as exc:
            logger.info("Rejected /%s: %s", name, exc)
            await reply.send(exc.user_message, ephemeral=True)
            return

        invocation = CommandInvocation(command=command, user_id=user_id, reply=reply)
        await reply.defer()
        await self.dispatch(invocation)

    async def dispatch(self, invocation: CommandInvocation) -> None:
        """Run the handler for an already validated invocation."""
        handler = self._routes[type(invocation.command)]
        try:
            await handler(invocation)
        except BridgeError as exc:
            logger.warning("%s failed: %s", type(invocation.command).__name__, exc)
            self._notify(exc.user_message)
            if invocation.reply.answered:
                await invocation.reply.follow_up(exc.user_message)
            else:
                await invocation.reply.send(exc.user_message)

    async def on_autocomplete(self, interaction: discord.Interaction) -> None:
        choices: list[app_commands.Choice[str]] = []
        try:
            if self._is_authorized(str(interaction.user.id)):
                choices = await self.build_suggestions(interaction.data)
        except Exception:
            logger.exception("Failed to build autocomplete suggestions")
            choices = []

        try:
            await interaction.response.autocomplete(choices)
        except discord.HTTPException:
            if not choices:
                raise
            logger.exception("Autocomplete response failed; retrying with no suggestions")
            await interaction.response.autocomplete([])

    async def build_suggestions(self, data: dict | None) -> list[app_commands.Choice[str]]:
        focused = focused_option(data)
        if focused is None:
            return []
        option_name, partial = focused
        command_name = str((data or {}).get("name", ""))
        if (command_name, option_name) not in AUTOCOMPLETE_TARGETS:
            return []

        query = partial.lower()
        documents = await self._list_documents()
        matches = [d.display_path for d in documents if query in d.display_path.lower()]
        return [
            app_commands.Choice(name=_truncate_choice(path), value=path)
            for path in matches[:MAX_AUTOCOMPLETE_SUGGESTIONS]
        ]

    async def register_commands(self, client: discord.Client) -> bool:
        """Upsert the full command table for the application.

        Not retried on failure: the next successful ready registers again.
        """
        client_id = self._settings().client_id
        if not client_id:
            message = "Client ID is not configured; slash commands were not registered."
            logger.warning(message)
            self._notify(message)
            return False

        application_id = client.application_id
        if application_id is None:
            if not client_id.isdigit():
                logger.warning("Client ID %r is not a Discord snowflake", client_id)
                self._notify("Client ID is invalid; slash commands were not registered.")
                return False
            application_id = int(client_id)

        payloads = command_payloads()
        try:
            await client.http.bulk_upsert_global_commands(application_id, payloads)
        except discord.HTTPException as exc:
            logger.exception("Failed to register slash commands")
            self._notify(f"Failed to register slash commands: {exc}")
            return False

        logger.info("Registered %d slash commands", len(payloads))
        self._notify("Slash commands registered.")
        return True


def _truncate_choice(path: str) -> str:
    if len(path) <= MAX_CHOICE_NAME_LENGTH:
        return path
    return path[: MAX_CHOICE_NAME_LENGTH - 3] + "..."
