"""Note command handlers and channel message mirroring.

Handlers receive an invocation that is already authorized, validated and
deferred. They answer through ``invocation.reply`` on success and raise a
:class:`~discord_note_bridge.errors.BridgeError` for anything the user should
be told about; the dispatcher turns those into inline replies.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..discord_ui.chunker import MAX_MESSAGE_LENGTH, attach_trailer, chunk_lines
from ..errors import (
    AlreadyExistsError,
    BridgeError,
    DocumentIOError,
    NotFoundError,
    ValidationError,
)
from ..utils.logger import log_notice
from ..vault.store import Document, ensure_markdown_extension
from .registry import MAX_INPUT_LENGTH

if TYPE_CHECKING:
    import discord

    from ..config import Settings
    from ..vault.store import VaultStore
    from .dispatcher import CommandInvocation

logger = logging.getLogger(__name__)

INVALID_FILENAME_CHARS = re.compile(r'[<>:"|?*]')

INVALID_NOTE_PATH = "Invalid note path."
INVALID_NOTE_NAME = "Invalid note name."
INVALID_CHANNEL_ID = "Invalid channel ID."
NO_FILE_NAME = "Please include a file name after the folder path."
NO_NOTES_FOUND = "No notes found."
EMPTY_NOTE = "(This note is empty.)"

LIST_HEADER = "**Vault notes**\n```\n"
FENCE_OPEN = "```\n"
FENCE_CLOSE = "\n```"


class NoteCommandHandlers:
    """Implements the five note commands against a vault."""

    def __init__(
        self,
        vault: VaultStore,
        settings_provider: Callable[[], Settings],
        save_settings: Callable[[Settings], Awaitable[None]],
        channel_lookup: Callable[[str], Awaitable[discord.TextChannel | None]],
        notify: Callable[[str], None] = log_notice,
        max_length: int = MAX_MESSAGE_LENGTH,
    ) -> None:
        self.vault = vault
        self._settings = settings_provider
        self._save_settings = save_settings
        self._channel_lookup = channel_lookup
        self._notify = notify
        self.max_length = max_length

    def _announce(self, text: str) -> None:
        logger.info(text)
        self._notify(text)

    async def set_note_path(self, invocation: CommandInvocation) -> None:
        path = invocation.command.path.strip()
        final_path = ensure_markdown_extension(path)
        if not path or len(final_path) > MAX_INPUT_LENGTH:
            raise ValidationError(f"Invalid note path {path!r}", user_message=INVALID_NOTE_PATH)
        self.vault.check_path(final_path)

        await self._save_settings(dataclasses.replace(self._settings(), target_note_path=path))

        await invocation.reply.send(f"Target note updated: `{final_path}`")
        self._announce(f"Target note updated: {final_path}")

    async def create_note(self, invocation: CommandInvocation) -> None:
        name = INVALID_FILENAME_CHARS.sub("", invocation.command.name).strip()
        if not name:
            raise ValidationError(
                f"Invalid note name {invocation.command.name!r}", user_message=INVALID_NOTE_NAME
            )

        folder, sep, file_name = name.rpartition("/")
        folder = folder.strip("/")
        if sep and not file_name:
            raise ValidationError(f"No file name in {name!r}", user_message=NO_FILE_NAME)
        full_path = ensure_markdown_extension(f"{folder}/{file_name}" if folder else file_name)

        if folder and not await self.vault.folder_exists(folder):
            try:
                await self.vault.create_folder(folder)
            except AlreadyExistsError:
                logger.debug("Folder %s appeared concurrently", folder)
            except DocumentIOError as exc:
                raise DocumentIOError(
                    str(exc),
                    user_message=f"Failed to create folder `{folder}`: {exc.user_message}",
                ) from exc
            else:
                self._announce(f"Folder created: {folder}")

        if await self.vault.resolve_by_path(full_path) is not None:
            raise AlreadyExistsError(
                f"Note already exists: {full_path}",
                user_message=f"Note already exists: `{full_path}`",
            )

        try:
            await self.vault.create_document(full_path)
        except DocumentIOError as exc:
            raise DocumentIOError(
                str(exc), user_message=f"Failed to create note `{full_path}`: {exc.user_message}"
            ) from exc

        await invocation.reply.send(f"Note created: `{full_path}`")
        self._announce(f"Note created: {full_path}")

    async def list_notes(self, invocation: CommandInvocation) -> None:
        documents = await self.vault.list_documents()
        listing = "\n".join(f"- {d.path}" for d in documents) or NO_NOTES_FOUND

        chunks = chunk_lines(
            listing,
            self.max_length,
            first_prefix=LIST_HEADER,
            prefix=FENCE_OPEN,
            suffix=FENCE_CLOSE,
        )
        target = ensure_markdown_extension(self._settings().target_note_path)
        chunks = attach_trailer(chunks, f"\n**Current target note:** `{target}`", self.max_length)

        await invocation.reply.send_chunks(chunks)
        self._announce(f"Listed {len(documents)} notes in {len(chunks)} message(s)")

    async def set_channel(self, invocation: CommandInvocation) -> None:
        channel_id = invocation.command.channel_id
        if not channel_id.isdigit():
            raise ValidationError(
                f"Invalid channel id {channel_id!r}", user_message=INVALID_CHANNEL_ID
            )

        await self._save_settings(dataclasses.replace(self._settings(), channel_id=channel_id))

        channel = await self._channel_lookup(channel_id)
        channel_name = channel.name if channel is not None else channel_id

        await invocation.reply.send(
            f"Target channel updated: `#{channel_name}` (ID: `{channel_id}`)"
        )
        self._announce(f"Target channel updated: #{channel_name} (ID: {channel_id})")

    async def output_note(self, invocation: CommandInvocation) -> None:
        full_path = ensure_markdown_extension(invocation.command.note_path.strip())
        if len(full_path) > MAX_INPUT_LENGTH:
            raise ValidationError(
                f"Note path too long: {len(full_path)}", user_message=INVALID_NOTE_PATH
            )

        document = await self.vault.resolve_by_path(full_path)
        if document is None:
            raise NotFoundError(
                f"Note not found: {full_path}", user_message=f"Note not found: `{full_path}`"
            )

        try:
            content = await self.vault.read_document(document)
        except DocumentIOError as exc:
            raise DocumentIOError(
                str(exc), user_message=f"Failed to read note `{full_path}`: {exc.user_message}"
            ) from exc

        header = f"**Note `{full_path}`**\n\n"
        if not content:
            await invocation.reply.send(header + EMPTY_NOTE)
            return

        chunks = chunk_lines(content, self.max_length, first_prefix=header)
        await invocation.reply.send_chunks(chunks)
        if len(chunks) > 1:
            self._announce(f"Output note {full_path} in {len(chunks)} messages")
        else:
            self._announce(f"Output note {full_path}")

    async def save_message(self, content: str) -> None:
        """Append a mirrored channel message to the target note."""
        path = ensure_markdown_extension(self._settings().target_note_path)
        try:
            document = await self.vault.resolve_by_path(path)
            if document is None:
                try:
                    document = await self.vault.create_document(path)
                except AlreadyExistsError:
                    document = Document(path)
                else:
                    self._announce(f"New note created for messages: {path}")
            await self.vault.append_document(document, f"{content}\n")
        except BridgeError as exc:
            logger.error("Failed to save message to %s: %s", path, exc)
            self._notify(f"Failed to save message to {path}: {exc.user_message}")
            return
        logger.info("Saved message to %s", path)
