"""Slash command table.

The same table is used to register the commands with Discord (as a bulk
upsert payload) and to validate incoming invocations. Validation turns the
loosely typed interaction payload into one of the frozen command variants
below, so handlers never touch raw option dicts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

import discord

from ..errors import UnknownCommandError, ValidationError

SET_NOTE_PATH = "setnote"
CREATE_NOTE = "createnote"
LIST_NOTE = "listnote"
SET_CHANNEL = "setchannel"
OUTPUT_NOTE = "outputnote"

MAX_INPUT_LENGTH = 255
MAX_AUTOCOMPLETE_SUGGESTIONS = 25
# Discord rejects autocomplete choice names longer than this
MAX_CHOICE_NAME_LENGTH = 100


@dataclass(frozen=True)
class SetNotePath:
    path: str


@dataclass(frozen=True)
class CreateNote:
    name: str


@dataclass(frozen=True)
class ListNotes:
    pass


@dataclass(frozen=True)
class SetChannel:
    channel_id: str


@dataclass(frozen=True)
class OutputNote:
    note_path: str


Command = Union[SetNotePath, CreateNote, ListNotes, SetChannel, OutputNote]


@dataclass(frozen=True)
class OptionSpec:
    name: str
    description: str
    type: discord.AppCommandOptionType
    required: bool = True
    autocomplete: bool = False
    # Field on the command variant; defaults to the option name
    attribute: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "required": self.required,
        }
        if self.autocomplete:
            payload["autocomplete"] = True
        return payload


@dataclass(frozen=True)
class CommandSpec:
    name: str
    description: str
    variant: type
    options: tuple[OptionSpec, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": discord.AppCommandType.chat_input.value,
        }
        if self.options:
            payload["options"] = [o.to_payload() for o in self.options]
        return payload

    def option(self, name: str) -> OptionSpec | None:
        return next((o for o in self.options if o.name == name), None)


_STRING = discord.AppCommandOptionType.string
_CHANNEL = discord.AppCommandOptionType.channel

COMMANDS: dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            name=SET_NOTE_PATH,
            description="Set the note path for saving Discord messages",
            variant=SetNotePath,
            options=(
                OptionSpec(
                    "path",
                    "Full path to the note. Example: Notes/Discord",
                    _STRING,
                    autocomplete=True,
                ),
            ),
        ),
        CommandSpec(
            name=CREATE_NOTE,
            description="Create a note at the specified location",
            variant=CreateNote,
            options=(
                OptionSpec(
                    "name",
                    "Path and name of the new note. Example: Folder/NewNote",
                    _STRING,
                ),
            ),
        ),
        CommandSpec(
            name=LIST_NOTE,
            description="List all notes in the vault",
            variant=ListNotes,
        ),
        CommandSpec(
            name=SET_CHANNEL,
            description="Set the channel whose messages are saved to the note",
            variant=SetChannel,
            options=(
                OptionSpec(
                    "channel",
                    "Channel to monitor for messages",
                    _CHANNEL,
                    attribute="channel_id",
                ),
            ),
        ),
        CommandSpec(
            name=OUTPUT_NOTE,
            description="Output the contents of the specified note to Discord",
            variant=OutputNote,
            options=(
                OptionSpec(
                    "note_path",
                    "Path to the note you want to output. Example: Folder/Discord",
                    _STRING,
                    autocomplete=True,
                ),
            ),
        ),
    )
}


def command_payloads() -> list[dict[str, Any]]:
    """Registration payload for every command, in table order."""
    return [spec.to_payload() for spec in COMMANDS.values()]


def extract_options(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Flatten the top-level ``options`` list of an interaction payload."""
    if not data:
        return {}
    return {
        opt["name"]: opt.get("value")
        for opt in data.get("options") or ()
        if isinstance(opt, Mapping) and "name" in opt
    }


def focused_option(data: Mapping[str, Any] | None) -> tuple[str, str] | None:
    """Return ``(name, partial value)`` of the option being typed, if any."""
    for opt in (data or {}).get("options") or ():
        if isinstance(opt, Mapping) and opt.get("focused"):
            return opt.get("name", ""), str(opt.get("value") or "")
    return None


def parse_command(name: str, options: Mapping[str, Any]) -> Command:
    """Validate a raw invocation against the table.

    Raises:
        UnknownCommandError: ``name`` is not a registered command.
        ValidationError: a required option is missing or too long.
    """
    spec = COMMANDS.get(name)
    if spec is None:
        raise UnknownCommandError(name)

    values: dict[str, str] = {}
    for opt in spec.options:
        raw = options.get(opt.name)
        if raw is None or raw == "":
            if opt.required:
                raise ValidationError(
                    f"/{name}: missing option {opt.name!r}",
                    user_message=f"Missing value for `{opt.name}`.",
                )
            continue
        value = str(raw)
        if len(value) > MAX_INPUT_LENGTH:
            raise ValidationError(
                f"/{name}: option {opt.name!r} is {len(value)} chars",
                user_message=f"`{opt.name}` must be at most {MAX_INPUT_LENGTH} characters.",
            )
        values[opt.attribute or opt.name] = value

    return spec.variant(**values)
