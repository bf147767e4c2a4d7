"""Slash command registry, dispatcher and handlers."""

from .dispatcher import CommandDispatcher, CommandInvocation, ReplyHandle
from .handlers import NoteCommandHandlers
from .registry import COMMANDS, Command, command_payloads, parse_command

__all__ = [
    "COMMANDS",
    "Command",
    "CommandDispatcher",
    "CommandInvocation",
    "NoteCommandHandlers",
    "ReplyHandle",
    "command_payloads",
    "parse_command",
]
