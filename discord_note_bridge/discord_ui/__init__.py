"""Discord-facing rendering helpers."""

from .chunker import MAX_MESSAGE_LENGTH, attach_trailer, chunk_lines, iter_chunks

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "attach_trailer",
    "chunk_lines",
    "iter_chunks",
]
