"""Line-respecting message chunker for Discord's 2000-character limit.

Text is only ever split between lines. Each chunk may be wrapped in fixed
decorations (a heading on the first chunk, code-fence markers on every
chunk); the decorations count toward the limit.

A single line that cannot fit even on its own is emitted as its own
oversized chunk rather than being cut, so no content is ever lost.
"""

from __future__ import annotations

from collections.abc import Iterator

DISCORD_MAX_CHARS = 2000
# Leave headroom below the hard limit
MAX_MESSAGE_LENGTH = DISCORD_MAX_CHARS - 10


def iter_chunks(
    text: str,
    max_length: int = MAX_MESSAGE_LENGTH,
    *,
    first_prefix: str | None = None,
    prefix: str = "",
    suffix: str = "",
) -> Iterator[str]:
    """Yield chunks of *text*, each at most *max_length* characters.

    Args:
        text: Text to split. Empty text yields nothing.
        max_length: Maximum length of a chunk including its decorations.
        first_prefix: Prefix for the first chunk only. Defaults to *prefix*.
        prefix: Prefix for every following chunk.
        suffix: Suffix for every chunk.

    Joining the chunk bodies (with decorations removed) with ``"\\n"`` gives
    back *text* exactly.
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    if not text:
        return

    lead = prefix if first_prefix is None else first_prefix
    body: list[str] = []
    body_len = 0

    for line in text.split("\n"):
        grown = body_len + len(line) + (1 if body else 0)
        if body and len(lead) + grown + len(suffix) > max_length:
            yield lead + "\n".join(body) + suffix
            lead = prefix
            body = [line]
            body_len = len(line)
        else:
            body.append(line)
            body_len = grown

    yield lead + "\n".join(body) + suffix


def chunk_lines(text: str, max_length: int = MAX_MESSAGE_LENGTH, **wrappers: str) -> list[str]:
    """List form of :func:`iter_chunks`."""
    return list(iter_chunks(text, max_length, **wrappers))


def attach_trailer(
    chunks: list[str],
    trailer: str,
    max_length: int = MAX_MESSAGE_LENGTH,
) -> list[str]:
    """Append *trailer* to the last chunk if it fits, else as a chunk of its own."""
    result = list(chunks)
    if result and len(result[-1]) + len(trailer) <= max_length:
        result[-1] += trailer
    else:
        result.append(trailer)
    return result
