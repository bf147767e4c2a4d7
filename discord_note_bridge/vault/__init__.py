"""Markdown vault used as the bridge's document store."""

from .store import Document, VaultStore, ensure_markdown_extension

__all__ = ["Document", "VaultStore", "ensure_markdown_extension"]
