"""Filesystem-backed Markdown vault.

Documents are addressed by vault-relative POSIX paths (``Folder/Note.md``).
Blocking filesystem calls run in a worker thread so the event loop keeps
serving gateway events.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from ..errors import AlreadyExistsError, DocumentIOError, ValidationError

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


@dataclass(frozen=True)
class Document:
    """Handle to a note in the vault."""

    path: str

    @property
    def display_path(self) -> str:
        """Path without the ``.md`` extension."""
        return self.path.removesuffix(MARKDOWN_SUFFIX)


def ensure_markdown_extension(path: str) -> str:
    return path if path.endswith(MARKDOWN_SUFFIX) else f"{path}{MARKDOWN_SUFFIX}"


class VaultStore:
    """Create, read, append and list Markdown notes under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def check_path(self, path: str) -> None:
        """Raise ValidationError if *path* is not a vault-relative path."""
        self._resolve(path)

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path.strip())
        if not relative.parts or relative.is_absolute() or ".." in relative.parts:
            raise ValidationError(
                f"Path escapes the vault: {path!r}", user_message=f"Invalid path: `{path}`"
            )
        return self.root.joinpath(*relative.parts)

    async def create_document(self, path: str, content: str = "") -> Document:
        target = self._resolve(path)

        def _create() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("x", encoding="utf-8") as fh:
                fh.write(content)

        try:
            await asyncio.to_thread(_create)
        except FileExistsError:
            raise AlreadyExistsError(
                f"Note already exists: {path}", user_message=f"Note already exists: `{path}`"
            ) from None
        except OSError as exc:
            raise DocumentIOError(f"Failed to create {path}: {exc}", user_message=str(exc)) from exc
        logger.info("Created note %s", path)
        return Document(path)

    async def read_document(self, document: Document) -> str:
        target = self._resolve(document.path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except OSError as exc:
            raise DocumentIOError(
                f"Failed to read {document.path}: {exc}", user_message=str(exc)
            ) from exc

    async def append_document(self, document: Document, text: str) -> None:
        target = self._resolve(document.path)

        def _append() -> None:
            with target.open("a", encoding="utf-8") as fh:
                fh.write(text)

        try:
            await asyncio.to_thread(_append)
        except OSError as exc:
            raise DocumentIOError(
                f"Failed to append to {document.path}: {exc}", user_message=str(exc)
            ) from exc

    async def create_folder(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=False)
        except FileExistsError:
            raise AlreadyExistsError(
                f"Folder already exists: {path}", user_message=f"Folder already exists: `{path}`"
            ) from None
        except OSError as exc:
            raise DocumentIOError(
                f"Failed to create folder {path}: {exc}", user_message=str(exc)
            ) from exc
        logger.info("Created folder %s", path)

    async def folder_exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(target.is_dir)

    async def resolve_by_path(self, path: str) -> Document | None:
        target = self._resolve(path)
        if not await asyncio.to_thread(target.is_file):
            return None
        return Document(PurePosixPath(*target.relative_to(self.root).parts).as_posix())

    async def list_documents(self) -> list[Document]:
        """Snapshot of every Markdown note in the vault, sorted by path."""

        def _scan() -> list[Document]:
            if not self.root.is_dir():
                return []
            documents = []
            for p in self.root.rglob(f"*{MARKDOWN_SUFFIX}"):
                relative = p.relative_to(self.root)
                # Skip .obsidian/, .trash/ and similar
                if any(part.startswith(".") for part in relative.parts) or not p.is_file():
                    continue
                documents.append(Document(relative.as_posix()))
            return sorted(documents, key=lambda d: d.path)

        return await asyncio.to_thread(_scan)
