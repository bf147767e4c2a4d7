"""Tests for VaultStore: filesystem-backed Markdown notes."""

from __future__ import annotations

import pytest

from discord_note_bridge.errors import AlreadyExistsError, DocumentIOError, ValidationError
from discord_note_bridge.vault.store import Document, VaultStore, ensure_markdown_extension


@pytest.fixture
def vault(vault_dir) -> VaultStore:
    return VaultStore(vault_dir)


class TestEnsureMarkdownExtension:
    def test_adds_extension(self):
        assert ensure_markdown_extension("Notes/Daily") == "Notes/Daily.md"

    def test_keeps_existing_extension(self):
        assert ensure_markdown_extension("Notes/Daily.md") == "Notes/Daily.md"


class TestDocument:
    def test_display_path_strips_extension(self):
        assert Document("A/B.md").display_path == "A/B"


class TestVaultStore:
    async def test_create_and_read(self, vault):
        doc = await vault.create_document("Folder/New.md", "hello")
        assert doc == Document("Folder/New.md")
        assert await vault.read_document(doc) == "hello"

    async def test_create_existing_raises(self, vault, vault_dir):
        (vault_dir / "Taken.md").write_text("original")
        with pytest.raises(AlreadyExistsError):
            await vault.create_document("Taken.md")
        assert (vault_dir / "Taken.md").read_text() == "original"

    async def test_append(self, vault):
        doc = await vault.create_document("Log.md")
        await vault.append_document(doc, "a\n")
        await vault.append_document(doc, "b\n")
        assert await vault.read_document(doc) == "a\nb\n"

    async def test_read_missing_raises_io_error(self, vault):
        with pytest.raises(DocumentIOError):
            await vault.read_document(Document("Ghost.md"))

    async def test_create_folder(self, vault, vault_dir):
        await vault.create_folder("A/B")
        assert (vault_dir / "A" / "B").is_dir()
        assert await vault.folder_exists("A/B")

        with pytest.raises(AlreadyExistsError):
            await vault.create_folder("A/B")

    async def test_folder_exists_false(self, vault):
        assert await vault.folder_exists("Nope") is False

    async def test_resolve_by_path(self, vault, vault_dir):
        (vault_dir / "Here.md").write_text("")
        assert await vault.resolve_by_path("Here.md") == Document("Here.md")
        assert await vault.resolve_by_path("Missing.md") is None

    async def test_resolve_directory_is_none(self, vault, vault_dir):
        (vault_dir / "Dir.md").mkdir()
        assert await vault.resolve_by_path("Dir.md") is None

    async def test_list_documents_sorted_and_filtered(self, vault, vault_dir):
        (vault_dir / "b.md").write_text("")
        (vault_dir / "a.md").write_text("")
        (vault_dir / "image.png").write_bytes(b"")
        (vault_dir / "sub").mkdir()
        (vault_dir / "sub" / "c.md").write_text("")
        (vault_dir / ".obsidian").mkdir()
        (vault_dir / ".obsidian" / "workspace.md").write_text("")

        docs = await vault.list_documents()

        assert [d.path for d in docs] == ["a.md", "b.md", "sub/c.md"]

    async def test_list_missing_root(self, tmp_path):
        assert await VaultStore(tmp_path / "missing").list_documents() == []

    @pytest.mark.parametrize("path", ["", "   ", "../outside.md", "/etc/passwd", "a/../../b.md"])
    async def test_rejects_paths_outside_vault(self, vault, path):
        with pytest.raises(ValidationError):
            await vault.create_document(path)
