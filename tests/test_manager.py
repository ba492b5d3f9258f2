"""Tests for microlog.manager: optimistic mutations and ordered persistence."""

import asyncio
import json
import re

import pytest

from conftest import MemoryBackend
from microlog.errors import InvalidPathError, InvalidStatusError, StorageIOError
from microlog.journal import Entry, Idea, JournalDocument
from microlog.manager import JournalManager
from microlog.storage import FilesystemVaultStorage

DAY = "2024-01-15"


class TestAppend:
    @pytest.mark.asyncio
    async def test_journal_entry_scenario(self):
        manager = JournalManager(MemoryBackend())
        entry = manager.append("journal", DAY, "hello #work @alice")

        assert manager.document.entries[DAY] == [entry]
        assert entry.text == "hello #work @alice"
        assert entry.highlight is False
        assert re.fullmatch(r"\d{2}:\d{2}", entry.time)
        assert await manager.flush() == []

    @pytest.mark.asyncio
    async def test_in_memory_update_is_immediate(self):
        backend = MemoryBackend(delays=[0.05])
        manager = JournalManager(backend)
        manager.append("log", DAY, "first")
        assert [e.text for e in manager.document.entries[DAY]] == ["first"]
        assert backend.saved == {}
        await manager.flush()
        assert backend.saved["journal/2024-01-15"][0]["text"] == "first"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_is_ignored(self, text):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        assert manager.append("journal", DAY, text) is None
        await manager.flush()
        assert manager.document == JournalDocument.empty()
        assert backend.log == []

    @pytest.mark.asyncio
    async def test_undated_categories_ignore_date(self):
        manager = JournalManager(MemoryBackend())
        manager.append("notes", DAY, "a note")
        manager.append("quotes", None, "a quote")
        assert [e.text for e in manager.document.notes] == ["a note"]
        assert [e.text for e in manager.document.wisdom] == ["a quote"]

    @pytest.mark.asyncio
    async def test_ideas_start_new(self):
        manager = JournalManager(MemoryBackend())
        idea = manager.append("ideas", None, "build a boat")
        assert isinstance(idea, Idea)
        assert idea.status == "new"

    @pytest.mark.asyncio
    async def test_ids_are_unique_and_increasing(self):
        manager = JournalManager(MemoryBackend())
        ids = [manager.append("journal", DAY, f"entry {i}").id for i in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50

    @pytest.mark.asyncio
    async def test_dated_category_needs_date(self):
        manager = JournalManager(MemoryBackend())
        with pytest.raises(ValueError):
            manager.append("dreams", None, "flying")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("day", ["../../etc/passwd", "2024/01/15", "2024-1-5", "2024-02-30", "20240115", ""])
    async def test_malformed_date_rejected_before_mutation(self, day):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        with pytest.raises(InvalidPathError):
            manager.append("journal", day, "x")
        with pytest.raises(InvalidPathError):
            manager.toggle_highlight(1, day, "dreams")
        with pytest.raises(InvalidPathError):
            manager.delete(1, day, "journal")
        assert await manager.flush() == []
        assert manager.document == JournalDocument.empty()
        assert backend.log == []


class TestOrdering:
    @pytest.mark.asyncio
    async def test_later_persist_never_overtaken(self):
        # First save is slow, second fast: without chaining the stale
        # single-entry payload would land last.
        backend = MemoryBackend(delays=[0.05, 0])
        manager = JournalManager(backend)
        manager.append("journal", DAY, "E1")
        manager.append("journal", DAY, "E2")
        await manager.flush()

        assert backend.log == [("journal/2024-01-15", ["E1"]), ("journal/2024-01-15", ["E1", "E2"])]
        assert [e["text"] for e in backend.saved["journal/2024-01-15"]] == ["E1", "E2"]

    @pytest.mark.asyncio
    async def test_different_slices_run_independently(self):
        backend = MemoryBackend(delays=[0.05, 0])
        manager = JournalManager(backend)
        manager.append("journal", DAY, "slow")
        manager.append("notes", None, "fast")
        await manager.flush()
        assert [key for key, _ in backend.log] == ["notes", "journal/2024-01-15"]

    @pytest.mark.asyncio
    async def test_append_order_survives_reload_from_vault(self, tmp_path):
        vault = FilesystemVaultStorage(tmp_path / "vault")
        await vault.initialize()
        manager = JournalManager(vault)
        manager.append("journal", DAY, "E1")
        manager.append("journal", DAY, "E2")
        assert await manager.flush() == []

        reloaded = await JournalManager(vault).reload()
        assert [e.text for e in reloaded.entries[DAY]] == ["E1", "E2"]


class TestHighlightAndDelete:
    @pytest.mark.asyncio
    async def test_toggle_highlight(self):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        entry = manager.append("journal", DAY, "star me")
        assert manager.toggle_highlight(entry.id, DAY, "journal") is True
        assert entry.highlight is True
        await manager.flush()
        assert backend.saved["journal/2024-01-15"][0]["highlight"] is True

        assert manager.toggle_highlight(entry.id, DAY, "journal") is True
        assert entry.highlight is False

    @pytest.mark.asyncio
    async def test_toggle_unknown_is_noop(self):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        assert manager.toggle_highlight(123, DAY, "journal") is False
        assert manager.toggle_highlight(123, None, "notes") is False
        await manager.flush()
        assert backend.log == []

    @pytest.mark.asyncio
    async def test_delete_last_entry_leaves_empty_sequence(self, tmp_path):
        vault = FilesystemVaultStorage(tmp_path / "vault")
        await vault.initialize()
        manager = JournalManager(vault)
        entry = manager.append("dreams", DAY, "falling")
        assert manager.delete(entry.id, DAY, "dreams") is True
        assert manager.document.dreams == {DAY: []}
        await manager.flush()
        assert json.loads((tmp_path / "vault" / "dreams" / f"{DAY}.json").read_text()) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_is_noop(self):
        manager = JournalManager(MemoryBackend())
        manager.append("notes", None, "keep")
        assert manager.delete(999, None, "notes") is False
        assert manager.delete(999, "2030-01-01", "journal") is False
        assert "2030-01-01" not in manager.document.entries
        assert len(manager.document.notes) == 1


class TestIdeaStatus:
    @pytest.mark.asyncio
    async def test_set_status(self):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        idea = manager.append("ideas", None, "boat")
        assert manager.set_idea_status(idea.id, "in-progress") is True
        assert idea.status == "in-progress"
        await manager.flush()
        assert backend.saved["ideas"][0]["status"] == "in-progress"

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self):
        manager = JournalManager(MemoryBackend())
        idea = manager.append("ideas", None, "boat")
        with pytest.raises(InvalidStatusError):
            manager.set_idea_status(idea.id, "archived")
        assert idea.status == "new"

    def test_unknown_idea(self):
        manager = JournalManager(MemoryBackend())
        assert manager.set_idea_status(42, "done") is False


class TestReloadAndReset:
    @pytest.mark.asyncio
    async def test_reload_replaces_state(self, sample_document):
        backend = MemoryBackend()
        backend.document = sample_document
        manager = JournalManager(backend)
        manager.document.notes.append(Entry(id=99, text="stale"))
        assert await manager.reload() == sample_document
        assert manager.document is sample_document
        assert manager.loaded

    @pytest.mark.asyncio
    async def test_reset_keeps_storage(self):
        backend = MemoryBackend()
        manager = JournalManager(backend)
        manager.append("notes", None, "persisted")
        await manager.flush()
        manager.reset()
        assert manager.document == JournalDocument.empty()
        assert not manager.loaded
        assert backend.saved["notes"][0]["text"] == "persisted"

    @pytest.mark.asyncio
    async def test_reset_during_reload_discards_result(self, sample_document):
        backend = MemoryBackend(load_delay=0.05)
        backend.document = sample_document
        manager = JournalManager(backend)
        task = asyncio.create_task(manager.reload())
        await asyncio.sleep(0)
        manager.reset()
        await task
        assert manager.document == JournalDocument.empty()
        assert not manager.loaded

    @pytest.mark.asyncio
    async def test_reload_waits_for_pending_persists(self, tmp_path):
        vault = FilesystemVaultStorage(tmp_path / "vault")
        manager = JournalManager(vault)
        manager.append("wisdom", None, "patience")
        document = await manager.reload()
        assert [e.text for e in document.wisdom] == ["patience"]


class TestPersistFailures:
    @pytest.mark.asyncio
    async def test_failure_is_reported_not_rolled_back(self):
        seen = []
        backend = MemoryBackend(fail_with=StorageIOError("disk full"))
        manager = JournalManager(backend, on_persist_error=seen.append)
        manager.append("journal", DAY, "kept in memory")

        failures = await manager.flush()
        assert len(failures) == 1
        assert failures[0].reason == "disk full"
        assert str(failures[0].slice) == "journal/2024-01-15"
        assert seen == failures
        assert manager.document.entries[DAY][0].text == "kept in memory"
        assert await manager.flush() == []

    @pytest.mark.asyncio
    async def test_failure_does_not_block_later_persists(self):
        backend = MemoryBackend(fail_with=StorageIOError("flaky"))
        manager = JournalManager(backend)
        manager.append("notes", None, "one")
        await asyncio.sleep(0.01)
        backend.fail_with = None
        manager.append("notes", None, "two")
        failures = await manager.flush()
        assert len(failures) == 1
        assert [e["text"] for e in backend.saved["notes"]] == ["one", "two"]
