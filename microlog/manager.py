# -*- coding: utf-8 -*-
"""Journal model manager.

Owns the live :class:`JournalDocument`. Every mutation is applied to memory
immediately and then persisted in the background through the storage
backend. Persists for the same slice are chained one behind the other, so a
later write of a date file can never be overtaken by an earlier one.

Mutations must be called from inside the running event loop.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set, Union

from loguru import logger

from .errors import InvalidPathError, InvalidStatusError, MicrologError
from .journal import (
    Category,
    Entry,
    Idea,
    IdeaStatus,
    JournalDocument,
    Slice,
    clock_time,
    is_day,
    next_entry_id,
)
from .storage import StorageBackend

CategoryLike = Union[str, Category]


@dataclass
class PersistFailure:
    slice: Slice
    error: MicrologError

    @property
    def reason(self) -> str:
        return str(self.error)


class JournalManager:
    """Optimistic in-memory journal with ordered background persistence."""

    def __init__(
        self,
        backend: StorageBackend,
        on_persist_error: Optional[Callable[[PersistFailure], None]] = None,
    ) -> None:
        self._backend = backend
        self._on_persist_error = on_persist_error
        self._document = JournalDocument.empty()
        self._tails: Dict[str, asyncio.Task] = {}
        self._pending: Set[asyncio.Task] = set()
        self._failures: List[PersistFailure] = []
        self._generation = 0
        self.loaded = False

    @property
    def document(self) -> JournalDocument:
        return self._document

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def append(self, category: CategoryLike, date: Optional[str], text: str) -> Optional[Entry]:
        """Add an entry; blank text is ignored and returns None."""
        if not text or not text.strip():
            return None
        slc = self._slice(category, date)
        entry_id, now = next_entry_id(), clock_time()
        if slc.category is Category.IDEAS:
            entry: Entry = Idea(id=entry_id, text=text, time=now, status=IdeaStatus.NEW.value)
        else:
            entry = Entry(id=entry_id, text=text, time=now)
        self._document.items(slc).append(entry)
        self._persist(slc)
        return entry

    def toggle_highlight(self, entry_id: int, date: Optional[str], category: CategoryLike) -> bool:
        slc = self._slice(category, date)
        entry = self._document.find(slc, entry_id)
        if entry is None:
            return False
        entry.highlight = not entry.highlight
        self._persist(slc)
        return True

    def delete(self, entry_id: int, date: Optional[str], category: CategoryLike) -> bool:
        """Remove an entry. An emptied date keeps its (empty) sequence."""
        slc = self._slice(category, date)
        container = getattr(self._document, slc.category.field_name)
        items = container.get(slc.date) if slc.category.dated else container
        if not items:
            return False
        for index, entry in enumerate(items):
            if entry.id == entry_id:
                del items[index]
                self._persist(slc)
                return True
        return False

    def set_idea_status(self, entry_id: int, status: str) -> bool:
        try:
            value = IdeaStatus(status).value
        except ValueError:
            raise InvalidStatusError(f"invalid idea status: {status!r}") from None
        slc = Slice(Category.IDEAS)
        idea = self._document.find(slc, entry_id)
        if idea is None:
            return False
        idea.status = value
        self._persist(slc)
        return True

    # -----------------------------------------------------------------
    # Whole-document operations
    # -----------------------------------------------------------------

    async def reload(self) -> JournalDocument:
        """Replace the in-memory document with a fresh ``load()``.

        Pending persists are drained first. If ``reset()`` runs while the load
        is in flight, the loaded document is discarded.
        """
        generation = self._generation
        await self._drain()
        document = await self._backend.load()
        if generation != self._generation:
            logger.debug("reload superseded by reset; result discarded")
            return self._document
        self._document = document
        self.loaded = True
        return document

    def reset(self) -> None:
        """Forget the in-memory document; persisted data is left alone."""
        self._generation += 1
        self._document = JournalDocument.empty()
        self.loaded = False

    async def use_backend(self, backend: StorageBackend) -> None:
        """Switch storage after the location changed. Call ``reload()`` next."""
        await self._drain()
        self._backend = backend
        self.reset()

    async def flush(self) -> List[PersistFailure]:
        """Wait for every pending persist; return and clear recorded failures."""
        await self._drain()
        failures, self._failures = self._failures, []
        return failures

    # -----------------------------------------------------------------
    # Persistence plumbing
    # -----------------------------------------------------------------

    @staticmethod
    def _slice(category: CategoryLike, date: Optional[str]) -> Slice:
        cat = Category.parse(category)
        if not cat.dated:
            return Slice(cat)
        if date is not None and not is_day(date):
            raise InvalidPathError(f"not a YYYY-MM-DD date: {date!r}")
        return Slice(cat, date)

    async def _drain(self) -> None:
        while self._pending:
            await asyncio.wait(set(self._pending))

    def _persist(self, slc: Slice) -> None:
        key = self._backend.slice_key(slc)
        payload = self._backend.prepare(self._document, slc)
        previous = self._tails.get(key)
        task = asyncio.get_running_loop().create_task(
            self._save_after(previous, self._backend, slc, payload)
        )
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(partial(self._forget, key))

    def _forget(self, key: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(key) is task:
            del self._tails[key]

    async def _save_after(
        self,
        previous: Optional[asyncio.Task],
        backend: StorageBackend,
        slc: Slice,
        payload: Any,
    ) -> None:
        if previous is not None:
            await asyncio.wait({previous})
        try:
            await backend.save(slc, payload)
        except MicrologError as exc:
            failure = PersistFailure(slc, exc)
            self._failures.append(failure)
            logger.warning("persist of {} failed: {}", slc, exc)
            if self._on_persist_error is not None:
                self._on_persist_error(failure)
