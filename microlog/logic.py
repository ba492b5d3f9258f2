# -*- coding: utf-8 -*-
"""Application logic that composes config, gate, storage and manager.

This module provides the public API used by the UI. It does not contain any
Textual UI code. Errors from the core never escape: every operation returns
an :class:`Outcome` carrying success or a human-readable reason.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union

from loguru import logger

from . import config as config_mod
from .config import REMOTE_STORAGE, BROWSER_STORAGE, Capabilities, ConfigStore
from .errors import MicrologError, NoKeyError
from .fs import FileSystem
from .gate import GateState, PassphraseGate
from .insights import Insights, get_insights
from .journal import JournalDocument
from .manager import JournalManager, PersistFailure
from .storage import (
    FilesystemVaultStorage,
    RemoteDocumentStore,
    StorageBackend,
    create_backend,
)
from .tags import TagSummary, extract_people, extract_tags


@dataclass
class Outcome:
    """What the presentation layer sees: success, or a reason it failed."""

    ok: bool
    reason: str = ""
    value: Any = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(True, "", value)

    @classmethod
    def failure(cls, error: Union[str, Exception]) -> "Outcome":
        return cls(False, str(error))


class JournalService:
    """One journal session: storage selection, unlock state and the live model."""

    def __init__(
        self,
        config: Optional[ConfigStore] = None,
        capabilities: Capabilities = Capabilities(),
        db_path: Optional[Union[str, Path]] = None,
        fs: Optional[FileSystem] = None,
        record_store: Optional[RemoteDocumentStore] = None,
        on_persist_error: Optional[Callable[[PersistFailure], None]] = None,
    ) -> None:
        self.config = config or ConfigStore()
        self.capabilities = capabilities
        self.db_path = db_path or config_mod.db_path()
        self.gate = PassphraseGate(self.config)
        self._fs = fs
        self._record_store = record_store
        self._on_persist_error = on_persist_error
        self.manager: Optional[JournalManager] = None

    # -----------------------------------------------------------------
    # State queries
    # -----------------------------------------------------------------

    @property
    def storage_location(self) -> Optional[str]:
        return self.config.get().get("storage_location")

    def needs_setup(self) -> bool:
        return self.capabilities.native_shell and not self.storage_location

    def requires_passphrase(self) -> bool:
        return self.capabilities.native_shell and self.storage_location == REMOTE_STORAGE

    def is_new_account(self) -> bool:
        return self.gate.is_new_account()

    @property
    def is_locked(self) -> bool:
        return self.requires_passphrase() and self.gate.state is GateState.LOCKED

    @property
    def document(self) -> JournalDocument:
        return self.manager.document if self.manager else JournalDocument.empty()

    # -----------------------------------------------------------------
    # Storage location
    # -----------------------------------------------------------------

    async def configure_storage(self, location: str) -> Outcome:
        """Point the journal at a vault folder, browser storage or the remote store."""
        location = (location or "").strip()
        if not location:
            return Outcome.failure("storage location is required")
        try:
            if location not in (BROWSER_STORAGE, REMOTE_STORAGE):
                await FilesystemVaultStorage(location, fs=self._fs).initialize()
            self.config.set(storage_location=location)
            logger.info("storage location set to {}", location)
        except MicrologError as exc:
            return Outcome.failure(exc)
        outcome = await self.open()
        if not outcome.ok and self.is_locked:
            # Remote storage: the document loads once the passphrase is entered.
            return Outcome.success()
        return outcome

    async def clear_storage_location(self) -> Outcome:
        """Forget the location. Vault files stay; browser storage is wiped."""
        try:
            if self.manager is not None:
                await self.manager.flush()
                await self.manager.backend.clear()
                self.manager.reset()
            self.config.set(storage_location=None)
        except MicrologError as exc:
            return Outcome.failure(exc)
        self.gate.lock()
        return Outcome.success()

    # -----------------------------------------------------------------
    # Session
    # -----------------------------------------------------------------

    def _build_backend(self) -> StorageBackend:
        return create_backend(
            self.config.get(),
            self.capabilities,
            self.db_path,
            key_source=lambda: self.gate.key,
            fs=self._fs,
            record_store=self._record_store,
        )

    async def open(self) -> Outcome:
        """Select the backend and load the document (if not locked)."""
        try:
            backend = self._build_backend()
            if self.manager is None:
                self.manager = JournalManager(backend, on_persist_error=self._on_persist_error)
            else:
                await self.manager.use_backend(backend)
            if self.is_locked:
                return Outcome.failure(NoKeyError("journal is locked"))
            document = await self.manager.reload()
        except MicrologError as exc:
            logger.warning("cannot open journal: {}", exc)
            return Outcome.failure(exc)
        return Outcome.success(document)

    async def unlock(self, passphrase: str) -> Outcome:
        """Verify (or create) the passphrase, then load and decrypt."""
        try:
            unlocked = await self.gate.unlock(passphrase)
        except MicrologError as exc:
            return Outcome.failure(exc)
        if not unlocked:
            return Outcome.failure("unlock was cancelled")
        outcome = await self.open()
        if not outcome.ok:
            self.gate.lock()
            return Outcome.failure(f"cannot unlock: {outcome.reason}")
        return outcome

    async def lock(self) -> Outcome:
        """Logout: flush pending writes, drop the document and the key."""
        failures: List[PersistFailure] = []
        if self.manager is not None:
            failures = await self.manager.flush()
            self.manager.reset()
        self.gate.lock()
        if failures:
            return Outcome.failure("; ".join(f.reason for f in failures))
        return Outcome.success()

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def _require_manager(self) -> JournalManager:
        if self.manager is None or not self.manager.loaded:
            raise NoKeyError("journal is not open")
        return self.manager

    def add_entry(self, category: str, date: Optional[str], text: str) -> Outcome:
        try:
            entry = self._require_manager().append(category, date, text)
        except (MicrologError, ValueError) as exc:
            return Outcome.failure(exc)
        if entry is None:
            return Outcome.failure("entry text is empty")
        return Outcome.success(entry)

    def toggle_highlight(self, entry_id: int, date: Optional[str], category: str) -> Outcome:
        try:
            found = self._require_manager().toggle_highlight(entry_id, date, category)
        except (MicrologError, ValueError) as exc:
            return Outcome.failure(exc)
        return Outcome.success(found)

    def delete_item(self, entry_id: int, date: Optional[str], category: str) -> Outcome:
        try:
            found = self._require_manager().delete(entry_id, date, category)
        except (MicrologError, ValueError) as exc:
            return Outcome.failure(exc)
        return Outcome.success(found)

    def update_idea_status(self, entry_id: int, status: str) -> Outcome:
        try:
            found = self._require_manager().set_idea_status(entry_id, status)
        except MicrologError as exc:
            return Outcome.failure(exc)
        return Outcome.success(found)

    async def flush(self) -> Outcome:
        if self.manager is None:
            return Outcome.success()
        failures = await self.manager.flush()
        if failures:
            return Outcome.failure("; ".join(f.reason for f in failures))
        return Outcome.success()

    # -----------------------------------------------------------------
    # Derived views
    # -----------------------------------------------------------------

    def tags(self) -> List[Tuple[str, TagSummary]]:
        return extract_tags(self.document)

    def people(self) -> List[Tuple[str, TagSummary]]:
        return extract_people(self.document)

    def insights(self) -> Insights:
        return get_insights(self.document)

    @property
    def language(self) -> str:
        return str(self.config.get().get("language") or "en")

    def set_language(self, language: str) -> Outcome:
        try:
            self.config.set(language=language)
        except MicrologError as exc:
            return Outcome.failure(exc)
        return Outcome.success()
