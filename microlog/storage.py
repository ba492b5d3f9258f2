# -*- coding: utf-8 -*-
"""Storage backends: translate a :class:`JournalDocument` to and from disk.

Three variants share one contract (``load`` / ``prepare`` / ``save``):

* :class:`FilesystemVaultStorage`  one JSON file per date or collection
* :class:`BrowserStorage`          whole document as one JSON blob in a kv store
* :class:`EncryptedRemoteStorage`  whole document encrypted into one remote record

The backend is picked once by :func:`create_backend` and handed to the
journal manager, which never checks which variant it holds.
"""
from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

import aiosqlite
from loguru import logger

from . import crypto, db
from .config import BROWSER_STORAGE, REMOTE_STORAGE, Capabilities
from .crypto import EncryptionKey
from .errors import (
    DecryptionError,
    InvalidPathError,
    NoKeyError,
    NotConfiguredError,
    StorageIOError,
)
from .fs import FileSystem, LocalFileSystem
from .journal import Category, Entry, Idea, JournalDocument, Slice, is_day

KeySource = Callable[[], Optional[EncryptionKey]]

VAULT_VERSION = "1.0.0"
VAULT_DIRS = ("journal", "dreams", "notes", "ideas", "wisdom", ".microlog")
VAULT_CONFIG = ".microlog/config.json"
DATED_DIRS = {Category.JOURNAL: "journal", Category.DREAMS: "dreams"}
COLLECTION_FILES = {
    Category.NOTES: "notes/notes.json",
    Category.IDEAS: "ideas/ideas.json",
    Category.WISDOM: "wisdom/wisdom.json",
}

BROWSER_ORIGIN = "microlog"
BROWSER_KEY = "microlog-data"
DOCUMENT_SLICE = "document"


# ---------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------

class StorageBackend(ABC):
    """Uniform load/save contract used by the journal manager."""

    name = "abstract"

    @abstractmethod
    async def load(self) -> JournalDocument:
        """Return the persisted document, or an empty one on first run."""

    @abstractmethod
    async def save(self, slc: Slice, payload: Any) -> None:
        """Persist a payload produced by :meth:`prepare` for *slc*."""

    def prepare(self, document: JournalDocument, slc: Slice) -> Any:
        """Snapshot what :meth:`save` needs, taken at mutation time."""
        return document.to_dict()

    def slice_key(self, slc: Slice) -> str:
        """Persists sharing a key are serialized; whole-blob backends share one."""
        return DOCUMENT_SLICE

    async def clear(self) -> None:
        """Called when the storage location is cleared. Default: keep data."""


# ---------------------------------------------------------------------
# Filesystem vault
# ---------------------------------------------------------------------

def sanitize_relative(relative: Any) -> str:
    """Reject traversal, NUL bytes and absolute paths; return the path unchanged."""
    if not isinstance(relative, str) or not relative:
        raise InvalidPathError("path must be a non-empty string")
    if "\x00" in relative:
        raise InvalidPathError("path contains a null byte")
    if ".." in relative:
        raise InvalidPathError(f"path traversal is not allowed: {relative!r}")
    if relative.startswith("/") or relative.startswith("\\"):
        raise InvalidPathError(f"absolute paths are not allowed: {relative!r}")
    return relative


class FilesystemVaultStorage(StorageBackend):
    """Vault directory with one file per date (journal, dreams) or collection.

    Only the changed slice is rewritten on save. Files are never deleted by
    the backend: the vault belongs to the user.
    """

    name = "vault"

    def __init__(self, root: Optional[Union[str, Path]], fs: Optional[FileSystem] = None) -> None:
        self.root = os.path.abspath(os.path.expanduser(str(root))) if root else None
        self.fs: FileSystem = fs or LocalFileSystem()

    # -- path safety --------------------------------------------------

    def resolve(self, relative: str) -> str:
        """Map a vault-relative path to an absolute one, or raise.

        Pure string work: nothing here touches the filesystem.
        """
        if self.root is None:
            raise NotConfiguredError("no vault configured")
        try:
            sanitized = sanitize_relative(relative)
        except InvalidPathError:
            logger.warning("rejected vault path {!r}", relative)
            raise
        full = os.path.abspath(os.path.join(self.root, sanitized))
        if full != self.root and not full.startswith(self.root + os.sep):
            logger.warning("rejected vault path {!r}", relative)
            raise InvalidPathError(f"path escapes the vault: {relative!r}")
        return full

    @staticmethod
    def relative_path(slc: Slice) -> str:
        if slc.category.dated:
            if not is_day(slc.date):
                raise InvalidPathError(f"not a YYYY-MM-DD date: {slc.date!r}")
            return f"{DATED_DIRS[slc.category]}/{slc.date}.json"
        return COLLECTION_FILES[slc.category]

    # -- guarded file API ---------------------------------------------

    async def read_file(self, relative: str) -> Optional[str]:
        path = self.resolve(relative)
        try:
            return await self.fs.read_file(path)
        except OSError as exc:
            raise StorageIOError(f"cannot read {relative}: {exc}") from exc

    async def write_file(self, relative: str, content: str) -> None:
        path = self.resolve(relative)
        try:
            await self.fs.write_file(path, content)
        except OSError as exc:
            raise StorageIOError(f"cannot write {relative}: {exc}") from exc

    async def delete_file(self, relative: str) -> None:
        path = self.resolve(relative)
        try:
            await self.fs.delete_file(path)
        except OSError as exc:
            raise StorageIOError(f"cannot delete {relative}: {exc}") from exc

    async def list_files(self, relative: str) -> List[str]:
        path = self.resolve(relative)
        try:
            return await self.fs.list_directory(path)
        except OSError as exc:
            raise StorageIOError(f"cannot list {relative}: {exc}") from exc

    async def ensure_dir(self, relative: str) -> None:
        path = self.resolve(relative)
        try:
            await self.fs.ensure_directory(path)
        except OSError as exc:
            raise StorageIOError(f"cannot create {relative}: {exc}") from exc

    # -- vault lifecycle ----------------------------------------------

    async def initialize(self) -> None:
        """Create the vault tree and its ``.microlog/config.json`` if missing."""
        for name in VAULT_DIRS:
            await self.ensure_dir(name)
        if await self.read_file(VAULT_CONFIG) is None:
            meta = {"created": datetime.now(timezone.utc).isoformat(), "version": VAULT_VERSION}
            await self.write_file(VAULT_CONFIG, json.dumps(meta, indent=2))
            logger.info("initialized vault at {}", self.root)

    async def _read_items(self, relative: str) -> List[Dict[str, Any]]:
        content = await self.read_file(relative)
        if content is None:
            return []
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise StorageIOError(f"{relative} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise StorageIOError(f"{relative} does not hold a JSON array")
        return data

    # -- contract -----------------------------------------------------

    async def _read_entries(self, relative: str, factory: Callable[[Dict[str, Any]], Entry]) -> List[Entry]:
        items = await self._read_items(relative)
        try:
            return [factory(e) for e in items]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StorageIOError(f"{relative} holds a malformed entry: {exc}") from exc

    async def load(self) -> JournalDocument:
        doc = JournalDocument.empty()
        for category, dirname in DATED_DIRS.items():
            target = getattr(doc, category.field_name)
            for name in await self.list_files(dirname):
                day = name[: -len(".json")]
                if not name.endswith(".json") or not is_day(day):
                    continue
                target[day] = await self._read_entries(f"{dirname}/{name}", Entry.from_dict)
        doc.notes = await self._read_entries(COLLECTION_FILES[Category.NOTES], Entry.from_dict)
        doc.ideas = await self._read_entries(COLLECTION_FILES[Category.IDEAS], Idea.from_dict)
        doc.wisdom = await self._read_entries(COLLECTION_FILES[Category.WISDOM], Entry.from_dict)
        logger.debug("loaded vault {} ({} journal days)", self.root, len(doc.entries))
        return doc

    def prepare(self, document: JournalDocument, slc: Slice) -> Any:
        return document.slice_payload(slc)

    def slice_key(self, slc: Slice) -> str:
        return str(slc)

    async def save(self, slc: Slice, payload: Any) -> None:
        relative = self.relative_path(slc)
        await self.write_file(relative, json.dumps(payload, indent=2, ensure_ascii=False))
        logger.debug("wrote {} ({} items)", relative, len(payload))

    async def clear(self) -> None:
        logger.info("vault location cleared; files in {} are left in place", self.root)


# ---------------------------------------------------------------------
# Browser storage
# ---------------------------------------------------------------------

class BrowserStorage(StorageBackend):
    """Whole document under one fixed key of an origin-scoped kv store."""

    name = "browser"

    def __init__(self, db_path: Union[str, Path], origin: str = BROWSER_ORIGIN, key: str = BROWSER_KEY) -> None:
        self.db_path = db_path
        self.origin = origin
        self.key = key
        self._ready = False

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await db.init_db(self.db_path)
            self._ready = True

    async def load(self) -> JournalDocument:
        try:
            await self._ensure_ready()
            raw = await db.kv_get(self.db_path, self.origin, self.key)
        except (OSError, aiosqlite.Error) as exc:
            raise StorageIOError(f"cannot read browser storage: {exc}") from exc
        if raw is None:
            return JournalDocument.empty()
        try:
            return JournalDocument.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StorageIOError(f"browser storage holds an unreadable document: {exc}") from exc

    async def save(self, slc: Slice, payload: Any) -> None:
        try:
            await self._ensure_ready()
            await db.kv_set(self.db_path, self.origin, self.key, json.dumps(payload, ensure_ascii=False))
        except (OSError, aiosqlite.Error) as exc:
            raise StorageIOError(f"cannot write browser storage: {exc}") from exc

    async def clear(self) -> None:
        try:
            await self._ensure_ready()
            await db.kv_delete(self.db_path, self.origin, self.key)
        except (OSError, aiosqlite.Error) as exc:
            raise StorageIOError(f"cannot clear browser storage: {exc}") from exc
        logger.info("browser storage cleared")


# ---------------------------------------------------------------------
# Encrypted remote
# ---------------------------------------------------------------------

class RemoteDocumentStore(Protocol):
    """Per-account record store with read-after-write consistency."""

    async def get_record(self, account_id: str) -> Optional[Dict[str, Any]]:
        """Return ``{"encrypted_blob", "updated_at"}`` or None."""
        ...

    async def put_record(self, account_id: str, record: Dict[str, Any]) -> None:
        ...


class SQLiteDocumentStore:
    """:class:`RemoteDocumentStore` kept in a SQLite file."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = db_path
        self._ready = False

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await db.init_db(self.db_path)
            self._ready = True

    async def get_record(self, account_id: str) -> Optional[Dict[str, Any]]:
        try:
            await self._ensure_ready()
            return await db.get_journal_record(self.db_path, account_id)
        except (OSError, aiosqlite.Error) as exc:
            raise StorageIOError(f"cannot fetch record: {exc}") from exc

    async def put_record(self, account_id: str, record: Dict[str, Any]) -> None:
        try:
            await self._ensure_ready()
            await db.put_journal_record(
                self.db_path, account_id, record["encrypted_blob"], record["updated_at"]
            )
        except (OSError, aiosqlite.Error) as exc:
            raise StorageIOError(f"cannot store record: {exc}") from exc


class EncryptedRemoteStorage(StorageBackend):
    """Whole document encrypted with the session key into one remote field."""

    name = "remote"

    def __init__(self, store: RemoteDocumentStore, account_id: str, key_source: KeySource) -> None:
        self.store = store
        self.account_id = account_id
        self.key_source = key_source

    def _key(self) -> EncryptionKey:
        key = self.key_source()
        if key is None:
            raise NoKeyError("journal is locked")
        return key

    async def load(self) -> JournalDocument:
        key = self._key()
        record = await self.store.get_record(self.account_id)
        if not record or not record.get("encrypted_blob"):
            return JournalDocument.empty()
        data = crypto.decrypt(record["encrypted_blob"], key)
        if not isinstance(data, dict):
            raise DecryptionError("decrypted payload is not a journal document")
        try:
            document = JournalDocument.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DecryptionError(f"decrypted payload is not a journal document: {exc}") from exc
        logger.debug("loaded remote record for {} (updated {})", self.account_id, record.get("updated_at"))
        return document

    async def save(self, slc: Slice, payload: Any) -> None:
        blob = crypto.encrypt(payload, self._key())
        await self.store.put_record(
            self.account_id,
            {"encrypted_blob": blob, "updated_at": datetime.now(timezone.utc).isoformat()},
        )


# ---------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------

def create_backend(
    config: Dict[str, Any],
    capabilities: Capabilities,
    db_path: Union[str, Path],
    key_source: Optional[KeySource] = None,
    fs: Optional[FileSystem] = None,
    record_store: Optional[RemoteDocumentStore] = None,
) -> StorageBackend:
    """Select the backend for *config* once, at configuration time."""
    location = config.get("storage_location")
    if not capabilities.native_shell or location == BROWSER_STORAGE:
        return BrowserStorage(db_path)
    if location == REMOTE_STORAGE:
        if key_source is None:
            raise ValueError("the remote backend needs a key source")
        return EncryptedRemoteStorage(
            record_store or SQLiteDocumentStore(db_path),
            str(config.get("account_id") or "local"),
            key_source,
        )
    if not location:
        raise NotConfiguredError("choose a vault folder first")
    return FilesystemVaultStorage(location, fs=fs)
