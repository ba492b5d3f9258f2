"""Shared test fixtures for microlog."""

import asyncio

import pytest

from microlog.config import ConfigStore
from microlog.crypto import derive_key, generate_salt
from microlog.fs import LocalFileSystem
from microlog.journal import Entry, Idea, JournalDocument
from microlog.storage import StorageBackend


class RecordingFileSystem(LocalFileSystem):
    """LocalFileSystem that remembers every primitive call."""

    def __init__(self):
        self.calls = []

    async def read_file(self, path):
        self.calls.append(("read", path))
        return await super().read_file(path)

    async def write_file(self, path, content):
        self.calls.append(("write", path))
        await super().write_file(path, content)

    async def delete_file(self, path):
        self.calls.append(("delete", path))
        await super().delete_file(path)

    async def list_directory(self, path):
        self.calls.append(("list", path))
        return await super().list_directory(path)

    async def ensure_directory(self, path):
        self.calls.append(("mkdir", path))
        await super().ensure_directory(path)


class MemoryBackend(StorageBackend):
    """Per-slice in-memory backend with optional artificial save delays."""

    name = "memory"

    def __init__(self, delays=None, load_delay=0.0, fail_with=None):
        self.saved = {}
        self.log = []
        self.delays = list(delays or [])
        self.load_delay = load_delay
        self.fail_with = fail_with
        self.document = JournalDocument.empty()

    def slice_key(self, slc):
        return str(slc)

    def prepare(self, document, slc):
        return document.slice_payload(slc)

    async def save(self, slc, payload):
        delay = self.delays.pop(0) if self.delays else 0
        await asyncio.sleep(delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.saved[str(slc)] = payload
        self.log.append((str(slc), [e["text"] for e in payload]))

    async def load(self):
        await asyncio.sleep(self.load_delay)
        return self.document


@pytest.fixture
def config_store(tmp_path):
    return ConfigStore(tmp_path / "config" / "config.json")


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "microlog.sqlite3"


@pytest.fixture
def recording_fs():
    return RecordingFileSystem()


@pytest.fixture
def key():
    return derive_key("correct horse battery staple", generate_salt())


@pytest.fixture
def sample_document():
    return JournalDocument(
        entries={
            "2024-01-15": [Entry(id=1, text="hello #work @alice", time="09:15")],
            "2024-01-16": [Entry(id=2, text="ünïcode ✓ #work", highlight=True, time="21:40")],
        },
        dreams={"2024-01-15": [Entry(id=3, text="flying", time="07:00")]},
        notes=[Entry(id=4, text="groceries", time="12:00")],
        ideas=[Idea(id=5, text="build a boat", time="13:00", status="in-progress")],
        wisdom=[Entry(id=6, text="less is more", time="18:30")],
    )
