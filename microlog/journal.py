# -*- coding: utf-8 -*-
"""Journal data model: entries, ideas and the root document.

Plain dataclasses with ``to_dict`` / ``from_dict`` that mirror the JSON shape
stored on disk and inside the encrypted blob.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

DAY_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class Category(str, Enum):
    JOURNAL = "journal"
    DREAMS = "dreams"
    NOTES = "notes"
    IDEAS = "ideas"
    WISDOM = "wisdom"

    @classmethod
    def parse(cls, value: Union[str, "Category"]) -> "Category":
        """Accept the enum, its value, or one of the UI aliases."""
        if isinstance(value, Category):
            return value
        aliases = {"log": cls.JOURNAL, "entries": cls.JOURNAL, "quotes": cls.WISDOM}
        if value in aliases:
            return aliases[value]
        return cls(value)

    @property
    def dated(self) -> bool:
        return self in (Category.JOURNAL, Category.DREAMS)

    @property
    def field_name(self) -> str:
        """Attribute of :class:`JournalDocument` holding this category."""
        return "entries" if self is Category.JOURNAL else self.value


class IdeaStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in-progress"
    DONE = "done"


@dataclass
class Entry:
    id: int
    text: str
    highlight: bool = False
    time: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "highlight": self.highlight, "time": self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        return cls(
            id=int(data["id"]),
            text=str(data.get("text", "")),
            highlight=bool(data.get("highlight", False)),
            time=str(data.get("time", "")),
        )


@dataclass
class Idea(Entry):
    status: str = IdeaStatus.NEW.value

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["status"] = self.status
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Idea":
        base = Entry.from_dict(data)
        return cls(
            id=base.id,
            text=base.text,
            highlight=base.highlight,
            time=base.time,
            status=IdeaStatus(data.get("status", IdeaStatus.NEW.value)).value,
        )


@dataclass(frozen=True)
class Slice:
    """Persisted unit of change: one date of a dated category, or a collection."""

    category: Category
    date: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.category.value}/{self.date}" if self.date else self.category.value


def is_day(text: Any) -> bool:
    """True for a calendar date written exactly as ``YYYY-MM-DD``."""
    if not isinstance(text, str) or not DAY_PATTERN.fullmatch(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def _dated_from_dict(raw: Optional[Dict[str, Any]]) -> Dict[str, List[Entry]]:
    out: Dict[str, List[Entry]] = {}
    for day, items in (raw or {}).items():
        if not is_day(day):
            raise ValueError(f"not a YYYY-MM-DD date: {day!r}")
        out[day] = [Entry.from_dict(e) for e in items]
    return out


@dataclass
class JournalDocument:
    """Root aggregate: one per account / vault."""

    entries: Dict[str, List[Entry]] = field(default_factory=dict)
    dreams: Dict[str, List[Entry]] = field(default_factory=dict)
    notes: List[Entry] = field(default_factory=list)
    ideas: List[Idea] = field(default_factory=list)
    wisdom: List[Entry] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "JournalDocument":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": {d: [e.to_dict() for e in items] for d, items in self.entries.items()},
            "dreams": {d: [e.to_dict() for e in items] for d, items in self.dreams.items()},
            "notes": [e.to_dict() for e in self.notes],
            "ideas": [i.to_dict() for i in self.ideas],
            "wisdom": [e.to_dict() for e in self.wisdom],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "JournalDocument":
        data = data or {}
        return cls(
            entries=_dated_from_dict(data.get("entries")),
            dreams=_dated_from_dict(data.get("dreams")),
            notes=[Entry.from_dict(e) for e in data.get("notes") or []],
            ideas=[Idea.from_dict(i) for i in data.get("ideas") or []],
            wisdom=[Entry.from_dict(e) for e in data.get("wisdom") or []],
        )

    def items(self, slc: Slice) -> List[Entry]:
        """Return the live list for *slc*, creating a dated sequence if absent."""
        container = getattr(self, slc.category.field_name)
        if slc.category.dated:
            if slc.date is None:
                raise ValueError(f"{slc.category.value} entries need a date")
            return container.setdefault(slc.date, [])
        return container

    def find(self, slc: Slice, entry_id: int) -> Optional[Entry]:
        container = getattr(self, slc.category.field_name)
        items = container.get(slc.date, []) if slc.category.dated else container
        for entry in items:
            if entry.id == entry_id:
                return entry
        return None

    def slice_payload(self, slc: Slice) -> List[Dict[str, Any]]:
        """JSON-ready copy of one slice, as written to its vault file."""
        container = getattr(self, slc.category.field_name)
        items = container.get(slc.date, []) if slc.category.dated else container
        return [e.to_dict() for e in items]


# ---------------------------------------------------------------------
# Identifiers and clock
# ---------------------------------------------------------------------

_last_id = 0

def next_entry_id() -> int:
    """Millisecond timestamp, bumped so ids stay unique and increasing."""
    global _last_id
    candidate = int(time.time() * 1000)
    _last_id = max(candidate, _last_id + 1)
    return _last_id

def clock_time(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%H:%M")
