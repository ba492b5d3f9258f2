# -*- coding: utf-8 -*-
"""Tag (``#word``) and mention (``@person``) indexes over journal entries."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .journal import Entry, JournalDocument

TAG_MARKER = "#"
PERSON_MARKER = "@"


@dataclass
class Mention:
    entry: Entry
    date: str


@dataclass
class TagSummary:
    count: int = 0
    entries: List[Mention] = field(default_factory=list)


def marker_pattern(marker: str) -> "re.Pattern[str]":
    """Marker followed by word characters or hyphens. The marker is escaped."""
    if not marker:
        raise ValueError("marker must be a non-empty string")
    return re.compile(re.escape(marker) + r"[\w-]+")


def extract_items(document: JournalDocument, marker: str) -> List[Tuple[str, TagSummary]]:
    """Index the daily log by token.

    Sorted by descending count; equal counts keep first-seen order.
    """
    pattern = marker_pattern(marker)
    items: Dict[str, TagSummary] = {}
    for date, day_entries in document.entries.items():
        for entry in day_entries:
            for match in pattern.findall(entry.text):
                summary = items.setdefault(match, TagSummary())
                summary.count += 1
                summary.entries.append(Mention(entry=entry, date=date))
    return sorted(items.items(), key=lambda kv: -kv[1].count)


def extract_tags(document: JournalDocument) -> List[Tuple[str, TagSummary]]:
    return extract_items(document, TAG_MARKER)

def extract_people(document: JournalDocument) -> List[Tuple[str, TagSummary]]:
    return extract_items(document, PERSON_MARKER)
