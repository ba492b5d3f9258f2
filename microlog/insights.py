# -*- coding: utf-8 -*-
"""Activity statistics over the daily log."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from .journal import IdeaStatus, JournalDocument

WEEKDAYS = ("su", "mo", "tu", "we", "th", "fr", "sa")
STREAK_WINDOW = 365


@dataclass
class Insights:
    total_entries: int = 0
    total_words: int = 0
    highlights: int = 0
    days_active: int = 0
    days_with_dreams: int = 0
    streak: int = 0
    current_streak: int = 0
    peak_hour: Optional[Tuple[int, int]] = None
    weekday_counts: Dict[str, int] = field(default_factory=lambda: {d: 0 for d in WEEKDAYS})
    last30: List[Tuple[str, int]] = field(default_factory=list)
    notes: int = 0
    ideas: int = 0
    ideas_done: int = 0
    wisdom: int = 0


def _hour(time_text: str) -> int:
    try:
        return int(time_text.split(":")[0])
    except ValueError:
        return 12


def get_insights(document: JournalDocument, today: Optional[date] = None) -> Insights:
    today = today or date.today()
    all_entries = [e for items in document.entries.values() for e in items]
    active_days = sorted(d for d, items in document.entries.items() if items)

    out = Insights(
        total_entries=len(all_entries),
        total_words=sum(len(e.text.split()) for e in all_entries),
        highlights=sum(1 for e in all_entries if e.highlight),
        days_active=len(active_days),
        days_with_dreams=sum(1 for items in document.dreams.values() if items),
        notes=len(document.notes),
        ideas=len(document.ideas),
        ideas_done=sum(1 for i in document.ideas if i.status == IdeaStatus.DONE.value),
        wisdom=len(document.wisdom),
    )

    # Streaks walk back from today; an empty today does not break the run.
    run, current_known = 0, False
    for offset in range(STREAK_WINDOW):
        day = (today - timedelta(days=offset)).isoformat()
        if document.entries.get(day):
            run += 1
            out.streak = max(out.streak, run)
        elif offset > 0:
            if not current_known:
                out.current_streak, current_known = run, True
            run = 0
    if not current_known:
        out.current_streak = run

    hours = Counter(_hour(e.time) for e in all_entries if e.time)
    if hours:
        out.peak_hour = hours.most_common(1)[0]

    for day in active_days:
        try:
            weekday = date.fromisoformat(day).isoweekday() % 7
        except ValueError:
            continue
        out.weekday_counts[WEEKDAYS[weekday]] += 1

    for offset in range(29, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        out.last30.append((day, len(document.entries.get(day, []))))
    return out
