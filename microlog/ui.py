# -*- coding: utf-8 -*-
"""Textual UI for micro.log.

This file contains ONLY the UI: screens and the App wrapper. All state
changes go through :class:`microlog.logic.JournalService`, which reports
results as ``Outcome`` values; the UI just shows the reason on failure.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import Screen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    Static,
    TabbedContent,
    TabPane,
)

from microlog.config import BROWSER_STORAGE, REMOTE_STORAGE
from microlog.journal import Category, Entry, Idea, IdeaStatus
from microlog.logic import JournalService
from microlog.manager import PersistFailure

CSS = """
#modal-card {
    width: 80%;
    height: auto;
    max-height: 90%;
    border: round $accent;
    padding: 1 2;
    margin: 1 4;
}
.title { text-style: bold; margin-bottom: 1; }
.hint { color: $text-muted; }
ListView { height: auto; max-height: 20; }
"""

# (category, tab label) in display order
ENTRY_TABS = (
    (Category.JOURNAL, "log"),
    (Category.DREAMS, "dreams"),
    (Category.NOTES, "notes"),
    (Category.IDEAS, "ideas"),
    (Category.WISDOM, "quotes"),
)

STATUS_CYCLE = [s.value for s in IdeaStatus]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _format_day(day: str) -> str:
    today = date.today()
    if day == today.isoformat():
        return "today"
    if day == (today - timedelta(days=1)).isoformat():
        return "yesterday"
    return date.fromisoformat(day).strftime("%b %d").lower()


def _entry_label(entry: Entry) -> str:
    star = "* " if entry.highlight else ""
    if isinstance(entry, Idea):
        return f"[{entry.status}] {star}{entry.text}"
    return f"{entry.time}  {star}{entry.text}"


# ---------------------------------------------------------------------------
# Screens
# ---------------------------------------------------------------------------

class SetupScreen(Screen):
    """Choose where the journal lives: a vault folder, browser storage or remote."""

    BINDINGS = [Binding("escape", "app.quit", "Quit")]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Static("CHOOSE STORAGE", classes="title"),
            Static("Vault folder: one JSON file per day, owned by you.", classes="hint"),
            Input(placeholder="/path/to/vault", id="vault_path"),
            Horizontal(
                Button("Use Folder", id="use_folder", classes="-primary"),
                Button("Browser Storage", id="use_browser"),
                Button("Encrypted Remote", id="use_remote"),
                Button("Exit", id="exit"),
            ),
            id="modal-card",
        )
        yield Footer()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "exit":
            self.app.exit()
            return
        if bid == "use_folder":
            location = self.query_one("#vault_path", Input).value.strip()
        elif bid == "use_browser":
            location = BROWSER_STORAGE
        elif bid == "use_remote":
            location = REMOTE_STORAGE
        else:
            return
        outcome = await self.app.service.configure_storage(location)
        if not outcome.ok:
            self.app.notify(outcome.reason, severity="error")
            return
        await self.app.enter_journal()


class UnlockScreen(Screen):
    """Create (new account) or enter (returning account) the passphrase."""

    BINDINGS = [Binding("escape", "app.quit", "Quit")]

    def compose(self) -> ComposeResult:
        is_new = self.app.service.is_new_account()
        yield Header()
        with Container(id="modal-card"):
            if is_new:
                yield Static("CREATE ENCRYPTION PASSPHRASE", classes="title")
                yield Static(
                    "This passphrase encrypts all your data. It cannot be recovered if lost.",
                    classes="hint",
                )
            else:
                yield Static("ENTER ENCRYPTION PASSPHRASE", classes="title")
            yield Input(placeholder="encryption passphrase", password=True, id="passphrase")
            if is_new:
                yield Input(placeholder="confirm passphrase", password=True, id="confirm")
            yield Horizontal(
                Button("Create & Continue" if is_new else "Unlock", id="unlock", classes="-primary"),
                Button("Change Storage", id="change_storage"),
                Button("Exit", id="exit"),
            )
        yield Footer()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        service: JournalService = self.app.service
        if bid == "unlock":
            passphrase = self.query_one("#passphrase", Input).value
            if service.is_new_account():
                confirm = self.query_one("#confirm", Input).value
                if passphrase != confirm:
                    self.app.notify("Passphrases do not match", severity="error")
                    return
            self.app.notify("Unlocking...")
            outcome = await service.unlock(passphrase)
            if not outcome.ok:
                self.app.notify(outcome.reason, severity="error")
                return
            await self.app.switch_screen(JournalHomeScreen())
        elif bid == "change_storage":
            await service.clear_storage_location()
            await self.app.switch_screen(SetupScreen())
        elif bid == "exit":
            self.app.exit()


class JournalHomeScreen(Screen):
    """One tab per category plus tags, people and stats."""

    BINDINGS = [
        Binding("f2", "prev_day", "Prev day"),
        Binding("f3", "next_day", "Next day"),
        Binding("f4", "toggle_highlight", "Star"),
        Binding("f6", "cycle_status", "Idea status"),
        Binding("f8", "delete_item", "Delete"),
        Binding("f9", "lock", "Lock"),
        Binding("f10", "change_storage", "Storage"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.current_date = date.today().isoformat()

    def compose(self) -> ComposeResult:
        yield Header()
        self.date_label = Static("", classes="title")
        yield self.date_label
        with TabbedContent(id="tabs"):
            for category, label in ENTRY_TABS:
                with TabPane(label, id=f"tab-{category.value}"):
                    yield Input(placeholder=f"new {label} entry", id=f"in-{category.value}")
                    yield ListView(id=f"list-{category.value}")
            with TabPane("tags", id="tab-tags"):
                yield ListView(id="list-tags")
            with TabPane("people", id="tab-people"):
                yield ListView(id="list-people")
            with TabPane("stats", id="tab-stats"):
                yield Static("", id="stats", markup=False)
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_views()

    # -- rendering -----------------------------------------------------

    def refresh_views(self) -> None:
        doc = self.app.service.document
        self.date_label.update(_format_day(self.current_date))
        for category, _label in ENTRY_TABS:
            view = self.query_one(f"#list-{category.value}", ListView)
            view.clear()
            container = getattr(doc, category.field_name)
            items = container.get(self.current_date, []) if category.dated else container
            for entry in items:
                item = ListItem(Label(_entry_label(entry), markup=False))
                item.data = entry.id
                view.append(item)
        self._render_index("#list-tags", self.app.service.tags())
        self._render_index("#list-people", self.app.service.people())
        self._render_stats()

    def _render_index(self, selector: str, index) -> None:
        view = self.query_one(selector, ListView)
        view.clear()
        for token, summary in index:
            view.append(ListItem(Label(f"{token}  ({summary.count})", markup=False)))

    def _render_stats(self) -> None:
        s = self.app.service.insights()
        peak = f"{s.peak_hour[0]:02d}:00" if s.peak_hour else "-"
        lines = [
            f"entries {s.total_entries}   words {s.total_words}   starred {s.highlights}",
            f"streak {s.current_streak}d (best {s.streak}d)   days active {s.days_active}   peak {peak}",
            "weekdays " + " ".join(f"{d}:{n}" for d, n in s.weekday_counts.items()),
            f"dreams {s.days_with_dreams}   notes {s.notes}   ideas {s.ideas} ({s.ideas_done} done)   quotes {s.wisdom}",
        ]
        self.query_one("#stats", Static).update("\n".join(lines))

    # -- selection -----------------------------------------------------

    def _active_category(self) -> Optional[Category]:
        active = self.query_one("#tabs", TabbedContent).active or ""
        name = active.removeprefix("tab-")
        try:
            return Category(name)
        except ValueError:
            return None

    def _selected(self) -> Optional[tuple]:
        category = self._active_category()
        if category is None:
            return None
        item = self.query_one(f"#list-{category.value}", ListView).highlighted_child
        if item is None:
            return None
        return category, getattr(item, "data", None)

    def _report(self, outcome) -> None:
        if not outcome.ok:
            self.app.notify(outcome.reason, severity="error")
        self.refresh_views()

    # -- events / actions ---------------------------------------------

    def on_input_submitted(self, event: Input.Submitted) -> None:
        category = (event.input.id or "").removeprefix("in-")
        outcome = self.app.service.add_entry(category, self.current_date, event.value)
        if outcome.ok:
            event.input.value = ""
        self._report(outcome)

    def action_prev_day(self) -> None:
        self.current_date = (date.fromisoformat(self.current_date) - timedelta(days=1)).isoformat()
        self.refresh_views()

    def action_next_day(self) -> None:
        self.current_date = (date.fromisoformat(self.current_date) + timedelta(days=1)).isoformat()
        self.refresh_views()

    def action_toggle_highlight(self) -> None:
        selected = self._selected()
        if selected:
            category, entry_id = selected
            self._report(self.app.service.toggle_highlight(entry_id, self.current_date, category.value))

    def action_delete_item(self) -> None:
        selected = self._selected()
        if selected:
            category, entry_id = selected
            self._report(self.app.service.delete_item(entry_id, self.current_date, category.value))

    def action_cycle_status(self) -> None:
        selected = self._selected()
        if not selected or selected[0] is not Category.IDEAS:
            return
        idea = next((i for i in self.app.service.document.ideas if i.id == selected[1]), None)
        if idea is None:
            return
        status = STATUS_CYCLE[(STATUS_CYCLE.index(idea.status) + 1) % len(STATUS_CYCLE)]
        self._report(self.app.service.update_idea_status(idea.id, status))

    async def action_lock(self) -> None:
        outcome = await self.app.service.lock()
        if not outcome.ok:
            self.app.notify(outcome.reason, severity="error")
        await self.app.enter_journal()

    async def action_change_storage(self) -> None:
        outcome = await self.app.service.clear_storage_location()
        if not outcome.ok:
            self.app.notify(outcome.reason, severity="error")
            return
        await self.app.switch_screen(SetupScreen())


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

class MicrologApp(App):
    """Textual App wrapper. Picks the first screen from the service state."""

    TITLE = "micro.log"
    CSS = CSS

    def __init__(self, service: Optional[JournalService] = None) -> None:
        super().__init__()
        self.service = service or JournalService(on_persist_error=self._persist_failed)

    def _persist_failed(self, failure: PersistFailure) -> None:
        self.notify(f"Could not save {failure.slice}: {failure.reason}", severity="error")

    async def on_mount(self) -> None:
        await self.enter_journal()

    async def enter_journal(self) -> None:
        """Route to setup, unlock or home depending on the service state."""
        if self.service.needs_setup():
            target: Screen = SetupScreen()
        elif self.service.requires_passphrase() and self.service.is_locked:
            target = UnlockScreen()
        else:
            outcome = await self.service.open()
            if not outcome.ok:
                self.notify(outcome.reason, severity="error")
                target = SetupScreen()
            else:
                target = JournalHomeScreen()
        if len(self.screen_stack) > 1:
            await self.switch_screen(target)
        else:
            await self.push_screen(target)

    async def on_unmount(self) -> None:
        await self.service.flush()
