# -*- coding: utf-8 -*-
"""micro.log package.

Modules:
    crypto:    Key derivation, verification hash and AES-GCM payloads.
    config:    Account/vault configuration (JSON on disk) and capabilities.
    journal:   Entry / Idea / JournalDocument data model.
    fs:        Async filesystem primitives.
    db:        SQLite schema + async data access (kv store, remote records).
    storage:   Vault, browser and encrypted-remote storage backends.
    gate:      Passphrase verification gate.
    manager:   In-memory journal with ordered background persistence.
    tags:      #tag and @person indexes.
    insights:  Activity statistics.
    logic:     App logic that composes everything for the UI.
    ui:        Textual-based UI (screens, app).
"""

__all__ = [
    "crypto",
    "config",
    "journal",
    "fs",
    "db",
    "storage",
    "gate",
    "manager",
    "tags",
    "insights",
    "logic",
    "ui",
]
