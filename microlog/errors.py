# -*- coding: utf-8 -*-
"""Exception hierarchy for micro.log.

Every error raised by the core derives from :class:`MicrologError`, so the
service layer can turn any of them into a failed outcome with one ``except``.
"""
from __future__ import annotations


class MicrologError(Exception):
    """Base class for all micro.log errors."""


class NotConfiguredError(MicrologError):
    """No storage location has been chosen yet."""


class StorageIOError(MicrologError):
    """An underlying read or write failed."""


class InvalidPathError(MicrologError):
    """A vault-relative path was unsafe and was rejected before any I/O."""


class DecryptionError(MicrologError):
    """Ciphertext failed authentication or did not decode to JSON."""


class NoKeyError(MicrologError):
    """The encrypted backend was used while the session is locked."""


class InvalidPassphraseError(MicrologError):
    """The passphrase did not match or does not meet the policy."""


class InvalidStatusError(MicrologError, ValueError):
    """An idea status outside of new / in-progress / done."""
