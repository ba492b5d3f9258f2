# -*- coding: utf-8 -*-
"""Passphrase verification gate.

Locked -> Unlocked transitions for both a brand-new account (salt and
verification hash are created) and a returning one (the hash is checked).
The slow hashing and key derivation run in worker threads; a ``lock()``
issued meanwhile bumps the generation counter so the late result is dropped.
"""
from __future__ import annotations

import asyncio
import binascii
import hmac
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from loguru import logger

from .config import ConfigStore
from .crypto import EncryptionKey, b64decode, b64encode, derive_key, generate_salt, hash_passphrase
from .errors import InvalidPassphraseError, StorageIOError

MIN_PASSPHRASE_LEN = 8


class GateState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class PassphraseGate:
    """Holds the session key once the passphrase has been verified."""

    def __init__(self, config: ConfigStore) -> None:
        self._config = config
        self._key: Optional[EncryptionKey] = None
        self._generation = 0

    @property
    def state(self) -> GateState:
        return GateState.UNLOCKED if self._key is not None else GateState.LOCKED

    @property
    def key(self) -> Optional[EncryptionKey]:
        return self._key

    def is_new_account(self) -> bool:
        cfg = self._config.get()
        return not (cfg.get("account_salt") and cfg.get("passphrase_hash"))

    async def unlock(self, passphrase: str) -> bool:
        """Verify or enroll *passphrase* and derive the key.

        Returns False when the gate was locked while the derivation ran.
        Raises :class:`InvalidPassphraseError` on mismatch or weak passphrase.
        """
        generation = self._generation
        if self.is_new_account():
            key = await self._enroll(passphrase, generation)
        else:
            key = await self._verify(passphrase, generation)

        if key is None or generation != self._generation:
            logger.info("unlock superseded by lock; result discarded")
            return False
        self._key = key
        logger.info("journal unlocked")
        return True

    def lock(self) -> None:
        """Drop the key and invalidate any unlock still in flight."""
        self._generation += 1
        self._key = None
        logger.info("journal locked")

    async def _enroll(self, passphrase: str, generation: int) -> Optional[EncryptionKey]:
        if len(passphrase) < MIN_PASSPHRASE_LEN:
            raise InvalidPassphraseError(
                f"passphrase must be at least {MIN_PASSPHRASE_LEN} characters"
            )
        salt = generate_salt()
        fingerprint = await asyncio.to_thread(hash_passphrase, passphrase, salt)
        if generation != self._generation:
            return None
        self._config.set(
            account_salt=b64encode(salt),
            passphrase_hash=fingerprint,
            account_created=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("created passphrase for new account")
        return await asyncio.to_thread(derive_key, passphrase, salt)

    async def _verify(self, passphrase: str, generation: int) -> Optional[EncryptionKey]:
        cfg = self._config.get()
        try:
            salt = b64decode(cfg["account_salt"])
        except (binascii.Error, ValueError) as exc:
            raise StorageIOError("stored account salt is corrupted") from exc

        fingerprint = await asyncio.to_thread(hash_passphrase, passphrase, salt)
        if not hmac.compare_digest(fingerprint, str(cfg["passphrase_hash"])):
            logger.warning("passphrase verification failed")
            raise InvalidPassphraseError("invalid passphrase")
        if generation != self._generation:
            return None
        return await asyncio.to_thread(derive_key, passphrase, salt)
