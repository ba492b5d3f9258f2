"""Tests for microlog.gate: enrollment, verification and lock races."""

import asyncio

import pytest

from microlog.crypto import decrypt, encrypt
from microlog.errors import InvalidPassphraseError, StorageIOError
from microlog.gate import GateState, PassphraseGate

PASSPHRASE = "correct horse battery staple"


class TestNewAccount:
    @pytest.mark.asyncio
    async def test_enrolls_and_unlocks(self, config_store):
        gate = PassphraseGate(config_store)
        assert gate.is_new_account()
        assert gate.state is GateState.LOCKED

        assert await gate.unlock(PASSPHRASE) is True
        assert gate.state is GateState.UNLOCKED
        assert gate.key is not None

        cfg = config_store.get()
        assert cfg["account_salt"]
        assert cfg["passphrase_hash"]
        assert cfg["account_created"]
        assert PASSPHRASE not in config_store.path.read_text()
        assert not gate.is_new_account()

    @pytest.mark.asyncio
    async def test_short_passphrase_rejected(self, config_store):
        gate = PassphraseGate(config_store)
        with pytest.raises(InvalidPassphraseError):
            await gate.unlock("short")
        assert gate.is_new_account()
        assert gate.key is None


class TestReturningAccount:
    @pytest.mark.asyncio
    async def test_same_passphrase_gives_interchangeable_key(self, config_store):
        first = PassphraseGate(config_store)
        await first.unlock(PASSPHRASE)
        sealed = encrypt({"notes": ["x"]}, first.key)

        second = PassphraseGate(config_store)
        assert not second.is_new_account()
        assert await second.unlock(PASSPHRASE) is True
        assert decrypt(sealed, second.key) == {"notes": ["x"]}

    @pytest.mark.asyncio
    async def test_wrong_passphrase(self, config_store):
        await PassphraseGate(config_store).unlock(PASSPHRASE)
        stored = config_store.get()

        gate = PassphraseGate(config_store)
        with pytest.raises(InvalidPassphraseError):
            await gate.unlock("not the passphrase")
        assert gate.state is GateState.LOCKED
        assert gate.key is None
        assert config_store.get() == stored

    @pytest.mark.asyncio
    async def test_corrupted_salt(self, config_store):
        config_store.set(account_salt="***", passphrase_hash="abc")
        with pytest.raises(StorageIOError):
            await PassphraseGate(config_store).unlock(PASSPHRASE)


class TestLock:
    @pytest.mark.asyncio
    async def test_lock_drops_key(self, config_store):
        gate = PassphraseGate(config_store)
        await gate.unlock(PASSPHRASE)
        gate.lock()
        assert gate.key is None
        assert gate.state is GateState.LOCKED
        assert not gate.is_new_account()

    @pytest.mark.asyncio
    async def test_lock_during_enrollment_discards_result(self, config_store):
        gate = PassphraseGate(config_store)
        task = asyncio.create_task(gate.unlock(PASSPHRASE))
        await asyncio.sleep(0)
        gate.lock()

        assert await task is False
        assert gate.key is None
        assert gate.is_new_account()

    @pytest.mark.asyncio
    async def test_lock_during_verification_discards_result(self, config_store):
        await PassphraseGate(config_store).unlock(PASSPHRASE)
        gate = PassphraseGate(config_store)
        task = asyncio.create_task(gate.unlock(PASSPHRASE))
        await asyncio.sleep(0)
        gate.lock()

        assert await task is False
        assert gate.state is GateState.LOCKED
