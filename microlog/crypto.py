# -*- coding: utf-8 -*-
"""Crypto helpers and key handling for micro.log.

This module encapsulates *stateless* cryptographic helpers and the
in-memory key container. It does **not** perform any storage I/O.

Two independent paths start from the passphrase:

* ``derive_key``      PBKDF2-HMAC-SHA256 -> AES-256-GCM key (encrypts data)
* ``hash_passphrase`` Argon2id            -> verification fingerprint
"""
from __future__ import annotations

import base64
import binascii
import json
import secrets
from typing import Any

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecryptionError

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

PBKDF2_ITERATIONS = 100_000
KEY_LEN = 32
SALT_LEN = 16
NONCE_LEN = 12

ARGON2_TIME_COST = 2
ARGON2_MEMORY_COST = 102_400
ARGON2_PARALLELISM = 8
ARGON2_HASH_LEN = 32


# ---------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------

class EncryptionKey:
    """Derived AES-GCM key bound to an unlocked session.

    Only the cipher object is kept; the raw key bytes are not exposed, so the
    key can encrypt and decrypt but cannot be exported or persisted.
    """

    __slots__ = ("_aead",)

    def __init__(self, key_material: bytes) -> None:
        if len(key_material) != KEY_LEN:
            raise ValueError(f"key must be {KEY_LEN} bytes")
        self._aead = AESGCM(key_material)

    def __repr__(self) -> str:
        return "EncryptionKey(<hidden>)"

    def __reduce__(self):
        raise TypeError("EncryptionKey cannot be serialized")


# ---------------------------------------------------------------------
# KDF / salt / verification hash
# ---------------------------------------------------------------------

def generate_salt() -> bytes:
    """Return a fresh per-account salt."""
    return secrets.token_bytes(SALT_LEN)


def derive_key(passphrase: str, salt: bytes) -> EncryptionKey:
    """Derive the session key from *passphrase* and the account *salt*.

    Deterministic for identical inputs. Deliberately slow; callers on an event
    loop should run it in a worker thread.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LEN,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return EncryptionKey(kdf.derive(passphrase.encode("utf-8")))


def hash_passphrase(passphrase: str, salt: bytes) -> str:
    """Return the base64 Argon2id fingerprint used only for verification."""
    digest = hash_secret_raw(
        secret=passphrase.encode("utf-8"),
        salt=salt,
        time_cost=ARGON2_TIME_COST,
        memory_cost=ARGON2_MEMORY_COST,
        parallelism=ARGON2_PARALLELISM,
        hash_len=ARGON2_HASH_LEN,
        type=Type.ID,
    )
    return b64encode(digest)


# ---------------------------------------------------------------------
# AEAD helpers
# ---------------------------------------------------------------------

def encrypt(value: Any, key: EncryptionKey) -> str:
    """Serialize *value* to JSON and seal it; return base64(nonce || ct || tag)."""
    plaintext = json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    nonce = secrets.token_bytes(NONCE_LEN)
    ct = key._aead.encrypt(nonce, plaintext, None)
    return b64encode(nonce + ct)


def decrypt(opaque: str, key: EncryptionKey) -> Any:
    """Open a payload produced by :func:`encrypt` and parse the JSON inside."""
    try:
        combined = b64decode(opaque)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("payload is not valid base64") from exc
    if len(combined) <= NONCE_LEN:
        raise DecryptionError("payload is too short")

    nonce, ct = combined[:NONCE_LEN], combined[NONCE_LEN:]
    try:
        plaintext = key._aead.decrypt(nonce, ct, None)
    except InvalidTag as exc:
        raise DecryptionError("authentication failed (wrong key or corrupted data)") from exc

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecryptionError("decrypted payload is not JSON") from exc


# ---------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------

def b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")

def b64decode(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)
