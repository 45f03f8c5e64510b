"""Keyrings of Ed25519 signing keys.

A keyring is a YAML file holding an ordered list of keys::

    keys:
      - userId: "Jane Doe <jane@example.com>"
        keyId: "ed25519:5mGx..."
        publicKey: "<base64 raw 32-byte public key>"
        privateKey: "<base64 raw 32-byte seed>"   # secret rings only

The first key in the ring is the default signer.
"""

from __future__ import annotations

import base64
import hashlib
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives import serialization

from bundlehub.errors import KeyNotFoundError, KeyRingError

_USER_ID_RE = re.compile(r"^\s*(?P<name>[^<]*?)\s*(?:<(?P<email>[^>]*)>)?\s*$")


def _b64_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64_decode(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def compute_key_id(public_raw: bytes) -> str:
    """Key id for an Ed25519 public key: ``ed25519:`` + base64(sha256(pubkey))."""
    return "ed25519:" + _b64_encode(hashlib.sha256(public_raw).digest())


def _public_raw(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


@dataclass(frozen=True)
class Key:
    """An Ed25519 key with an OpenPGP-style user id."""

    user_id: str
    public_raw: bytes
    private_seed: bytes | None = field(default=None, repr=False)

    @property
    def key_id(self) -> str:
        return compute_key_id(self.public_raw)

    @property
    def name(self) -> str:
        m = _USER_ID_RE.match(self.user_id)
        return m.group("name") if m else self.user_id

    @property
    def email(self) -> str:
        m = _USER_ID_RE.match(self.user_id)
        return (m.group("email") or "") if m else ""

    @property
    def can_sign(self) -> bool:
        return self.private_seed is not None

    def public_key(self) -> Ed25519PublicKey:
        return Ed25519PublicKey.from_public_bytes(self.public_raw)

    def private_key(self) -> Ed25519PrivateKey:
        if self.private_seed is None:
            raise KeyRingError(f"key {self.key_id} has no private part")
        return Ed25519PrivateKey.from_private_bytes(self.private_seed)

    def matches(self, identity: str) -> bool:
        """True if *identity* names this key by key id, user id, name or email."""
        identity = identity.strip()
        if not identity:
            return False
        return identity in (self.key_id, self.user_id, self.name, self.email)

    def public_only(self) -> Key:
        return Key(user_id=self.user_id, public_raw=self.public_raw)

    def to_dict(self, include_private: bool = True) -> dict:
        data = {
            "userId": self.user_id,
            "keyId": self.key_id,
            "publicKey": _b64_encode(self.public_raw),
        }
        if include_private and self.private_seed is not None:
            data["privateKey"] = _b64_encode(self.private_seed)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Key:
        try:
            seed = _b64_decode(data["privateKey"]) if data.get("privateKey") else None
            if seed is not None:
                public_raw = _public_raw(Ed25519PrivateKey.from_private_bytes(seed).public_key())
            else:
                public_raw = _b64_decode(data["publicKey"])
        except (KeyError, ValueError) as e:
            raise KeyRingError(f"invalid key entry: {e}") from e
        if len(public_raw) != 32:
            raise KeyRingError("invalid key entry: public key must be 32 bytes")
        key = cls(user_id=data.get("userId", ""), public_raw=public_raw, private_seed=seed)
        declared = data.get("keyId")
        if declared and declared != key.key_id:
            raise KeyRingError(f"key id {declared} does not match its public key")
        return key


def create_key(user_id: str) -> Key:
    """Generate a new signing key."""
    seed = os.urandom(32)
    public_raw = _public_raw(Ed25519PrivateKey.from_private_bytes(seed).public_key())
    return Key(user_id=user_id, public_raw=public_raw, private_seed=seed)


class KeyRing:
    """An ordered collection of keys."""

    def __init__(self, keys: list[Key] | None = None):
        self._keys: list[Key] = list(keys or [])

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self):
        return iter(self._keys)

    def keys(self) -> list[Key]:
        return list(self._keys)

    def add(self, key: Key) -> None:
        """Add *key*, replacing an existing key with the same key id."""
        self._keys = [k for k in self._keys if k.key_id != key.key_id]
        self._keys.append(key)

    def key(self, identity: str) -> Key:
        """Return the first key matching *identity*."""
        for k in self._keys:
            if k.matches(identity):
                return k
        raise KeyNotFoundError(identity)

    def signing_key(self, identity: str = "") -> Key:
        """Pick a key to sign with: the first in the ring unless *identity* is given."""
        if not self._keys:
            raise KeyRingError("no signing keys are present in the keyring")
        key = self.key(identity) if identity else self._keys[0]
        if not key.can_sign:
            raise KeyRingError(f"key {key.key_id} has no private part")
        return key

    def public_ring(self) -> KeyRing:
        return KeyRing([k.public_only() for k in self._keys])

    def to_dict(self, include_private: bool = True) -> dict:
        return {"keys": [k.to_dict(include_private) for k in self._keys]}

    def save(self, path: str | Path, include_private: bool = True) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(include_private), f, sort_keys=False)
        if include_private:
            path.chmod(0o600)


def load_keyring(path: str | Path) -> KeyRing:
    """Load a keyring file. A missing or malformed file is a ``KeyRingError``."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise KeyRingError(f"cannot load keyring: {e}") from e
    except yaml.YAMLError as e:
        raise KeyRingError(f"cannot parse keyring {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("keys", []), list):
        raise KeyRingError(f"cannot parse keyring {path}: expected a 'keys' list")
    return KeyRing([Key.from_dict(k) for k in data.get("keys") or []])
