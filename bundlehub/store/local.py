"""Local content-addressed bundle store.

Every stored artifact lives at ``<home>/bundles/<digest>``, where the digest
is the SHA-256 of the exact bytes in the file. Signed artifacts are stored in
their clear-signed form, so the digest covers the signature as well.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bundlehub.bundle.models import Bundle
from bundlehub.crypto import digest
from bundlehub.errors import DigestMismatchError, KeyRingError
from bundlehub.home import Home
from bundlehub.signature import Signer, load_keyring

logger = logging.getLogger(__name__)


class LocalStore:
    """Stores bundles under the home's ``bundles`` directory."""

    def __init__(self, home: Home):
        self.home = home
        self.root = home.bundles()

    def path_for(self, content_digest: str) -> Path:
        return self.root / content_digest

    def store_signed(self, data: bytes, insecure: bool = False, signer: str = "") -> str:
        """Store *data*, clear-signing it first unless *insecure* is set.

        The signing key is the first key in the home's secret keyring, or the
        key matching *signer*. Returns the digest of the bytes written.
        """
        if insecure:
            payload = data
        else:
            keyring = load_keyring(self.home.secret_keyring())
            if len(keyring) == 0:
                raise KeyRingError("no signing keys are present in the keyring")
            key = keyring.signing_key(signer)
            payload = Signer(key).clearsign(data) + b"\n"
            logger.debug("signed bundle with %s (%s)", key.user_id, key.key_id)

        content_digest = digest.of_buffer(payload)
        self.root.mkdir(parents=True, exist_ok=True)
        self.path_for(content_digest).write_bytes(payload)
        logger.info("stored %d bytes as %s", len(payload), content_digest)
        return content_digest

    def store_bundle(self, bundle: Bundle, insecure: bool = False, signer: str = "") -> str:
        return self.store_signed(bundle.to_json(), insecure=insecure, signer=signer)

    def load(self, content_digest: str) -> bytes:
        """Read a stored artifact, checking it still hashes to its name."""
        data = self.path_for(content_digest).read_bytes()
        actual = digest.of_buffer(data)
        if actual != content_digest:
            raise DigestMismatchError(content_digest, actual, str(self.path_for(content_digest)))
        return data

    def list_digests(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file())
