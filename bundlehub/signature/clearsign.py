"""Clear-signed documents.

A clear-signed document keeps the payload readable and appends a detached
Ed25519 signature block::

    -----BEGIN SIGNED BUNDLE-----
    Signature-Algorithm: ed25519

    {"name": "example", ...}
    -----BEGIN SIGNATURE-----
    eyJrZXlJZCI6ICJlZDI1NTE5Oi4uLiIsIC4uLn0=
    -----END SIGNATURE-----

Payload lines beginning with ``-`` are dash-escaped (prefixed with ``- ``) so
they can never be confused with the armor lines. The signature covers the
unescaped payload bytes.
"""

from __future__ import annotations

import base64
import binascii
import json

from cryptography.exceptions import InvalidSignature

from bundlehub.errors import SignatureError
from bundlehub.signature.keyring import Key, KeyRing

BEGIN_MESSAGE = b"-----BEGIN SIGNED BUNDLE-----"
BEGIN_SIGNATURE = b"-----BEGIN SIGNATURE-----"
END_SIGNATURE = b"-----END SIGNATURE-----"
ALGORITHM_HEADER = b"Signature-Algorithm: ed25519"


def is_clearsigned(data: bytes) -> bool:
    return data.lstrip().startswith(BEGIN_MESSAGE)


def _dash_escape(payload: bytes) -> bytes:
    return b"\n".join(
        b"- " + line if line.startswith(b"-") else line for line in payload.split(b"\n")
    )


def _dash_unescape(body: bytes) -> bytes:
    return b"\n".join(
        line[2:] if line.startswith(b"- ") else line for line in body.split(b"\n")
    )


class Signer:
    """Clear-signs payloads with one key."""

    def __init__(self, key: Key):
        self.key = key

    def clearsign(self, payload: bytes) -> bytes:
        signature = self.key.private_key().sign(payload)
        block = json.dumps(
            {
                "keyId": self.key.key_id,
                "userId": self.key.user_id,
                "signature": base64.b64encode(signature).decode("ascii"),
            },
            sort_keys=True,
        ).encode("utf-8")
        return b"\n".join(
            [
                BEGIN_MESSAGE,
                ALGORITHM_HEADER,
                b"",
                _dash_escape(payload),
                BEGIN_SIGNATURE,
                base64.b64encode(block),
                END_SIGNATURE,
            ]
        )


def split_clearsigned(data: bytes) -> tuple[bytes, dict]:
    """Split a clear-signed document into its payload and signature block."""
    text = data.strip()
    if not text.startswith(BEGIN_MESSAGE):
        raise SignatureError("document is not clear-signed")

    header_end = text.find(b"\n\n")
    if header_end < 0:
        raise SignatureError("clear-signed document has no header terminator")
    headers = text[len(BEGIN_MESSAGE):header_end].strip().split(b"\n")
    if ALGORITHM_HEADER not in headers:
        raise SignatureError("unsupported signature algorithm")

    marker = b"\n" + BEGIN_SIGNATURE + b"\n"
    sig_start = text.rfind(marker)
    if sig_start < header_end or not text.endswith(END_SIGNATURE):
        raise SignatureError("clear-signed document has no signature block")

    payload = _dash_unescape(text[header_end + 2:sig_start])
    armored = text[sig_start + len(marker):-len(END_SIGNATURE)].strip()
    try:
        block = json.loads(base64.b64decode(armored, validate=True))
    except (binascii.Error, ValueError) as e:
        raise SignatureError(f"malformed signature block: {e}") from e
    if not isinstance(block, dict) or not block.get("keyId") or not block.get("signature"):
        raise SignatureError("malformed signature block: missing keyId or signature")
    return payload, block


class Verifier:
    """Verifies clear-signed documents against a keyring."""

    def __init__(self, keyring: KeyRing):
        self.keyring = keyring

    def verify(self, data: bytes) -> tuple[bytes, Key]:
        """Return ``(payload, signing key)`` or raise ``SignatureError``."""
        payload, block = split_clearsigned(data)
        key = None
        for k in self.keyring:
            if k.key_id == block["keyId"]:
                key = k
                break
        if key is None:
            raise SignatureError(f"signing key {block['keyId']} is not in the keyring")
        try:
            signature = base64.b64decode(block["signature"], validate=True)
            key.public_key().verify(signature, payload)
        except (binascii.Error, ValueError, InvalidSignature) as e:
            raise SignatureError(f"signature by {block['keyId']} does not verify") from e
        return payload, key
