"""Load bundle files from disk, plain or clear-signed."""

from __future__ import annotations

import logging
from pathlib import Path

from bundlehub.bundle.models import Bundle, parse_buffer
from bundlehub.errors import BundleParseError, SignatureError
from bundlehub.signature import KeyRing, Verifier, is_clearsigned
from bundlehub.signature.clearsign import split_clearsigned

logger = logging.getLogger(__name__)


def load_bundle(
    path: str | Path,
    keyring: KeyRing | None = None,
    insecure: bool = False,
) -> Bundle:
    """Load the bundle at *path*.

    Plain JSON files are parsed directly. A clear-signed file is verified
    against *keyring*; with no keyring its signature is only stripped when
    *insecure* is set.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise BundleParseError(f"cannot read bundle file {path}: {e}") from e

    if not is_clearsigned(data):
        return parse_buffer(data)

    if keyring is not None:
        payload, key = Verifier(keyring).verify(data)
        logger.debug("bundle %s signed by %s (%s)", path, key.user_id, key.key_id)
        return parse_buffer(payload)

    if not insecure:
        raise SignatureError(f"{path} is signed but no keyring was provided to verify it")

    payload, _ = split_clearsigned(data)
    logger.warning("loading signed bundle %s without verifying its signature", path)
    return parse_buffer(payload)
