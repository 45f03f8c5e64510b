"""Ed25519 keyrings and clear-signed bundle documents."""

from bundlehub.signature.clearsign import Signer, Verifier, is_clearsigned
from bundlehub.signature.keyring import Key, KeyRing, create_key, load_keyring

__all__ = [
    "Key",
    "KeyRing",
    "Signer",
    "Verifier",
    "create_key",
    "is_clearsigned",
    "load_keyring",
]
