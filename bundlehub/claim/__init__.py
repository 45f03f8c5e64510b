"""Claims: durable records of bundle installations."""

from bundlehub.claim.models import (
    ACTION_INSTALL,
    ACTION_STATUS,
    ACTION_UNINSTALL,
    ACTION_UPGRADE,
    STATUS_FAILURE,
    STATUS_SUCCESS,
    STATUS_UNDERWAY,
    STATUS_UNKNOWN,
    Claim,
    Result,
)
from bundlehub.claim.storage import ClaimStore, FilesystemClaimStore

__all__ = [
    "ACTION_INSTALL",
    "ACTION_STATUS",
    "ACTION_UNINSTALL",
    "ACTION_UPGRADE",
    "STATUS_FAILURE",
    "STATUS_SUCCESS",
    "STATUS_UNDERWAY",
    "STATUS_UNKNOWN",
    "Claim",
    "ClaimStore",
    "FilesystemClaimStore",
    "Result",
]
