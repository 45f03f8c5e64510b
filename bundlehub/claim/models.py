"""Claim data model.

A claim records one installation: which invocation image was used, with
which parameters, and how the last action turned out. Claims are keyed by
installation name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from bundlehub.errors import ClaimError

ACTION_INSTALL = "install"
ACTION_UPGRADE = "upgrade"
ACTION_UNINSTALL = "uninstall"
ACTION_STATUS = "status"

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"
STATUS_UNDERWAY = "underway"
STATUS_UNKNOWN = "unknown"

_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_name(name: str) -> str:
    """Return *name* if it is a legal installation name, else raise ``ClaimError``."""
    if not _NAME_RE.fullmatch(name or ""):
        raise ClaimError(
            f"invalid installation name {name!r}: "
            "names must consist of letters, digits, '_' and '-'"
        )
    return name


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Result:
    """Outcome of the last action performed on an installation."""

    message: str = ""
    action: str = ""
    status: str = STATUS_UNKNOWN


@dataclass
class Claim:
    """The installation record for one installation name."""

    name: str
    created: str = ""
    modified: str = ""
    bundle: str = ""
    image_type: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    result: Result = field(default_factory=Result)

    @classmethod
    def new(cls, name: str) -> Claim:
        """Create a fresh claim. Names may contain letters, digits, ``_`` and ``-``."""
        validate_name(name)
        now = _now()
        return cls(name=name, created=now, modified=now)

    def update(self, action: str, status: str, message: str = "") -> None:
        self.result = Result(message=message, action=action, status=status)
        self.modified = _now()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "created": self.created,
            "modified": self.modified,
            "bundle": self.bundle,
            "imageType": self.image_type,
            "parameters": dict(self.parameters),
            "result": {
                "message": self.result.message,
                "action": self.result.action,
                "status": self.result.status,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> Claim:
        result = data.get("result") or {}
        return cls(
            name=data["name"],
            created=data.get("created", ""),
            modified=data.get("modified", ""),
            bundle=data.get("bundle", ""),
            image_type=data.get("imageType", ""),
            parameters=dict(data.get("parameters") or {}),
            result=Result(
                message=result.get("message", ""),
                action=result.get("action", ""),
                status=result.get("status", STATUS_UNKNOWN),
            ),
        )
