"""Claim storage.

``ClaimStore`` is the contract the installer depends on; the filesystem
implementation keeps one JSON document per installation name and simply
overwrites on every store.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from bundlehub.claim.models import Claim, validate_name
from bundlehub.errors import ClaimError


class ClaimStore(Protocol):
    def store(self, claim: Claim) -> None: ...

    def read(self, name: str) -> Claim: ...

    def list(self) -> list[str]: ...

    def delete(self, name: str) -> None: ...


class FilesystemClaimStore:
    """Claims as ``<directory>/<name>.json``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{validate_name(name)}.json"

    def store(self, claim: Claim) -> None:
        path = self._path(claim.name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(claim.to_dict(), f, indent=2)
        except OSError as e:
            raise ClaimError(f"cannot store claim {claim.name!r}: {e}") from e

    def read(self, name: str) -> Claim:
        path = self._path(name)
        if not path.exists():
            raise ClaimError(f"no claim found for installation {name!r}")
        try:
            with open(path) as f:
                return Claim.from_dict(json.load(f))
        except OSError as e:
            raise ClaimError(f"cannot read claim {name!r}: {e}") from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ClaimError(f"corrupt claim {name!r}: {e}") from e

    def list(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def delete(self, name: str) -> None:
        path = self._path(name)
        if not path.exists():
            raise ClaimError(f"no claim found for installation {name!r}")
        path.unlink()
