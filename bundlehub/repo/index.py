"""Repository index: the catalog of every published bundle version.

The index maps a bundle name to its entries. In canonical form each list is
sorted by semantic version, newest first, with entries whose version does not
parse at the end. ``add`` and ``merge`` may leave the index unsorted; call
``sort_entries`` before relying on the order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from bundlehub.errors import (
    ConstraintParseError,
    IndexParseError,
    NoAPIVersionError,
    NoBundleNameError,
    NoBundleVersionError,
)
from bundlehub.repo.semver import Constraint, sort_descending, try_parse_version

API_VERSION_V1 = "v1"
INDEX_PATH = "index.json"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(dt: datetime) -> str:
    return dt.isoformat()


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


@dataclass
class Maintainer:
    """A bundle maintainer: a person or organization."""

    name: str = ""
    email: str = ""
    url: str = ""

    def to_dict(self) -> dict:
        return {k: v for k, v in (("name", self.name), ("email", self.email), ("url", self.url)) if v}

    @classmethod
    def from_dict(cls, data: dict) -> Maintainer:
        return cls(name=data.get("name", ""), email=data.get("email", ""), url=data.get("url", ""))


@dataclass
class BundleEntry:
    """One published version of one bundle."""

    name: str
    version: str
    home: str = ""
    # Mirror list; each URL serves the same bundle document
    urls: list[str] = field(default_factory=list)
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    maintainers: list[Maintainer] = field(default_factory=list)
    api_version: str = API_VERSION_V1
    digest: str = ""
    created: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "home": self.home,
            "urls": list(self.urls),
            "description": self.description,
            "keywords": list(self.keywords),
            "maintainers": [m.to_dict() for m in self.maintainers],
            "apiVersion": self.api_version,
            "digest": self.digest,
            "created": _format_time(self.created) if self.created else None,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> BundleEntry:
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            home=data.get("home") or "",
            urls=list(data.get("urls") or []),
            description=data.get("description") or "",
            keywords=list(data.get("keywords") or []),
            maintainers=[Maintainer.from_dict(m) for m in data.get("maintainers") or [] if m],
            api_version=data.get("apiVersion") or "",
            digest=data.get("digest") or "",
            created=_parse_time(data.get("created")),
        )


class IndexFile:
    """The index file of a bundle repository."""

    def __init__(
        self,
        api_version: str = API_VERSION_V1,
        generated: datetime | None = None,
        entries: dict[str, list[BundleEntry]] | None = None,
        public_keys: list[str] | None = None,
    ):
        self.api_version = api_version
        self.generated = generated or utcnow()
        self.entries: dict[str, list[BundleEntry]] = entries if entries is not None else {}
        self.public_keys: list[str] = public_keys if public_keys is not None else []

    # ── Mutation ─────────────────────────────────────────────────────

    def add(self, entry: BundleEntry) -> None:
        """Append *entry* under its name. Does not sort or de-duplicate."""
        self.entries.setdefault(entry.name, []).append(entry)

    def sort_entries(self) -> None:
        """Sort each name's entries newest first; unparsable versions trail."""
        for name, versions in self.entries.items():
            self.entries[name] = sort_descending(versions, lambda e: e.version)

    def merge(self, other: IndexFile) -> None:
        """Add every entry of *other* whose name and version are not already indexed.

        Existing entries are never replaced. Leaves the index unsorted.
        """
        for versions in other.entries.values():
            for entry in versions:
                if self.has(entry.name, entry.version):
                    continue
                # versions that do not parse can only be matched verbatim
                existing = self.entries.get(entry.name, [])
                if any(e.version == entry.version for e in existing):
                    continue
                self.entries.setdefault(entry.name, []).append(entry)

    # ── Lookup ───────────────────────────────────────────────────────

    def has(self, name: str, version: str) -> bool:
        try:
            self.get(name, version)
        except (NoBundleNameError, NoBundleVersionError, ConstraintParseError):
            return False
        return True

    def get(self, name: str, version: str = "") -> BundleEntry:
        """Return the first entry for *name* satisfying the *version* constraint.

        An empty constraint matches any parsable version, so on a sorted index
        it yields the newest one.
        """
        versions = self.entries.get(name)
        if versions is None:
            raise NoBundleNameError(name)
        if not versions:
            raise NoBundleVersionError(name, version)

        constraint = Constraint.parse(version) if version else None
        for entry in versions:
            parsed = try_parse_version(entry.version)
            if parsed is None:
                continue
            if constraint is None or constraint.check(parsed):
                return entry
        raise NoBundleVersionError(name, version)

    def names(self) -> list[str]:
        return sorted(self.entries)

    def search(self, text: str = "") -> list[BundleEntry]:
        """Newest entry of each bundle whose name, description or keywords mention *text*."""
        results = []
        needle = text.lower()
        for name in self.names():
            versions = self.entries[name]
            if not versions:
                continue
            latest = versions[0]
            haystack = " ".join([name, latest.description, *latest.keywords]).lower()
            if needle in haystack:
                results.append(latest)
        return results

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self) -> dict:
        data = {
            "apiVersion": self.api_version,
            "generated": _format_time(self.generated),
            "entries": {
                name: [e.to_dict() for e in versions] for name, versions in self.entries.items()
            },
        }
        if self.public_keys:
            data["publicKeys"] = list(self.public_keys)
        return data

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=2).encode("utf-8")

    def write_file(self, dest: str | Path) -> Path:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.to_json())
        return dest


def load_index(data: bytes) -> IndexFile:
    """Parse an index document and sort it.

    Raises ``NoAPIVersionError`` when ``apiVersion`` is missing and
    ``IndexParseError`` when the document is not a well-formed index.
    """
    try:
        decoded = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise IndexParseError(f"cannot parse index: {e}") from e
    if not isinstance(decoded, dict):
        raise IndexParseError("index document must be a JSON object")
    if not decoded.get("apiVersion"):
        raise NoAPIVersionError()
    try:
        index = IndexFile(
            api_version=decoded["apiVersion"],
            generated=_parse_time(decoded.get("generated")),
            entries={
                name: [BundleEntry.from_dict(e) for e in versions or []]
                for name, versions in (decoded.get("entries") or {}).items()
            },
            public_keys=list(decoded.get("publicKeys") or []),
        )
    except (AttributeError, TypeError) as e:
        raise IndexParseError(f"malformed index document: {e}") from e
    index.sort_entries()
    return index


def load_index_file(path: str | Path) -> IndexFile:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IndexParseError(f"cannot read index {path}: {e}") from e
    return load_index(data)
