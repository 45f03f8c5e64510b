"""Generate a bundle repository from a directory of packaged bundles.

Given a directory of ``bundle.json`` files this writes:

- ``repositories/<name>/tags/<version>``: one entry document per bundle
- ``index.json``: the sorted index of every entry

Generation stops at the first unreadable or unparsable bundle, or at one
whose name or version cannot be used as a file path. Tag files
written before the failure are left in place; re-running overwrites them.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from bundlehub.bundle.loader import load_bundle
from bundlehub.bundle.models import check_path_names
from bundlehub.crypto import digest
from bundlehub.repo.index import (
    API_VERSION_V1,
    INDEX_PATH,
    BundleEntry,
    IndexFile,
    utcnow,
)

logger = logging.getLogger(__name__)

REPOSITORIES_DIR = "repositories"
TAGS_DIR = "tags"


def url_join(base_url: str, *paths: str) -> str:
    """Join *paths* onto the path of *base_url*.

    Raises ``ValueError`` if *base_url* is not an absolute URL.
    """
    parts = urlsplit(base_url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {base_url!r}")
    path = posixpath.join(parts.path or "/", *paths)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def bundle_url(base_url: str, rel_path: str) -> str:
    """Download URL for a bundle at *rel_path*, falling back to a plain path join."""
    try:
        return url_join(base_url, rel_path)
    except ValueError:
        return posixpath.join(base_url, rel_path) if base_url else rel_path


def tag_path(directory: str | Path, name: str, version: str) -> Path:
    return Path(directory) / REPOSITORIES_DIR / name / TAGS_DIR / version


def find_bundle_files(directory: Path) -> list[Path]:
    """Top-level ``*.json`` files plus ``*/*.json``, minus the index itself."""
    candidates = sorted(directory.glob("*.json")) + sorted(directory.glob("*/*.json"))
    return [p for p in candidates if p.name != INDEX_PATH and p.is_file()]


def generate_from_directory(directory: str | Path, base_url: str = "") -> IndexFile:
    """Index every packaged bundle under *directory* and write the repository files."""
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"not a directory: {directory}")

    index = IndexFile()

    for bundle_file in find_bundle_files(directory):
        bundle = check_path_names(load_bundle(bundle_file, insecure=True))
        rel_path = bundle_file.relative_to(directory).as_posix()

        entry = BundleEntry(
            name=bundle.name,
            version=bundle.version,
            api_version=API_VERSION_V1,
            urls=[bundle_url(base_url, rel_path)],
            digest=digest.of_file(bundle_file),
            created=utcnow(),
        )
        logger.info("adding %s %s", entry.name, entry.version)
        index.add(entry)

        dest = tag_path(directory, entry.name, entry.version)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(entry.to_json())

    index.sort_entries()
    index.write_file(directory / INDEX_PATH)
    return index
