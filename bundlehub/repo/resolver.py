"""Resolve bundle references to locally cached bundle files.

A reference looks like a container image reference with an optional
protocol prefix::

    https://bundles.example.org/team/app:1.0.0
    bundles.example.org/app            (tag defaults to "latest")
    app:0.1.0                          (domain defaults to the home's repository)

Resolution looks up the index entry at
``<proto>://<domain>/repositories/<path>/tags/<tag>`` and then downloads the
bundle from the first of the entry's mirror URLs that answers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import httpx

from bundlehub.bundle.models import check_path_names, parse_buffer
from bundlehub.crypto import digest
from bundlehub.errors import BundleParseError, BundleReferenceError, FetchError, SignatureError
from bundlehub.home import DEFAULT_REPOSITORY, Home
from bundlehub.repo.index import BundleEntry
from bundlehub.signature.clearsign import is_clearsigned, split_clearsigned

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL = "https"
DEFAULT_TAG = "latest"
NAME_TOTAL_LENGTH_MAX = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN_RE = re.compile(rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?")
_PATH_COMPONENT_RE = re.compile(r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*")
_TAG_RE = re.compile(r"[\w][\w.-]{0,127}")
_DIGEST_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}")


@dataclass(frozen=True)
class BundleReference:
    """A parsed, tagged bundle reference."""

    protocol: str
    domain: str
    path: str
    tag: str
    digest: str = ""

    @property
    def name(self) -> str:
        return f"{self.domain}/{self.path}" if self.domain else self.path

    def with_domain(self, domain: str) -> BundleReference:
        return BundleReference(self.protocol, domain, self.path, self.tag, self.digest)

    def __str__(self) -> str:
        ref = f"{self.name}:{self.tag}"
        if self.digest:
            ref += f"@{self.digest}"
        return f"{self.protocol}://{ref}"


def _split_domain(name: str) -> tuple[str, str]:
    first, sep, rest = name.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first, rest
    return "", name


def parse_reference(reference: str) -> BundleReference:
    """Parse *reference*, defaulting the protocol to https and the tag to ``latest``."""
    if not reference or not reference.strip():
        raise BundleReferenceError("bundle reference is empty")

    protocol, sep, remainder = reference.strip().partition("://")
    if not sep:
        protocol, remainder = DEFAULT_PROTOCOL, protocol
    if not protocol:
        raise BundleReferenceError(f"failed to parse bundle reference {reference!r}: empty protocol")

    ref_digest = ""
    if "@" in remainder:
        remainder, ref_digest = remainder.split("@", 1)
        if not _DIGEST_RE.fullmatch(ref_digest):
            raise BundleReferenceError(f"failed to parse bundle reference {reference!r}: invalid digest")

    name, tag = remainder, ""
    slash = remainder.rfind("/")
    colon = remainder.rfind(":")
    if colon > slash:
        name, tag = remainder[:colon], remainder[colon + 1:]
        if not _TAG_RE.fullmatch(tag):
            raise BundleReferenceError(f"failed to parse bundle reference {reference!r}: invalid tag {tag!r}")

    if not name:
        raise BundleReferenceError(f"failed to parse bundle reference {reference!r}: missing name")
    if len(name) > NAME_TOTAL_LENGTH_MAX:
        raise BundleReferenceError(
            f"failed to parse bundle reference {reference!r}: name longer than {NAME_TOTAL_LENGTH_MAX} characters"
        )

    domain, path = _split_domain(name)
    if domain and not _DOMAIN_RE.fullmatch(domain):
        raise BundleReferenceError(f"failed to parse bundle reference {reference!r}: invalid domain {domain!r}")
    for component in path.split("/"):
        if not _PATH_COMPONENT_RE.fullmatch(component):
            if component.lower() != component:
                raise BundleReferenceError(
                    f"failed to parse bundle reference {reference!r}: repository name must be lowercase"
                )
            raise BundleReferenceError(
                f"failed to parse bundle reference {reference!r}: invalid path component {component!r}"
            )

    if not tag:
        if ref_digest:
            raise BundleReferenceError(f"unsupported bundle reference {reference!r}: a tag is required")
        tag = DEFAULT_TAG

    return BundleReference(protocol=protocol, domain=domain, path=path, tag=tag, digest=ref_digest)


class Resolver:
    """Fetches bundles from remote repositories into a local cache.

    ``verify_digest`` checks each download against the index entry's digest;
    a mismatching mirror is skipped like any other failed mirror.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        default_repository: str = DEFAULT_REPOSITORY,
        client: httpx.Client | None = None,
        verify_digest: bool = True,
        timeout: float = 30.0,
    ):
        self.cache_dir = Path(cache_dir)
        self.default_repository = default_repository
        self.verify_digest = verify_digest
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_home(cls, home: Home, **kwargs) -> Resolver:
        return cls(home.cache(), default_repository=home.default_repository(), **kwargs)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> Resolver:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Lookup ───────────────────────────────────────────────────────

    def normalize(self, reference: str | BundleReference) -> BundleReference:
        ref = parse_reference(reference) if isinstance(reference, str) else reference
        if not ref.domain:
            ref = ref.with_domain(self.default_repository)
        return ref

    def lookup_url(self, reference: str | BundleReference) -> str:
        """URL of the index entry for *reference*."""
        ref = self.normalize(reference)
        return f"{ref.protocol}://{ref.domain}/repositories/{ref.path}/tags/{ref.tag}"

    def _get(self, url: str) -> httpx.Response:
        try:
            return self.client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(f"request to {url} failed: {e}", url=url) from e

    def fetch_entry(self, reference: str | BundleReference) -> BundleEntry:
        url = self.lookup_url(reference)
        resp = self._get(url)
        if resp.status_code != httpx.codes.OK:
            raise FetchError(
                f"request to {url} responded with a non-200 status code: {resp.status_code}",
                url=url,
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise FetchError(f"invalid index entry from {url}: {e}", url=url, status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise FetchError(f"invalid index entry from {url}: expected a JSON object", url=url)
        return BundleEntry.from_dict(data)

    # ── Download ─────────────────────────────────────────────────────

    def cache_path(self, name: str, version: str) -> Path:
        return self.cache_dir / f"{name}-{version}.json"

    def _download(self, entry: BundleEntry, url: str) -> Path | None:
        try:
            resp = self._get(url)
        except FetchError as e:
            logger.warning("%s", e)
            return None
        if resp.status_code != httpx.codes.OK:
            logger.warning("request to %s responded with a non-200 status code: %d", url, resp.status_code)
            return None

        body = resp.content
        if self.verify_digest and entry.digest and not digest.verify(body, entry.digest):
            logger.warning(
                "bundle from %s does not match digest %s (got %s)", url, entry.digest, digest.of_buffer(body)
            )
            return None
        try:
            # signed bundles are cached as served and verified when loaded
            payload = split_clearsigned(body)[0] if is_clearsigned(body) else body
            bundle = check_path_names(parse_buffer(payload))
        except (BundleParseError, SignatureError) as e:
            logger.warning("bundle from %s could not be parsed: %s", url, e)
            return None

        dest = self.cache_path(bundle.name, bundle.version)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(body)
        logger.debug("cached %s %s from %s at %s", bundle.name, bundle.version, url, dest)
        return dest

    def resolve(self, reference: str | BundleReference) -> Path:
        """Download the bundle named by *reference* and return its cached path."""
        entry = self.fetch_entry(reference)
        for url in entry.urls:
            path = self._download(entry, url)
            if path is not None:
                return path
        raise FetchError(
            f"unable to fetch {entry.name} {entry.version}: "
            f"no requests to the following URLs succeeded: {entry.urls}"
        )
