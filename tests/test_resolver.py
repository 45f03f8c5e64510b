"""Tests for bundle reference parsing and resolution."""

import json
import tempfile
from pathlib import Path

import httpx
import pytest

from bundlehub.bundle.loader import load_bundle
from bundlehub.crypto import digest
from bundlehub.errors import BundleReferenceError, FetchError
from bundlehub.home import Home
from bundlehub.repo.resolver import Resolver, parse_reference
from bundlehub.signature import KeyRing, Signer, create_key

BUNDLE = json.dumps(
    {
        "name": "helloworld",
        "version": "0.1.0",
        "invocationImage": {"imageType": "docker", "image": "example/helloworld:0.1.0"},
    }
).encode()


def _entry(urls: list[str], entry_digest: str = "") -> bytes:
    return json.dumps(
        {
            "name": "helloworld",
            "version": "0.1.0",
            "urls": urls,
            "apiVersion": "v1",
            "digest": entry_digest,
            "created": "2024-01-01T00:00:00+00:00",
        }
    ).encode()


class _Routes:
    """A fake HTTP server: maps URLs to (status, body) and records requests."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        status, body = route
        return httpx.Response(status, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def _resolver(tmpdir: str, routes: _Routes, **kwargs) -> Resolver:
    return Resolver(Path(tmpdir) / "cache", default_repository="hub.example.com", client=routes.client(), **kwargs)


# --- Reference parsing ---


def test_parse_reference_with_domain_and_tag():
    ref = parse_reference("name.example.org/bundle:1.0.0")
    assert ref.protocol == "https"
    assert ref.domain == "name.example.org"
    assert ref.path == "bundle"
    assert ref.tag == "1.0.0"


def test_parse_reference_defaults_tag_to_latest():
    ref = parse_reference("bundles.example.org/team/app")
    assert ref.path == "team/app"
    assert ref.tag == "latest"


def test_parse_reference_without_domain():
    ref = parse_reference("app:2.0")
    assert ref.domain == ""
    assert ref.path == "app"


def test_parse_reference_explicit_protocol_and_port():
    ref = parse_reference("http://localhost:8080/team/app:2.0")
    assert ref.protocol == "http"
    assert ref.domain == "localhost:8080"
    assert ref.path == "team/app"
    assert ref.tag == "2.0"


def test_parse_reference_rejects_bad_input():
    for bad in ["", "Example/App:1.0", "app:-bad", "a/b/:1.0", "app@sha256:" + "a" * 64]:
        with pytest.raises(BundleReferenceError):
            parse_reference(bad)


def test_parse_reference_accepts_tag_with_digest():
    ref = parse_reference("example.com/app:1.0@sha256:" + "b" * 64)
    assert ref.tag == "1.0"
    assert ref.digest == "sha256:" + "b" * 64


# --- Lookup URL ---


def test_lookup_url_uses_reference_domain():
    with tempfile.TemporaryDirectory() as tmpdir:
        r = _resolver(tmpdir, _Routes({}))
        assert r.lookup_url("name.example.org/bundle:1.0.0") == (
            "https://name.example.org/repositories/bundle/tags/1.0.0"
        )


def test_lookup_url_substitutes_default_domain():
    with tempfile.TemporaryDirectory() as tmpdir:
        r = _resolver(tmpdir, _Routes({}))
        assert r.lookup_url("bundle:1.0.0") == "https://hub.example.com/repositories/bundle/tags/1.0.0"


def test_lookup_url_defaults_to_latest():
    with tempfile.TemporaryDirectory() as tmpdir:
        r = _resolver(tmpdir, _Routes({}))
        assert r.lookup_url("name.example.org/bundle") == r.lookup_url("name.example.org/bundle:latest")


def test_from_home_reads_default_repository():
    with tempfile.TemporaryDirectory() as tmpdir:
        home = Home(Path(tmpdir))
        home.ensure()
        home.config_file().write_text("defaultRepository: bundles.internal.example\n")
        with Resolver.from_home(home, client=_Routes({}).client()) as r:
            assert r.cache_dir == home.cache()
            assert r.lookup_url("app:1.0") == "https://bundles.internal.example/repositories/app/tags/1.0"


# --- Resolution ---

LOOKUP = "https://hub.example.com/repositories/helloworld/tags/0.1.0"


def test_resolve_uses_first_working_mirror():
    with tempfile.TemporaryDirectory() as tmpdir:
        mirrors = ["https://a.example.com/hw.json", "https://b.example.com/hw.json", "https://c.example.com/hw.json"]
        routes = _Routes(
            {
                LOOKUP: (200, _entry(mirrors, digest.of_buffer(BUNDLE))),
                mirrors[0]: (500, b"oops"),
                mirrors[1]: (200, BUNDLE),
                mirrors[2]: (200, BUNDLE),
            }
        )
        path = _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        assert path == Path(tmpdir) / "cache" / "helloworld-0.1.0.json"
        assert path.read_bytes() == BUNDLE
        assert routes.requested == [LOOKUP, mirrors[0], mirrors[1]]


def test_resolve_skips_transport_errors():
    with tempfile.TemporaryDirectory() as tmpdir:
        mirrors = ["https://down.example.com/hw.json", "https://up.example.com/hw.json"]
        routes = _Routes(
            {
                LOOKUP: (200, _entry(mirrors)),
                mirrors[0]: httpx.ConnectError("connection refused"),
                mirrors[1]: (200, BUNDLE),
            }
        )
        path = _resolver(tmpdir, routes).resolve("helloworld:0.1.0")
        assert path.name == "helloworld-0.1.0.json"


def test_resolve_fails_when_all_mirrors_fail():
    with tempfile.TemporaryDirectory() as tmpdir:
        mirrors = ["https://a.example.com/hw.json", "https://b.example.com/hw.json"]
        routes = _Routes({LOOKUP: (200, _entry(mirrors))})

        with pytest.raises(FetchError) as excinfo:
            _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        for url in mirrors:
            assert url in str(excinfo.value)


def test_resolve_lookup_non_ok_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(FetchError) as excinfo:
            _resolver(tmpdir, _Routes({})).resolve("helloworld:0.1.0")

        assert excinfo.value.status_code == 404
        assert excinfo.value.url == LOOKUP
        assert LOOKUP in str(excinfo.value)


def test_resolve_skips_mirror_with_wrong_digest():
    with tempfile.TemporaryDirectory() as tmpdir:
        mirrors = ["https://a.example.com/hw.json"]
        routes = _Routes(
            {
                LOOKUP: (200, _entry(mirrors, digest.of_buffer(b"something else"))),
                mirrors[0]: (200, BUNDLE),
            }
        )
        with pytest.raises(FetchError):
            _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        path = _resolver(tmpdir, routes, verify_digest=False).resolve("helloworld:0.1.0")
        assert path.read_bytes() == BUNDLE


@pytest.mark.parametrize(
    "name, version",
    [("../../escaped", "1.0.0"), ("", "1.0.0"), ("app", "../../x"), ("app", ""), ("a\\..\\b", "1.0.0")],
)
def test_resolve_skips_bundle_with_unsafe_file_names(name, version):
    with tempfile.TemporaryDirectory() as tmpdir:
        body = json.dumps({"name": name, "version": version, "invocationImage": {}}).encode()
        mirrors = ["https://a.example.com/hw.json"]
        routes = _Routes({LOOKUP: (200, _entry(mirrors)), mirrors[0]: (200, body)})

        with pytest.raises(FetchError):
            _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        assert [p for p in Path(tmpdir).rglob("*") if p.is_file()] == []


def test_resolve_nested_name_stays_in_cache():
    with tempfile.TemporaryDirectory() as tmpdir:
        body = json.dumps({"name": "team/app", "version": "1.0.0", "invocationImage": {}}).encode()
        mirrors = ["https://a.example.com/hw.json"]
        routes = _Routes({LOOKUP: (200, _entry(mirrors)), mirrors[0]: (200, body)})

        path = _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        assert path == Path(tmpdir) / "cache" / "team" / "app-1.0.0.json"


def test_resolve_caches_signed_bundle_as_served():
    with tempfile.TemporaryDirectory() as tmpdir:
        key = create_key("Jane <jane@example.com>")
        signed = Signer(key).clearsign(BUNDLE)
        mirrors = ["https://a.example.com/hw.json"]
        routes = _Routes({LOOKUP: (200, _entry(mirrors, digest.of_buffer(signed))), mirrors[0]: (200, signed)})

        path = _resolver(tmpdir, routes).resolve("helloworld:0.1.0")

        assert path.name == "helloworld-0.1.0.json"
        assert path.read_bytes() == signed
        bundle = load_bundle(path, keyring=KeyRing([key.public_only()]))
        assert bundle.name == "helloworld"


def test_fetch_entry_decodes_entry():
    with tempfile.TemporaryDirectory() as tmpdir:
        routes = _Routes({LOOKUP: (200, _entry(["https://a.example.com/hw.json"], "abc"))})
        entry = _resolver(tmpdir, routes).fetch_entry("helloworld:0.1.0")
        assert entry.name == "helloworld"
        assert entry.urls == ["https://a.example.com/hw.json"]
        assert entry.digest == "abc"
