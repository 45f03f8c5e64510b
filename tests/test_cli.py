"""End-to-end tests for the bundlehub command line."""

import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from bundlehub.cli import main
from bundlehub.repo.index import load_index_file

MANIFEST = {
    "name": "app",
    "version": "1.0.0",
    "invocationImage": {"imageType": "docker", "image": "example/app:1.0.0"},
}


def _setup(tmpdir: str) -> tuple[list[str], Path]:
    bundle_file = Path(tmpdir) / "src" / "app-1.0.0.json"
    bundle_file.parent.mkdir()
    bundle_file.write_text(json.dumps(MANIFEST))
    return ["--home", str(Path(tmpdir) / "home")], bundle_file


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_key_create_and_list():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, _ = _setup(tmpdir)
        runner = CliRunner()

        result = runner.invoke(main, home + ["key", "create", "Jane <jane@example.com>"])
        assert result.exit_code == 0, result.output
        assert (Path(tmpdir) / "home" / "secret.ring").exists()
        assert (Path(tmpdir) / "home" / "public.ring").exists()

        result = runner.invoke(main, home + ["key", "list"])
        assert result.exit_code == 0
        assert "Jane" in result.output


def test_bundle_store_and_verify():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        runner = CliRunner()
        runner.invoke(main, home + ["key", "create", "Jane <jane@example.com>"])

        result = runner.invoke(main, home + ["bundle", "store", str(bundle_file)])
        assert result.exit_code == 0, result.output

        stored = list((Path(tmpdir) / "home" / "bundles").iterdir())
        assert len(stored) == 1
        result = runner.invoke(main, home + ["bundle", "verify", stored[0].name])
        assert result.exit_code == 0, result.output
        assert "Digest matches" in result.output
        assert "Signed by" in result.output


def test_bundle_store_without_keys_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        result = CliRunner().invoke(main, home + ["bundle", "store", str(bundle_file)])
        assert result.exit_code == 1
        assert "Error" in result.output


def test_repo_generate_and_search():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        runner = CliRunner()

        result = runner.invoke(main, home + ["repo", "generate", str(bundle_file.parent), "--url", "http://localhost:8080"])
        assert result.exit_code == 0, result.output
        index = load_index_file(bundle_file.parent / "index.json")
        assert index.get("app").urls == ["http://localhost:8080/app-1.0.0.json"]

        result = runner.invoke(main, home + ["repo", "merge", str(bundle_file.parent / "index.json")])
        assert result.exit_code == 0, result.output

        result = runner.invoke(main, home + ["search", "app", "--version", "^1.0"])
        assert result.exit_code == 0, result.output
        assert "1.0.0" in result.output


def test_install_with_debug_driver_and_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        runner = CliRunner()

        result = runner.invoke(main, home + ["install", "my_app", "-f", str(bundle_file), "-d", "debug"])
        assert result.exit_code == 0, result.output
        assert "Installed my_app" in result.output
        assert (Path(tmpdir) / "home" / "claims" / "my_app.json").exists()

        result = runner.invoke(main, home + ["status", "my_app"])
        assert result.exit_code == 0, result.output
        assert "success" in result.output

        result = runner.invoke(main, home + ["list"])
        assert result.exit_code == 0
        assert "my_app" in result.output


def test_install_argument_errors():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        runner = CliRunner()

        result = runner.invoke(main, home + ["install"])
        assert result.exit_code == 1
        assert "at least one argument" in result.output

        result = runner.invoke(main, home + ["install", "my_app", "example.com/app:1.0", "-f", str(bundle_file)])
        assert result.exit_code == 1
        assert "not both" in result.output


def test_install_unknown_driver():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        result = CliRunner().invoke(main, home + ["install", "my_app", "-f", str(bundle_file), "-d", "nope"])
        assert result.exit_code == 1
        assert "unsupported driver" in result.output


def test_status_unknown_installation():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, _ = _setup(tmpdir)
        result = CliRunner().invoke(main, home + ["status", "ghost"])
        assert result.exit_code == 1


def test_status_rejects_path_like_names():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, _ = _setup(tmpdir)
        (Path(tmpdir) / "home" / "x.json").parent.mkdir(parents=True, exist_ok=True)
        (Path(tmpdir) / "home" / "x.json").write_text(json.dumps({"name": "x"}))

        result = CliRunner().invoke(main, home + ["status", "../x"])

        assert result.exit_code == 1
        assert "invalid installation name" in result.output


def test_status_corrupt_claim():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, _ = _setup(tmpdir)
        claims = Path(tmpdir) / "home" / "claims"
        claims.mkdir(parents=True)
        (claims / "broken.json").write_text("{not json")

        result = CliRunner().invoke(main, home + ["status", "broken"])

        assert result.exit_code == 1
        assert "Error" in result.output


def test_install_missing_parameter_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        result = CliRunner().invoke(
            main, home + ["install", "x", "-f", str(bundle_file), "-p", str(Path(tmpdir) / "nope.toml"), "-d", "debug"]
        )
        assert result.exit_code == 1
        assert "Error" in result.output
        assert "nope.toml" in result.output


def test_repo_merge_bad_index():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, _ = _setup(tmpdir)
        bad = Path(tmpdir) / "bad.json"
        runner = CliRunner()

        for content in ["{not json", "[]"]:
            bad.write_text(content)
            result = runner.invoke(main, home + ["repo", "merge", str(bad)])
            assert result.exit_code == 1
            assert "Error" in result.output


def test_search_malformed_constraint():
    with tempfile.TemporaryDirectory() as tmpdir:
        home, bundle_file = _setup(tmpdir)
        runner = CliRunner()
        runner.invoke(main, home + ["repo", "generate", str(bundle_file.parent)])
        runner.invoke(main, home + ["repo", "merge", str(bundle_file.parent / "index.json")])

        result = runner.invoke(main, home + ["search", "app", "--version", ">>1"])

        assert result.exit_code == 1
        assert "Error" in result.output
        assert "No matching bundles" not in result.output
