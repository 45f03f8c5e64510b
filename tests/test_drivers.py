"""Tests for drivers and the install action."""

import io
import json
import subprocess

import pytest

from bundlehub.action.install import Install, build_operation
from bundlehub.bundle import CredentialLocation
from bundlehub.claim import STATUS_FAILURE, STATUS_SUCCESS, Claim
from bundlehub.credentials import CredentialSet
from bundlehub.driver import DebugDriver, DockerDriver, DriverRegistry, Operation, driver_names, lookup
from bundlehub.errors import DriverError, UnknownDriverError


def _claim() -> Claim:
    claim = Claim.new("web")
    claim.bundle = "example/web:1.0"
    claim.image_type = "docker"
    claim.parameters = {"port": 8080}
    return claim


def test_builtin_drivers_registered():
    assert driver_names() == ["debug", "docker"]
    assert isinstance(lookup("debug"), DebugDriver)
    assert isinstance(lookup("docker"), DockerDriver)
    with pytest.raises(UnknownDriverError, match="available: debug, docker"):
        lookup("kubernetes")


def test_registry_returns_fresh_driver():
    registry = DriverRegistry()
    registry.register("debug", DebugDriver)
    assert registry.lookup("debug") is not registry.lookup("debug")


def test_debug_driver_prints_operation():
    out = io.StringIO()
    op = Operation(action="install", installation="web", image="example/web:1.0", image_type="docker")

    DebugDriver(out=out).run(op)

    printed = json.loads(out.getvalue())
    assert printed["installation"] == "web"
    assert printed["imageType"] == "docker"


def test_build_operation_places_credentials():
    creds = CredentialSet(values={"token": "abc", "config": "x: 1"})
    locations = {
        "token": CredentialLocation(env="TOKEN"),
        "config": CredentialLocation(path="/etc/app.yaml", env="APP_CONFIG"),
        "missing": CredentialLocation(env="MISSING"),
    }

    op = build_operation("install", _claim(), creds, locations)

    assert op.environment == {"TOKEN": "abc", "APP_CONFIG": "x: 1"}
    assert op.files == {"/etc/app.yaml": "x: 1"}
    assert op.parameters == {"port": 8080}


def test_install_action_records_outcome():
    claim = _claim()
    Install(DebugDriver(out=io.StringIO())).run(claim, CredentialSet())
    assert claim.result.status == STATUS_SUCCESS

    class Failing(DebugDriver):
        def run(self, operation):
            raise DriverError("boom")

    claim = _claim()
    with pytest.raises(DriverError):
        Install(Failing(out=io.StringIO())).run(claim, CredentialSet())
    assert claim.result.status == STATUS_FAILURE
    assert claim.result.message == "boom"


def test_docker_command():
    op = Operation(
        action="install",
        installation="web",
        image="example/web:1.0",
        image_type="docker",
        parameters={"port": 8080},
        environment={"TOKEN": "abc"},
    )
    cmd = DockerDriver(verbose=False).command(op, {"/tmp/file-0": "/etc/app.yaml"})

    assert cmd[:3] == ["docker", "run", "--rm"]
    assert cmd[-2:] == ["example/web:1.0", "/cnab/app/run"]
    assert "CNAB_INSTALLATION_NAME=web" in cmd
    assert "CNAB_ACTION=install" in cmd
    assert "CNAB_P_PORT=8080" in cmd
    assert "TOKEN=abc" in cmd
    assert "/tmp/file-0:/etc/app.yaml:ro" in cmd


def test_docker_driver_handles_image_types():
    driver = DockerDriver(verbose=False)
    assert driver.handles("docker")
    assert driver.handles("oci")
    assert not driver.handles("vm")


def test_docker_driver_failure(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 2, stdout="pull access denied")

    monkeypatch.setattr(subprocess, "run", fake_run)
    op = Operation(action="install", installation="web", image="example/web:1.0", image_type="docker")

    with pytest.raises(DriverError, match="exited with code 2: pull access denied"):
        DockerDriver(verbose=False).run(op)
    assert calls[0][0] == "docker"


def test_docker_driver_missing_binary():
    op = Operation(action="install", installation="web", image="example/web:1.0", image_type="docker")
    with pytest.raises(DriverError, match="cannot run"):
        DockerDriver(docker_bin="/nonexistent/bundlehub-docker", verbose=False).run(op)
