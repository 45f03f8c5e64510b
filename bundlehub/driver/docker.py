"""Run invocation images with the ``docker`` command line client.

Set ``VERBOSE=true`` to stream the container's output.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

from bundlehub.driver.base import Driver, Operation
from bundlehub.errors import DriverError

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("docker", "oci")
RUN_ENTRYPOINT = "/cnab/app/run"


class DockerDriver(Driver):
    def __init__(self, docker_bin: str = "docker", verbose: bool | None = None):
        self.docker_bin = docker_bin
        if verbose is None:
            verbose = os.environ.get("VERBOSE", "").lower() == "true"
        self.verbose = verbose

    def handles(self, image_type: str) -> bool:
        return image_type in IMAGE_TYPES

    def command(self, operation: Operation, mounts: dict[str, str]) -> list[str]:
        env = {
            "CNAB_INSTALLATION_NAME": operation.installation,
            "CNAB_ACTION": operation.action,
        }
        for name, value in operation.parameters.items():
            env[f"CNAB_P_{name.upper()}"] = str(value)
        env.update(operation.environment)

        cmd = [self.docker_bin, "run", "--rm"]
        for key in sorted(env):
            cmd += ["-e", f"{key}={env[key]}"]
        for host_path, container_path in sorted(mounts.items()):
            cmd += ["-v", f"{host_path}:{container_path}:ro"]
        cmd += [operation.image, RUN_ENTRYPOINT]
        return cmd

    def run(self, operation: Operation) -> None:
        with tempfile.TemporaryDirectory(prefix="bundlehub-") as tmp:
            mounts = {}
            for i, (container_path, content) in enumerate(sorted(operation.files.items())):
                host_path = Path(tmp) / f"file-{i}"
                host_path.write_text(content, encoding="utf-8")
                mounts[str(host_path)] = container_path

            cmd = self.command(operation, mounts)
            logger.debug("running %s", " ".join(cmd[:3] + [operation.image]))
            try:
                proc = subprocess.run(
                    cmd,
                    stdout=None if self.verbose else subprocess.PIPE,
                    stderr=None if self.verbose else subprocess.STDOUT,
                    text=True,
                )
            except OSError as e:
                raise DriverError(f"cannot run {self.docker_bin}: {e}") from e

        if proc.returncode != 0:
            output = (proc.stdout or "").strip()
            detail = f": {output[-2000:]}" if output else ""
            raise DriverError(f"invocation image {operation.image} exited with code {proc.returncode}{detail}")
