"""Drivers execute invocation images.

New drivers are added by registering a factory under a name; the installer
only ever talks to the ``Driver`` interface.
"""

from bundlehub.driver.base import (
    Driver,
    DriverRegistry,
    Operation,
    default_registry,
    driver_names,
    lookup,
    register_driver,
)
from bundlehub.driver.debug import DebugDriver
from bundlehub.driver.docker import DockerDriver

register_driver("debug", DebugDriver)
register_driver("docker", DockerDriver)

__all__ = [
    "DebugDriver",
    "DockerDriver",
    "Driver",
    "DriverRegistry",
    "Operation",
    "default_registry",
    "driver_names",
    "lookup",
    "register_driver",
]
