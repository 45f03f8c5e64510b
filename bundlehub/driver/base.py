"""Driver interface and name-based registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from bundlehub.errors import UnknownDriverError


@dataclass
class Operation:
    """Everything a driver needs to run one action of an invocation image."""

    action: str
    installation: str
    image: str
    image_type: str
    parameters: dict[str, Any] = field(default_factory=dict)
    # environment variables to set inside the invocation image
    environment: dict[str, str] = field(default_factory=dict)
    # container path -> file content
    files: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "installation": self.installation,
            "image": self.image,
            "imageType": self.image_type,
            "parameters": dict(self.parameters),
            "environment": dict(self.environment),
            "files": dict(self.files),
        }


class Driver(ABC):
    """Executes operations against invocation images."""

    @abstractmethod
    def run(self, operation: Operation) -> None:
        """Run *operation*, raising ``DriverError`` if it fails."""

    @abstractmethod
    def handles(self, image_type: str) -> bool:
        """True if this driver can run images of *image_type*."""


DriverFactory = Callable[[], Driver]


class DriverRegistry:
    """Maps driver names to factories."""

    def __init__(self):
        self._factories: dict[str, DriverFactory] = {}

    def register(self, name: str, factory: DriverFactory) -> None:
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def lookup(self, name: str) -> Driver:
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownDriverError(name, self.names())
        return factory()


default_registry = DriverRegistry()


def register_driver(name: str, factory: DriverFactory) -> None:
    default_registry.register(name, factory)


def lookup(name: str) -> Driver:
    return default_registry.lookup(name)


def driver_names() -> list[str]:
    return default_registry.names()
