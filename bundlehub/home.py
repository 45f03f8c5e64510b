"""Home directory layout and configuration.

All on-disk state (content store, download cache, claims, keyrings, merged
repository index) lives under a single home directory. A ``Home`` is passed
explicitly to every component that needs it; nothing reads the environment
after construction.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

HOME_ENV_VAR = "BUNDLEHUB_HOME"
DEFAULT_REPOSITORY = "hub.cnlabs.io"
CONFIG_FILE = "config.yaml"


def default_home_path() -> Path:
    """Return the home root from ``$BUNDLEHUB_HOME`` or ``~/.bundlehub``."""
    env = os.environ.get(HOME_ENV_VAR, "")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".bundlehub"


@dataclass(frozen=True)
class Home:
    """Paths under a bundlehub home directory."""

    root: Path

    @classmethod
    def from_env(cls, override: str | Path | None = None) -> Home:
        if override:
            return cls(Path(override).expanduser())
        return cls(default_home_path())

    def bundles(self) -> Path:
        """Content-addressed bundle store."""
        return self.root / "bundles"

    def cache(self) -> Path:
        """Downloaded bundle manifests."""
        return self.root / "cache"

    def claims(self) -> Path:
        return self.root / "claims"

    def repositories(self) -> Path:
        return self.root / "repositories"

    def repository_index(self) -> Path:
        return self.repositories() / "index.json"

    def secret_keyring(self) -> Path:
        return self.root / "secret.ring"

    def public_keyring(self) -> Path:
        return self.root / "public.ring"

    def config_file(self) -> Path:
        return self.root / CONFIG_FILE

    def load_config(self) -> dict:
        path = self.config_file()
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    def default_repository(self) -> str:
        """Registry domain used when a bundle reference names none."""
        return self.load_config().get("defaultRepository") or DEFAULT_REPOSITORY

    def ensure(self) -> Home:
        """Create the directory layout if it does not exist yet."""
        for path in (self.root, self.bundles(), self.cache(), self.claims(), self.repositories()):
            path.mkdir(parents=True, exist_ok=True)
        return self

    def __str__(self) -> str:
        return str(self.root)
