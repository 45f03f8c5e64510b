"""Credential sets.

A credential set file is YAML::

    name: production
    credentials:
      - name: kubeconfig
        source:
          path: ~/.kube/config
      - name: token
        source:
          env: API_TOKEN
      - name: region
        source:
          value: eu-west-1

Each source is resolved to its string value when the set is loaded.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from bundlehub.errors import CredentialError

SOURCE_KINDS = ("value", "env", "path")


@dataclass
class CredentialSet:
    """Resolved credential values keyed by credential name."""

    name: str = ""
    values: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.values.get(name, default)


def resolve_source(name: str, source: dict) -> str:
    kinds = [k for k in SOURCE_KINDS if k in source]
    if len(kinds) != 1:
        raise CredentialError(
            f"credential {name!r} must have exactly one source of {', '.join(SOURCE_KINDS)}"
        )
    kind = kinds[0]
    if kind == "value":
        return str(source["value"])
    if kind == "env":
        var = source["env"]
        if var not in os.environ:
            raise CredentialError(f"credential {name!r}: environment variable {var} is not set")
        return os.environ[var]
    path = Path(str(source["path"])).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise CredentialError(f"credential {name!r}: cannot read {path}: {e}") from e


def load_credentials(path: str | Path | None) -> CredentialSet:
    """Load and resolve a credential set. An empty path yields an empty set."""
    if not path:
        return CredentialSet()
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise CredentialError(f"cannot read credential set {path}: {e}") from e
    except yaml.YAMLError as e:
        raise CredentialError(f"cannot parse credential set {path}: {e}") from e

    if not isinstance(data, dict):
        raise CredentialError(f"credential set {path} must be a mapping")

    creds = CredentialSet(name=data.get("name", path.stem))
    for item in data.get("credentials") or []:
        if not isinstance(item, dict) or not item.get("name"):
            raise CredentialError(f"credential set {path}: every credential needs a name")
        creds.values[item["name"]] = resolve_source(item["name"], item.get("source") or {})
    return creds
