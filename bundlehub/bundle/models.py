"""The CNAB bundle manifest (``bundle.json``).

A bundle names one invocation image plus the parameters and credentials that
image expects. Instances are immutable once parsed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import IO, Any, Mapping

from bundlehub.errors import BundleParseError


@dataclass(frozen=True)
class LocationRef:
    """A location within the invocation image that refers to an image."""

    path: str = ""
    field: str = ""


@dataclass(frozen=True)
class Image:
    """A container image used by the bundle."""

    name: str = ""
    uri: str = ""
    refs: tuple[LocationRef, ...] = ()


@dataclass(frozen=True)
class InvocationImage:
    """Image type and reference of the image that performs bundle actions."""

    image_type: str = ""
    image: str = ""


@dataclass(frozen=True)
class CredentialLocation:
    """Where the invocation image expects a credential: a file path and/or an env var."""

    path: str = ""
    env: str = ""


@dataclass(frozen=True)
class ParameterDefinition:
    data_type: str = ""
    default_value: Any = None
    allowed_values: tuple[Any, ...] = ()
    min_value: int | None = None
    max_value: int | None = None
    min_length: int | None = None
    max_length: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __hash__(self) -> int:
        return hash(json.dumps(_parameter_to_dict(self), sort_keys=True))


@dataclass(frozen=True)
class Bundle:
    """A CNAB metadata document.

    ``parameters`` and ``credentials`` are read-only mappings; bundles hash
    by their canonical JSON form.
    """

    name: str
    version: str
    invocation_image: InvocationImage = field(default_factory=InvocationImage)
    images: tuple[Image, ...] = ()
    parameters: Mapping[str, ParameterDefinition] = field(default_factory=dict)
    credentials: Mapping[str, CredentialLocation] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    def __hash__(self) -> int:
        return hash(self.to_json())

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "invocationImage": {
                "imageType": self.invocation_image.image_type,
                "image": self.invocation_image.image,
            },
            "images": [
                {
                    "name": img.name,
                    "uri": img.uri,
                    "refs": [{"path": r.path, "field": r.field} for r in img.refs],
                }
                for img in self.images
            ],
            "parameters": {
                name: _parameter_to_dict(p) for name, p in self.parameters.items()
            },
            "credentials": {
                name: {"path": c.path, "env": c.env} for name, c in self.credentials.items()
            },
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    def write_file(self, dest: str | Path) -> Path:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.to_json())
        return dest


def _parameter_to_dict(p: ParameterDefinition) -> dict:
    data: dict[str, Any] = {"type": p.data_type}
    if p.default_value is not None:
        data["defaultValue"] = p.default_value
    if p.allowed_values:
        data["allowedValues"] = list(p.allowed_values)
    for key, value in (
        ("minValue", p.min_value),
        ("maxValue", p.max_value),
        ("minLength", p.min_length),
        ("maxLength", p.max_length),
    ):
        if value is not None:
            data[key] = value
    if p.metadata:
        data["metadata"] = dict(p.metadata)
    return data


def _parameter_from_dict(data: dict) -> ParameterDefinition:
    return ParameterDefinition(
        data_type=data.get("type", ""),
        default_value=data.get("defaultValue"),
        allowed_values=tuple(data.get("allowedValues") or ()),
        min_value=data.get("minValue"),
        max_value=data.get("maxValue"),
        min_length=data.get("minLength"),
        max_length=data.get("maxLength"),
        metadata=dict(data.get("metadata") or {}),
    )


def from_dict(data: dict) -> Bundle:
    """Build a ``Bundle`` from a decoded CNAB document."""
    if not isinstance(data, dict):
        raise BundleParseError("bundle document must be a JSON object")
    try:
        ii = data.get("invocationImage") or {}
        return Bundle(
            name=data.get("name", ""),
            version=data.get("version", ""),
            invocation_image=InvocationImage(
                image_type=ii.get("imageType", ""),
                image=ii.get("image", ""),
            ),
            images=tuple(
                Image(
                    name=img.get("name", ""),
                    uri=img.get("uri", ""),
                    refs=tuple(
                        LocationRef(path=r.get("path", ""), field=r.get("field", ""))
                        for r in img.get("refs") or []
                    ),
                )
                for img in data.get("images") or []
            ),
            parameters={
                name: _parameter_from_dict(p or {})
                for name, p in (data.get("parameters") or {}).items()
            },
            credentials={
                name: CredentialLocation(path=(c or {}).get("path", ""), env=(c or {}).get("env", ""))
                for name, c in (data.get("credentials") or {}).items()
            },
        )
    except (AttributeError, TypeError) as e:
        raise BundleParseError(f"malformed bundle document: {e}") from e


def parse_buffer(data: bytes) -> Bundle:
    """Read CNAB metadata out of a JSON byte string."""
    try:
        decoded = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise BundleParseError(f"cannot parse bundle: {e}") from e
    return from_dict(decoded)


def parse(text: str) -> Bundle:
    return parse_buffer(text.encode("utf-8"))


def parse_reader(reader: IO[bytes]) -> Bundle:
    return parse_buffer(reader.read())


def _unsafe_component(part: str) -> bool:
    return part in ("", ".", "..") or "\\" in part or "\x00" in part


def check_path_names(bundle: Bundle) -> Bundle:
    """Return *bundle* if its name and version can be used as file paths.

    A name may be a ``/`` separated path; a version is a single component.
    Raises ``BundleParseError`` otherwise.
    """
    if any(_unsafe_component(part) for part in bundle.name.split("/")):
        raise BundleParseError(f"bundle name {bundle.name!r} cannot be used as a file path")
    if "/" in bundle.version or _unsafe_component(bundle.version):
        raise BundleParseError(f"bundle version {bundle.version!r} cannot be used as a file path")
    return bundle
