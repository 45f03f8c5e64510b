"""Parameter files, decoded by file extension into a flat value map."""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

from bundlehub.errors import ParameterError

SUPPORTED_EXTENSIONS = (".toml", ".json")


def decode_values(data: bytes, ext: str) -> dict[str, Any]:
    """Decode parameter *data* using the decoder for *ext*."""
    try:
        if ext == ".toml":
            values = tomllib.loads(data.decode("utf-8"))
        elif ext == ".json":
            values = json.loads(data)
        else:
            raise ParameterError(f"no decoder for {ext or 'files without an extension'}")
    except (tomllib.TOMLDecodeError, ValueError) as e:
        raise ParameterError(f"cannot decode {ext} parameters: {e}") from e
    if not isinstance(values, dict):
        raise ParameterError(f"{ext} parameters must be a table of name/value pairs")
    return values


def parse_values(path: str | Path) -> dict[str, Any]:
    """Read a ``.toml`` or ``.json`` parameter file."""
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParameterError(f"no decoder for {ext or 'files without an extension'}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ParameterError(f"cannot read parameter file {path}: {e}") from e
    return decode_values(data, ext)
