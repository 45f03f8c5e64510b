"""CNAB bundle manifests."""

from bundlehub.bundle.models import (
    Bundle,
    CredentialLocation,
    Image,
    InvocationImage,
    LocationRef,
    ParameterDefinition,
    check_path_names,
    from_dict,
    parse,
    parse_buffer,
    parse_reader,
)

__all__ = [
    "Bundle",
    "CredentialLocation",
    "Image",
    "InvocationImage",
    "LocationRef",
    "ParameterDefinition",
    "check_path_names",
    "from_dict",
    "parse",
    "parse_buffer",
    "parse_reader",
]
