"""Install orchestration.

``install`` turns a bundle source into a running installation:

1. resolve the bundle source to a local bundle file
2. load the bundle and validate its invocation image
3. pick a driver and load credentials
4. create a claim holding the image and parameters
5. run the install action
6. store the claim, whether or not the install succeeded

The claim is stored even after a failed install because the invocation image
may already have created resources; the claim is then the only record of
what was attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from bundlehub.action.install import Install
from bundlehub.bundle.loader import load_bundle
from bundlehub.bundle.models import Bundle, InvocationImage
from bundlehub.claim.models import Claim
from bundlehub.claim.storage import ClaimStore
from bundlehub.credentials import load_credentials
from bundlehub.driver.base import DriverRegistry, default_registry
from bundlehub.errors import ImageValidationError, InstallError, UsageError
from bundlehub.parameters import parse_values
from bundlehub.repo.resolver import Resolver
from bundlehub.signature import KeyRing

logger = logging.getLogger(__name__)

DOCKERISH_IMAGE_TYPES = ("docker", "oci")

USAGE = (
    "required arguments are NAME (name of the installation) and BUNDLE "
    "(CNAB bundle name) or file\n"
    "Valid inputs:\n"
    "\t$ bundlehub install NAME BUNDLE\n"
    "\t$ bundlehub install NAME -f path-to-bundle.json"
)


@dataclass
class BundleSource:
    """Where the bundle comes from: a reference to resolve or a local file."""

    reference: str = ""
    file: str = ""


def bundle_source_from_args(args: Sequence[str], bundle_file: str = "") -> tuple[str, BundleSource]:
    """Split ``NAME [BUNDLE]`` arguments and a ``--file`` flag into name and source.

    Exactly one of BUNDLE and the file flag must be given.
    """
    if len(args) < 1:
        raise UsageError(
            "this command requires at least one argument: NAME (name for the installation). "
            "It also requires a BUNDLE (CNAB bundle name) or file (using -f)\n" + USAGE.split("\n", 1)[1]
        )
    if len(args) > 2:
        raise UsageError(f"too many arguments\n{USAGE}")
    if len(args) == 2 and bundle_file:
        raise UsageError("please use either -f or specify a BUNDLE, but not both")
    if len(args) < 2 and not bundle_file:
        raise UsageError(USAGE)
    if len(args) == 2:
        return args[0], BundleSource(reference=args[1])
    return args[0], BundleSource(file=bundle_file)


def resolve_bundle_file(source: BundleSource, resolver: Resolver | None) -> Path:
    if source.file:
        return Path(source.file)
    if resolver is None:
        raise UsageError(f"cannot resolve {source.reference!r}: no resolver configured")
    return resolver.resolve(source.reference)


def validate_image(image: InvocationImage) -> None:
    """Container images must name an explicit version; other image types pass."""
    if image.image_type in DOCKERISH_IMAGE_TYPES and ":" not in image.image:
        raise ImageValidationError(f"version is required for invocation image {image.image!r}")


def install(
    installation_name: str,
    source: BundleSource,
    claim_store: ClaimStore,
    resolver: Resolver | None = None,
    credentials_file: str = "",
    parameters_file: str = "",
    driver_name: str = "docker",
    drivers: DriverRegistry | None = None,
    keyring: KeyRing | None = None,
    insecure: bool = False,
) -> Claim:
    """Install a bundle and record the claim.

    Returns the stored claim. If the install action fails the claim is still
    stored and an ``InstallError`` wrapping the failure is raised; if storing
    the claim fails, that error is raised instead.
    """
    bundle_path = resolve_bundle_file(source, resolver)
    bundle: Bundle = load_bundle(bundle_path, keyring=keyring, insecure=insecure)
    validate_image(bundle.invocation_image)

    driver = (drivers or default_registry).lookup(driver_name)
    creds = load_credentials(credentials_file)

    claim = Claim.new(installation_name)
    claim.bundle = bundle.invocation_image.image
    claim.image_type = bundle.invocation_image.image_type
    if parameters_file:
        claim.parameters = parse_values(parameters_file)

    logger.info("executing install action for %s (%s %s)", installation_name, bundle.name, bundle.version)
    run_error: Exception | None = None
    try:
        Install(driver, locations=bundle.credentials).run(claim, creds)
    except Exception as e:
        run_error = e

    try:
        claim_store.store(claim)
    except Exception as store_error:
        if run_error is not None:
            logger.error("install step failed: %s", run_error)
        raise store_error from run_error

    if run_error is not None:
        raise InstallError(f"install step failed: {run_error}") from run_error
    return claim
