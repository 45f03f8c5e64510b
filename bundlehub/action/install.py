"""The install action."""

from __future__ import annotations

import logging
from typing import Mapping

from bundlehub.bundle.models import CredentialLocation
from bundlehub.claim.models import (
    ACTION_INSTALL,
    STATUS_FAILURE,
    STATUS_SUCCESS,
    STATUS_UNDERWAY,
    Claim,
)
from bundlehub.credentials import CredentialSet
from bundlehub.driver.base import Driver, Operation
from bundlehub.errors import DriverError

logger = logging.getLogger(__name__)


def build_operation(
    action: str,
    claim: Claim,
    credentials: CredentialSet,
    locations: Mapping[str, CredentialLocation] | None = None,
) -> Operation:
    """Turn a claim and credentials into a driver operation.

    Each credential is placed where the bundle's credential *locations* say:
    an environment variable, a file path, or both. Credentials the bundle
    does not declare are not passed on.
    """
    op = Operation(
        action=action,
        installation=claim.name,
        image=claim.bundle,
        image_type=claim.image_type,
        parameters=dict(claim.parameters),
    )
    for name, location in (locations or {}).items():
        value = credentials.get(name)
        if value is None:
            logger.warning("credential %r is declared by the bundle but was not supplied", name)
            continue
        if location.env:
            op.environment[location.env] = value
        if location.path:
            op.files[location.path] = value
    return op


class Install:
    """Installs the claim's invocation image with a driver."""

    def __init__(self, driver: Driver, locations: Mapping[str, CredentialLocation] | None = None):
        self.driver = driver
        self.locations = locations or {}

    def run(self, claim: Claim, credentials: CredentialSet) -> None:
        """Run the install, recording the outcome on *claim*.

        Errors from the driver are recorded and re-raised.
        """
        if not self.driver.handles(claim.image_type):
            raise DriverError(f"driver does not handle image type {claim.image_type!r}")

        op = build_operation(ACTION_INSTALL, claim, credentials, self.locations)
        claim.update(ACTION_INSTALL, STATUS_UNDERWAY)
        try:
            self.driver.run(op)
        except Exception as e:
            claim.update(ACTION_INSTALL, STATUS_FAILURE, str(e))
            raise
        claim.update(ACTION_INSTALL, STATUS_SUCCESS)
