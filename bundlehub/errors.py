"""Error taxonomy for bundlehub.

Errors are grouped by what the caller can do about them:

- input errors (bad references, arguments, parameter files) fail before any I/O
- lookup errors distinguish an unknown bundle name from an unsatisfiable version
- transport errors carry the offending URL and status code
- integrity errors (keyrings, signatures, digests) are always fatal
- execution errors come from drivers and the install pipeline
"""

from __future__ import annotations


class BundleHubError(Exception):
    """Base class for every error raised by bundlehub."""


# ── Input ────────────────────────────────────────────────────────────


class UsageError(BundleHubError):
    """Missing or conflicting command arguments."""


class BundleReferenceError(BundleHubError):
    """A bundle reference string could not be parsed."""


class ParameterError(BundleHubError):
    """A parameter file could not be decoded."""


class CredentialError(BundleHubError):
    """A credential set could not be loaded or resolved."""


# ── Lookup / parse ───────────────────────────────────────────────────


class BundleParseError(BundleHubError):
    """A bundle manifest is not a valid CNAB document."""


class IndexParseError(BundleHubError):
    """An index document could not be read or is not a JSON object."""


class NoAPIVersionError(BundleHubError):
    """An index file was loaded without an ``apiVersion`` field."""

    def __init__(self, message: str = "no API version specified"):
        super().__init__(message)


class LookupFailure(BundleHubError):
    """Base class for index lookup failures."""


class NoBundleNameError(LookupFailure):
    """No entries exist for the requested bundle name."""

    def __init__(self, name: str = ""):
        self.name = name
        super().__init__(f"no bundle name found: {name}" if name else "no bundle name found")


class NoBundleVersionError(LookupFailure):
    """Entries exist for the name, but none satisfy the requested version."""

    def __init__(self, name: str = "", version: str = ""):
        self.name = name
        self.version = version
        detail = f"{name}-{version}" if version else name
        super().__init__(f"no bundle version found for {detail}")


class ConstraintParseError(LookupFailure):
    """A version constraint string is malformed."""


# ── Transport ────────────────────────────────────────────────────────


class FetchError(BundleHubError):
    """A remote request failed or returned a non-OK status."""

    def __init__(self, message: str, url: str = "", status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


# ── Integrity / trust ────────────────────────────────────────────────


class KeyRingError(BundleHubError):
    """A keyring is missing, unreadable, or holds no usable key."""


class KeyNotFoundError(KeyRingError):
    """No key in the ring matches the requested identity."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"no key matching {identity!r} found in keyring")


class SignatureError(BundleHubError):
    """A clear-signed document is malformed or its signature does not verify."""


class DigestMismatchError(BundleHubError):
    """Stored or downloaded bytes do not hash to the expected digest."""

    def __init__(self, expected: str, actual: str, source: str = ""):
        self.expected = expected
        self.actual = actual
        self.source = source
        where = f" for {source}" if source else ""
        super().__init__(f"digest mismatch{where}: expected {expected}, got {actual}")


# ── Execution ────────────────────────────────────────────────────────


class ImageValidationError(BundleHubError):
    """The invocation image descriptor is not acceptable."""


class UnknownDriverError(BundleHubError):
    """No driver is registered under the requested name."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        names = ", ".join(available or [])
        super().__init__(f"unsupported driver: {name}" + (f" (available: {names})" if names else ""))


class DriverError(BundleHubError):
    """A driver failed to execute the invocation image."""


class ClaimError(BundleHubError):
    """A claim is invalid or could not be stored or read."""


class InstallError(BundleHubError):
    """The install action failed after the claim was recorded."""
