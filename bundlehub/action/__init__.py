"""Actions performed on an installation through a driver."""

from bundlehub.action.install import Install, build_operation

__all__ = ["Install", "build_operation"]
