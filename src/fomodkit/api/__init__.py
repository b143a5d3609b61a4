"""Dict-returning facades for UI and CLI shells."""

from .packages import PackageAPI

__all__ = ["PackageAPI"]
