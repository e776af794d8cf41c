"""Exception types raised while resolving and serving release keys."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for release gateway errors."""


class InvalidKey(GatewayError, ValueError):
    """Requested object key is not a usable storage key."""


class ResolutionError(GatewayError):
    """A "latest" key could not be resolved.

    Never fatal: the resolver logs it and serves the requested key as-is.
    """

    def __init__(self, message: str, key: str = "") -> None:
        super().__init__(message)
        self.key = key


class UnsupportedPlatform(ResolutionError):
    pass


class ManifestNotFound(ResolutionError):
    pass


class ManifestMalformed(ResolutionError):
    pass


class ManifestInconsistency(ResolutionError):
    pass
