"""Exception hierarchy shared by every modvault component.

All errors inherit from ``ModvaultError`` so front ends can catch one type.
Library exceptions (httpx, sqlite3, OSError, zipfile) are translated at the
component that touches them and chained with ``raise ... from``.
"""

from __future__ import annotations


class ModvaultError(Exception):
    """Base class for all modvault errors."""


# -- Validation -------------------------------------------------------------


class ValidationError(ModvaultError, ValueError):
    """Malformed input: bad package id, bad locator, bad manifest."""


class UntrustedSourceError(ValidationError):
    """A download locator points outside the trusted host allow-list."""

    def __init__(self, locator: str, host: str | None = None) -> None:
        self.locator = locator
        self.host = host
        super().__init__(f"Untrusted download source {host or '<none>'!s}: {locator}")


class PathTraversalError(ValidationError):
    """A package id or archive entry would escape its target directory."""


# -- Resolution / transport / integrity --------------------------------------


class ResolutionError(ModvaultError):
    """The dependency closure of a root package could not be computed."""


class NetworkError(ModvaultError):
    """Transport failure or non-2xx response while fetching."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ChecksumError(ModvaultError):
    """Downloaded payload does not match its expected digest."""

    def __init__(self, full_id: str, expected: str, actual: str) -> None:
        self.full_id = full_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {full_id}: expected {expected}, got {actual}"
        )


class ExtractionError(ModvaultError):
    """Archive could not be read or written into the repository."""


# -- Storage -----------------------------------------------------------------


class StorageError(ModvaultError):
    """Disk I/O failure in the repository or projection target."""


class DatabaseError(StorageError):
    """SQLite failure in the metadata cache."""


class DatabaseLockError(DatabaseError):
    """The shared connection guard could not be acquired in time."""


# -- Not found ---------------------------------------------------------------


class NotFoundError(ModvaultError, LookupError):
    """A referenced package, locator or profile does not exist."""


class NotInstalledError(NotFoundError):
    """Operation needs an installed package that is not in the repository."""


class ProfileNotFoundError(NotFoundError):
    """No profile with the given id."""
