"""Package identifier and download-locator checks.

A ``full_id`` is the registry's ``Owner-Name-Version`` string. It doubles
as a directory name in the repository, so it is validated before any
filesystem use.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from packaging.version import InvalidVersion, Version

from modvault.core.errors import PathTraversalError, UntrustedSourceError, ValidationError

VERSION_SEPARATOR = "-"

_FORBIDDEN_CHARS = ("/", "\\", "\x00", ":")


def validate_full_id(full_id: str) -> str:
    """Return *full_id* unchanged if it is safe to use as a directory name.

    Raises
    ------
    ValidationError
        If the id is empty or whitespace-only.
    PathTraversalError
        If the id contains a parent-directory segment, a path separator,
        a drive separator, or a NUL byte, or is ``"."``.
    """
    if not full_id or not full_id.strip():
        raise ValidationError("Package id must not be empty")
    if ".." in full_id or full_id == ".":
        raise PathTraversalError(f"Package id contains a parent segment: {full_id!r}")
    for ch in _FORBIDDEN_CHARS:
        if ch in full_id:
            raise PathTraversalError(f"Package id contains {ch!r}: {full_id!r}")
    return full_id


def split_full_id(full_id: str) -> tuple[str, str]:
    """Split ``Owner-Name-1.2.3`` into ``("Owner-Name", "1.2.3")``.

    Uses the last separator, which is a heuristic: an id without a
    separator yields ``(full_id, "")``. Owner or package names containing
    the separator are handled only because the version token itself never
    contains one.
    """
    package_id, sep, version = full_id.rpartition(VERSION_SEPARATOR)
    if not sep or not package_id:
        return full_id, ""
    return package_id, version


def parse_version(version: str) -> Version | None:
    """Parse a registry version string, or return ``None`` if it is not PEP 440.

    Pre-releases order before their release, so ``1.0.0rc1 < 1.0.0``.
    """
    try:
        return Version(version)
    except InvalidVersion:
        return None


def host_of(locator: str) -> str | None:
    """Return the lowercase hostname of a URL, or ``None``."""
    try:
        host = urlsplit(locator).hostname
    except ValueError:
        return None
    return host.lower().rstrip(".") if host else None


def is_trusted_host(host: str | None, trusted_hosts: list[str] | tuple[str, ...]) -> bool:
    """Return ``True`` if *host* equals or is a subdomain of a trusted host."""
    if not host:
        return False
    for trusted in trusted_hosts:
        trusted = trusted.lower().rstrip(".")
        if host == trusted or host.endswith("." + trusted):
            return True
    return False


def ensure_trusted_locator(
    locator: str, trusted_hosts: list[str] | tuple[str, ...]
) -> str:
    """Return *locator* if it is an https URL on a trusted host.

    Raises
    ------
    UntrustedSourceError
        For any other scheme, a missing host, or a host outside the
        allow-list.
    """
    host = host_of(locator)
    try:
        scheme = urlsplit(locator).scheme.lower()
    except ValueError as exc:
        raise UntrustedSourceError(locator, host) from exc
    if scheme != "https" or not is_trusted_host(host, trusted_hosts):
        raise UntrustedSourceError(locator, host)
    return locator
