"""Remote package registry access."""

from modvault.registry.client import RegistryClient

__all__ = ["RegistryClient"]
