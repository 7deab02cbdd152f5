"""modvault data models — all Pydantic v2, all frozen (immutable)."""

from modvault.models.install import (
    BatchInstallResult,
    InstallOutcome,
    InstallPlan,
    PlanEntry,
)
from modvault.models.packages import (
    DependencyEdge,
    InstalledPackage,
    PackageListing,
    PackageManifest,
    PackageSummary,
    PackageVersion,
    RegistryVersion,
    UpdateCandidate,
)
from modvault.models.profiles import Profile, ProfileEntry

__all__ = [
    # packages
    "PackageListing",
    "RegistryVersion",
    "PackageVersion",
    "DependencyEdge",
    "PackageManifest",
    "PackageSummary",
    "InstalledPackage",
    "UpdateCandidate",
    # install
    "PlanEntry",
    "InstallPlan",
    "InstallOutcome",
    "BatchInstallResult",
    # profiles
    "Profile",
    "ProfileEntry",
]
