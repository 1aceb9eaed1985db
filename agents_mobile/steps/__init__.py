from .chroot import chroot_steps
from .common import CloneRepoStep, InstallAliasesStep, InstallBunStep, deps_steps
from .desktop import (
    ConfigureShellStep,
    DetectOSStep,
    DetectPackageManagerStep,
    InstallSystemDepsStep,
    OptionalOhMyZshStep,
)
from .proot import (
    CheckProotStep,
    ConfigureLauncherStep,
    DetectPlatformStep,
    FinalizeStep,
    GuestBunStep,
    InstallDistroStep,
    InstallHostDepsStep,
    LinkGuestAliasesStep,
)

__all__ = [
    "chroot_steps",
    "deps_steps",
    "CloneRepoStep",
    "InstallAliasesStep",
    "InstallBunStep",
    "ConfigureShellStep",
    "DetectOSStep",
    "DetectPackageManagerStep",
    "InstallSystemDepsStep",
    "OptionalOhMyZshStep",
    "CheckProotStep",
    "ConfigureLauncherStep",
    "DetectPlatformStep",
    "FinalizeStep",
    "GuestBunStep",
    "InstallDistroStep",
    "InstallHostDepsStep",
    "LinkGuestAliasesStep",
]
