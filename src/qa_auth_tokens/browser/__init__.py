"""Browser-driven provisioning and bearer resolution."""

from .driver import BrowserDriver, PlaywrightDriver
from .provisioner import ProvisionerState, RegenerationGuard, TokenProvisioner
from .resolver import BearerResolver

__all__ = [
    "BearerResolver",
    "BrowserDriver",
    "PlaywrightDriver",
    "ProvisionerState",
    "RegenerationGuard",
    "TokenProvisioner",
]
