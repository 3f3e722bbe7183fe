"""
VM Provisioner

Creates a single VirtualBox VM from a TOML description by driving
VBoxManage.
"""

__version__ = "0.1.0"

from .core.config_loader import load_config
from .core.sequencer import ProvisioningResult, ProvisioningSequencer
from .core.vm_config import ProvisionerSettings, VMDescription

__all__ = [
    "load_config",
    "ProvisioningResult",
    "ProvisioningSequencer",
    "ProvisionerSettings",
    "VMDescription",
]
