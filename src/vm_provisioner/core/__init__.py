"""
Provisioner Core - VM description, step plan and sequencer.
"""

from .config_loader import load_config, parse_config
from .sequencer import ProvisioningResult, ProvisioningSequencer, provision
from .steps import ProvisioningStep, StepKind, build_plan, derive_disk_path
from .vm_config import DiskFormat, ProvisionerSettings, VMDescription

__all__ = [
    "load_config", "parse_config",
    "ProvisioningResult", "ProvisioningSequencer", "provision",
    "ProvisioningStep", "StepKind", "build_plan", "derive_disk_path",
    "DiskFormat", "ProvisionerSettings", "VMDescription",
]
