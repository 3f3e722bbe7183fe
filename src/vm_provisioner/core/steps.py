"""
Provisioning steps.

A provisioning run is an ordered list of ProvisioningStep descriptors,
each mapping to exactly one VBoxManage invocation. build_plan() is the
only place that knows the order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .state_machine import ProvisioningState
from .vm_config import DiskFormat, ProvisionerSettings, VMDescription


class StepKind(Enum):
    """The kinds of provisioning operation, in execution order."""
    REGISTER = "register"
    CONFIGURE_HARDWARE = "configure_hardware"
    CREATE_DISK = "create_disk"
    ADD_STORAGE_CONTROLLER = "add_storage_controller"
    ATTACH_DISK = "attach_disk"
    ADD_OPTICAL_CONTROLLER = "add_optical_controller"
    ATTACH_OPTICAL_MEDIA = "attach_optical_media"


@dataclass(frozen=True)
class ProvisioningStep:
    """
    One unit of provisioning work.

    Attributes:
        kind: Which operation this is
        args: VBoxManage arguments (without the executable)
        failure_label: Prefix for the error reported when the step fails
        state: Provisioning state entered while the step runs
        undo_args: Arguments of the compensating command, if any
    """
    kind: StepKind
    args: Tuple[str, ...]
    failure_label: str
    state: ProvisioningState
    undo_args: Optional[Tuple[str, ...]] = None

    @property
    def name(self) -> str:
        return self.kind.value

    def command(self, executable: str = "VBoxManage") -> List[str]:
        """Full argv for this step."""
        return [executable, *self.args]


def derive_disk_path(
    name: str,
    vm_root: Path,
    disk_format: DiskFormat = DiskFormat.VDI,
) -> Path:
    """
    Path of the primary disk image for a VM.

    ``<vm_root>/<name>/<name>.<ext>``; depends on nothing but its arguments.
    """
    return Path(vm_root) / name / f"{name}.{disk_format.extension}"


def _attach_args(vm: str, controller: str, medium_type: str, medium: str) -> Tuple[str, ...]:
    return (
        "storageattach", vm,
        "--storagectl", controller,
        "--port", "0",
        "--device", "0",
        "--type", medium_type,
        "--medium", medium,
    )


def _detach_args(vm: str, controller: str) -> Tuple[str, ...]:
    return (
        "storageattach", vm,
        "--storagectl", controller,
        "--port", "0",
        "--device", "0",
        "--medium", "none",
    )


def build_plan(
    description: VMDescription,
    settings: Optional[ProvisionerSettings] = None,
) -> List[ProvisioningStep]:
    """
    Build the ordered step list for a description.

    Five steps without an ISO, seven with one.
    """
    settings = settings or ProvisionerSettings()
    vm = description.name
    disk_path = str(derive_disk_path(vm, settings.vm_root, settings.disk_format))
    sata = settings.sata_controller

    steps = [
        ProvisioningStep(
            kind=StepKind.REGISTER,
            args=("createvm", "--name", vm, "--ostype", description.os_type, "--register"),
            failure_label="Failed to create VM",
            state=ProvisioningState.REGISTERING,
            undo_args=("unregistervm", vm, "--delete"),
        ),
        ProvisioningStep(
            kind=StepKind.CONFIGURE_HARDWARE,
            args=(
                "modifyvm", vm,
                "--memory", str(description.memory_mb),
                "--cpus", str(description.cpu_count),
                "--nic1", "nat",
            ),
            failure_label="Failed to configure VM",
            state=ProvisioningState.CONFIGURING_HARDWARE,
        ),
        ProvisioningStep(
            kind=StepKind.CREATE_DISK,
            args=(
                "createmedium", "disk",
                "--filename", disk_path,
                "--size", str(description.disk_size_mb),
                "--format", settings.disk_format.value,
            ),
            failure_label="Failed to create disk",
            state=ProvisioningState.CREATING_DISK,
            undo_args=("closemedium", "disk", disk_path, "--delete"),
        ),
        ProvisioningStep(
            kind=StepKind.ADD_STORAGE_CONTROLLER,
            args=("storagectl", vm, "--name", sata, "--add", "sata", "--controller", "IntelAhci"),
            failure_label="Failed to add storage controller",
            state=ProvisioningState.ATTACHING_STORAGE_CONTROLLER,
            undo_args=("storagectl", vm, "--name", sata, "--remove"),
        ),
        ProvisioningStep(
            kind=StepKind.ATTACH_DISK,
            args=_attach_args(vm, sata, "hdd", disk_path),
            failure_label="Failed to attach disk",
            state=ProvisioningState.ATTACHING_DISK,
            undo_args=_detach_args(vm, sata),
        ),
    ]

    if description.iso_path is not None:
        ide = settings.ide_controller
        steps += [
            ProvisioningStep(
                kind=StepKind.ADD_OPTICAL_CONTROLLER,
                args=("storagectl", vm, "--name", ide, "--add", "ide"),
                failure_label="Failed to add IDE controller",
                state=ProvisioningState.ATTACHING_OPTICAL_CONTROLLER,
                undo_args=("storagectl", vm, "--name", ide, "--remove"),
            ),
            ProvisioningStep(
                kind=StepKind.ATTACH_OPTICAL_MEDIA,
                args=_attach_args(vm, ide, "dvddrive", description.iso_path),
                failure_label="Failed to attach ISO",
                state=ProvisioningState.ATTACHING_OPTICAL_MEDIA,
                undo_args=_detach_args(vm, ide),
            ),
        ]

    return steps
