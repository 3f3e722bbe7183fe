"""
VM Configuration - Dataclasses for the provisioning request and settings.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List


class DiskFormat(Enum):
    """Disk image formats accepted by ``VBoxManage createmedium``."""
    VDI = "VDI"
    VMDK = "VMDK"
    VHD = "VHD"

    @property
    def extension(self) -> str:
        return self.value.lower()


def default_vm_root() -> Path:
    """VirtualBox's default per-user machine folder."""
    return Path.home() / "VirtualBox VMs"


# Characters that would break the name as a path segment or argv entry
_FORBIDDEN_NAME_CHARS = ("/", "\\", "\0")


def _has_control_chars(value: str) -> bool:
    return any(unicodedata.category(c) == "Cc" for c in value)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class VMDescription:
    """
    Validated provisioning request for a single VM.

    Created once per run and never mutated. ``iso_path`` of ``None``
    means no optical drive is attached.
    """
    name: str
    os_type: str
    memory_mb: int
    cpu_count: int
    disk_size_mb: int
    iso_path: Optional[str] = None

    @property
    def has_optical_media(self) -> bool:
        return self.iso_path is not None

    def validate(self) -> List[str]:
        """
        Validate the description and return a list of errors.

        Returns:
            List of error messages. Empty if valid.
        """
        errors = []

        if not isinstance(self.name, str) or not self.name:
            errors.append("VM name is required")
        else:
            if self.name != self.name.strip():
                errors.append("VM name must not start or end with whitespace")
            if self.name in (".", ".."):
                errors.append(f"VM name '{self.name}' is not a valid directory name")
            if any(c in self.name for c in _FORBIDDEN_NAME_CHARS):
                errors.append("VM name must not contain path separators")
            if _has_control_chars(self.name):
                errors.append("VM name must not contain control characters")
            if self.name.startswith("-"):
                errors.append("VM name must not start with '-'")

        if not isinstance(self.os_type, str) or not self.os_type:
            errors.append("OS type is required")
        elif _has_control_chars(self.os_type):
            errors.append("OS type must not contain control characters")

        if not _is_positive_int(self.memory_mb):
            errors.append(f"Memory must be a positive integer (MB), got {self.memory_mb!r}")

        if not _is_positive_int(self.cpu_count):
            errors.append(f"CPU count must be a positive integer, got {self.cpu_count!r}")

        if not _is_positive_int(self.disk_size_mb):
            errors.append(f"Disk size must be a positive integer (MB), got {self.disk_size_mb!r}")

        if self.iso_path is not None and (not isinstance(self.iso_path, str) or not self.iso_path):
            errors.append("ISO path must be a non-empty string when given")
        elif self.iso_path is not None and _has_control_chars(self.iso_path):
            errors.append("ISO path must not contain control characters")

        return errors

    def to_dict(self) -> dict:
        """Convert to the field names used in the configuration file."""
        data = {
            "name": self.name,
            "os_type": self.os_type,
            "memory": self.memory_mb,
            "cpus": self.cpu_count,
            "disk_size": self.disk_size_mb,
        }
        if self.iso_path is not None:
            data["iso_path"] = self.iso_path
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VMDescription":
        """
        Create a VMDescription from a ``[virtual_machine]`` table.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field value violates an invariant
        """
        description = cls(
            name=data["name"],
            os_type=data["os_type"],
            memory_mb=data["memory"],
            cpu_count=data["cpus"],
            disk_size_mb=data["disk_size"],
            iso_path=data.get("iso_path"),
        )

        errors = description.validate()
        if errors:
            raise ValueError("; ".join(errors))

        return description


@dataclass(frozen=True)
class ProvisionerSettings:
    """
    Knobs for how a description is provisioned.

    The VM storage root is an explicit input so disk path derivation
    never depends on the process environment.
    """
    vm_root: Path = field(default_factory=default_vm_root)
    vboxmanage: str = "VBoxManage"
    disk_format: DiskFormat = DiskFormat.VDI
    check_exit_status: bool = True
    rollback_on_failure: bool = False
    timeout: Optional[float] = None

    sata_controller: str = "SATA Controller"
    ide_controller: str = "IDE Controller"
