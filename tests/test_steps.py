"""
Tests for the provisioning step plan.
"""

from pathlib import Path

import pytest

from vm_provisioner.core.state_machine import ProvisioningState
from vm_provisioner.core.steps import StepKind, build_plan, derive_disk_path
from vm_provisioner.core.vm_config import DiskFormat, ProvisionerSettings


class TestDiskPath:
    """Tests for derive_disk_path()."""

    @pytest.mark.unit
    def test_follows_vm_folder_convention(self):
        path = derive_disk_path("test-vm", Path("/vms"))
        assert path == Path("/vms/test-vm/test-vm.vdi")

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["a", "test-vm", "Ubuntu Server", "win11_dev"])
    def test_deterministic(self, name):
        root = Path("/srv/vbox")
        assert derive_disk_path(name, root) == derive_disk_path(name, root)

    @pytest.mark.unit
    def test_different_names_give_different_paths(self):
        root = Path("/srv/vbox")
        assert derive_disk_path("a", root) != derive_disk_path("b", root)

    @pytest.mark.unit
    def test_extension_follows_format(self):
        path = derive_disk_path("vm", Path("/vms"), DiskFormat.VMDK)
        assert path.name == "vm.vmdk"


class TestBuildPlan:
    """Tests for build_plan()."""

    @pytest.mark.unit
    def test_five_steps_without_iso(self, sample_description, settings):
        plan = build_plan(sample_description, settings)

        assert [s.kind for s in plan] == [
            StepKind.REGISTER,
            StepKind.CONFIGURE_HARDWARE,
            StepKind.CREATE_DISK,
            StepKind.ADD_STORAGE_CONTROLLER,
            StepKind.ATTACH_DISK,
        ]

    @pytest.mark.unit
    def test_seven_steps_with_iso(self, iso_description, settings):
        plan = build_plan(iso_description, settings)

        assert len(plan) == 7
        assert [s.kind for s in plan[5:]] == [
            StepKind.ADD_OPTICAL_CONTROLLER,
            StepKind.ATTACH_OPTICAL_MEDIA,
        ]

    @pytest.mark.unit
    def test_register_args(self, sample_description, settings):
        register = build_plan(sample_description, settings)[0]
        assert register.args == (
            "createvm", "--name", "test-vm", "--ostype", "Linux_64", "--register",
        )

    @pytest.mark.unit
    def test_configure_hardware_args(self, sample_description, settings):
        configure = build_plan(sample_description, settings)[1]
        assert configure.args == (
            "modifyvm", "test-vm", "--memory", "2048", "--cpus", "2", "--nic1", "nat",
        )

    @pytest.mark.unit
    def test_disk_is_created_and_attached_at_same_path(self, sample_description, settings):
        plan = build_plan(sample_description, settings)
        disk_path = str(settings.vm_root / "test-vm" / "test-vm.vdi")

        create = plan[2]
        assert create.args[:4] == ("createmedium", "disk", "--filename", disk_path)
        assert "20000" in create.args

        attach = plan[4]
        assert attach.args[-2:] == ("--medium", disk_path)
        assert ("--port", "0") == attach.args[4:6]
        assert ("--device", "0") == attach.args[6:8]
        assert ("--type", "hdd") == attach.args[8:10]

    @pytest.mark.unit
    def test_disk_attaches_to_sata_controller(self, sample_description, settings):
        plan = build_plan(sample_description, settings)
        controller, attach = plan[3], plan[4]

        assert controller.args == (
            "storagectl", "test-vm", "--name", "SATA Controller",
            "--add", "sata", "--controller", "IntelAhci",
        )
        assert attach.args[2:4] == ("--storagectl", "SATA Controller")

    @pytest.mark.unit
    def test_optical_attach_references_iso_path(self, iso_description, settings):
        plan = build_plan(iso_description, settings)
        controller, attach = plan[5], plan[6]

        assert controller.args == ("storagectl", "test-vm", "--name", "IDE Controller", "--add", "ide")
        assert attach.args[2:4] == ("--storagectl", "IDE Controller")
        assert ("--type", "dvddrive") == attach.args[8:10]
        assert attach.args[-1] == "/images/installer.iso"

    @pytest.mark.unit
    def test_steps_carry_states_in_order(self, iso_description, settings):
        states = [s.state for s in build_plan(iso_description, settings)]
        assert states == [
            ProvisioningState.REGISTERING,
            ProvisioningState.CONFIGURING_HARDWARE,
            ProvisioningState.CREATING_DISK,
            ProvisioningState.ATTACHING_STORAGE_CONTROLLER,
            ProvisioningState.ATTACHING_DISK,
            ProvisioningState.ATTACHING_OPTICAL_CONTROLLER,
            ProvisioningState.ATTACHING_OPTICAL_MEDIA,
        ]

    @pytest.mark.unit
    def test_every_step_has_failure_label(self, iso_description, settings):
        labels = [s.failure_label for s in build_plan(iso_description, settings)]
        assert all(label.startswith("Failed to") for label in labels)
        assert len(set(labels)) == len(labels)

    @pytest.mark.unit
    def test_custom_executable_in_command(self, sample_description):
        settings = ProvisionerSettings(vm_root=Path("/vms"), vboxmanage="/opt/vbox/VBoxManage")
        step = build_plan(sample_description, settings)[0]
        assert step.command(settings.vboxmanage)[0] == "/opt/vbox/VBoxManage"

    @pytest.mark.unit
    def test_only_configure_hardware_has_no_undo(self, iso_description, settings):
        without_undo = [s.kind for s in build_plan(iso_description, settings) if s.undo_args is None]
        assert without_undo == [StepKind.CONFIGURE_HARDWARE]
