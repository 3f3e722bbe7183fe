"""
Pytest configuration and shared fixtures for VM provisioner tests.

Provides sample descriptions and a fake VBoxManage so no real
hypervisor commands run.
"""

import pytest
from unittest.mock import MagicMock, patch
from pathlib import Path
from typing import List, Optional, Sequence, Set
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.exceptions import CommandDispatchError  # noqa: E402
from vm_provisioner.core.hypervisor import CommandResult  # noqa: E402


SAMPLE_CONFIG = """\
[virtual_machine]
name = "test-vm"
os_type = "Linux_64"
memory = 2048
cpus = 2
disk_size = 20000
"""

SAMPLE_CONFIG_WITH_ISO = SAMPLE_CONFIG + 'iso_path = "/images/installer.iso"\n'


# ============ Fake hypervisor ============

class FakeVBoxManage:
    """
    Records every command and answers like VBoxManage would.

    ``createvm`` for an already registered name exits 1, mirroring the
    real tool. ``fail_at`` (1-based call number) makes that call fail to
    launch; ``exit_code_at`` makes it exit with the given status instead.
    """

    def __init__(
        self,
        fail_at: Optional[int] = None,
        exit_code_at: Optional[int] = None,
        exit_code: int = 1,
    ):
        self.calls: List[tuple] = []
        self.registered: Set[str] = set()
        self.fail_at = fail_at
        self.exit_code_at = exit_code_at
        self.exit_code = exit_code

    def run(self, args: Sequence[str]) -> CommandResult:
        self.calls.append(tuple(args))
        call_number = len(self.calls)

        if call_number == self.fail_at:
            raise CommandDispatchError(f"VBoxManage {args[0]}", "No such file or directory")

        if call_number == self.exit_code_at:
            return CommandResult(tuple(args), self.exit_code, stderr="VBoxManage: error: simulated\n")

        if args[0] == "createvm":
            name = args[args.index("--name") + 1]
            if name in self.registered:
                return CommandResult(
                    tuple(args), 1,
                    stderr=f"VBoxManage: error: Machine '{name}' already exists\n",
                )
            self.registered.add(name)
        elif args[0] == "unregistervm":
            self.registered.discard(args[1])

        return CommandResult(tuple(args), 0)

    @property
    def subcommands(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_vboxmanage():
    """Fake VBoxManage that always succeeds."""
    return FakeVBoxManage()


# ============ Description / settings fixtures ============

@pytest.fixture
def sample_description():
    """Description without an installation image."""
    from vm_provisioner.core.vm_config import VMDescription

    return VMDescription(
        name="test-vm",
        os_type="Linux_64",
        memory_mb=2048,
        cpu_count=2,
        disk_size_mb=20000,
    )


@pytest.fixture
def iso_description():
    """Description with an installation image."""
    from vm_provisioner.core.vm_config import VMDescription

    return VMDescription(
        name="test-vm",
        os_type="Linux_64",
        memory_mb=2048,
        cpu_count=2,
        disk_size_mb=20000,
        iso_path="/images/installer.iso",
    )


@pytest.fixture
def settings(tmp_path: Path):
    """Settings rooted in a temporary VM directory."""
    from vm_provisioner.core.vm_config import ProvisionerSettings

    return ProvisionerSettings(vm_root=tmp_path / "VirtualBox VMs")


@pytest.fixture
def config_file(tmp_path: Path):
    """Factory writing a configuration file and returning its path."""
    def write(text: str = SAMPLE_CONFIG, name: str = "vm_config.toml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return write


# ============ Subprocess Fixtures ============

@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for tests."""
    with patch('subprocess.run') as mock_run:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr="",
        )
        yield mock_run


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "integration: tests that exercise the CLI end to end"
    )
