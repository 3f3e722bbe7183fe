"""
Tests for the VBoxManage wrapper. subprocess is always mocked.
"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from common.exceptions import CommandDispatchError
from vm_provisioner.core.hypervisor import CommandResult, VBoxManage
from vm_provisioner.core.vm_config import ProvisionerSettings


class TestVBoxManage:

    @pytest.mark.unit
    def test_runs_executable_with_args(self, mock_subprocess):
        VBoxManage().run(["createvm", "--name", "vm"])

        mock_subprocess.assert_called_once_with(
            ["VBoxManage", "createvm", "--name", "vm"],
            capture_output=True,
            text=True,
            timeout=None,
        )

    @pytest.mark.unit
    def test_result_captures_exit_status_and_output(self, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=1, stdout="", stderr="boom\nmore\n")

        result = VBoxManage().run(["createvm"])

        assert result.returncode == 1
        assert result.ok is False
        assert result.error_summary == "boom"
        assert result.args == ("createvm",)

    @pytest.mark.unit
    def test_custom_executable_and_timeout(self, mock_subprocess):
        settings = ProvisionerSettings(vm_root=Path("/vms"), vboxmanage="/usr/local/bin/VBoxManage",
                                       timeout=30.0)
        VBoxManage(settings).run(["list", "vms"])

        argv = mock_subprocess.call_args.args[0]
        assert argv[0] == "/usr/local/bin/VBoxManage"
        assert mock_subprocess.call_args.kwargs["timeout"] == 30.0

    @pytest.mark.unit
    def test_missing_executable_raises_dispatch_error(self):
        with patch("subprocess.run", side_effect=FileNotFoundError(2, "No such file or directory")):
            with pytest.raises(CommandDispatchError) as exc_info:
                VBoxManage().run(["createvm"])

        assert "No such file or directory" in exc_info.value.message
        assert exc_info.value.code == "COMMAND_DISPATCH_FAILED"
        assert isinstance(exc_info.value.cause, FileNotFoundError)

    @pytest.mark.unit
    def test_timeout_raises_dispatch_error(self):
        expired = subprocess.TimeoutExpired(cmd=["VBoxManage"], timeout=5)
        settings = ProvisionerSettings(vm_root=Path("/vms"), timeout=5)

        with patch("subprocess.run", side_effect=expired):
            with pytest.raises(CommandDispatchError, match="timed out"):
                VBoxManage(settings).run(["createvm"])

    @pytest.mark.unit
    def test_command_line_is_shell_quoted(self):
        line = VBoxManage().command_line(["storagectl", "vm", "--name", "SATA Controller"])
        assert line == "VBoxManage storagectl vm --name 'SATA Controller'"


class TestCommandResult:

    @pytest.mark.unit
    def test_error_summary_falls_back_to_status(self):
        assert CommandResult(("x",), 3).error_summary == "exit status 3"

    @pytest.mark.unit
    def test_ok_on_zero(self):
        assert CommandResult(("x",), 0).ok
