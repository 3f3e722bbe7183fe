"""
VBoxManage control interface.

Launches the VirtualBox command-line tool once per call and reports
whether the process could be run and what it exited with. Output is
captured for diagnostics only; it is never interpreted.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from common.exceptions import CommandDispatchError

from .vm_config import ProvisionerSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one dispatched command."""
    args: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_summary(self) -> str:
        """First non-empty line of stderr, or the exit status."""
        for line in self.stderr.splitlines():
            if line.strip():
                return line.strip()
        return f"exit status {self.returncode}"


class VBoxManage:
    """
    Thin wrapper around the ``VBoxManage`` executable.

    Each call blocks until the process finishes. There is no retry; a
    timeout only applies when one is set in the settings.
    """

    def __init__(self, settings: Optional[ProvisionerSettings] = None):
        self.settings = settings or ProvisionerSettings()

    @property
    def executable(self) -> str:
        return self.settings.vboxmanage

    def command_line(self, args: Sequence[str]) -> str:
        """Shell-quoted command line, for logs and dry runs."""
        return shlex.join([self.executable, *args])

    def run(self, args: Sequence[str]) -> CommandResult:
        """
        Run one VBoxManage command.

        Args:
            args: Arguments after the executable name

        Returns:
            CommandResult with the exit status and captured output

        Raises:
            CommandDispatchError: If the process could not be launched
                or did not finish within the configured timeout
        """
        argv = [self.executable, *args]
        logger.debug(f"Running: {shlex.join(argv)}")

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.settings.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandDispatchError(
                shlex.join(argv), f"timed out after {self.settings.timeout}s", cause=e
            ) from e
        except OSError as e:
            raise CommandDispatchError(shlex.join(argv), e.strerror or str(e), cause=e) from e

        result = CommandResult(
            args=tuple(args),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )

        if not result.ok:
            logger.debug(f"{args[0] if args else self.executable} exited with {result.returncode}: "
                         f"{result.error_summary}")

        return result
