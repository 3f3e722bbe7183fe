"""
Provisioning Sequencer

Runs the step plan for one VM in order and stops at the first failure.
The outcome is returned as a ProvisioningResult rather than raised, so
the caller decides how to report it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from common.decorators import timed
from common.exceptions import (
    CommandDispatchError, ConfigMalformedError, StepDispatchError,
)
from common.logging_config import LogContext

from .hypervisor import CommandResult, VBoxManage
from .state_machine import ProvisioningState, ProvisioningStateMachine
from .steps import ProvisioningStep, build_plan
from .vm_config import ProvisionerSettings, VMDescription

logger = logging.getLogger(__name__)


class Hypervisor(Protocol):
    """Anything that can dispatch one control-tool command."""

    def run(self, args: Sequence[str]) -> CommandResult: ...


@dataclass
class ProvisioningResult:
    """
    Outcome of one provisioning run.

    ``completed`` holds the steps that succeeded, in order. On failure
    ``failed_step`` and ``reason`` say where and why the run stopped.
    """
    vm_name: str
    state: ProvisioningState
    completed: List[ProvisioningStep] = field(default_factory=list)
    failed_step: Optional[ProvisioningStep] = None
    reason: Optional[str] = None
    rolled_back: List[ProvisioningStep] = field(default_factory=list)
    rollback_errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == ProvisioningState.DONE

    @property
    def attempted(self) -> int:
        """Number of steps that were dispatched, including the failed one."""
        return len(self.completed) + (1 if self.failed_step else 0)

    @property
    def error_message(self) -> Optional[str]:
        if self.failed_step is None:
            return None
        return f"{self.failed_step.failure_label}: {self.reason}"

    def raise_for_failure(self) -> None:
        """Raise StepDispatchError if the run failed."""
        if self.failed_step is not None:
            raise StepDispatchError(self.failed_step.failure_label, self.reason, self.vm_name)


class ProvisioningSequencer:
    """
    Provisions a single VM through VBoxManage.

    Steps run strictly one after another. A step fails when its command
    cannot be launched, or, with ``check_exit_status`` enabled, when the
    command exits non-zero. Nothing after a failed step is attempted.
    Completed steps are only undone when ``rollback_on_failure`` is set.
    """

    def __init__(
        self,
        settings: Optional[ProvisionerSettings] = None,
        hypervisor: Optional[Hypervisor] = None,
    ):
        self.settings = settings or ProvisionerSettings()
        self._hypervisor = hypervisor or VBoxManage(self.settings)

    def plan(self, description: VMDescription) -> List[ProvisioningStep]:
        """Return the steps run() would dispatch, without dispatching them."""
        return build_plan(description, self.settings)

    @timed
    def run(self, description: VMDescription) -> ProvisioningResult:
        """
        Provision the VM described by ``description``.

        Returns:
            ProvisioningResult; check ``success`` or call
            ``raise_for_failure()``

        Raises:
            ConfigMalformedError: If the description is invalid
        """
        errors = description.validate()
        if errors:
            raise ConfigMalformedError("; ".join(errors))

        machine = ProvisioningStateMachine(description.name)
        result = ProvisioningResult(vm_name=description.name, state=machine.state)

        with LogContext(vm_name=description.name):
            logger.info(f"Provisioning VM: {description.name}")

            for step in self.plan(description):
                machine.transition(step.state)
                with LogContext(step=step.name):
                    reason = self._dispatch(step.args)
                    if reason is not None:
                        logger.error(f"{step.failure_label}: {reason}")

                if reason is not None:
                    result.failed_step = step
                    result.reason = reason
                    result.state = machine.transition(ProvisioningState.FAILED)

                    if self.settings.rollback_on_failure:
                        self._rollback(result)
                        result.state = machine.transition(ProvisioningState.ROLLED_BACK)
                    return result

                result.completed.append(step)

            result.state = machine.transition(ProvisioningState.DONE)
            logger.info(f"VM provisioned: {description.name}")
        return result

    def _dispatch(self, args: Sequence[str]) -> Optional[str]:
        """Run one command. Returns the failure reason, or None on success."""
        try:
            outcome = self._hypervisor.run(args)
        except CommandDispatchError as e:
            return e.message

        if self.settings.check_exit_status and not outcome.ok:
            return f"VBoxManage exited with status {outcome.returncode}: {outcome.error_summary}"

        return None

    def _rollback(self, result: ProvisioningResult) -> None:
        """Undo completed steps in reverse order, best effort."""
        logger.warning(f"Rolling back {len(result.completed)} completed step(s) "
                       f"for VM {result.vm_name}")

        for step in reversed(result.completed):
            if step.undo_args is None:
                continue

            with LogContext(step=f"undo_{step.name}"):
                reason = self._dispatch(step.undo_args)
                if reason is not None:
                    logger.warning(f"Could not undo {step.name}: {reason}")

            if reason is None:
                result.rolled_back.append(step)
            else:
                result.rollback_errors.append(f"{step.name}: {reason}")


def provision(
    description: VMDescription,
    settings: Optional[ProvisionerSettings] = None,
) -> ProvisioningResult:
    """
    Convenience function to provision a VM and raise on failure.

    Raises:
        StepDispatchError: If any step fails
    """
    result = ProvisioningSequencer(settings).run(description)
    result.raise_for_failure()
    return result
