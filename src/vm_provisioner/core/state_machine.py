"""
Provisioning State Machine

Tracks the progress of one provisioning run and rejects out-of-order
transitions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Set, Callable

from common.exceptions import StateTransitionError

logger = logging.getLogger(__name__)


class ProvisioningState(Enum):
    """States of a single provisioning run."""
    IDLE = "idle"
    REGISTERING = "registering"
    CONFIGURING_HARDWARE = "configuring_hardware"
    CREATING_DISK = "creating_disk"
    ATTACHING_STORAGE_CONTROLLER = "attaching_storage_controller"
    ATTACHING_DISK = "attaching_disk"
    ATTACHING_OPTICAL_CONTROLLER = "attaching_optical_controller"
    ATTACHING_OPTICAL_MEDIA = "attaching_optical_media"
    DONE = "done"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        """
        True once the run can make no further forward progress.

        FAILED is terminal in this sense but still admits the single
        ROLLED_BACK transition; see ``VALID_TRANSITIONS``.
        """
        return self in TERMINAL_STATES


# States with no forward progress left. Only FAILED has an outgoing edge.
TERMINAL_STATES = frozenset({
    ProvisioningState.DONE,
    ProvisioningState.FAILED,
    ProvisioningState.ROLLED_BACK,
})

# Forward path; every working state may additionally fail
_FORWARD: Dict[ProvisioningState, Set[ProvisioningState]] = {
    ProvisioningState.IDLE: {ProvisioningState.REGISTERING},
    ProvisioningState.REGISTERING: {ProvisioningState.CONFIGURING_HARDWARE},
    ProvisioningState.CONFIGURING_HARDWARE: {ProvisioningState.CREATING_DISK},
    ProvisioningState.CREATING_DISK: {ProvisioningState.ATTACHING_STORAGE_CONTROLLER},
    ProvisioningState.ATTACHING_STORAGE_CONTROLLER: {ProvisioningState.ATTACHING_DISK},
    ProvisioningState.ATTACHING_DISK: {
        ProvisioningState.ATTACHING_OPTICAL_CONTROLLER,
        ProvisioningState.DONE,
    },
    ProvisioningState.ATTACHING_OPTICAL_CONTROLLER: {ProvisioningState.ATTACHING_OPTICAL_MEDIA},
    ProvisioningState.ATTACHING_OPTICAL_MEDIA: {ProvisioningState.DONE},
}

VALID_TRANSITIONS: Dict[ProvisioningState, Set[ProvisioningState]] = {
    state: targets | {ProvisioningState.FAILED}
    for state, targets in _FORWARD.items()
}
# The run ends at FAILED; only a rollback may follow it
VALID_TRANSITIONS[ProvisioningState.FAILED] = {ProvisioningState.ROLLED_BACK}


class ProvisioningStateMachine:
    """
    State machine for one provisioning run.

    Only transitions listed in VALID_TRANSITIONS are allowed. Callbacks
    registered with on_transition fire after every successful move.
    """

    def __init__(self, vm_name: str):
        self.vm_name = vm_name
        self._state = ProvisioningState.IDLE
        self._history: List[ProvisioningState] = [self._state]
        self._callbacks: List[Callable[[str, ProvisioningState, ProvisioningState], None]] = []

    @property
    def state(self) -> ProvisioningState:
        """Get current state."""
        return self._state

    @property
    def history(self) -> List[ProvisioningState]:
        """Every state visited so far, starting with IDLE."""
        return list(self._history)

    def can_transition(self, target: ProvisioningState) -> bool:
        """Check if moving to target is valid from the current state."""
        return target in VALID_TRANSITIONS.get(self._state, set())

    def get_available_transitions(self) -> Set[ProvisioningState]:
        """Get all states reachable from the current state."""
        return set(VALID_TRANSITIONS.get(self._state, set()))

    def transition(self, target: ProvisioningState) -> ProvisioningState:
        """
        Move to a new state.

        Raises:
            StateTransitionError: If the transition is not valid
        """
        if not self.can_transition(target):
            raise StateTransitionError(self.vm_name, self._state.name, target.name)

        old_state = self._state
        self._state = target
        self._history.append(target)

        logger.info(f"VM {self.vm_name}: {old_state.name} -> {target.name}")

        for callback in self._callbacks:
            try:
                callback(self.vm_name, old_state, target)
            except Exception as e:
                logger.warning(f"Transition callback error: {e}")

        return target

    def on_transition(
        self,
        callback: Callable[[str, ProvisioningState, ProvisioningState], None],
    ) -> None:
        """
        Register a callback fired on every transition.

        Args:
            callback: Function(vm_name, old_state, new_state)
        """
        self._callbacks.append(callback)
