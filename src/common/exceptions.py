"""
VM Provisioner Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any


class ProvisionerError(Exception):
    """
    Base exception for all provisioner errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(ProvisionerError):
    """Base for configuration errors."""
    pass


class ConfigUnreadableError(ConfigError):
    """Configuration resource could not be read."""
    def __init__(self, path: str, cause: Optional[Exception] = None):
        reason = cause.strerror if isinstance(cause, OSError) and cause.strerror else str(cause)
        super().__init__(
            f"Failed to read the config file '{path}': {reason}",
            code="CONFIG_UNREADABLE",
            details={"path": path},
            cause=cause,
            recoverable=False,
        )


class ConfigMalformedError(ConfigError):
    """Configuration was read but does not describe a valid VM."""
    def __init__(self, reason: str, path: Optional[str] = None,
                 cause: Optional[Exception] = None):
        where = f" in '{path}'" if path else ""
        super().__init__(
            f"Invalid configuration{where}: {reason}",
            code="CONFIG_MALFORMED",
            details={"path": path, "reason": reason} if path else {"reason": reason},
            cause=cause,
            recoverable=False,
        )


# =============================================================================
# Hypervisor errors
# =============================================================================

class HypervisorError(ProvisionerError):
    """Base for errors talking to the hypervisor control tool."""
    pass


class CommandDispatchError(HypervisorError):
    """The control tool could not be launched or awaited."""
    def __init__(self, command: str, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Could not run '{command}': {reason}",
            code="COMMAND_DISPATCH_FAILED",
            details={"command": command, "reason": reason},
            cause=cause,
        )


class StepDispatchError(HypervisorError):
    """A provisioning step failed; later steps were not attempted."""
    def __init__(self, step: str, reason: str, vm_name: Optional[str] = None):
        super().__init__(
            f"{step}: {reason}",
            code="STEP_DISPATCH_FAILED",
            details={"step": step, "vm_name": vm_name} if vm_name else {"step": step},
            recoverable=False,
        )
        self.step = step
        self.reason = reason


# =============================================================================
# State errors
# =============================================================================

class StateTransitionError(ProvisionerError):
    """An invalid provisioning state transition was attempted."""
    def __init__(self, vm_name: str, current_state: str, target_state: str):
        super().__init__(
            f"Cannot move VM '{vm_name}' from {current_state} to {target_state}",
            code="INVALID_STATE_TRANSITION",
            details={
                "vm_name": vm_name,
                "current_state": current_state,
                "target_state": target_state,
            },
            recoverable=False,
        )


# =============================================================================
# Template errors
# =============================================================================

class TemplateError(ProvisionerError):
    """Template-related errors."""
    pass


class TemplateNotFoundError(TemplateError):
    """Template not found."""
    def __init__(self, template_name: str):
        super().__init__(
            f"Template not found: {template_name}",
            code="TEMPLATE_NOT_FOUND",
            details={"template": template_name},
        )


class TemplateRenderError(TemplateError):
    """Template rendering failed."""
    def __init__(self, template_name: str, reason: str):
        super().__init__(
            f"Failed to render template '{template_name}': {reason}",
            code="TEMPLATE_RENDER_FAILED",
            details={"template": template_name, "reason": reason},
        )
