"""
VM Provisioner Common Utilities

Error hierarchy, logging setup and shared decorators.
"""

from .exceptions import (
    ProvisionerError, ConfigError, ConfigUnreadableError, ConfigMalformedError,
    HypervisorError, CommandDispatchError, StepDispatchError,
    StateTransitionError, TemplateError, TemplateNotFoundError,
    TemplateRenderError,
)
from .decorators import timed
from .logging_config import setup_logging, LogContext, JSONFormatter, ColoredFormatter

__all__ = [
    # Exceptions
    "ProvisionerError", "ConfigError", "ConfigUnreadableError",
    "ConfigMalformedError", "HypervisorError", "CommandDispatchError",
    "StepDispatchError", "StateTransitionError", "TemplateError",
    "TemplateNotFoundError", "TemplateRenderError",
    # Decorators
    "timed",
    # Logging
    "setup_logging", "LogContext", "JSONFormatter", "ColoredFormatter",
]
