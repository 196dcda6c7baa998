"""
Safety Module

Gates which commands may run and neutralizes caller-supplied arguments.
"""

from foundry_runner.safety.allowlist import ALLOWED_COMMANDS, validate_command
from foundry_runner.safety.sanitizer import (
    MAX_ARGUMENT_LENGTH,
    is_call_signature,
    sanitize_args,
    validate_environment,
)

__all__ = [
    "ALLOWED_COMMANDS",
    "MAX_ARGUMENT_LENGTH",
    "is_call_signature",
    "sanitize_args",
    "validate_command",
    "validate_environment",
]
