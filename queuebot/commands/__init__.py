"""Queue commands."""

from .parser import is_command_heading, parse_command
from .types import Command, CommandType, OperationRecord, OperationType, Scope, generate_id

__all__ = [
    "Command", "CommandType", "OperationRecord", "OperationType", "Scope",
    "generate_id", "is_command_heading", "parse_command",
]
