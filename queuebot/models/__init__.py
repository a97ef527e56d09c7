"""Database models."""

from .command import CommandRow, CommandTargetNamespace, CommandFromCategory, CommandToCategory
from .operation import OperationRow

__all__ = [
    "CommandRow", "CommandTargetNamespace", "CommandFromCategory", "CommandToCategory",
    "OperationRow",
]
