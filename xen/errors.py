"""
Error types for xen.

Error kinds, verbose error context, and the single failure path used by
checked arithmetic and the ownership handles.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, NoReturn, Optional, TextIO, Type
import logging
import os
import sys

from .config import get_settings


logger = logging.getLogger(__name__)


class ErrorKind(IntEnum):
    """
    Categories of runtime errors.

    - Logic: program logic does not match the expected logic
    - IndexOutOfRange: access outside the bounds of a container
    - InvalidArgument: a function received an unsupported argument
    - NumOverflow: a value exceeded the maximum representable capacity
    - NumUnderflow: a value went below the minimum representable capacity
    - DivideByZero: division by 0
    """
    Logic = 0
    IndexOutOfRange = 1
    InvalidArgument = 2
    NumOverflow = 3
    NumUnderflow = 4
    DivideByZero = 5


@dataclass(frozen=True)
class ErrorContext:
    """
    Verbose info on a raised error.

    Attributes:
        kind: Error category
        desc: Human-readable description
    """
    kind: ErrorKind
    desc: str

    def __str__(self) -> str:
        return f"[ERR]: {int(self.kind)} ({self.kind.name}): {self.desc}"

    def write(self, stream: Optional[TextIO] = None) -> None:
        """Write the formatted context to a stream (default: stderr)."""
        out = sys.stderr if stream is None else stream
        out.write(f"{self}\n")
        out.flush()

    def terminate(self) -> NoReturn:
        """Log the error and abort the process."""
        logger.critical("%s", self)
        self.write()
        os.abort()


class XenError(Exception):
    """Base exception for all xen errors."""

    kind: ErrorKind = ErrorKind.Logic

    def __init__(self, context: ErrorContext) -> None:
        """
        Initialize error from its context.

        Args:
            context: Kind and description of the failure
        """
        self.context = context
        super().__init__(str(context))


class LogicError(XenError):
    """Invariant violation in caller logic."""
    kind = ErrorKind.Logic


class IndexOutOfRangeError(XenError, IndexError):
    """Access outside the bounds of a container."""
    kind = ErrorKind.IndexOutOfRange


class InvalidArgumentError(XenError, ValueError):
    """Unsupported or invalid argument."""
    kind = ErrorKind.InvalidArgument


class NumOverflowError(XenError, OverflowError):
    """Result exceeds the maximum u64 capacity."""
    kind = ErrorKind.NumOverflow


class NumUnderflowError(XenError, ArithmeticError):
    """Result goes below zero."""
    kind = ErrorKind.NumUnderflow


class DivideByZeroError(XenError, ZeroDivisionError):
    """Division where the divisor is zero."""
    kind = ErrorKind.DivideByZero


_ERROR_TYPES: Dict[ErrorKind, Type[XenError]] = {
    ErrorKind.Logic: LogicError,
    ErrorKind.IndexOutOfRange: IndexOutOfRangeError,
    ErrorKind.InvalidArgument: InvalidArgumentError,
    ErrorKind.NumOverflow: NumOverflowError,
    ErrorKind.NumUnderflow: NumUnderflowError,
    ErrorKind.DivideByZero: DivideByZeroError,
}


def error_type(kind: ErrorKind) -> Type[XenError]:
    """Return the exception class raised for an error kind."""
    return _ERROR_TYPES[kind]


def fail(kind: ErrorKind, desc: str) -> NoReturn:
    """
    Report a violated invariant.

    Aborts the process when fail-fast is enabled, otherwise raises the
    exception matching ``kind``.

    Args:
        kind: Error category
        desc: Description of the failure
    """
    context = ErrorContext(kind, desc)
    if get_settings().fail_fast:
        context.terminate()
    raise _ERROR_TYPES[kind](context)
