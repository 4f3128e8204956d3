"""
xen: ownership-tracking primitives for heap values.

Provides:
- CheckedU64: unsigned 64-bit counter that fails instead of wrapping
- UniqueRef: exclusive, move-only ownership
- SharedRef: shared ownership with a single share count
- ObservedRef / WeakRef: shared ownership with weak observers
- Str: heap-backed character sequence
"""

from .config import VER_MAJOR, VER_MINOR, Settings, __version__, get_settings, reload_settings
from .checked import CheckedU64, SSize
from .errors import (
    DivideByZeroError,
    ErrorContext,
    ErrorKind,
    IndexOutOfRangeError,
    InvalidArgumentError,
    LogicError,
    NumOverflowError,
    NumUnderflowError,
    XenError,
)
from .heap import NULL, Heap, Ptr, default_heap, delete, new
from .observed import ObservedRef, RefCounter, WeakRef, build_observed
from .shared import SharedRef, build_shared
from .text import Str, get_text_len
from .unique import UniqueRef, build_unique

__all__ = [
    "VER_MAJOR", "VER_MINOR", "Settings", "get_settings", "reload_settings",
    "CheckedU64", "SSize",
    "ErrorKind", "ErrorContext", "XenError", "LogicError", "IndexOutOfRangeError",
    "InvalidArgumentError", "NumOverflowError", "NumUnderflowError", "DivideByZeroError",
    "NULL", "Ptr", "Heap", "default_heap", "new", "delete",
    "UniqueRef", "build_unique",
    "SharedRef", "build_shared",
    "ObservedRef", "WeakRef", "RefCounter", "build_observed",
    "Str", "get_text_len",
]
