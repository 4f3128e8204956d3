"""
Overflow-checked unsigned 64-bit counter.

CheckedU64 wraps a u64 magnitude and fails loudly instead of wrapping on
overflow, underflow or division by zero. Every bookkeeping counter in xen
(share counts, strong/weak counts, string lengths) is one of these.
"""

from __future__ import annotations
from typing import Any, Union
import operator

from .errors import ErrorKind, fail
from .limits import U64_MAX, U64_MIN


IntLike = Union["CheckedU64", int]


def _as_int(value: Any) -> int:
    """Return the integer value of a counter or integral, or raise TypeError."""
    if isinstance(value, CheckedU64):
        return value._value
    return operator.index(value)


def _is_safe_add(a: int, b: int) -> bool:
    return a <= U64_MAX - b


def _is_safe_sub(a: int, b: int) -> bool:
    return a >= b


def _is_safe_mul(a: int, b: int) -> bool:
    if b == 0:
        return True
    return a <= U64_MAX // b


def _checked_add(a: int, b: int) -> int:
    if b < 0:
        return _checked_sub(a, -b)
    if not _is_safe_add(a, b):
        fail(ErrorKind.NumOverflow, f"{a} + {b} exceeds U64_MAX")
    return a + b


def _checked_sub(a: int, b: int) -> int:
    if b < 0:
        return _checked_add(a, -b)
    if not _is_safe_sub(a, b):
        fail(ErrorKind.NumUnderflow, f"{a} - {b} goes below zero")
    return a - b


def _checked_mul(a: int, b: int) -> int:
    if a < 0 or b < 0:
        fail(ErrorKind.NumOverflow, f"{a} * {b}: negative operand cannot be represented")
    if not _is_safe_mul(a, b):
        fail(ErrorKind.NumOverflow, f"{a} * {b} exceeds U64_MAX")
    return a * b


def _checked_div(a: int, b: int) -> int:
    if b <= 0:
        fail(ErrorKind.DivideByZero, f"{a} / {b}: divisor must be positive")
    if a < 0:
        fail(ErrorKind.NumUnderflow, f"{a} / {b} goes below zero")
    return a // b


class CheckedU64:
    """
    A safe wrapper around an unsigned 64-bit integer.

    Construction clamps negative values to 0. Arithmetic never wraps: it
    either produces a valid magnitude or fails with NumOverflow,
    NumUnderflow or DivideByZero and leaves the counter untouched.

    Counters are mutable (``increment``, ``+=``) and therefore unhashable.
    Comparisons against counters and plain integers are exact.

    Example:
        >>> n = CheckedU64(41)
        >>> n.increment()
        CheckedU64(42)
        >>> CheckedU64(-5)
        CheckedU64(0)
    """

    __slots__ = ("_value",)

    def __init__(self, value: Any = 0) -> None:
        """
        Initialize counter.

        Args:
            value: Counter or integral value; negative values clamp to 0

        Raises:
            NumOverflowError: value exceeds U64_MAX
            TypeError: value is not integral
        """
        raw = _as_int(value)
        if raw < U64_MIN:
            raw = U64_MIN
        elif raw > U64_MAX:
            fail(ErrorKind.NumOverflow, f"{raw} exceeds U64_MAX")
        self._value = raw

    @classmethod
    def _wrap(cls, raw: int) -> CheckedU64:
        counter = cls.__new__(cls)
        counter._value = raw
        return counter

    @property
    def value(self) -> int:
        """Raw magnitude."""
        return self._value

    def copy(self) -> CheckedU64:
        return self._wrap(self._value)

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> CheckedU64:
        return self.copy()

    # -- increment / decrement ------------------------------------------

    def increment(self) -> CheckedU64:
        """Add one in place and return self (prefix ++)."""
        if self._value == U64_MAX:
            fail(ErrorKind.NumOverflow, "increment past U64_MAX")
        self._value += 1
        return self

    def decrement(self) -> CheckedU64:
        """Subtract one in place and return self (prefix --)."""
        if self._value == U64_MIN:
            fail(ErrorKind.NumUnderflow, "decrement below zero")
        self._value -= 1
        return self

    def post_increment(self) -> CheckedU64:
        """Add one in place and return the previous value (postfix ++)."""
        previous = self.copy()
        self.increment()
        return previous

    def post_decrement(self) -> CheckedU64:
        """Subtract one in place and return the previous value (postfix --)."""
        previous = self.copy()
        self.decrement()
        return previous

    # -- named arithmetic -----------------------------------------------

    def add(self, rhs: IntLike) -> CheckedU64:
        return self._wrap(_checked_add(self._value, _as_int(rhs)))

    def subtract(self, rhs: IntLike) -> CheckedU64:
        return self._wrap(_checked_sub(self._value, _as_int(rhs)))

    def multiply(self, rhs: IntLike) -> CheckedU64:
        return self._wrap(_checked_mul(self._value, _as_int(rhs)))

    def divide(self, rhs: IntLike) -> CheckedU64:
        return self._wrap(_checked_div(self._value, _as_int(rhs)))

    def compare(self, rhs: IntLike) -> int:
        """Return -1, 0 or 1 as self is less than, equal to or greater than rhs."""
        other = _as_int(rhs)
        return (self._value > other) - (self._value < other)

    # -- operators ------------------------------------------------------

    def __add__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        return self._wrap(_checked_add(self._value, other))

    def __radd__(self, lhs: Any) -> CheckedU64:
        return self.__add__(lhs)

    def __iadd__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        self._value = _checked_add(self._value, other)
        return self

    def __sub__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        return self._wrap(_checked_sub(self._value, other))

    def __rsub__(self, lhs: Any) -> CheckedU64:
        try:
            other = _as_int(lhs)
        except TypeError:
            return NotImplemented
        if other < 0:
            fail(ErrorKind.NumUnderflow, f"{other} - {self._value} goes below zero")
        result = _checked_sub(other, self._value)
        if result > U64_MAX:
            fail(ErrorKind.NumOverflow, f"{other} - {self._value} exceeds U64_MAX")
        return self._wrap(result)

    def __isub__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        self._value = _checked_sub(self._value, other)
        return self

    def __mul__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        return self._wrap(_checked_mul(self._value, other))

    def __rmul__(self, lhs: Any) -> CheckedU64:
        return self.__mul__(lhs)

    def __imul__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        self._value = _checked_mul(self._value, other)
        return self

    def __floordiv__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        return self._wrap(_checked_div(self._value, other))

    def __rfloordiv__(self, lhs: Any) -> CheckedU64:
        try:
            other = _as_int(lhs)
        except TypeError:
            return NotImplemented
        result = _checked_div(other, self._value)
        if result > U64_MAX:
            fail(ErrorKind.NumOverflow, f"{other} / {self._value} exceeds U64_MAX")
        return self._wrap(result)

    def __ifloordiv__(self, rhs: Any) -> CheckedU64:
        try:
            other = _as_int(rhs)
        except TypeError:
            return NotImplemented
        self._value = _checked_div(self._value, other)
        return self

    # -- comparison -----------------------------------------------------

    def __eq__(self, other: Any) -> bool:
        try:
            return self._value == _as_int(other)
        except TypeError:
            return NotImplemented

    def __ne__(self, other: Any) -> bool:
        try:
            return self._value != _as_int(other)
        except TypeError:
            return NotImplemented

    def __lt__(self, other: Any) -> bool:
        try:
            return self._value < _as_int(other)
        except TypeError:
            return NotImplemented

    def __le__(self, other: Any) -> bool:
        try:
            return self._value <= _as_int(other)
        except TypeError:
            return NotImplemented

    def __gt__(self, other: Any) -> bool:
        try:
            return self._value > _as_int(other)
        except TypeError:
            return NotImplemented

    def __ge__(self, other: Any) -> bool:
        try:
            return self._value >= _as_int(other)
        except TypeError:
            return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # -- conversion -----------------------------------------------------

    def __int__(self) -> int:
        return self._value

    def __index__(self) -> int:
        return self._value

    def __bool__(self) -> bool:
        return self._value != 0

    def __repr__(self) -> str:
        return f"CheckedU64({self._value})"

    def __str__(self) -> str:
        return str(self._value)


SSize = CheckedU64
