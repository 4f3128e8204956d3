"""
Heap-backed character sequence.

Str keeps its UTF-8 buffer in heap memory and its length as a CheckedU64.
Copies are deep, moves transfer the buffer.
"""

from __future__ import annotations
from typing import Any, Optional, Union

from .checked import CheckedU64
from .heap import NULL, Heap, Ptr, default_heap


def get_text_len(text: str) -> CheckedU64:
    """Return the number of characters in text."""
    return CheckedU64(len(text))


class Str:
    """
    A safe dynamic array of characters.

    - Copy deep-copies the buffer so no two Str share memory
    - Move transfers the buffer and empties the source
    - ``+`` concatenates into a new buffer, length checked against U64_MAX
    """

    _heap: Optional[Heap] = None
    _buf: Ptr = NULL

    def __init__(self, text: Optional[str] = None) -> None:
        self._heap = default_heap()
        self._buf = NULL
        self._len = CheckedU64(0)
        self._copy_text("" if text is None else text)

    def _copy_text(self, text: str) -> None:
        self.reset()
        self._len = get_text_len(text)
        if text:
            self._buf = self._heap.alloc_string(text)

    def c_str(self) -> str:
        """Underlying text."""
        if self._buf == NULL:
            return ""
        return self._heap.read_string(self._buf)

    def len(self) -> CheckedU64:
        """Total number of characters."""
        return self._len.copy()

    def is_empty(self) -> bool:
        return self._len == 0

    def reset(self) -> None:
        """Free the character buffer."""
        buf = self._buf
        self._buf = NULL
        self._len = CheckedU64(0)
        if buf != NULL:
            self._heap.free_string(buf)

    def copy(self) -> Str:
        return Str(self.c_str())

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> Str:
        return self.copy()

    def copy_from(self, other: Str) -> Str:
        if other is not self:
            self._copy_text(other.c_str())
        return self

    def move(self) -> Str:
        other = Str.__new__(Str)
        other._heap = self._heap
        other._buf, other._len = self._buf, self._len
        self._buf = NULL
        self._len = CheckedU64(0)
        return other

    def move_from(self, other: Str) -> Str:
        if other is not self:
            self.reset()
            self._heap = other._heap
            self._buf, self._len = other._buf, other._len
            other._buf = NULL
            other._len = CheckedU64(0)
        return self

    def _joined(self, other: Union[Str, str]) -> Str:
        rhs = other.c_str() if isinstance(other, Str) else other
        joined = Str.__new__(Str)
        joined._heap = self._heap
        joined._len = self._len + get_text_len(rhs)
        joined._buf = self._heap.alloc_string(self.c_str() + rhs) if joined._len else NULL
        return joined

    def __add__(self, other: Any) -> Str:
        if not isinstance(other, (Str, str)):
            return NotImplemented
        return self._joined(other)

    def __radd__(self, other: Any) -> Str:
        if not isinstance(other, str):
            return NotImplemented
        return Str(other)._joined(self)

    def __iadd__(self, other: Any) -> Str:
        if not isinstance(other, (Str, str)):
            return NotImplemented
        return self.move_from(self._joined(other))

    def __len__(self) -> int:
        return int(self._len)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Str):
            return self.c_str() == other.c_str()
        if isinstance(other, str):
            return self.c_str() == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.c_str()

    def __repr__(self) -> str:
        return f"Str({self.c_str()!r})"

    def __del__(self) -> None:
        if self._buf != NULL:
            self.reset()
