"""
Exclusive ownership of a heap value.
"""

from __future__ import annotations
from typing import Any, Callable, NoReturn, Optional

from .errors import ErrorKind, fail
from .heap import NULL, Heap, Ptr, default_heap


class UniqueRef:
    """
    Takes full ownership of the underlying value.

    - The value is deleted when the handle resets or goes out of scope
    - The handle cannot be copied (``copy.copy``, ``copy.deepcopy`` and
      pickling raise TypeError), only moved
    - ``release`` hands the raw pointer back to the caller
    """

    _heap: Optional[Heap] = None
    _ptr: Ptr = NULL

    def __init__(self, ptr: Ptr = NULL) -> None:
        """
        Adopt a raw pointer.

        Args:
            ptr: Pointer returned by ``Heap.new`` (NULL for an empty handle)
        """
        self._heap = default_heap()
        self._ptr = NULL
        if ptr != NULL:
            self._check_live(ptr)
            self._ptr = ptr

    def _check_live(self, ptr: Ptr) -> None:
        if not self._heap.is_live(ptr):
            fail(ErrorKind.InvalidArgument, f"cannot adopt non-live pointer {ptr:#x}")

    def release(self) -> Ptr:
        """
        Give up ownership without deleting the value.

        Returns:
            The raw pointer (NULL if the handle was empty)
        """
        ptr = self._ptr
        self._ptr = NULL
        return ptr

    def reset(self, ptr: Ptr = NULL) -> None:
        """Delete the current value (if different from ``ptr``) and adopt ``ptr``."""
        if ptr == self._ptr:
            return
        if ptr != NULL:
            self._check_live(ptr)
        old = self._ptr
        self._ptr = ptr
        self._heap.delete(old)

    def drop(self) -> None:
        self.reset()

    def get(self) -> Ptr:
        """Raw pointer to the value (NULL when empty)."""
        return self._ptr

    @property
    def value(self) -> Any:
        """The pointee; dereferencing an empty handle fails."""
        if self._ptr == NULL:
            fail(ErrorKind.Logic, "dereference of empty UniqueRef")
        return self._heap.load(self._ptr)

    def deref(self) -> Any:
        return self.value

    def move(self) -> UniqueRef:
        """Return a new handle owning the value; this one becomes empty."""
        other = UniqueRef.__new__(UniqueRef)
        other._heap = self._heap
        other._ptr = self.release()
        return other

    def move_from(self, other: UniqueRef) -> UniqueRef:
        """Move-assign: delete the current value and take ``other``'s."""
        if other is not self:
            old = self._ptr
            self._ptr = other.release()
            self._heap.delete(old)
        return self

    def __copy__(self) -> NoReturn:
        raise TypeError("UniqueRef cannot be copied; use move()")

    def __deepcopy__(self, memo: dict) -> NoReturn:
        raise TypeError("UniqueRef cannot be copied; use move()")

    def __reduce_ex__(self, protocol: Any) -> NoReturn:
        raise TypeError("UniqueRef cannot be pickled")

    def __bool__(self) -> bool:
        return self._ptr != NULL

    def __enter__(self) -> UniqueRef:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.reset()

    def __del__(self) -> None:
        if self._ptr != NULL:
            self.reset()

    def __repr__(self) -> str:
        if self._ptr == NULL:
            return "UniqueRef(NULL)"
        return f"UniqueRef({self._ptr:#x})"


def build_unique(factory: Callable[..., Any], *args: Any, **kwargs: Any) -> UniqueRef:
    """Construct a value on the heap and wrap it in a UniqueRef."""
    return UniqueRef(default_heap().new(factory(*args, **kwargs)))
