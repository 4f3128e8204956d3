"""
Copy/move/reset protocol shared by the reference-counted handles.

A counted handle holds a raw pointer plus the address of a counter cell on
the heap. Subclasses decide what the cell looks like and when the pointee
and the cell are freed.
"""

from __future__ import annotations
from typing import Any, Optional, Type, TypeVar

from .errors import ErrorKind, fail
from .heap import NULL, Heap, Ptr, default_heap


H = TypeVar("H", bound="CountedHandle")


class CountedHandle:
    """
    Base for handles that share ownership through a heap counter cell.

    Every copy aliases the same pointer and cell and adds an owner; a move
    transfers both and empties the source; ``reset`` (and scope exit) removes
    an owner. Handles release on ``with`` exit and from ``__del__``.
    """

    _heap: Optional[Heap] = None
    _ptr: Ptr = NULL
    _counter: Ptr = NULL

    def __init__(self, ptr: Ptr = NULL) -> None:
        """
        Adopt a raw pointer.

        Args:
            ptr: Pointer returned by ``Heap.new`` (NULL for an empty handle)
        """
        self._heap = default_heap()
        self._ptr = NULL
        self._counter = NULL
        if ptr != NULL:
            self._adopt(ptr)

    # -- counter cell hooks ---------------------------------------------

    def _new_counter(self) -> Ptr:
        """Allocate a counter cell for a freshly adopted pointer."""
        raise NotImplementedError

    def _add_owner(self) -> None:
        """Register this handle as one more owner of its cell."""
        raise NotImplementedError

    def _remove_owner(self) -> None:
        """Drop this handle's ownership, freeing what is no longer owned."""
        raise NotImplementedError

    # -- construction helpers -------------------------------------------

    def _adopt(self, ptr: Ptr) -> None:
        if not self._heap.is_live(ptr):
            fail(ErrorKind.InvalidArgument, f"cannot adopt non-live pointer {ptr:#x}")
        self._ptr = ptr
        self._counter = self._new_counter()

    def _detach(self) -> tuple:
        """Empty the handle and return its former (ptr, counter)."""
        ptr, counter = self._ptr, self._counter
        self._ptr = NULL
        self._counter = NULL
        return ptr, counter

    @classmethod
    def _alias(cls: Type[H], heap: Optional[Heap], ptr: Ptr, counter: Ptr) -> H:
        handle = cls.__new__(cls)
        handle._heap = heap
        handle._ptr = ptr
        handle._counter = counter
        return handle

    # -- copy / move ----------------------------------------------------

    def copy(self: H) -> H:
        """Return a new handle sharing ownership with this one."""
        other = self._alias(self._heap, self._ptr, self._counter)
        if other._ptr != NULL:
            other._add_owner()
        return other

    __copy__ = copy

    def __deepcopy__(self: H, memo: dict) -> H:
        return self.copy()

    def _check_same_kind(self, other: Any) -> None:
        if type(other) is not type(self):
            fail(ErrorKind.InvalidArgument,
                 f"cannot assign {type(other).__name__} to {type(self).__name__}")

    def move(self: H) -> H:
        """Return a new handle holding this one's ownership; this one becomes empty."""
        ptr, counter = self._detach()
        return self._alias(self._heap, ptr, counter)

    def copy_from(self: H, other: H) -> H:
        """Copy-assign: drop current ownership and share ``other``'s."""
        self._check_same_kind(other)
        if other is not self:
            self._remove_owner()
            self._heap = other._heap
            self._ptr = other._ptr
            self._counter = other._counter
            if self._ptr != NULL:
                self._add_owner()
        return self

    def move_from(self: H, other: H) -> H:
        """Move-assign: drop current ownership and take ``other``'s."""
        self._check_same_kind(other)
        if other is not self:
            self._remove_owner()
            self._heap = other._heap
            self._ptr, self._counter = other._detach()
        return self

    # -- ownership ------------------------------------------------------

    def reset(self, ptr: Ptr = NULL) -> None:
        """
        Give up current ownership, then adopt ``ptr`` with a fresh counter.

        Args:
            ptr: New pointer to own (NULL leaves the handle empty)
        """
        if ptr != NULL and ptr == self._ptr:
            fail(ErrorKind.InvalidArgument, f"handle already owns pointer {ptr:#x}")
        if ptr != NULL:
            if self._heap is None:
                self._heap = default_heap()
            if not self._heap.is_live(ptr):
                fail(ErrorKind.InvalidArgument, f"pointer {ptr:#x} is not a live heap value")
        self._remove_owner()
        if ptr != NULL:
            self._adopt(ptr)

    def drop(self) -> None:
        """Release ownership now."""
        self._remove_owner()

    @property
    def value(self) -> Any:
        """The pointee; dereferencing an empty handle fails."""
        if self._ptr == NULL:
            fail(ErrorKind.Logic, f"dereference of empty {type(self).__name__}")
        return self._heap.load(self._ptr)

    def deref(self) -> Any:
        return self.value

    # -- protocol -------------------------------------------------------

    def __bool__(self) -> bool:
        return self._ptr != NULL

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, CountedHandle):
            return NotImplemented
        return self._ptr == other._ptr

    def __ne__(self, other: Any) -> bool:
        if not isinstance(other, CountedHandle):
            return NotImplemented
        return self._ptr != other._ptr

    __hash__ = None  # type: ignore[assignment]

    def __enter__(self: H) -> H:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._remove_owner()

    def __del__(self) -> None:
        self._remove_owner()

    def __repr__(self) -> str:
        if self._ptr == NULL:
            return f"{type(self).__name__}(NULL)"
        return f"{type(self).__name__}({self._ptr:#x})"
