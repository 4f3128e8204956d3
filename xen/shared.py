"""
Shared ownership of a heap value.

SharedRef counts its owners in a single u64 heap cell shared by every copy.
The pointee and the cell are freed together when the last owner lets go.
"""

from typing import Any, Callable

from .checked import CheckedU64
from .handle import CountedHandle
from .heap import NULL, Ptr, default_heap


SHARE_COUNT_SIZE = 8


class SharedRef(CountedHandle):
    """
    Takes shared ownership of the underlying value.

    - Copying adds an owner, moving transfers ownership without counting
    - The value is deleted when the last owner resets or goes out of scope
    - ``==`` compares pointer identity, not value equality

    Example:
        >>> a = build_shared(list, [1, 2])
        >>> b = a.copy()
        >>> int(a.count())
        2
    """

    def _read_count(self) -> CheckedU64:
        return CheckedU64(self._heap.read_u64(self._counter))

    def _new_counter(self) -> Ptr:
        counter = self._heap.alloc(SHARE_COUNT_SIZE)
        self._heap.write_u64(counter, 1)
        return counter

    def _add_owner(self) -> None:
        if self._counter == NULL:
            return
        count = self._read_count().increment()
        self._heap.write_u64(self._counter, int(count))

    def _remove_owner(self) -> None:
        if self._counter == NULL:
            return

        heap = self._heap
        count = self._read_count().decrement()
        ptr, counter = self._detach()

        if count == 0:
            heap.free(counter, SHARE_COUNT_SIZE)
            heap.delete(ptr)
        else:
            heap.write_u64(counter, int(count))

    def get(self) -> Ptr:
        """Raw pointer to the value (NULL when empty)."""
        return self._ptr

    def count(self) -> CheckedU64:
        """Total number of shared owners, 0 when empty."""
        if self._counter == NULL:
            return CheckedU64(0)
        return self._read_count()


def build_shared(factory: Callable[..., Any], *args: Any, **kwargs: Any) -> SharedRef:
    """Construct a value on the heap and wrap it in a SharedRef."""
    return SharedRef(default_heap().new(factory(*args, **kwargs)))
