"""
Observed ownership: shared ownership with weak observers.

ObservedRef keeps a strong and a weak count in a RefCounter block on the
heap. The value dies with the last strong reference; the block survives
until the last weak reference is gone too, so a WeakRef can always tell
whether its value is still alive without touching freed memory.
"""

from __future__ import annotations
from typing import Any, Callable, Optional

from .checked import CheckedU64
from .errors import ErrorKind, fail
from .handle import CountedHandle
from .heap import NULL, Heap, Ptr, default_heap


class RefCounter:
    """
    Strong and weak reference counts of one heap value.

    The counts live in a 16-byte heap block (strong at +0, weak at +8) shared
    by address among every handle of the value. RefCounter is only the
    bookkeeping; the handles implement the lifetime rules:

    - a strong reference owns the value, a weak reference only points at it
    - as long as there are strong references the value must live
    - as long as there are any references the block must live
    """

    STRONG_OFFSET = 0
    WEAK_OFFSET = 8
    SIZE = 16

    __slots__ = ("heap", "address")

    def __init__(self, heap: Heap, address: Ptr) -> None:
        self.heap = heap
        self.address = address

    @classmethod
    def allocate(cls, heap: Heap) -> RefCounter:
        """Allocate a block with one strong and no weak references."""
        block = cls(heap, heap.alloc(cls.SIZE))
        heap.write_u64(block.address + cls.STRONG_OFFSET, 1)
        heap.write_u64(block.address + cls.WEAK_OFFSET, 0)
        return block

    def free(self) -> None:
        self.heap.free(self.address, self.SIZE)

    def _read(self, offset: int) -> CheckedU64:
        return CheckedU64(self.heap.read_u64(self.address + offset))

    def _write(self, offset: int, count: CheckedU64) -> None:
        self.heap.write_u64(self.address + offset, int(count))

    def get_strong_count(self) -> CheckedU64:
        return self._read(self.STRONG_OFFSET)

    def get_weak_count(self) -> CheckedU64:
        return self._read(self.WEAK_OFFSET)

    def get_total_count(self) -> CheckedU64:
        return self.get_strong_count() + self.get_weak_count()

    def has_no_strong_ref(self) -> bool:
        return self.get_strong_count() == 0

    def has_no_weak_ref(self) -> bool:
        return self.get_weak_count() == 0

    def has_no_reference(self) -> bool:
        return self.get_total_count() == 0

    def inc_strong_ref(self) -> None:
        self._write(self.STRONG_OFFSET, self.get_strong_count().increment())

    def dec_strong_ref(self) -> None:
        self._write(self.STRONG_OFFSET, self.get_strong_count().decrement())

    def inc_weak_ref(self) -> None:
        self._write(self.WEAK_OFFSET, self.get_weak_count().increment())

    def dec_weak_ref(self) -> None:
        self._write(self.WEAK_OFFSET, self.get_weak_count().decrement())

    def __repr__(self) -> str:
        return (
            f"RefCounter(strong={self.get_strong_count()}, "
            f"weak={self.get_weak_count()}, address={self.address:#x})"
        )


class ObservedRef(CountedHandle):
    """
    A strong reference to a heap value that weak references can observe.

    Same copy/move/reset behaviour as SharedRef, with two-count bookkeeping:
    the value is deleted when the strong count reaches zero and the block is
    freed once both counts are zero.
    """

    def _block(self) -> RefCounter:
        return RefCounter(self._heap, self._counter)

    def _new_counter(self) -> Ptr:
        return RefCounter.allocate(self._heap).address

    def _add_owner(self) -> None:
        if self._ptr != NULL and self._counter != NULL:
            self._block().inc_strong_ref()

    def _remove_owner(self) -> None:
        if self._ptr == NULL or self._counter == NULL:
            return

        heap = self._heap
        block = self._block()
        block.dec_strong_ref()
        ptr, _ = self._detach()

        value_dead = block.has_no_strong_ref()
        if block.has_no_reference():
            block.free()
        if value_dead:
            heap.delete(ptr)

    def get_ptr(self) -> Ptr:
        """
        Raw pointer to the value.

        Unsafe: the pointer is only valid while a strong reference exists.
        """
        return self._ptr

    def get_ref_counter(self) -> Optional[RefCounter]:
        """
        The reference counter block, or None when empty.

        Unsafe: mutating the block bypasses the ownership rules.
        """
        if self._counter == NULL:
            return None
        return self._block()

    def strong_count(self) -> CheckedU64:
        if self._counter == NULL:
            return CheckedU64(0)
        return self._block().get_strong_count()

    def weak_count(self) -> CheckedU64:
        if self._counter == NULL:
            return CheckedU64(0)
        return self._block().get_weak_count()

    def get_weak_ref(self) -> WeakRef:
        """Return a WeakRef observing this value."""
        return WeakRef(self)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, (ObservedRef, WeakRef)):
            return self._counter == other._counter
        return NotImplemented

    def __ne__(self, other: Any) -> bool:
        if isinstance(other, (ObservedRef, WeakRef)):
            return self._counter != other._counter
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]


class WeakRef:
    """
    A non-owning observer of an ObservedRef's value.

    Holding a WeakRef keeps the counter block alive but never the value.
    ``lock`` promotes it to a strong reference if the value still exists.
    """

    _heap: Optional[Heap] = None
    _ptr: Ptr = NULL
    _counter: Ptr = NULL

    def __init__(self, owner: Optional[ObservedRef] = None) -> None:
        """
        Observe the value owned by ``owner`` (empty when None or empty).
        """
        self._heap = default_heap() if owner is None else owner._heap
        self._ptr = NULL
        self._counter = NULL
        if owner is not None and owner._counter != NULL:
            self._ptr = owner._ptr
            self._counter = owner._counter
            self._block().inc_weak_ref()

    def _block(self) -> RefCounter:
        return RefCounter(self._heap, self._counter)

    @classmethod
    def _alias(cls, heap: Optional[Heap], ptr: Ptr, counter: Ptr) -> WeakRef:
        weak = cls.__new__(cls)
        weak._heap = heap
        weak._ptr = ptr
        weak._counter = counter
        return weak

    def _release(self) -> None:
        if self._counter == NULL:
            return
        block = self._block()
        block.dec_weak_ref()
        self._ptr = NULL
        self._counter = NULL
        if block.has_no_reference():
            block.free()

    def expired(self) -> bool:
        """True when the observed value has been deleted (or nothing is observed)."""
        return self._counter == NULL or self._block().has_no_strong_ref()

    def use_count(self) -> CheckedU64:
        """Number of strong references to the observed value."""
        if self._counter == NULL:
            return CheckedU64(0)
        return self._block().get_strong_count()

    def lock(self) -> ObservedRef:
        """
        Try to obtain a strong reference.

        Returns:
            An ObservedRef sharing the value, or an empty one if it has expired
        """
        if self.expired():
            return ObservedRef()
        self._block().inc_strong_ref()
        return ObservedRef._alias(self._heap, self._ptr, self._counter)

    def copy(self) -> WeakRef:
        other = self._alias(self._heap, self._ptr, self._counter)
        if other._counter != NULL:
            other._block().inc_weak_ref()
        return other

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> WeakRef:
        return self.copy()

    def move(self) -> WeakRef:
        other = self._alias(self._heap, self._ptr, self._counter)
        self._ptr = NULL
        self._counter = NULL
        return other

    def _check_weak(self, other: Any) -> None:
        if type(other) is not type(self):
            fail(ErrorKind.InvalidArgument, f"cannot assign {type(other).__name__} to WeakRef")

    def copy_from(self, other: WeakRef) -> WeakRef:
        self._check_weak(other)
        if other is not self:
            self._release()
            self._heap = other._heap
            self._ptr = other._ptr
            self._counter = other._counter
            if self._counter != NULL:
                self._block().inc_weak_ref()
        return self

    def move_from(self, other: WeakRef) -> WeakRef:
        self._check_weak(other)
        if other is not self:
            self._release()
            self._heap = other._heap
            self._ptr, self._counter = other._ptr, other._counter
            other._ptr = NULL
            other._counter = NULL
        return self

    def reset(self) -> None:
        """Stop observing."""
        self._release()

    def __bool__(self) -> bool:
        return not self.expired()

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, (ObservedRef, WeakRef)):
            return self._counter == other._counter
        return NotImplemented

    def __ne__(self, other: Any) -> bool:
        if isinstance(other, (ObservedRef, WeakRef)):
            return self._counter != other._counter
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __enter__(self) -> WeakRef:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._release()

    def __del__(self) -> None:
        self._release()

    def __repr__(self) -> str:
        state = "expired" if self.expired() else "alive"
        return f"WeakRef({self._ptr:#x}, {state})"


def build_observed(factory: Callable[..., Any], *args: Any, **kwargs: Any) -> ObservedRef:
    """Construct a value on the heap and wrap it in an ObservedRef."""
    return ObservedRef(default_heap().new(factory(*args, **kwargs)))
