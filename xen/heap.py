"""
Managed heap for xen ownership handles.
Slab allocator over numpy linear memory, numba-compiled kernels.

Raw pointers are integer addresses into the heap; NULL (0) is never handed
out. Counter cells live in linear memory as u64 words. Values placed with
``new`` are Python objects tracked per address; ``delete`` runs their
``__drop__`` hook exactly once.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

import numpy as np
from numba import njit

from .config import get_settings
from .errors import ErrorKind, fail


logger = logging.getLogger(__name__)

Ptr = int
NULL: Ptr = 0

SIZE_CLASSES = np.array([8, 16, 32, 64, 128, 256, 512, 1024, 2048], dtype=np.int32)
SLAB_CHUNK_SIZE = 4096
FREE_LIST_END = -1
HEAP_START = 8
VALUE_SLOT_SIZE = 8
STRING_HEADER_SIZE = 8
DROP_HOOK = "__drop__"


@njit
def size_to_class_idx(size: int) -> int:
    """Map allocation size to slab class index."""
    for i in range(len(SIZE_CLASSES)):
        if size <= SIZE_CLASSES[i]:
            return i
    return -1


@njit
def align_up(value: int, alignment: int) -> int:
    """Align value up to alignment boundary."""
    return (value + alignment - 1) & ~(alignment - 1)


@njit
def read_i32(memory: np.ndarray, offset: int) -> int:
    """Read i32 from memory."""
    val = (int(memory[offset]) |
           (int(memory[offset+1]) << 8) |
           (int(memory[offset+2]) << 16) |
           (int(memory[offset+3]) << 24))
    if val >= 0x80000000:
        val -= 0x100000000
    return int(val)


@njit
def write_i32(memory: np.ndarray, offset: int, value: int) -> None:
    """Write i32 to memory."""
    v = int(value)
    if v < 0:
        v = v + 0x100000000
    memory[offset] = v & 0xFF
    memory[offset+1] = (v >> 8) & 0xFF
    memory[offset+2] = (v >> 16) & 0xFF
    memory[offset+3] = (v >> 24) & 0xFF


@njit
def read_u64(memory: np.ndarray, offset: int) -> int:
    """Read u64 from memory. Offset must be 8-byte aligned."""
    u64_view = memory.view(np.uint64)
    return u64_view[offset // 8]


@njit
def write_u64(memory: np.ndarray, offset: int, value: np.uint64) -> None:
    """Write u64 to memory. Offset must be 8-byte aligned."""
    u64_view = memory.view(np.uint64)
    u64_view[offset // 8] = value


@njit
def slab_create_chunk(memory: np.ndarray, heap_top: int, size_class: int) -> int:
    """Create new slab chunk and return head of free list."""
    chunk_start = align_up(heap_top, 8)
    num_blocks = SLAB_CHUNK_SIZE // size_class

    for i in range(num_blocks - 1):
        block_addr = chunk_start + i * size_class
        next_addr = block_addr + size_class
        write_i32(memory, block_addr, next_addr)

    last_block = chunk_start + (num_blocks - 1) * size_class
    write_i32(memory, last_block, FREE_LIST_END)

    return chunk_start


@njit
def slab_alloc_core(memory: np.ndarray, free_list_heads: np.ndarray,
                    heap_top_ref: np.ndarray, class_idx: int) -> int:
    """
    Allocate from slab. heap_top_ref[0] is mutable heap pointer.
    Returns 0 if a new chunk does not fit in memory.
    """
    if free_list_heads[class_idx] == FREE_LIST_END:
        chunk_start = align_up(heap_top_ref[0], 8)
        if chunk_start + SLAB_CHUNK_SIZE > len(memory):
            return 0  # Out of memory
        new_chunk = slab_create_chunk(memory, heap_top_ref[0], SIZE_CLASSES[class_idx])
        free_list_heads[class_idx] = new_chunk
        heap_top_ref[0] = new_chunk + SLAB_CHUNK_SIZE

    ptr = free_list_heads[class_idx]
    free_list_heads[class_idx] = read_i32(memory, ptr)

    # Zero the block so counter cells start clean
    size = SIZE_CLASSES[class_idx]
    memory[ptr:ptr+size] = 0

    return ptr


@njit
def slab_free_core(memory: np.ndarray, free_list_heads: np.ndarray,
                   ptr: int, class_idx: int) -> None:
    """Free slab allocation."""
    write_i32(memory, ptr, free_list_heads[class_idx])
    free_list_heads[class_idx] = ptr


@njit
def bump_alloc_core(memory: np.ndarray, heap_top_ref: np.ndarray, size: int) -> int:
    """
    Allocate a large block past the heap top.
    Returns 0 if out of memory.
    """
    ptr = align_up(heap_top_ref[0], 8)
    new_heap_top = ptr + align_up(size, 8)
    if new_heap_top > len(memory):
        return 0  # Out of memory
    heap_top_ref[0] = new_heap_top
    return ptr


@njit
def string_store_core(memory: np.ndarray, ptr: int, string_bytes: np.ndarray) -> int:
    """
    Store string bytes in an allocated block.
    Layout: [length:u64][data...]
    Returns pointer to data.
    """
    length = len(string_bytes)
    write_u64(memory, ptr, np.uint64(length))

    data_ptr = ptr + STRING_HEADER_SIZE
    memory[data_ptr:data_ptr+length] = string_bytes

    return data_ptr


class Heap:
    """
    Heap that owns every value and counter cell managed by xen handles.

    Small blocks come from per-size-class slabs; blocks above 2048 bytes are
    bump allocated and recycled by exact size. Linear memory doubles when
    exhausted, up to ``max_size``.
    """

    def __init__(self, size: Optional[int] = None, max_size: Optional[int] = None) -> None:
        """
        Initialize heap.

        Args:
            size: Initial linear memory size in bytes (default: settings.heap_size)
            max_size: Growth limit in bytes (default: settings.max_heap_size)
        """
        settings = get_settings()
        self.size = settings.heap_size if size is None else size
        self.max_size = settings.max_heap_size if max_size is None else max_size
        if self.size <= HEAP_START or self.size % 8 != 0:
            raise ValueError(f"Heap size must be a multiple of 8 above {HEAP_START}, got {self.size}")

        self.memory = np.zeros(self.size, dtype=np.uint8)
        self.heap_top = np.array([HEAP_START], dtype=np.int32)  # address 0 is NULL
        self.free_lists = np.full(len(SIZE_CLASSES), FREE_LIST_END, dtype=np.int32)
        self._large_free: Dict[int, List[int]] = {}
        self._values: Dict[Ptr, Any] = {}

    # -- raw blocks -----------------------------------------------------

    def alloc(self, size: int) -> Ptr:
        """Allocate memory block, growing linear memory if needed."""
        if size <= 0:
            fail(ErrorKind.InvalidArgument, f"Allocation size must be positive, got {size}")

        class_idx = size_to_class_idx(size)
        while True:
            if class_idx >= 0:
                ptr = slab_alloc_core(self.memory, self.free_lists, self.heap_top, class_idx)
            else:
                ptr = self._alloc_large(size)
            if ptr != NULL:
                return int(ptr)
            self._grow()

    def _alloc_large(self, size: int) -> Ptr:
        recycled = self._large_free.get(align_up(size, 8))
        if recycled:
            ptr = recycled.pop()
            self.memory[ptr:ptr+size] = 0
            return ptr
        return int(bump_alloc_core(self.memory, self.heap_top, size))

    def free(self, ptr: Ptr, size: int) -> None:
        """Free memory block."""
        class_idx = size_to_class_idx(size)

        if class_idx >= 0:
            slab_free_core(self.memory, self.free_lists, ptr, class_idx)
        else:
            self._large_free.setdefault(align_up(size, 8), []).append(ptr)

    def _grow(self) -> None:
        """Double linear memory (capped at max_size), keeping every existing address valid."""
        new_size = min(self.size * 2, self.max_size - self.max_size % 8)
        if new_size <= self.size:
            raise MemoryError(f"Out of memory: heap cannot grow past {self.max_size} bytes")

        new_memory = np.zeros(new_size, dtype=np.uint8)
        new_memory[:self.size] = self.memory
        self.memory = new_memory
        logger.info("Heap grown from %d to %d bytes", self.size, new_size)
        self.size = new_size

    def read_u64(self, addr: Ptr) -> int:
        """Read u64 word at addr."""
        return int(read_u64(self.memory, addr))

    def write_u64(self, addr: Ptr, value: int) -> None:
        """Write u64 word at addr."""
        write_u64(self.memory, addr, np.uint64(value))

    # -- values ---------------------------------------------------------

    def new(self, value: Any) -> Ptr:
        """
        Place a value on the heap.

        Args:
            value: Object to own

        Returns:
            Raw pointer to the value
        """
        ptr = self.alloc(VALUE_SLOT_SIZE)
        self._values[ptr] = value
        logger.debug("new %s at %#x", type(value).__name__, ptr)
        return ptr

    def delete(self, ptr: Ptr) -> None:
        """
        Destroy the value at ptr and free its slot.

        Runs the value's ``__drop__`` hook, if it has one. Deleting NULL is a
        no-op; deleting a pointer that is not live is a double free.
        """
        if ptr == NULL:
            return
        if ptr not in self._values:
            fail(ErrorKind.Logic, f"delete of non-live pointer {ptr:#x} (double free?)")

        value = self._values.pop(ptr)
        logger.debug("delete %s at %#x", type(value).__name__, ptr)
        try:
            hook = getattr(value, DROP_HOOK, None)
            if hook is not None:
                hook()
        finally:
            self.free(ptr, VALUE_SLOT_SIZE)

    def load(self, ptr: Ptr) -> Any:
        """Return the value at ptr; NULL and freed pointers fail."""
        if ptr == NULL:
            fail(ErrorKind.Logic, "dereference of NULL pointer")
        try:
            return self._values[ptr]
        except KeyError:
            fail(ErrorKind.Logic, f"dereference of freed pointer {ptr:#x}")

    def is_live(self, ptr: Ptr) -> bool:
        """Check whether ptr points at a value that has not been deleted."""
        return ptr in self._values

    def live_values(self) -> int:
        """Number of values currently on the heap."""
        return len(self._values)

    # -- strings --------------------------------------------------------

    def alloc_string(self, s: str) -> Ptr:
        """Allocate string and return pointer to data."""
        string_bytes = np.frombuffer(s.encode("utf-8"), dtype=np.uint8)
        ptr = self.alloc(STRING_HEADER_SIZE + len(string_bytes))
        return int(string_store_core(self.memory, ptr, string_bytes))

    def read_string(self, ptr: Ptr) -> str:
        """Read string from pointer."""
        length = self.read_u64(ptr - STRING_HEADER_SIZE)
        string_bytes = bytes(self.memory[ptr:ptr+length])
        return string_bytes.decode("utf-8")

    def free_string(self, ptr: Ptr) -> None:
        """Free string allocated with alloc_string."""
        header_ptr = ptr - STRING_HEADER_SIZE
        length = self.read_u64(header_ptr)
        self.free(header_ptr, STRING_HEADER_SIZE + length)

    # -- introspection --------------------------------------------------

    def get_usage(self) -> Tuple[int, int]:
        """Get (used, total) memory in bytes."""
        return int(self.heap_top[0]), self.size


_default_heap: Optional[Heap] = None


def default_heap() -> Heap:
    """Return the process-wide heap every handle allocates from."""
    global _default_heap
    if _default_heap is None:
        _default_heap = Heap()
    return _default_heap


def new(value: Any) -> Ptr:
    """Place a value on the default heap and return its raw pointer."""
    return default_heap().new(value)


def delete(ptr: Ptr) -> None:
    """Destroy the value at ptr on the default heap."""
    default_heap().delete(ptr)
