import pytest

import xen
from xen import (
    InvalidArgumentError, LogicError, NULL, NumUnderflowError, ObservedRef, RefCounter, SharedRef, WeakRef,
    build_observed,
)

from conftest import Tracked


def test_default_is_empty():
    ref = ObservedRef()
    assert not ref
    assert ref.get_ptr() == NULL
    assert ref.get_ref_counter() is None
    assert ref.strong_count() == 0
    assert ref.weak_count() == 0


def test_fresh_block(make):
    ref = ObservedRef(make())
    block = ref.get_ref_counter()
    assert isinstance(block, RefCounter)
    assert block.get_strong_count() == 1
    assert block.get_weak_count() == 0
    assert block.get_total_count() == 1
    assert block.has_no_weak_ref()
    assert not block.has_no_strong_ref()
    ref.reset()


def test_three_strong_references(make, drops):
    h1 = ObservedRef(make("a"))
    h2 = h1.copy()
    h3 = h2.copy()
    assert h1.strong_count() == 3

    h1.reset()
    h2.reset()
    assert drops == []
    assert h3.strong_count() == 1
    h3.reset()
    assert drops == ["a"]


def test_block_outlives_value_while_observed(make, drops, heap):
    h1 = ObservedRef(make("a"))
    h2 = h1.copy()
    block = h1.get_ref_counter()
    block.inc_weak_ref()

    h1.reset()
    h2.reset()
    assert drops == ["a"]
    # Value freed, block still readable
    assert block.get_strong_count() == 0
    assert block.get_weak_count() == 1
    assert block.has_no_strong_ref()
    assert not block.has_no_reference()

    block.dec_weak_ref()
    assert block.has_no_reference()
    block.free()


def test_move_keeps_count(make, drops):
    h1 = ObservedRef(make("a"))
    keep = h1.copy()
    ptr = h1.get_ptr()

    h2 = h1.move()
    assert not h1
    assert h2.get_ptr() == ptr
    assert h2.strong_count() == 2

    h2.reset()
    keep.reset()
    assert drops == ["a"]


def test_copy_from_and_move_from(make, drops):
    a = ObservedRef(make("a"))
    b = ObservedRef(make("b"))
    b.copy_from(a)
    assert drops == ["b"]
    assert a.strong_count() == 2

    c = ObservedRef()
    c.move_from(b)
    assert not b
    assert c == a
    a.reset()
    c.reset()
    assert drops == ["b", "a"]


def test_reset_allocates_fresh_block(make, drops):
    h1 = ObservedRef(make("a"))
    h2 = h1.copy()
    h1.reset(make("b"))
    assert h1.strong_count() == 1
    assert h2.strong_count() == 1
    assert h1.get_ref_counter().address != h2.get_ref_counter().address
    h1.reset()
    h2.reset()
    assert sorted(drops) == ["a", "b"]


def test_weak_ref_lifecycle(make, drops):
    strong = ObservedRef(make("a"))
    weak = strong.get_weak_ref()
    assert strong.weak_count() == 1
    assert weak.use_count() == 1
    assert not weak.expired()
    assert weak == strong

    locked = weak.lock()
    assert locked == strong
    assert strong.strong_count() == 2
    locked.reset()

    strong.reset()
    assert drops == ["a"]
    assert weak.expired()
    assert not weak
    assert weak.use_count() == 0

    promoted = weak.lock()
    assert not promoted
    weak.reset()
    assert weak.use_count() == 0


def test_expired_weak_ref_does_not_match_reused_slot(make, drops):
    strong = ObservedRef(make("a"))
    weak = strong.get_weak_ref()
    strong.reset()
    assert weak.expired()

    other = ObservedRef(make("b"))
    assert other.get_ptr() == weak._ptr
    assert weak != other
    assert not (weak == other)
    assert other != weak
    other.reset()
    weak.reset()


def test_weak_copies_count(make):
    strong = ObservedRef(make())
    w1 = WeakRef(strong)
    w2 = w1.copy()
    w3 = w2.move()
    assert strong.weak_count() == 2
    assert not w2._counter
    w1.reset()
    w3.reset()
    assert strong.weak_count() == 0
    strong.reset()


def test_weak_assignment(make):
    a = ObservedRef(make())
    b = ObservedRef(make())
    wa, wb = WeakRef(a), WeakRef(b)

    wb.copy_from(wa)
    assert b.weak_count() == 0
    assert a.weak_count() == 2

    wc = WeakRef()
    wc.move_from(wb)
    assert a.weak_count() == 2
    assert wc == a

    for ref in (wa, wc, a, b):
        ref.reset()


def test_last_weak_release_frees_block(make, heap):
    strong = ObservedRef(make())
    weak = WeakRef(strong)
    address = strong.get_ref_counter().address

    strong.reset()
    assert heap.read_u64(address) == 0
    weak.reset()
    reused = [heap.alloc(RefCounter.SIZE) for _ in range(2)]
    assert address in reused
    for ptr in reused:
        heap.free(ptr, RefCounter.SIZE)


def test_weak_from_empty():
    weak = WeakRef(ObservedRef())
    assert weak.expired()
    assert not weak.lock()
    assert WeakRef().expired()


def test_drop_hook_sees_value_already_expired(drops):
    observers = []

    class Watcher:
        def __drop__(self):
            observers.append(observers[0].expired())

    strong = build_observed(Watcher)
    observers.append(strong.get_weak_ref())
    strong.reset()
    assert observers[1] is True
    observers[0].reset()


def test_corrupted_strong_count_underflows(make, drops):
    ref = ObservedRef(make("a"))
    block = ref.get_ref_counter()
    block.dec_strong_ref()
    with pytest.raises(NumUnderflowError):
        ref.reset()
    block.inc_strong_ref()
    ref.reset()
    assert drops == ["a"]


def test_empty_dereference_is_checked():
    with pytest.raises(LogicError):
        ObservedRef().value


def test_build_observed(drops):
    ref = build_observed(Tracked, "built", drops)
    assert ref.value.name == "built"
    assert ref.strong_count() == 1
    del ref
    assert drops == ["built"]


def test_reset_to_dead_pointer_is_rejected(make, drops):
    ref = ObservedRef(make("a"))
    weak = ref.get_weak_ref()
    dead = make("dead")
    xen.delete(dead)
    with pytest.raises(InvalidArgumentError):
        ref.reset(dead)
    assert ref.value.name == "a"
    assert ref.strong_count() == 1
    assert not weak.expired()
    ref.reset()
    weak.reset()
    assert drops == ["dead", "a"]


def test_assignment_from_other_handle_kind_is_rejected(make, drops):
    shared = SharedRef(make("a"))
    observed = ObservedRef(make("b"))
    with pytest.raises(InvalidArgumentError):
        observed.copy_from(shared)
    with pytest.raises(InvalidArgumentError):
        observed.move_from(shared)
    assert observed.value.name == "b"
    assert shared.count() == 1

    weak = WeakRef()
    with pytest.raises(InvalidArgumentError):
        weak.copy_from(observed)
    with pytest.raises(InvalidArgumentError):
        weak.move_from(observed)
    assert weak.expired()
    assert observed.weak_count() == 0

    shared.reset()
    observed.reset()
    assert drops == ["a", "b"]
