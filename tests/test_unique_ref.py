import copy
import pickle

import pytest

import xen
from xen import InvalidArgumentError, LogicError, NULL, UniqueRef, build_unique

from conftest import Tracked


def test_default_is_empty():
    ref = UniqueRef()
    assert not ref
    assert ref.get() == NULL
    assert ref.release() == NULL


def test_owns_and_frees_on_scope_exit(make, drops):
    with UniqueRef(make("a")) as ref:
        assert ref
        assert ref.value.name == "a"
        assert ref.deref() is ref.value
    assert drops == ["a"]
    assert not ref


def test_frees_when_collected(make, drops):
    ref = UniqueRef(make("a"))
    del ref
    assert drops == ["a"]


def test_copy_is_impossible(make):
    ref = UniqueRef(make())
    with pytest.raises(TypeError):
        copy.copy(ref)
    with pytest.raises(TypeError):
        copy.deepcopy(ref)
    with pytest.raises(TypeError):
        pickle.dumps(ref)
    assert not hasattr(ref, "copy")
    ref.reset()


def test_move_transfers_ownership(make, drops):
    first = UniqueRef(make("a"))
    ptr = first.get()

    second = first.move()
    assert not first
    assert second.get() == ptr
    assert drops == []

    second.reset()
    assert drops == ["a"]


def test_move_from_deletes_previous_value(make, drops):
    target = UniqueRef(make("old"))
    source = UniqueRef(make("new"))
    ptr = source.get()

    target.move_from(source)
    assert drops == ["old"]
    assert target.get() == ptr
    assert not source

    target.move_from(target)
    assert target.get() == ptr
    target.reset()
    assert drops == ["old", "new"]


def test_release_then_rewrap_has_no_double_free(make, drops, heap):
    original = UniqueRef(make("a"))
    raw = original.release()
    assert not original
    assert heap.is_live(raw)

    rewrapped = UniqueRef(raw)
    del original
    del rewrapped
    assert drops == ["a"]


def test_reset_replaces_value(make, drops):
    ref = UniqueRef(make("a"))
    ref.reset(make("b"))
    assert drops == ["a"]
    assert ref.value.name == "b"

    ref.reset(ref.get())
    assert drops == ["a"]

    ref.reset()
    assert drops == ["a", "b"]
    assert not ref


def test_reset_to_dead_pointer_is_rejected(make, drops):
    ref = UniqueRef(make("a"))
    dead = make("dead")
    xen.delete(dead)

    with pytest.raises(InvalidArgumentError):
        ref.reset(dead)
    assert ref.value.name == "a"
    ref.reset()

    with pytest.raises(InvalidArgumentError):
        UniqueRef(dead)


def test_empty_dereference_is_checked():
    with pytest.raises(LogicError):
        UniqueRef().value


def test_build_unique(drops):
    ref = build_unique(Tracked, "built", drops)
    assert ref.value.name == "built"
    ref.drop()
    assert drops == ["built"]


def test_repr(make):
    assert repr(UniqueRef()) == "UniqueRef(NULL)"
    ref = UniqueRef(make())
    assert repr(ref).startswith("UniqueRef(0x")
    ref.reset()
