import io
import logging

import pytest

from xen import CheckedU64, config, errors
from xen.errors import (
    DivideByZeroError,
    ErrorContext,
    ErrorKind,
    IndexOutOfRangeError,
    InvalidArgumentError,
    LogicError,
    NumOverflowError,
    NumUnderflowError,
    XenError,
    error_type,
    fail,
)
from xen.limits import U64_MAX


def test_error_kind_values():
    assert [kind.name for kind in ErrorKind] == [
        "Logic", "IndexOutOfRange", "InvalidArgument",
        "NumOverflow", "NumUnderflow", "DivideByZero",
    ]
    assert int(ErrorKind.NumOverflow) == 3


def test_context_formatting():
    ctx = ErrorContext(ErrorKind.NumUnderflow, "decrement below zero")
    assert str(ctx) == "[ERR]: 4 (NumUnderflow): decrement below zero"

    stream = io.StringIO()
    ctx.write(stream)
    assert stream.getvalue() == "[ERR]: 4 (NumUnderflow): decrement below zero\n"


@pytest.mark.parametrize("kind, exc_type, builtin", [
    (ErrorKind.Logic, LogicError, XenError),
    (ErrorKind.IndexOutOfRange, IndexOutOfRangeError, IndexError),
    (ErrorKind.InvalidArgument, InvalidArgumentError, ValueError),
    (ErrorKind.NumOverflow, NumOverflowError, OverflowError),
    (ErrorKind.NumUnderflow, NumUnderflowError, ArithmeticError),
    (ErrorKind.DivideByZero, DivideByZeroError, ZeroDivisionError),
])
def test_fail_raises_matching_exception(kind, exc_type, builtin):
    assert error_type(kind) is exc_type
    with pytest.raises(exc_type) as info:
        fail(kind, "boom")
    assert isinstance(info.value, builtin)
    assert info.value.context == ErrorContext(kind, "boom")
    assert info.value.kind is kind
    assert str(info.value) == str(info.value.context)


def test_counter_errors_carry_context():
    with pytest.raises(NumOverflowError) as info:
        CheckedU64(U64_MAX).increment()
    assert info.value.context.kind is ErrorKind.NumOverflow


def test_terminate_logs_and_aborts(monkeypatch, caplog, capsys):
    aborted = []
    monkeypatch.setattr(errors.os, "abort", lambda: aborted.append(True))

    with caplog.at_level(logging.CRITICAL, logger="xen.errors"):
        ErrorContext(ErrorKind.Logic, "broken invariant").terminate()

    assert aborted == [True]
    assert "broken invariant" in caplog.text
    assert "[ERR]: 0 (Logic): broken invariant" in capsys.readouterr().err


def test_fail_fast_terminates_instead_of_raising(monkeypatch):
    terminated = []

    def fake_terminate(self):
        terminated.append(self)
        raise SystemExit(134)

    monkeypatch.setenv("XEN_FAIL_FAST", "1")
    config.reload_settings()
    monkeypatch.setattr(ErrorContext, "terminate", fake_terminate)

    with pytest.raises(SystemExit):
        CheckedU64(0).decrement()
    assert terminated[0].kind is ErrorKind.NumUnderflow
