from __future__ import annotations

import pytest

from walter import mir
from walter.errors import VerificationError
from walter.mir_verifier import verify_function, verify_program
from walter.libstd import builtin_signatures
from walter.types import BOOL, I32, INT


def _fn(blocks, slots=None, values=None) -> mir.Function:
    return mir.Function(
        name="f",
        return_type=I32,
        entry="entry",
        slots=slots or {},
        values=values or {"_z": I32},
        blocks={b.name: b for b in blocks},
    )


def _ret() -> list:
    return [mir.Const(dest="_z", type=I32, value=0)]


def test_well_formed_function_passes() -> None:
    entry = mir.BasicBlock("entry", [mir.Const("_a", INT, 1), mir.Store("x", "_a")], mir.Br("exit"))
    exit_block = mir.BasicBlock("exit", [mir.Load("_b", "x"), mir.Call(None, "print_int", ["_b"]), *_ret()], mir.Return("_z"))
    fn = _fn([entry, exit_block], slots={"x": INT}, values={"_a": INT, "_b": INT, "_z": I32})
    verify_function(fn, builtin_signatures())


def test_missing_entry_block() -> None:
    fn = _fn([mir.BasicBlock("start", _ret(), mir.Return("_z"))])
    with pytest.raises(VerificationError, match="entry block 'entry' missing") as excinfo:
        verify_function(fn)
    assert excinfo.value.function == "f"
    assert excinfo.value.render().startswith("verification failed in function 'f': ")


def test_unterminated_block() -> None:
    fn = _fn([mir.BasicBlock("entry", _ret(), mir.Return("_z")), mir.BasicBlock("dangling")])
    with pytest.raises(VerificationError, match="dangling: missing terminator"):
        verify_function(fn)


def test_branch_to_unknown_block() -> None:
    fn = _fn([mir.BasicBlock("entry", [], mir.Br("nowhere"))])
    with pytest.raises(VerificationError, match="unknown block 'nowhere'"):
        verify_function(fn)


def test_value_used_before_definition() -> None:
    block = mir.BasicBlock("entry", [mir.Store("x", "_a"), mir.Const("_a", INT, 1), *_ret()], mir.Return("_z"))
    fn = _fn([block], slots={"x": INT}, values={"_a": INT, "_z": I32})
    with pytest.raises(VerificationError, match="'_a' used before definition"):
        verify_function(fn)


def test_values_do_not_flow_between_blocks() -> None:
    entry = mir.BasicBlock("entry", [mir.Const("_a", INT, 1)], mir.Br("next"))
    nxt = mir.BasicBlock("next", [mir.Store("x", "_a"), *_ret()], mir.Return("_z"))
    fn = _fn([entry, nxt], slots={"x": INT}, values={"_a": INT, "_z": I32})
    with pytest.raises(VerificationError, match="used before definition"):
        verify_function(fn)


def test_undeclared_slot() -> None:
    block = mir.BasicBlock("entry", [mir.Load("_a", "ghost"), *_ret()], mir.Return("_z"))
    fn = _fn([block], values={"_a": INT, "_z": I32})
    with pytest.raises(VerificationError, match="slot 'ghost' is not declared"):
        verify_function(fn)


def test_condition_must_be_bool() -> None:
    block = mir.BasicBlock("entry", [mir.Const("_a", INT, 1)], mir.CondBr("_a", "entry", "entry"))
    fn = _fn([block], values={"_a": INT})
    with pytest.raises(VerificationError, match="condition is not Bool"):
        verify_function(fn)


def test_return_type_is_checked() -> None:
    block = mir.BasicBlock("entry", [mir.Const("_b", BOOL, True)], mir.Return("_b"))
    fn = _fn([block], values={"_b": BOOL})
    with pytest.raises(VerificationError, match="return value is not Int32"):
        verify_function(fn)


def test_calls_checked_against_externs() -> None:
    block = mir.BasicBlock("entry", [mir.Call(None, "launch", []), *_ret()], mir.Return("_z"))
    program = mir.Program(functions={"f": _fn([block])}, externs=builtin_signatures())
    with pytest.raises(VerificationError, match="undeclared function 'launch'"):
        verify_program(program)
