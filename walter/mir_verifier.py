"""
Structural checks over lowered MIR, run before anything reaches the backend.

Values are block-local temporaries (anything that crosses a block boundary goes
through a slot), so "defined before use" is checked within each block.
"""

from __future__ import annotations

from typing import Dict, Optional, Set

from . import mir
from .errors import VerificationError
from .types import BOOL, INT, UNIT, FunctionSignature, Type


def verify_program(program: mir.Program) -> None:
    for fn in program.functions.values():
        verify_function(fn, program.externs)


def verify_function(fn: mir.Function, externs: Optional[Dict[str, FunctionSignature]] = None) -> None:
    def fail(message: str) -> None:
        raise VerificationError(message, function=fn.name)

    if fn.entry not in fn.blocks:
        fail(f"entry block '{fn.entry}' missing")
    for name, block in fn.blocks.items():
        if block.terminator is None:
            fail(f"{name}: missing terminator")
        for target in block.successors():
            if target not in fn.blocks:
                fail(f"{name}: branch to unknown block '{target}'")
    for block in fn.blocks.values():
        _verify_block(fn, block, externs, fail)


def _verify_block(fn: mir.Function, block: mir.BasicBlock, externs, fail) -> None:
    defined: Set[str] = set()

    def use(value: mir.Value) -> Type:
        if value not in defined:
            fail(f"{block.name}: value '{value}' used before definition")
        return fn.values[value]

    def define(value: mir.Value) -> None:
        if value in defined:
            fail(f"{block.name}: value '{value}' defined twice")
        if value not in fn.values:
            fail(f"{block.name}: value '{value}' has no type")
        defined.add(value)

    def slot(name: str) -> Type:
        ty = fn.slots.get(name)
        if ty is None:
            fail(f"{block.name}: slot '{name}' is not declared")
        return ty

    for instr in block.instructions:
        if isinstance(instr, mir.Const):
            define(instr.dest)
        elif isinstance(instr, mir.Load):
            if slot(instr.slot) != fn.values.get(instr.dest):
                fail(f"{block.name}: load of '{instr.slot}' has the wrong type")
            define(instr.dest)
        elif isinstance(instr, mir.Store):
            if use(instr.value) != slot(instr.slot):
                fail(f"{block.name}: store to '{instr.slot}' has the wrong type")
        elif isinstance(instr, mir.Binary):
            left, right = use(instr.left), use(instr.right)
            if left != right:
                fail(f"{block.name}: operands of '{instr.op}' differ in type ({left} vs {right})")
            if instr.op in mir.ARITHMETIC_OPS and left != INT:
                fail(f"{block.name}: '{instr.op}' needs Int operands, got {left}")
            if instr.op not in mir.ARITHMETIC_OPS and instr.op not in mir.COMPARISON_OPS:
                fail(f"{block.name}: unknown operator '{instr.op}'")
            define(instr.dest)
        elif isinstance(instr, mir.Call):
            arg_types = [use(a) for a in instr.args]
            if externs is not None:
                sig = externs.get(instr.callee)
                if sig is None:
                    fail(f"{block.name}: call to undeclared function '{instr.callee}'")
                if not sig.variadic and len(arg_types) != len(sig.params):
                    fail(f"{block.name}: '{instr.callee}' called with {len(arg_types)} argument(s)")
                if (instr.dest is None) != (sig.return_type == UNIT):
                    fail(f"{block.name}: result of '{instr.callee}' does not match its signature")
            if instr.dest is not None:
                define(instr.dest)
        else:
            fail(f"{block.name}: unknown instruction {type(instr).__name__}")

    term = block.terminator
    if isinstance(term, mir.CondBr):
        if use(term.cond) != BOOL:
            fail(f"{block.name}: branch condition is not Bool")
    elif isinstance(term, mir.Return):
        if term.value is None:
            if fn.return_type != UNIT:
                fail(f"{block.name}: missing return value")
        elif use(term.value) != fn.return_type:
            fail(f"{block.name}: return value is not {fn.return_type}")
    elif not isinstance(term, mir.Br):
        fail(f"{block.name}: unknown terminator {type(term).__name__}")
