"""Shared helpers: a tiny MIR interpreter so lowering tests can check behaviour, not just shape."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pytest

from walter import mir, parser
from walter.lower_to_mir import lower_program


@dataclass
class Run:
    value: object
    calls: List[Tuple[str, tuple]] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)


def _sdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


_BINARY = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _sdiv,
    "^": lambda a, b: a ^ b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


def interpret(program: mir.Program, entry: str = "main", max_steps: int = 10_000) -> Run:
    fn = program.functions[entry]
    slots: Dict[str, object] = {}
    values: Dict[str, object] = {}
    run = Run(value=None)
    block = fn.blocks[fn.entry]
    for _ in range(max_steps):
        run.visited.append(block.name)
        for instr in block.instructions:
            if isinstance(instr, mir.Const):
                values[instr.dest] = instr.value
            elif isinstance(instr, mir.Load):
                values[instr.dest] = slots[instr.slot]
            elif isinstance(instr, mir.Store):
                slots[instr.slot] = values[instr.value]
            elif isinstance(instr, mir.Binary):
                values[instr.dest] = _BINARY[instr.op](values[instr.left], values[instr.right])
            elif isinstance(instr, mir.Call):
                run.calls.append((instr.callee, tuple(values[a] for a in instr.args)))
            else:
                raise AssertionError(f"unexpected instruction {instr!r}")
        term = block.terminator
        if isinstance(term, mir.Br):
            block = fn.blocks[term.target]
        elif isinstance(term, mir.CondBr):
            block = fn.blocks[term.then if values[term.cond] else term.els]
        elif isinstance(term, mir.Return):
            run.value = values.get(term.value) if term.value is not None else None
            return run
        else:
            raise AssertionError(f"block {block.name} has no terminator")
    raise AssertionError(f"{entry} did not return within {max_steps} blocks")


def lower(source: str) -> mir.Program:
    return lower_program(parser.parse_program(source))


@pytest.fixture
def run_source():
    def _run(source: str) -> Run:
        return interpret(lower(source))

    return _run
