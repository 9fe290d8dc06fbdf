from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .span import Span
from .types import FunctionSignature, Type

Value = str


class Instruction:
    pass


@dataclass(frozen=True)
class Const(Instruction):
    dest: Value
    type: Type
    value: object
    span: Span = Span()


@dataclass(frozen=True)
class Load(Instruction):
    dest: Value
    slot: str
    span: Span = Span()


@dataclass(frozen=True)
class Store(Instruction):
    slot: str
    value: Value
    span: Span = Span()


@dataclass(frozen=True)
class Binary(Instruction):
    """Arithmetic (`+ - * / ^`) or comparison (`== !=`) of two values."""

    dest: Value
    op: str
    left: Value
    right: Value
    span: Span = Span()


@dataclass(frozen=True)
class Call(Instruction):
    dest: Optional[Value]
    callee: str
    args: List[Value]
    span: Span = Span()


class Terminator:
    pass


@dataclass(frozen=True)
class Br(Terminator):
    target: str
    span: Span = Span()


@dataclass(frozen=True)
class CondBr(Terminator):
    cond: Value
    then: str
    els: str
    span: Span = Span()


@dataclass(frozen=True)
class Return(Terminator):
    value: Optional[Value] = None
    span: Span = Span()


COMPARISON_OPS = frozenset({"==", "!="})
ARITHMETIC_OPS = frozenset({"+", "-", "*", "/", "^"})


@dataclass
class BasicBlock:
    name: str
    instructions: List[Instruction] = field(default_factory=list)
    terminator: Optional[Terminator] = None

    def successors(self) -> List[str]:
        term = self.terminator
        if isinstance(term, Br):
            return [term.target]
        if isinstance(term, CondBr):
            return [term.then, term.els]
        return []


@dataclass
class Function:
    name: str
    return_type: Type
    entry: str
    slots: Dict[str, Type] = field(default_factory=dict)
    values: Dict[Value, Type] = field(default_factory=dict)
    blocks: Dict[str, BasicBlock] = field(default_factory=dict)


@dataclass
class Program:
    functions: Dict[str, Function]
    externs: Dict[str, FunctionSignature] = field(default_factory=dict)
