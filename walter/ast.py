"""
AST for walter programs.

Nodes are frozen dataclasses built once by `walter.parser` and then only read.
Every node carries the `Span` it was built from; spans never take part in
equality so structurally identical trees compare equal.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from .span import Span

Ident = str


def _span() -> Span:
    return field(default_factory=Span, compare=False, repr=False)


@dataclass(frozen=True)
class TypeExpr:
    ident: Ident
    is_array: bool = False


@dataclass(frozen=True)
class Declaration:
    ident: Ident
    type: Optional[TypeExpr] = None
    span: Span = _span()


class FunctionMod(enum.Enum):
    DEBUG = "debug"
    PUBLIC = "bar"


class VariableMod(enum.Enum):
    PUBLIC = "bar"


# Expressions


class Expr:
    span: Span


class Term(Expr):
    pass


@dataclass(frozen=True)
class String(Term):
    value: str
    span: Span = _span()


@dataclass(frozen=True)
class Number(Term):
    value: int
    span: Span = _span()


@dataclass(frozen=True)
class Name(Term):
    ident: Ident
    span: Span = _span()


class MathOperator(enum.Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    XOR = "^"


class ConditionalOperator(enum.Enum):
    EQUALITY = "=="
    ANTI_EQUALITY = "!="


@dataclass(frozen=True)
class BinaryExprTerm:
    """One link of a left-to-right chain; `operator` joins this operand to the next."""

    operand: Term
    operator: Optional[MathOperator] = None


@dataclass(frozen=True)
class BinaryExpr(Expr):
    terms: Tuple[BinaryExprTerm, ...]
    span: Span = _span()


@dataclass(frozen=True)
class ConditionExprTerm:
    operand: Term
    operator: Optional[ConditionalOperator] = None


@dataclass(frozen=True)
class ConditionalExpr(Expr):
    terms: Tuple[ConditionExprTerm, ...]
    span: Span = _span()


Index = Union[int, str]


@dataclass(frozen=True)
class IndexExpr(Expr):
    term: Term
    index: Index
    span: Span = _span()


# Statements


class Node:
    span: Span


Tree = Tuple[Node, ...]


@dataclass(frozen=True)
class Function(Node):
    modifiers: Tuple[FunctionMod, ...]
    declaration: Declaration
    args: Tuple[Declaration, ...]
    body: Tree
    span: Span = _span()


@dataclass(frozen=True)
class Variable(Node):
    modifiers: Tuple[VariableMod, ...]
    declaration: Declaration
    value: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Assignment(Node):
    ident: Ident
    value: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Call(Node):
    ident: Ident
    args: Tuple[Term, ...]
    span: Span = _span()


@dataclass(frozen=True)
class Loop(Node):
    body: Tree
    span: Span = _span()


@dataclass(frozen=True)
class Break(Node):
    span: Span = _span()


@dataclass(frozen=True)
class IfCase:
    expr: Expr
    body: Tree
    span: Span = _span()


@dataclass(frozen=True)
class Else:
    body: Tree
    span: Span = _span()


IfNode = Union[IfCase, Else]


@dataclass(frozen=True)
class If(Node):
    if_nodes: Tuple[IfNode, ...]
    span: Span = _span()


@dataclass(frozen=True)
class Catch:
    ident: Optional[Ident]
    body: Tree


@dataclass(frozen=True)
class TryCatch(Node):
    try_body: Tree
    catch: Catch
    span: Span = _span()


@dataclass(frozen=True)
class Throw(Node):
    value: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Import(Node):
    path: Term
    span: Span = _span()


@dataclass(frozen=True)
class Module(Node):
    ident: Ident
    span: Span = _span()


@dataclass(frozen=True)
class Class(Node):
    ident: Ident
    body: Tree
    span: Span = _span()


@dataclass(frozen=True)
class Return(Node):
    value: Expr
    span: Span = _span()


@dataclass(frozen=True)
class ExprStmt(Node):
    """An expression in statement position. Valid AST, rejected by the lowering."""

    value: Expr
    span: Span = _span()
