from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from . import ast, mir
from .errors import LoweringError, UnsupportedError, bug
from .function_builder import FunctionBuilder, Scope
from .libstd import builtin_signatures
from .types import BOOL, I32, INT, STR, UNIT, FunctionSignature, Type, describe, resolve_type

log = logging.getLogger(__name__)

_UNLOWERED = {
    ast.Function: "function definitions",
    ast.Throw: "throw",
    ast.Import: "import",
    ast.Module: "module declarations",
    ast.TryCatch: "try/catch",
    ast.Assignment: "assignment to an existing variable",
    ast.Class: "classes",
    ast.Return: "return",
}


def lower_program(
    tree: ast.Tree,
    externs: Optional[Dict[str, FunctionSignature]] = None,
    entry: str = "main",
) -> mir.Program:
    """
    Lower a top-level program into a MIR program with a single entry function.

    The entry function returns Int32 0 once the last statement has run.
    """
    if externs is None:
        externs = builtin_signatures()
    lowerer = FunctionLowerer(entry, I32, externs)
    fn = lowerer.lower_body(tree)
    return mir.Program(functions={fn.name: fn}, externs=dict(externs))


class FunctionLowerer:
    """Lowers one function body, threading the cursor and scope through the tree."""

    def __init__(self, name: str, return_type: Type, externs: Dict[str, FunctionSignature]) -> None:
        self.builder = FunctionBuilder(name, return_type)
        self.externs = externs
        # Exit block of every loop we are currently inside, innermost last.
        self.loop_exits: List[str] = []

    def lower_body(self, tree: ast.Tree, scope: Optional[Scope] = None) -> mir.Function:
        b = self.builder
        self.lower_tree(tree, scope if scope is not None else Scope())
        if not b.is_terminated:
            zero = b.const(b.return_type, 0)
            b.terminate(mir.Return(value=zero))
        fn = b.finish()
        log.debug("lowered %s into %d blocks", fn.name, len(fn.blocks))
        return fn

    def lower_tree(self, tree: ast.Tree, scope: Scope) -> None:
        b = self.builder
        for node in tree:
            if b.is_terminated:
                # Code after a jump is still checked; its block has no predecessors.
                b.position_at(b.new_block("unreachable"))
                log.debug("statement after a jump lowered into %s", b.cursor)
            self.lower_node(node, scope)

    def lower_node(self, node: ast.Node, scope: Scope) -> None:
        if isinstance(node, ast.Variable):
            self._lower_variable(node, scope)
        elif isinstance(node, ast.Call):
            self._lower_call(node, scope)
        elif isinstance(node, ast.If):
            self._lower_if(node, scope)
        elif isinstance(node, ast.Loop):
            self._lower_loop(node, scope)
        elif isinstance(node, ast.Break):
            self._lower_break(node)
        elif isinstance(node, ast.ExprStmt):
            raise LoweringError("expression used as a statement has no effect", node.span)
        elif type(node) in _UNLOWERED:
            raise UnsupportedError(f"{_UNLOWERED[type(node)]} cannot be compiled yet", node.span)
        else:
            bug(f"UNKNOWN_STATEMENT({type(node).__name__})", getattr(node, "span", None))

    # Statements

    def _lower_variable(self, node: ast.Variable, scope: Scope) -> None:
        b = self.builder
        value, ty = self.lower_expr(node.value, scope)
        decl = node.declaration
        if decl.type is not None:
            declared = resolve_type(decl.type)
            if declared != ty:
                raise LoweringError(
                    f"'{decl.ident}' is declared as {declared} but its value is {ty}",
                    decl.span,
                )
        slot = b.new_slot(decl.ident, ty)
        b.store(slot, value, span=node.span)
        scope.bind(decl.ident, slot)

    def _lower_call(self, node: ast.Call, scope: Scope) -> None:
        sig = self.externs.get(node.ident)
        if sig is None:
            raise LoweringError(f"call to unknown function '{node.ident}'", node.span)
        if not sig.variadic and len(node.args) != len(sig.params):
            raise LoweringError(
                f"'{node.ident}' takes {len(sig.params)} argument(s) but {len(node.args)} were given",
                node.span,
            )
        args: List[mir.Value] = []
        for idx, term in enumerate(node.args):
            value, ty = self.lower_term(term, scope)
            if idx < len(sig.params) and sig.params[idx] != ty:
                raise LoweringError(
                    f"argument {idx + 1} of '{node.ident}' must be {sig.params[idx]}, got {ty}",
                    term.span,
                )
            args.append(value)
        ret = None if sig.return_type == UNIT else sig.return_type
        self.builder.call(node.ident, args, ret, span=node.span)

    def _lower_if(self, node: ast.If, scope: Scope) -> None:
        b = self.builder
        cases = [n for n in node.if_nodes if isinstance(n, ast.IfCase)]
        else_node = node.if_nodes[-1] if isinstance(node.if_nodes[-1], ast.Else) else None
        if not cases:
            bug("IF_WITHOUT_CASE", node.span)

        merge = b.new_block("if_merge")
        bodies = [b.new_block("if_body") for _ in cases]
        conds = [None] + [b.new_block("if_cond") for _ in cases[1:]]
        else_block = b.new_block("if_else") if else_node is not None else None

        for idx, case in enumerate(cases):
            if idx > 0:
                b.position_at(conds[idx])
            cond = self.lower_condition(case.expr, scope)
            if idx + 1 < len(cases):
                on_false = conds[idx + 1]
            elif else_block is not None:
                on_false = else_block
            else:
                on_false = merge
            b.terminate(mir.CondBr(cond=cond, then=bodies[idx], els=on_false, span=case.span))
            self._lower_branch(bodies[idx], case.body, scope, merge)
        if else_node is not None:
            self._lower_branch(else_block, else_node.body, scope, merge)
        b.position_at(merge)

    def _lower_branch(self, block: str, body: ast.Tree, scope: Scope, merge: str) -> None:
        b = self.builder
        b.position_at(block)
        self.lower_tree(body, scope.child())
        if not b.is_terminated:
            b.terminate(mir.Br(target=merge))

    def _lower_loop(self, node: ast.Loop, scope: Scope) -> None:
        b = self.builder
        header = b.new_block("loop_header")
        exit_block = b.new_block("loop_exit")
        b.terminate(mir.Br(target=header, span=node.span))
        b.position_at(header)
        self.loop_exits.append(exit_block)
        self.lower_tree(node.body, scope.child())
        self.loop_exits.pop()
        if not b.is_terminated:
            b.terminate(mir.Br(target=header))
        b.position_at(exit_block)

    def _lower_break(self, node: ast.Break) -> None:
        if not self.loop_exits:
            raise LoweringError("break outside loop", node.span)
        self.builder.terminate(mir.Br(target=self.loop_exits[-1], span=node.span))

    # Expressions

    def lower_condition(self, expr: ast.Expr, scope: Scope) -> mir.Value:
        value, ty = self.lower_expr(expr, scope)
        if ty == BOOL:
            return value
        if ty == INT:
            zero = self.builder.const(INT, 0, span=expr.span)
            return self.builder.binary("!=", value, zero, BOOL, span=expr.span)
        raise LoweringError(f"condition must be a comparison or an Int, got {ty}", expr.span)

    def lower_expr(self, expr: ast.Expr, scope: Scope) -> Tuple[mir.Value, Type]:
        if isinstance(expr, ast.Term):
            return self.lower_term(expr, scope)
        if isinstance(expr, ast.BinaryExpr):
            return self._lower_binary(expr, scope)
        if isinstance(expr, ast.ConditionalExpr):
            return self._lower_conditional(expr, scope)
        if isinstance(expr, ast.IndexExpr):
            raise UnsupportedError("indexing cannot be compiled yet", expr.span)
        bug(f"UNKNOWN_EXPR({type(expr).__name__})", getattr(expr, "span", None))

    def lower_term(self, term: ast.Term, scope: Scope) -> Tuple[mir.Value, Type]:
        b = self.builder
        if isinstance(term, ast.Number):
            return b.const(INT, term.value, span=term.span), INT
        if isinstance(term, ast.String):
            return b.const(STR, term.value, span=term.span), STR
        if isinstance(term, ast.Name):
            slot = scope.lookup(term.ident)
            if slot is None:
                raise LoweringError(f"unbound identifier '{term.ident}'", term.span)
            return b.load(slot, span=term.span), b.slot_type(slot)
        bug(f"UNKNOWN_TERM({type(term).__name__})", getattr(term, "span", None))

    def _lower_binary(self, expr: ast.BinaryExpr, scope: Scope) -> Tuple[mir.Value, Type]:
        # Strict left fold: (((t0 op0 t1) op1 t2) ...). Precedence is the grammar's job.
        acc, acc_ty = self.lower_term(expr.terms[0].operand, scope)
        self._require_int(acc_ty, expr.terms[0].operand)
        for link, nxt in zip(expr.terms, expr.terms[1:]):
            if link.operator is None:
                bug("BINARY_CHAIN_MISSING_OPERATOR", expr.span)
            rhs, rhs_ty = self.lower_term(nxt.operand, scope)
            self._require_int(rhs_ty, nxt.operand)
            acc = self.builder.binary(link.operator.value, acc, rhs, INT, span=expr.span)
        if expr.terms[-1].operator is not None:
            bug("BINARY_CHAIN_TRAILING_OPERATOR", expr.span)
        return acc, INT

    def _lower_conditional(self, expr: ast.ConditionalExpr, scope: Scope) -> Tuple[mir.Value, Type]:
        acc, acc_ty = self.lower_term(expr.terms[0].operand, scope)
        for link, nxt in zip(expr.terms, expr.terms[1:]):
            if link.operator is None:
                bug("CONDITION_CHAIN_MISSING_OPERATOR", expr.span)
            rhs, rhs_ty = self.lower_term(nxt.operand, scope)
            if acc_ty != rhs_ty:
                raise LoweringError(f"cannot compare {describe(acc_ty)} with {describe(rhs_ty)}", expr.span)
            if acc_ty == STR:
                raise UnsupportedError("comparing strings cannot be compiled yet", expr.span)
            acc = self.builder.binary(link.operator.value, acc, rhs, BOOL, span=expr.span)
            acc_ty = BOOL
        if expr.terms[-1].operator is not None:
            bug("CONDITION_CHAIN_TRAILING_OPERATOR", expr.span)
        return acc, acc_ty

    def _require_int(self, ty: Type, term: ast.Term) -> None:
        if ty == STR:
            raise UnsupportedError("arithmetic on strings cannot be compiled yet", term.span)
        if ty != INT:
            raise LoweringError(f"arithmetic needs Int operands, got {ty}", term.span)
