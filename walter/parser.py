from __future__ import annotations

import ast
import warnings
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from .ast import (
    Assignment,
    BinaryExpr,
    BinaryExprTerm,
    Break,
    Call,
    Catch,
    Class,
    ConditionalExpr,
    ConditionalOperator,
    ConditionExprTerm,
    Declaration,
    Else,
    Expr,
    ExprStmt,
    Function,
    FunctionMod,
    If,
    IfCase,
    IfNode,
    Import,
    IndexExpr,
    Loop,
    MathOperator,
    Module,
    Name,
    Node,
    Number,
    Return,
    String,
    Term,
    Throw,
    TryCatch,
    TypeExpr,
    Variable,
    VariableMod,
)
from .ast import Tree as AstTree
from .errors import ParseError, UnsupportedError, bug
from .span import Span

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()


class TerminatorInserter:
    """Turns NEWLINE/SEMI into statement terminators.

    A newline only ends a statement when the previous token can end one and we
    are not inside parentheses or brackets.
    """

    always_accept = ("NEWLINE", "SEMI")

    TERMINABLE = {
        "IDENT",
        "UNUMBER",
        "STRING",
        "RPAR",
        "RSQB",
        "RBRACE",
        "BREAK",
    }

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.paren_depth = 0
        self.bracket_depth = 0
        self.can_terminate = False

    def process(self, stream: Iterator[Token]) -> Iterator[Token]:
        self._reset()
        for token in stream:
            ttype = token.type
            if ttype == "NEWLINE":
                if self._should_emit_terminator():
                    yield Token.new_borrow_pos("_TERMINATOR", token.value, token)
                    self.can_terminate = False
                continue
            if ttype == "SEMI":
                yield Token.new_borrow_pos("_TERMINATOR", token.value, token)
                self.can_terminate = False
                continue
            yield token
            self._update_depth(ttype)
            self.can_terminate = ttype in self.TERMINABLE

    def _update_depth(self, ttype: str) -> None:
        if ttype == "LPAR":
            self.paren_depth += 1
        elif ttype == "RPAR" and self.paren_depth:
            self.paren_depth -= 1
        elif ttype == "LSQB":
            self.bracket_depth += 1
        elif ttype == "RSQB" and self.bracket_depth:
            self.bracket_depth -= 1

    def _should_emit_terminator(self) -> bool:
        return self.paren_depth == 0 and self.bracket_depth == 0 and self.can_terminate


_PARSER = Lark(
    _GRAMMAR_SRC,
    parser="lalr",
    start="program",
    propagate_positions=True,
    maybe_placeholders=False,
    postlex=TerminatorInserter(),
)


def parse_syntax(source: str) -> Tree:
    """Run the grammar engine only; returns the raw syntax tree."""
    try:
        return _PARSER.parse(source)
    except UnexpectedInput as e:
        line = getattr(e, "line", None)
        column = getattr(e, "column", None)
        span = Span(line=line, column=column) if isinstance(line, int) and line > 0 else Span()
        try:
            context = e.get_context(source)
        except (AttributeError, IndexError, TypeError):
            context = None
        raise ParseError(_describe_unexpected(e), span, context=context) from e


def parse_program(source: str) -> AstTree:
    return build_tree(parse_syntax(source))


def _describe_unexpected(e: UnexpectedInput) -> str:
    token = getattr(e, "token", None)
    if token is not None:
        if token.type == "$END":
            return "unexpected end of input"
        if token.type == "_TERMINATOR":
            return "unexpected end of statement"
        return f"unexpected token {token.value!r}"
    char = getattr(e, "char", None)
    if char is not None:
        return f"unexpected character {char!r}"
    return "invalid syntax"


# Statements


def build_tree(pair: Tree) -> AstTree:
    """Build the statements of a `program` or `block` pair, in source order."""
    return tuple(build_node(child) for child in pair.children if isinstance(child, Tree))


def build_node(pair: Tree) -> Node:
    kind = _name(pair)
    builder = _NODE_BUILDERS.get(kind)
    if builder is not None:
        return builder(pair)
    if kind in _EXPR_BUILDERS:
        return ExprStmt(value=_EXPR_BUILDERS[kind](pair), span=Span.of(pair))
    bug(f"UNKNOWN_NODE({kind})", Span.of(pair))


def build_expr(pair: Tree) -> Expr:
    """Build a pair that must be an expression; statements are a syntax error."""
    node = build_node(pair)
    if isinstance(node, ExprStmt):
        return node.value
    raise ParseError("value is not an expression", Span.of(pair))


def _build_function(pair: Tree) -> Function:
    modifiers: Tuple[FunctionMod, ...] = ()
    name_token: Optional[Token] = None
    return_type: Optional[TypeExpr] = None
    args: Tuple[Declaration, ...] = ()
    body: AstTree = ()
    for child in pair.children:
        if isinstance(child, Token):
            name_token = child
            continue
        kind = _name(child)
        if kind == "modifiers":
            modifiers = _build_modifiers(child, FunctionMod)
        elif kind == "fn_args":
            args = _build_args(child)
        elif kind == "type_expr":
            return_type = _build_type_expr(child)
        elif kind == "block":
            body = build_tree(child)
        else:
            bug(f"UNKNOWN_FUNCTION_PART({kind})", Span.of(child))
    if name_token is None:
        bug("FUNCTION_WITHOUT_NAME", Span.of(pair))
    declaration = Declaration(ident=name_token.value, type=return_type, span=Span.of(name_token))
    return Function(
        modifiers=modifiers,
        declaration=declaration,
        args=args,
        body=body,
        span=Span.of(pair),
    )


def _build_args(pair: Tree) -> Tuple[Declaration, ...]:
    args = tuple(_build_declaration(child) for child in pair.children if isinstance(child, Tree))
    counts = Counter(arg.ident for arg in args)
    duplicates = [ident for ident, count in counts.items() if count > 1]
    if duplicates:
        raise ParseError(f"duplicate arguments: {', '.join(duplicates)}", Span.of(pair))
    return args


def _build_modifiers(pair: Tree, kind):
    modifiers = []
    for modifier in pair.children:
        token = modifier.children[0]
        try:
            modifiers.append(kind(token.value))
        except ValueError:
            raise ParseError(f"invalid modifier '{token.value}'", Span.of(modifier)) from None
    return tuple(modifiers)


def _build_declaration(pair: Tree) -> Declaration:
    children = pair.children
    ident = children[0].value
    type_expr = _build_type_expr(children[1]) if len(children) > 1 else None
    return Declaration(ident=ident, type=type_expr, span=Span.of(pair))


def _build_type_expr(pair: Tree) -> TypeExpr:
    children = pair.children
    return TypeExpr(ident=children[0].value, is_array=len(children) > 1)


def _build_variable(pair: Tree) -> Variable:
    modifiers_node, declaration_node, value_node = pair.children
    return Variable(
        modifiers=_build_modifiers(modifiers_node, VariableMod),
        declaration=_build_declaration(declaration_node),
        value=build_expr(value_node),
        span=Span.of(pair),
    )


def _build_assignment(pair: Tree) -> Assignment:
    name_token, value_node = pair.children
    return Assignment(ident=name_token.value, value=build_expr(value_node), span=Span.of(pair))


def _build_call(pair: Tree) -> Call:
    name_token, args_node = pair.children
    args = tuple(_build_term(arg.children[0]) for arg in args_node.children)
    return Call(ident=name_token.value, args=args, span=Span.of(pair))


def _build_loop(pair: Tree) -> Loop:
    return Loop(body=build_tree(pair.children[0]), span=Span.of(pair))


def _build_break(pair: Tree) -> Break:
    return Break(span=Span.of(pair))


def _build_if(pair: Tree) -> If:
    if_nodes: List[IfNode] = []
    for child in pair.children:
        kind = _name(child)
        if kind in ("if_case", "else_if"):
            expr_node, body_node = child.children
            if_nodes.append(IfCase(expr=build_expr(expr_node), body=build_tree(body_node), span=Span.of(child)))
        elif kind == "else_case":
            if_nodes.append(Else(body=build_tree(child.children[0]), span=Span.of(child)))
        else:
            bug(f"INVALID_IFNODE({kind})", Span.of(child))
    for node in if_nodes[:-1]:
        if isinstance(node, Else):
            bug("ELSE_NOT_LAST", node.span)
    return If(if_nodes=tuple(if_nodes), span=Span.of(pair))


def _build_try_catch(pair: Tree) -> TryCatch:
    try_node, catch_node = pair.children
    binder: Optional[str] = None
    catch_body: AstTree = ()
    for child in catch_node.children:
        if isinstance(child, Token):
            binder = child.value
        elif _name(child) == "block":
            catch_body = build_tree(child)
        else:
            bug(f"CATCH_NOT_BLOCK_OR_IDENT({_name(child)})", Span.of(child))
    return TryCatch(try_body=build_tree(try_node), catch=Catch(ident=binder, body=catch_body), span=Span.of(pair))


def _build_throw(pair: Tree) -> Throw:
    return Throw(value=build_expr(pair.children[0]), span=Span.of(pair))


def _build_return(pair: Tree) -> Return:
    return Return(value=build_expr(pair.children[0]), span=Span.of(pair))


def _build_import(pair: Tree) -> Import:
    return Import(path=_build_term(pair.children[0]), span=Span.of(pair))


def _build_module(pair: Tree) -> Module:
    return Module(ident=pair.children[0].value, span=Span.of(pair))


def _build_class(pair: Tree) -> Class:
    name_token, body_node = pair.children
    return Class(ident=name_token.value, body=build_tree(body_node), span=Span.of(pair))


def _build_expr_stmt(pair: Tree) -> ExprStmt:
    return ExprStmt(value=_build_expression(pair.children[0]), span=Span.of(pair))


# Expressions


def _build_expression(pair: Tree) -> Expr:
    kind = _name(pair)
    builder = _EXPR_BUILDERS.get(kind)
    if builder is None:
        bug(f"UNKNOWN_EXPR({kind})", Span.of(pair))
    return builder(pair)


def _build_term(pair: Tree) -> Term:
    kind = _name(pair)
    if kind == "string":
        return _build_string(pair)
    if kind == "number":
        return _build_number(pair)
    if kind == "var":
        return Name(ident=pair.children[0].value, span=Span.of(pair))
    if kind == "paren_expr":
        raise UnsupportedError("parenthesized expressions are not supported", Span.of(pair))
    bug(f"UNKNOWN_TERM({kind})", Span.of(pair))


def _build_string(pair: Tree) -> String:
    token = pair.children[0]
    try:
        # Unknown escapes only warn in Python; they are malformed here.
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            value = ast.literal_eval(token.value)
    except (SyntaxError, ValueError, Warning):
        raise ParseError("malformed string literal", Span.of(token)) from None
    return String(value=value, span=Span.of(pair))


_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


def _build_number(pair: Tree) -> Number:
    children = pair.children
    negative = False
    if len(children) == 2:
        sign = children[0].children[0]
        sign_kind = _name(sign)
        if sign_kind == "subtract":
            negative = True
        elif sign_kind != "add":
            bug(f"INVALID_SIGN({sign_kind})", Span.of(sign))
    magnitude_token = children[-1]
    try:
        magnitude = int(magnitude_token.value)
    except ValueError:
        raise ParseError("malformed number literal", Span.of(magnitude_token)) from None
    value = -magnitude if negative else magnitude
    if not _INT_MIN <= value <= _INT_MAX:
        raise ParseError("number literal out of range", Span.of(pair))
    return Number(value=value, span=Span.of(pair))


_MATH_OPERATORS = {
    "add": MathOperator.ADD,
    "subtract": MathOperator.SUBTRACT,
    "multiply": MathOperator.MULTIPLY,
    "divide": MathOperator.DIVIDE,
    "xor": MathOperator.XOR,
}

_CONDITIONAL_OPERATORS = {
    "equality": ConditionalOperator.EQUALITY,
    "inequality": ConditionalOperator.ANTI_EQUALITY,
}


def _operator_chain(pair: Tree, table: Dict[str, object], what: str):
    """Split `a op b op c` into (a, op), (b, op), (c, None)."""
    children = [child for child in pair.children if isinstance(child, Tree)]
    links = []
    for idx in range(0, len(children), 2):
        operand = _build_term(children[idx])
        operator = None
        if idx + 1 < len(children):
            operator_node = children[idx + 1]
            rule = _name(operator_node.children[0]) if operator_node.children else _name(operator_node)
            operator = table.get(rule)
            if operator is None:
                bug(f"UNKNOWN_{what}({rule})", Span.of(operator_node))
        links.append((operand, operator))
    return links


def _build_binary(pair: Tree) -> BinaryExpr:
    links = _operator_chain(pair, _MATH_OPERATORS, "OPERATOR")
    terms = tuple(BinaryExprTerm(operand=operand, operator=op) for operand, op in links)
    return BinaryExpr(terms=terms, span=Span.of(pair))


def _build_conditional(pair: Tree) -> ConditionalExpr:
    links = _operator_chain(pair, _CONDITIONAL_OPERATORS, "COND_OPERATOR")
    terms = tuple(ConditionExprTerm(operand=operand, operator=op) for operand, op in links)
    return ConditionalExpr(terms=terms, span=Span.of(pair))


def _build_index(pair: Tree) -> IndexExpr:
    term_node, index_node = pair.children
    term = _build_term(term_node)
    index = _build_term(index_node)
    if not isinstance(index, (Number, String)):
        bug(f"INVALID_INDEX_TERM({_name(index_node)})", Span.of(index_node))
    return IndexExpr(term=term, index=index.value, span=Span.of(pair))


_NODE_BUILDERS: Dict[str, Callable[[Tree], Node]] = {
    "function": _build_function,
    "variable": _build_variable,
    "assignment": _build_assignment,
    "call": _build_call,
    "loop": _build_loop,
    "break_stmt": _build_break,
    "if_block": _build_if,
    "try_catch": _build_try_catch,
    "throw_stmt": _build_throw,
    "return_stmt": _build_return,
    "import_stmt": _build_import,
    "module_decl": _build_module,
    "class_def": _build_class,
    "expr_stmt": _build_expr_stmt,
}

_EXPR_BUILDERS: Dict[str, Callable[[Tree], Expr]] = {
    "binary_expr": _build_binary,
    "conditional_expr": _build_conditional,
    "index_expr": _build_index,
    "string": _build_term,
    "number": _build_term,
    "var": _build_term,
    "paren_expr": _build_term,
}


def _name(node: Tree | Token) -> str:
    if isinstance(node, Tree):
        data = node.data
        if isinstance(data, Token):
            return data.value
        return data
    if isinstance(node, Token):
        return node.type
    return str(node)
