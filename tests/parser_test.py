from __future__ import annotations

import pytest
from lark import Token, Tree

from walter import ast
from walter.errors import InternalError, ParseError, UnsupportedError
from walter.parser import build_expr, build_node, parse_program


def _value(source: str) -> ast.Expr:
    (node,) = parse_program(source)
    assert isinstance(node, ast.Variable)
    return node.value


def test_number_signs_are_folded_into_the_value() -> None:
    assert _value("var x = -5") == ast.Number(-5)
    assert _value("var x = +7") == ast.Number(7)
    assert _value("var x = 12") == ast.Number(12)
    assert _value("var x = -0") == ast.Number(0)


def test_string_escapes_are_decoded() -> None:
    assert _value('var s = "a\\"b"') == ast.String('a"b')
    assert _value('var s = ""') == ast.String("")


def test_function_modifiers_and_signature() -> None:
    (fn,) = parse_program("debug bar fn add(a: Int, b: Int): Int {\n}")
    assert isinstance(fn, ast.Function)
    assert fn.modifiers == (ast.FunctionMod.DEBUG, ast.FunctionMod.PUBLIC)
    assert fn.declaration == ast.Declaration("add", ast.TypeExpr("Int"))
    assert fn.args == (
        ast.Declaration("a", ast.TypeExpr("Int")),
        ast.Declaration("b", ast.TypeExpr("Int")),
    )
    assert fn.body == ()


def test_variable_modifiers_and_array_type() -> None:
    (var,) = parse_program("bar var xs: Int[] = 1")
    assert var.modifiers == (ast.VariableMod.PUBLIC,)
    assert var.declaration.type == ast.TypeExpr("Int", is_array=True)


def test_modifier_outside_its_set_is_rejected() -> None:
    with pytest.raises(ParseError, match="invalid modifier 'static'"):
        parse_program("static fn f() {\n}")
    # `debug` only applies to functions.
    with pytest.raises(ParseError, match="invalid modifier 'debug'"):
        parse_program("debug var x = 1")


def test_duplicate_arguments_anywhere_in_the_list() -> None:
    with pytest.raises(ParseError, match="duplicate arguments: a") as excinfo:
        parse_program("fn f(a, b, a) {\n}")
    assert excinfo.value.span.line == 1


def test_duplicate_arguments_reported_before_body() -> None:
    # The body is invalid too, but the argument list is checked first.
    with pytest.raises(ParseError, match="duplicate arguments"):
        parse_program('fn f(x, x) {\n  var y = print("hi")\n}')


def test_binary_chain_keeps_operators_between_operands() -> None:
    expr = _value("var x = 1 + 2 * 3 ^ 4")
    assert expr == ast.BinaryExpr(
        (
            ast.BinaryExprTerm(ast.Number(1), ast.MathOperator.ADD),
            ast.BinaryExprTerm(ast.Number(2), ast.MathOperator.MULTIPLY),
            ast.BinaryExprTerm(ast.Number(3), ast.MathOperator.XOR),
            ast.BinaryExprTerm(ast.Number(4), None),
        )
    )


def test_conditional_chain() -> None:
    expr = _value("var b = x != -1")
    assert expr == ast.ConditionalExpr(
        (
            ast.ConditionExprTerm(ast.Name("x"), ast.ConditionalOperator.ANTI_EQUALITY),
            ast.ConditionExprTerm(ast.Number(-1), None),
        )
    )


def test_call_in_value_position_is_not_an_expression() -> None:
    with pytest.raises(ParseError, match="value is not an expression") as excinfo:
        parse_program('\nvar x = print("hi")')
    assert excinfo.value.span.line == 2


def test_expression_in_statement_position_is_kept() -> None:
    (node,) = parse_program("x + 1")
    assert node == ast.ExprStmt(
        ast.BinaryExpr((ast.BinaryExprTerm(ast.Name("x"), ast.MathOperator.ADD), ast.BinaryExprTerm(ast.Number(1))))
    )


def test_if_chain_is_assembled_in_order() -> None:
    (node,) = parse_program("if a == 1 {\n  break\n} else if a == 2 {\n} else {\n  print_int(a)\n}")
    assert isinstance(node, ast.If)
    first, second, last = node.if_nodes
    assert isinstance(first, ast.IfCase) and first.body == (ast.Break(),)
    assert isinstance(second, ast.IfCase) and second.body == ()
    assert last == ast.Else((ast.Call("print_int", (ast.Name("a"),)),))


def test_statements_split_on_newlines_and_semicolons() -> None:
    tree = parse_program("var a = 1; var b = 2\n\n# comment\nprint_int(a)\n")
    assert [type(n) for n in tree] == [ast.Variable, ast.Variable, ast.Call]


def test_loop_and_try_catch() -> None:
    loop, try_catch = parse_program("loop {\n  break\n}\ntry {\n} catch err {\n  print(\"x\")\n}")
    assert loop == ast.Loop((ast.Break(),))
    assert try_catch == ast.TryCatch((), ast.Catch("err", (ast.Call("print", (ast.String("x"),)),)))


def test_remaining_statement_kinds() -> None:
    tree = parse_program('throw "boom"\nreturn 1\nimport "std"\nmodule m\nclass P {\n}\nx = 2\nxs[0]')
    assert tree == (
        ast.Throw(ast.String("boom")),
        ast.Return(ast.Number(1)),
        ast.Import(ast.String("std")),
        ast.Module("m"),
        ast.Class("P", ()),
        ast.Assignment("x", ast.Number(2)),
        ast.ExprStmt(ast.IndexExpr(ast.Name("xs"), 0)),
    )


def test_parenthesized_expression_is_unsupported() -> None:
    with pytest.raises(UnsupportedError):
        parse_program("var x = (1)")


def test_spans_point_at_the_statement() -> None:
    _, second = parse_program("var a = 1\n  print_int(a)")
    assert (second.span.line, second.span.column) == (2, 3)


def test_syntax_error_has_position_and_context() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_program("var a = 1\nvar = 2")
    err = excinfo.value
    assert err.span.line == 2
    assert err.render("prog.rl").startswith("prog.rl:2:")


def test_unknown_rule_is_an_internal_error() -> None:
    with pytest.raises(InternalError, match="UNKNOWN_NODE"):
        build_node(Tree("mystery", []))


def test_unknown_operator_tag_is_an_internal_error() -> None:
    pair = Tree(
        "binary_expr",
        [
            Tree("number", [Token("UNUMBER", "1")]),
            Tree("math_operator", [Tree("modulo", [])]),
            Tree("number", [Token("UNUMBER", "2")]),
        ],
    )
    with pytest.raises(InternalError, match="UNKNOWN_OPERATOR"):
        build_expr(pair)


def test_unknown_sign_tag_is_an_internal_error() -> None:
    pair = Tree("number", [Tree("sign", [Tree("multiply", [])]), Token("UNUMBER", "3")])
    with pytest.raises(InternalError, match="INVALID_SIGN"):
        build_expr(pair)


def test_number_literals_are_64_bit() -> None:
    assert _value("var x = 9223372036854775807") == ast.Number(2**63 - 1)
    assert _value("var x = -9223372036854775808") == ast.Number(-(2**63))
    with pytest.raises(ParseError, match="number literal out of range") as excinfo:
        parse_program("var x = 9223372036854775808\nprint_int(x)")
    assert excinfo.value.span.line == 1
    with pytest.raises(ParseError, match="out of range"):
        parse_program("var x = -9223372036854775809")


def test_unknown_string_escape_is_malformed() -> None:
    with pytest.raises(ParseError, match="malformed string literal"):
        parse_program('var s = "\\q"')
    assert _value('var s = "tab\\there"') == ast.String("tab\there")
