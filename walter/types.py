from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .ast import TypeExpr


@dataclass(frozen=True)
class Type:
    name: str
    is_array: bool = False

    def __str__(self) -> str:
        return f"{self.name}[]" if self.is_array else self.name


INT = Type("Int")
STR = Type("String")
BOOL = Type("Bool")
UNIT = Type("Void")
I32 = Type("Int32")

_PRIMITIVES: Dict[str, Type] = {
    "Int": INT,
    "String": STR,
    "Bool": BOOL,
    "Void": UNIT,
}


def resolve_type(type_expr: TypeExpr) -> Type:
    builtin = _PRIMITIVES.get(type_expr.ident)
    if builtin is not None and not type_expr.is_array:
        return builtin
    return Type(type_expr.ident, is_array=type_expr.is_array)


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    params: tuple[Type, ...]
    return_type: Type
    variadic: bool = False


def describe(ty: Optional[Type]) -> str:
    return str(ty) if ty is not None else "<unknown>"
