"""
Signatures of the runtime functions every program may call.

The runtime itself is linked in by the build tooling; the compiler only needs
the declarations so calls resolve against already-known symbols.
"""

from __future__ import annotations

from typing import Dict

from .types import INT, STR, UNIT, FunctionSignature

PRINT = FunctionSignature("print", (STR,), UNIT)
PRINTLN = FunctionSignature("println", (STR,), UNIT)
PRINT_INT = FunctionSignature("print_int", (INT,), UNIT)
EXIT = FunctionSignature("exit", (INT,), UNIT)


def builtin_signatures() -> Dict[str, FunctionSignature]:
    return {sig.name: sig for sig in (PRINT, PRINTLN, PRINT_INT, EXIT)}
