"""
Compiler errors.

Every failure aborts the compile. The subclasses only differ in how they are
reported: `category` is the prefix a user sees, which keeps a bad program
("syntax error", "compile error") apart from a compiler defect ("internal
compiler error") and from a late backend rejection ("verification failed").
"""

from __future__ import annotations

from typing import NoReturn, Optional

from .span import Span


class CompileError(Exception):
    category = "error"

    def __init__(self, message: str, span: Optional[Span] = None) -> None:
        super().__init__(message)
        self.message = message
        self.span = span or Span()

    def render(self, file: Optional[str] = None) -> str:
        span = self.span
        if file is not None and span.file is None:
            span = span.with_file(file)
        prefix = f"{span}: " if span.known or span.file else ""
        return f"{prefix}{self.category}: {self.message}"

    def __str__(self) -> str:
        return self.render()


class ParseError(CompileError):
    """The program is malformed, either per the grammar or per a builder invariant."""

    category = "syntax error"

    def __init__(self, message: str, span: Optional[Span] = None, context: str | None = None) -> None:
        super().__init__(message, span)
        self.context = context

    def render(self, file: Optional[str] = None) -> str:
        text = super().render(file)
        if self.context:
            return f"{text}\n{self.context.rstrip()}"
        return text


class InternalError(CompileError):
    """The compiler met a shape it has no case for. Never the user's fault."""

    category = "internal compiler error"

    def render(self, file: Optional[str] = None) -> str:
        return f"{super().render(file)}\nnote: this is a bug in walter, please report it"


class LoweringError(CompileError):
    """A statement needs context that is absent (no enclosing loop, unbound name, ...)."""

    category = "compile error"


class UnsupportedError(LoweringError):
    """Valid AST that has no lowering rule yet."""

    category = "not implemented"


class VerificationError(CompileError):
    """The emitted function failed the backend's structural checks."""

    category = "verification failed"

    def __init__(self, message: str, function: Optional[str] = None) -> None:
        super().__init__(message)
        self.function = function

    def render(self, file: Optional[str] = None) -> str:
        where = f" in function '{self.function}'" if self.function else ""
        return f"{self.category}{where}: {self.message}"


def bug(message: str, span: Optional[Span] = None) -> NoReturn:
    raise InternalError(message, span)


__all__ = [
    "CompileError",
    "InternalError",
    "LoweringError",
    "ParseError",
    "UnsupportedError",
    "VerificationError",
    "bug",
]
