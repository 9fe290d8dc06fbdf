"""
Source spans attached to AST nodes and diagnostics.

A Span is best-effort: any field may be None when the grammar engine could not
attribute a position (e.g. an empty rule match). `Span()` denotes "unknown".
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from lark import Token, Tree


@dataclass(frozen=True)
class Span:
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    @classmethod
    def of(cls, node: Tree | Token) -> "Span":
        """Span of a syntax tree node or token, as propagated by lark."""
        if isinstance(node, Token):
            return cls(
                line=node.line,
                column=node.column,
                end_line=node.end_line,
                end_column=node.end_column,
            )
        meta = node.meta
        if getattr(meta, "empty", True):
            return cls()
        return cls(
            line=meta.line,
            column=meta.column,
            end_line=meta.end_line,
            end_column=meta.end_column,
        )

    def with_file(self, file: Optional[str]) -> "Span":
        return replace(self, file=file)

    @property
    def known(self) -> bool:
        return self.line is not None

    def __str__(self) -> str:
        parts = [self.file or "<input>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)


__all__ = ["Span"]
