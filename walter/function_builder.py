"""
Per-function compilation state: the variable scope and the insertion cursor.

`FunctionBuilder` owns the blocks of the function under construction. Callers
only ever append at the cursor, terminate the cursor's block, or move the
cursor to another block; the block collection itself is handed out once, by
`finish()`.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from . import mir
from .errors import bug
from .span import Span
from .types import Type


class Scope:
    """Maps identifiers to the storage slot holding their current value."""

    def __init__(self, variables: Optional[Dict[str, str]] = None) -> None:
        self.variables: Dict[str, str] = dict(variables or {})

    def lookup(self, ident: str) -> Optional[str]:
        return self.variables.get(ident)

    def bind(self, ident: str, slot: str) -> None:
        self.variables[ident] = slot

    def child(self) -> "Scope":
        """Scope for a nested body; bindings made there do not leak out."""
        return Scope(self.variables)


class FunctionBuilder:
    def __init__(self, name: str, return_type: Type) -> None:
        self.name = name
        self.return_type = return_type
        self._blocks: Dict[str, mir.BasicBlock] = {}
        self._slots: Dict[str, Type] = {}
        self._values: Dict[str, Type] = {}
        self._value_counter = 0
        self._block_counter = 0
        self._slot_counters: Dict[str, int] = {}
        self._finished = False
        self.entry = "entry"
        self._blocks[self.entry] = mir.BasicBlock(name=self.entry)
        self._cursor = self._blocks[self.entry]

    # Blocks and the cursor

    def new_block(self, prefix: str) -> str:
        """Create a detached, empty block and return its name."""
        self._block_counter += 1
        name = f"{prefix}{self._block_counter}"
        self._blocks[name] = mir.BasicBlock(name=name)
        return name

    @property
    def cursor(self) -> str:
        return self._cursor.name

    def position_at(self, name: str) -> None:
        block = self._blocks.get(name)
        if block is None:
            bug(f"UNKNOWN_BLOCK({name})")
        self._cursor = block

    @property
    def is_terminated(self) -> bool:
        return self._cursor.terminator is not None

    def emit(self, instr: mir.Instruction) -> None:
        self._check_open()
        self._cursor.instructions.append(instr)

    def terminate(self, term: mir.Terminator) -> None:
        self._check_open()
        self._cursor.terminator = term

    def _check_open(self) -> None:
        if self._finished:
            bug(f"BUILDER_FINISHED({self.name})")
        if self._cursor.terminator is not None:
            bug(f"BLOCK_ALREADY_TERMINATED({self._cursor.name})")

    # Values and storage

    def fresh_value(self, ty: Type) -> mir.Value:
        self._value_counter += 1
        name = f"_t{self._value_counter}"
        self._values[name] = ty
        return name

    def new_slot(self, ident: str, ty: Type) -> str:
        """Allocate function-scoped storage. Re-declared names get a new slot."""
        count = self._slot_counters.get(ident, 0)
        self._slot_counters[ident] = count + 1
        slot = ident if count == 0 else f"{ident}.{count}"
        self._slots[slot] = ty
        return slot

    def slot_type(self, slot: str) -> Type:
        ty = self._slots.get(slot)
        if ty is None:
            bug(f"UNKNOWN_SLOT({slot})")
        return ty

    # Instruction helpers

    def const(self, ty: Type, value: object, span: Span = Span()) -> mir.Value:
        dest = self.fresh_value(ty)
        self.emit(mir.Const(dest=dest, type=ty, value=value, span=span))
        return dest

    def load(self, slot: str, span: Span = Span()) -> mir.Value:
        dest = self.fresh_value(self.slot_type(slot))
        self.emit(mir.Load(dest=dest, slot=slot, span=span))
        return dest

    def store(self, slot: str, value: mir.Value, span: Span = Span()) -> None:
        self.emit(mir.Store(slot=slot, value=value, span=span))

    def binary(self, op: str, left: mir.Value, right: mir.Value, ty: Type, span: Span = Span()) -> mir.Value:
        dest = self.fresh_value(ty)
        self.emit(mir.Binary(dest=dest, op=op, left=left, right=right, span=span))
        return dest

    def call(self, callee: str, args: List[mir.Value], ret: Optional[Type], span: Span = Span()) -> Optional[mir.Value]:
        dest = self.fresh_value(ret) if ret is not None else None
        self.emit(mir.Call(dest=dest, callee=callee, args=list(args), span=span))
        return dest

    def finish(self) -> mir.Function:
        if self._finished:
            bug(f"BUILDER_FINISHED({self.name})")
        self._finished = True
        return mir.Function(
            name=self.name,
            return_type=self.return_type,
            entry=self.entry,
            slots=dict(self._slots),
            values=dict(self._values),
            blocks=self._blocks,
        )
