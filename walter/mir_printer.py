from __future__ import annotations

from . import mir


def format_term(term: mir.Terminator) -> str:
    if isinstance(term, mir.Br):
        return f"  br {term.target}"
    if isinstance(term, mir.CondBr):
        return f"  condbr {term.cond}, then {term.then}, else {term.els}"
    if isinstance(term, mir.Return):
        if term.value is None:
            return "  return"
        return f"  return {term.value}"
    return "  <invalid terminator>"


def format_instr(instr: mir.Instruction) -> str:
    if isinstance(instr, mir.Const):
        return f"  {instr.dest} = const {instr.type} {instr.value!r}"
    if isinstance(instr, mir.Load):
        return f"  {instr.dest} = load {instr.slot}"
    if isinstance(instr, mir.Store):
        return f"  store {instr.slot} = {instr.value}"
    if isinstance(instr, mir.Binary):
        return f"  {instr.dest} = {instr.left} {instr.op} {instr.right}"
    if isinstance(instr, mir.Call):
        args = ", ".join(instr.args)
        if instr.dest is None:
            return f"  call {instr.callee}({args})"
        return f"  {instr.dest} = call {instr.callee}({args})"
    return "  <invalid instr>"


def format_block(block: mir.BasicBlock) -> str:
    lines = [f"{block.name}:"]
    for instr in block.instructions:
        lines.append(format_instr(instr))
    if block.terminator:
        lines.append(format_term(block.terminator))
    return "\n".join(lines)


def format_function(fn: mir.Function) -> str:
    slots = ", ".join(f"{name}: {ty}" for name, ty in fn.slots.items())
    header = f"fn {fn.name}() -> {fn.return_type} {{ entry = {fn.entry}, slots = [{slots}] }}"
    # Creation order, so listings read top to bottom the way the source does.
    blocks = "\n".join(format_block(block) for block in fn.blocks.values())
    return f"{header}\n{blocks}"


def format_program(prog: mir.Program) -> str:
    return "\n\n".join(format_function(fn) for fn in prog.functions.values())
