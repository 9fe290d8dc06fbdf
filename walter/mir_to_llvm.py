from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from llvmlite import binding as llvm  # type: ignore
from llvmlite import ir  # type: ignore

from . import mir
from .errors import VerificationError, bug
from .types import BOOL, I32, INT, STR, UNIT, FunctionSignature, Type

log = logging.getLogger(__name__)

I8_PTR = ir.IntType(8).as_pointer()


@dataclass
class CompileOptions:
    opt_level: int = 0
    assembly: bool = False
    triple: Optional[str] = None
    module_name: str = "main"


@dataclass
class Artifact:
    ir: str
    data: bytes
    assembly: bool = False


def emit_module(program: mir.Program, options: Optional[CompileOptions] = None) -> Artifact:
    """
    MIR → LLVM: build the module, verify it, then emit an object (or assembly) for the target.
    """
    options = options or CompileOptions()
    tm = _target_machine(options)

    module = ir.Module(name=options.module_name)
    module.triple = tm.triple
    module.data_layout = str(tm.target_data)

    decls = {name: _declare(module, sig) for name, sig in program.externs.items()}
    for fn in program.functions.values():
        _lower_function(module, fn, decls)

    text = str(module)
    try:
        llvm_mod = llvm.parse_assembly(text)
        llvm_mod.verify()
    except RuntimeError as exc:
        raise VerificationError(str(exc).strip(), function=", ".join(program.functions)) from exc

    if options.assembly:
        return Artifact(ir=text, data=tm.emit_assembly(llvm_mod).encode("utf-8"), assembly=True)
    return Artifact(ir=text, data=tm.emit_object(llvm_mod))


def _target_machine(options: CompileOptions):
    if options.triple:
        llvm.initialize_all_targets()
        llvm.initialize_all_asmprinters()
        target = llvm.Target.from_triple(options.triple)
    else:
        llvm.initialize_native_target()
        llvm.initialize_native_asmprinter()
        target = llvm.Target.from_default_triple()
    tm = target.create_target_machine(opt=options.opt_level, reloc="pic", codemodel="small")
    log.debug("target %s, opt level %d", tm.triple, options.opt_level)
    return tm


def _llvm_type(ty: Type) -> ir.Type:
    if ty == INT:
        return ir.IntType(64)
    if ty == I32:
        return ir.IntType(32)
    if ty == BOOL:
        return ir.IntType(1)
    if ty == STR:
        return I8_PTR
    if ty == UNIT:
        return ir.VoidType()
    bug(f"NO_LLVM_TYPE({ty})")


def _declare(module: ir.Module, sig: FunctionSignature) -> ir.Function:
    params = [_llvm_type(p) for p in sig.params]
    fn_ty = ir.FunctionType(_llvm_type(sig.return_type), params, var_arg=sig.variadic)
    return ir.Function(module, fn_ty, name=sig.name)


def _lower_function(module: ir.Module, fn: mir.Function, decls: Dict[str, ir.Function]) -> None:
    llvm_fn = ir.Function(module, ir.FunctionType(_llvm_type(fn.return_type), []), name=fn.name)
    # MIR blocks are in creation order, so the entry block lands first.
    llvm_blocks = {name: llvm_fn.append_basic_block(name=name) for name in fn.blocks}

    entry = ir.IRBuilder(llvm_blocks[fn.entry])
    slots = {name: entry.alloca(_llvm_type(ty), name=name) for name, ty in fn.slots.items()}
    env: Dict[str, ir.Value] = {}

    for name, block in fn.blocks.items():
        builder = entry if name == fn.entry else ir.IRBuilder(llvm_blocks[name])
        for instr in block.instructions:
            if isinstance(instr, mir.Const):
                env[instr.dest] = _const(builder, instr.type, instr.value)
            elif isinstance(instr, mir.Load):
                env[instr.dest] = builder.load(slots[instr.slot], name=instr.dest)
            elif isinstance(instr, mir.Store):
                builder.store(env[instr.value], slots[instr.slot])
            elif isinstance(instr, mir.Binary):
                env[instr.dest] = _lower_binary(builder, instr, env)
            elif isinstance(instr, mir.Call):
                args = [env[a] for a in instr.args]
                if instr.dest is None:
                    builder.call(decls[instr.callee], args)
                else:
                    env[instr.dest] = builder.call(decls[instr.callee], args, name=instr.dest)
            else:
                bug(f"UNKNOWN_INSTRUCTION({type(instr).__name__})", getattr(instr, "span", None))

        term = block.terminator
        if isinstance(term, mir.Br):
            builder.branch(llvm_blocks[term.target])
        elif isinstance(term, mir.CondBr):
            builder.cbranch(env[term.cond], llvm_blocks[term.then], llvm_blocks[term.els])
        elif isinstance(term, mir.Return):
            if term.value is None:
                builder.ret_void()
            else:
                builder.ret(env[term.value])
        else:
            raise VerificationError(f"{name}: missing terminator", function=fn.name)


def _const(builder: ir.IRBuilder, ty: Type, val: object) -> ir.Value:
    if ty == INT:
        return ir.Constant(ir.IntType(64), int(val))
    if ty == I32:
        return ir.Constant(ir.IntType(32), int(val))
    if ty == BOOL:
        return ir.Constant(ir.IntType(1), int(bool(val)))
    if ty == STR:
        data = bytearray(str(val).encode("utf-8"))
        data.append(0)
        unique_id = len(builder.module.globals)
        arr_ty = ir.ArrayType(ir.IntType(8), len(data))
        gv = ir.GlobalVariable(builder.module, arr_ty, name=f".str{unique_id}")
        gv.linkage = "internal"
        gv.global_constant = True
        gv.initializer = ir.Constant(arr_ty, data)
        zero = ir.Constant(ir.IntType(32), 0)
        return builder.gep(gv, [zero, zero], inbounds=True)
    bug(f"NO_CONST_OF_TYPE({ty})")


def _lower_binary(builder: ir.IRBuilder, instr: mir.Binary, env: Dict[str, ir.Value]) -> ir.Value:
    lhs = env[instr.left]
    rhs = env[instr.right]
    op = instr.op
    if op == "+":
        return builder.add(lhs, rhs, name=instr.dest)
    if op == "-":
        return builder.sub(lhs, rhs, name=instr.dest)
    if op == "*":
        return builder.mul(lhs, rhs, name=instr.dest)
    if op == "/":
        return builder.sdiv(lhs, rhs, name=instr.dest)
    if op == "^":
        return builder.xor(lhs, rhs, name=instr.dest)
    if op == "==":
        return builder.icmp_signed("==", lhs, rhs, name=instr.dest)
    if op == "!=":
        return builder.icmp_signed("!=", lhs, rhs, name=instr.dest)
    bug(f"UNKNOWN_BINARY_OP({op})", instr.span)
