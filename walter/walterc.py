#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import mir, parser
from .errors import CompileError, InternalError, VerificationError
from .lower_to_mir import lower_program
from .mir_printer import format_program
from .mir_to_llvm import CompileOptions, emit_module
from .mir_verifier import verify_program

log = logging.getLogger(__name__)


def lower_source(source: str) -> mir.Program:
    """Parse, lower and verify a whole program. Raises CompileError on the first failure."""
    log.info("Parsing")
    tree = parser.parse_program(source)
    log.info("Lowering")
    program = lower_program(tree)
    log.info("Verifying")
    verify_program(program)
    return program


def compile_file(
    source_path: Path,
    output_path: Path,
    options: CompileOptions,
    show_ir: bool = False,
    show_mir: bool = False,
) -> int:
    program = lower_source(source_path.read_text())
    if show_mir:
        print(format_program(program))
    log.info("Emitting object")
    artifact = emit_module(program, options)
    if show_ir:
        print(artifact.ir)
    output_path.write_bytes(artifact.data)
    log.info("Wrote %s", output_path)
    return 0


def report(error: CompileError, file: str | None = None) -> None:
    if isinstance(error, VerificationError):
        where = f" in function '{error.function}'" if error.function else ""
        log.error("verification failed%s", where)
        lines = error.message.splitlines() or [""]
        for line in lines[:-1]:
            log.error("│ %s", line)
        log.error("└─ %s", lines[-1])
        return
    for line in error.render(file).splitlines():
        log.error("%s", line)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="walterc: walter -> MIR -> LLVM compiler")
    ap.add_argument("source", type=Path, help="walter source file")
    ap.add_argument("-o", "--output", type=Path, help="Output file (default: source with .o or .s)")
    ap.add_argument("--release", action="store_true", help="Optimise the generated code")
    ap.add_argument("--assembly", action="store_true", help="Emit textual assembly instead of an object file")
    ap.add_argument("--triple", help="Target triple (default: host)")
    ap.add_argument("--show-ir", action="store_true", help="Print the generated LLVM IR to stdout")
    ap.add_argument("--show-mir", action="store_true", help="Print the MIR listing to stdout")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every compiler stage")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s" if args.verbose else "%(message)s",
        stream=sys.stderr,
    )

    options = CompileOptions(
        opt_level=3 if args.release else 0,
        assembly=args.assembly,
        triple=args.triple,
        module_name=args.source.stem,
    )
    output = args.output or args.source.with_suffix(".s" if args.assembly else ".o")
    try:
        return compile_file(args.source, output, options, show_ir=args.show_ir, show_mir=args.show_mir)
    except CompileError as e:
        report(e, str(args.source))
        return 2 if isinstance(e, InternalError) else 1
    except OSError as e:
        log.error("%s: %s", args.source, e.strerror or e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
