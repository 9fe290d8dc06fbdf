"""walter: a small ahead-of-time compiler (grammar → AST → MIR → LLVM object)."""

__version__ = "0.1.0"
