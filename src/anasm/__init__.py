"""
anasm - Assembler for the AVM Stack Virtual Machine
===================================================

This package translates AVM assembly source (.anasm) into the versioned
binary format executed by the AVM, and reads that format back.

Main Components
---------------
- **assembler**: lexer, parser, compiler passes and the Assembler driver
- **avm**: the binary artifact (reader and writer)
- **disassembler**: artifact back to mnemonic text
- **diagnostics**: located errors, warnings and notes
- **cli**: the ``anasm`` command

Quick Start
-----------
    >>> from anasm import Assembler
    >>> asm = Assembler()
    >>> asm.assemble_file("hello.anasm", "hello")

Or from the command line:
    $ anasm hello.anasm -o hello
    $ anasm -d hello
"""

from anasm.config import VERSION

__version__ = VERSION

# =============================================================================
# Public API Exports
# =============================================================================

from anasm.assembler import Assembler
from anasm.avm import AvmExecutable, InstructionRecord
from anasm.config import AssemblerConfig
from anasm.diagnostics import Diagnostic, Diagnostics, Severity
from anasm.disassembler import Disassembler, disassemble
from anasm.errors import (
    AnasmError,
    AssemblerError,
    AssemblySyntaxError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    ExpressionError,
    InstructionError,
    FatalAssemblerError,
    LexicalError,
    IncludeError,
    EmbedError,
    OutputError,
    CompilationAborted,
    TooManyErrors,
    SourceLocation,
)

__all__ = [
    "__version__",
    "Assembler",
    "AssemblerConfig",
    "AvmExecutable",
    "InstructionRecord",
    "Diagnostic",
    "Diagnostics",
    "Severity",
    "Disassembler",
    "disassemble",
    "AnasmError",
    "AssemblerError",
    "AssemblySyntaxError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "ExpressionError",
    "InstructionError",
    "FatalAssemblerError",
    "LexicalError",
    "IncludeError",
    "EmbedError",
    "OutputError",
    "CompilationAborted",
    "TooManyErrors",
    "SourceLocation",
]
