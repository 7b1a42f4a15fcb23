"""
AVM Assembler
=============

This package translates AVM assembly source into the binary format run by
the AVM stack virtual machine.

Main Components
---------------
- **Assembler**: Runs the pipeline and writes the artifact
- **Lexer**: Tokenizes source text
- **Parser**: Builds the statement list, splicing in included files
- **Compiler**: Resolves labels, then generates memory and program segments
- **ExpressionEvaluator**: Evaluates constant expressions to 64-bit words

Assembly Process
----------------
1. **Parsing (Lexer + Parser)**: source text to a flat list of statements
2. **Resolution (Compiler pass 1)**: label addresses and the entry point
3. **Code Generation (Compiler pass 2)**: macros, variables, instructions

Each stage runs only if the previous one recorded no errors.

Language Summary
----------------
```
include "./lib.anasm"     # splice another file in place

mac  SIZE = 16            # compile-time constant
let  buf  byte = 0 .. SIZE
let  msg  char = "hi\\n", 0
embed logo "logo.bin"

.entry
    psh msg               # push an address
    (sizeof buf)          # bare expression: implicit psh
    cal print
    hlt
```
"""

from anasm.assembler.assembler import Assembler, assemble, assemble_file
from anasm.assembler.lexer import Lexer, Token, TokenType
from anasm.assembler.parser import Parser, parse_source, parse_file, parse_expression
from anasm.assembler.compiler import Compiler
from anasm.assembler.expressions import ExpressionEvaluator
from anasm.assembler.instructions import INSTRUCTIONS, InstructionInfo, instruction_by_opcode
from anasm.assembler.symbols import Label, Macro, SymbolTable, Variable

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Parser
    "Parser",
    "parse_source",
    "parse_file",
    "parse_expression",
    # Code generator
    "Compiler",
    "ExpressionEvaluator",
    # Instruction table
    "INSTRUCTIONS",
    "InstructionInfo",
    "instruction_by_opcode",
    # Symbols
    "Label",
    "Macro",
    "SymbolTable",
    "Variable",
]
