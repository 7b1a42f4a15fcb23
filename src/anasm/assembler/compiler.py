"""
AVM Code Generator
==================

This module turns a parsed Program into an AvmExecutable. It works in two
passes over the flattened statement list.

Pass 1 (Resolution)
-------------------
- Walk the statements once, counting instructions
- Give every label the index of the next instruction
- Find the entry label; without it code generation does not run

Pass 2 (Code Generation)
------------------------
Walk the statements again in source order:

- ``mac``: evaluate the value and define the macro
- ``let``: evaluate each initializer and append the elements to the memory
  segment, big-endian at the element width
- ``embed``: append the bytes of the file to the memory segment
- instructions: evaluate the argument, if any, and append a record

Because pass 2 runs in source order, macros and variables must be declared
before they are referenced. Labels are already known and can be referenced
from anywhere.

Error Handling
--------------
Each statement is processed inside its own try block. Ordinary assembler
errors are recorded in the diagnostics collector and the pass moves on to
the next statement; fatal errors (an unreadable embedded file) propagate.
"""

import logging
from typing import Optional, Sequence, Union
from pathlib import Path

from anasm.errors import (
    AssemblerError,
    DuplicateSymbolError,
    EmbedError,
    ExpressionError,
    FatalAssemblerError,
    InstructionError,
    SourceLocation,
)
from anasm.config import ENTRY_LABEL, MAX_MEMORY_SIZE
from anasm.diagnostics import Diagnostics
from anasm.avm import AvmExecutable, InstructionRecord
from anasm.assembler.ast import (
    ElementType,
    Embed,
    Expression,
    Fill,
    Instruction,
    LabelDecl,
    MacroDecl,
    Program,
    StringLiteral,
    VarDecl,
)
from anasm.assembler.expressions import ExpressionEvaluator, WORD_BITS
from anasm.assembler.instructions import INSTRUCTIONS
from anasm.assembler.parser import resolve_path
from anasm.assembler.symbols import Label, Macro, SymbolTable, Variable


logger = logging.getLogger(__name__)


class Compiler:
    """
    Two-pass compiler from Program to AvmExecutable.

    Usage:
        compiler = Compiler(diagnostics)
        if compiler.resolve(program):
            executable = compiler.generate(program)

    Attributes:
        symbols: The shared label/variable/macro table
        entry_point: Instruction index of the entry label, once resolved
    """

    def __init__(
        self,
        diagnostics: Optional[Diagnostics] = None,
        include_paths: Sequence[Union[str, Path]] = (),
        entry_label: str = ENTRY_LABEL,
    ):
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._include_paths = list(include_paths)
        self.entry_label = entry_label

        self.symbols = SymbolTable()
        self.entry_point: Optional[int] = None
        self._memory = bytearray()
        self._program: list[InstructionRecord] = []
        self._evaluator = ExpressionEvaluator(self.symbols)

    def compile(self, program: Program) -> Optional[AvmExecutable]:
        """
        Run both passes.

        Returns:
            The executable, or None if any error was recorded
        """
        if not self.resolve(program):
            return None
        return self.generate(program)

    # =========================================================================
    # Pass 1: Resolution
    # =========================================================================

    def resolve(self, program: Program) -> bool:
        """
        First pass: assign label addresses and locate the entry label.

        Returns:
            True if the pass finished without errors
        """
        address = 0
        # Macros, variables and embeds seen so far; they are defined in pass 2
        declared: dict[str, SourceLocation] = {}

        for stmt in program.statements:
            try:
                match stmt:
                    case LabelDecl(name=name, location=location):
                        if name in declared:
                            raise DuplicateSymbolError(name, location, declared[name])
                        self.symbols.define(name, Label(location, address))
                    case MacroDecl() | VarDecl() | Embed():
                        declared.setdefault(stmt.name, stmt.location)
                    case Instruction():
                        address += 1
            except FatalAssemblerError:
                raise
            except AssemblerError as e:
                self._diagnostics.add(e)

        entry = self.symbols.lookup(self.entry_label)
        if not isinstance(entry, Label):
            self._diagnostics.simple_error(
                f"program entry point label '{self.entry_label}' not found"
            )
            return False

        self.entry_point = entry.address
        logger.debug(
            "Resolved %d labels, %d instructions, entry at %d",
            len(self.symbols), address, self.entry_point,
        )
        return not self._diagnostics.happened()

    # =========================================================================
    # Pass 2: Code Generation
    # =========================================================================

    def generate(self, program: Program) -> Optional[AvmExecutable]:
        """
        Second pass: build the memory and program segments.

        Must run after a successful resolve().

        Returns:
            The executable, or None if any error was recorded
        """
        self._evaluator.pending = self._collect_declarations(program)

        for stmt in program.statements:
            try:
                match stmt:
                    case LabelDecl():
                        pass
                    case Instruction():
                        self._generate_instruction(stmt)
                    case MacroDecl():
                        self._declare_macro(stmt)
                    case VarDecl():
                        self._declare_variable(stmt)
                    case Embed():
                        self._embed(stmt)
                    case _:
                        raise AssemblerError(
                            f"unexpected {type(stmt).__name__} statement", stmt.location
                        )
            except FatalAssemblerError:
                raise
            except AssemblerError as e:
                self._diagnostics.add(e)

        if self._diagnostics.happened():
            return None

        logger.debug(
            "Generated %d instructions and %d bytes of memory",
            len(self._program), len(self._memory),
        )
        return AvmExecutable(bytes(self._memory), list(self._program), self.entry_point or 0)

    @staticmethod
    def _collect_declarations(program: Program) -> dict[str, SourceLocation]:
        """Map each macro and variable name to its first declaration."""
        declarations: dict[str, SourceLocation] = {}
        for stmt in program.statements:
            if isinstance(stmt, (MacroDecl, VarDecl, Embed)):
                declarations.setdefault(stmt.name, stmt.location)
        return declarations

    def _generate_instruction(self, inst: Instruction) -> None:
        info = INSTRUCTIONS.get(inst.name)
        if info is None:
            raise InstructionError(f"unknown instruction '{inst.name}'", inst.location)

        if info.has_arg and inst.argument is None:
            raise InstructionError(f"'{inst.name}' expects an argument", inst.location)
        if not info.has_arg and inst.argument is not None:
            raise InstructionError(f"'{inst.name}' takes no argument", inst.location)

        argument = self._evaluator.evaluate(inst.argument) if info.has_arg else 0
        self._program.append(InstructionRecord(info.opcode, argument))

    def _declare_macro(self, stmt: MacroDecl) -> None:
        self.symbols.check_unique(stmt.name, stmt.location)
        try:
            value = self._evaluator.evaluate(stmt.value)
        except AssemblerError:
            # Keep the name declared so later uses do not cascade
            self.symbols.define(stmt.name, Macro(stmt.location, 0))
            raise

        self.symbols.define(stmt.name, Macro(stmt.location, value))

    def _declare_variable(self, stmt: VarDecl) -> None:
        self.symbols.check_unique(stmt.name, stmt.location)
        address = len(self._memory)

        data = bytearray()
        try:
            for init in stmt.initializers:
                data.extend(self._initializer_bytes(init, stmt.element_type))
        except AssemblerError:
            self.symbols.define(stmt.name, Variable(stmt.location, address, 0))
            raise

        self._memory.extend(data)
        self.symbols.define(stmt.name, Variable(stmt.location, address, len(data)))

    def _initializer_bytes(self, init: Expression, element_type: ElementType) -> bytes:
        """Encode one let initializer as a run of elements."""
        match init:
            case Fill(value=value, count=count):
                element = self._encode(self._evaluator.evaluate(value), element_type, value.location)
                repeat = self._evaluator.evaluate(count)
                if repeat >> (WORD_BITS - 1):
                    raise ExpressionError("fill count must not be negative", count.location)
                if len(element) * repeat > MAX_MEMORY_SIZE:
                    raise ExpressionError(
                        "fill count too large",
                        count.location,
                        hint=f"the memory segment is limited to {MAX_MEMORY_SIZE} bytes",
                    )
                return element * repeat
            case StringLiteral(value=text):
                return b"".join(
                    self._encode(byte, element_type, init.location)
                    for byte in text.encode("utf-8")
                )
            case _:
                return self._encode(self._evaluator.evaluate(init), element_type, init.location)

    def _encode(self, word: int, element_type: ElementType, location: SourceLocation) -> bytes:
        """
        Encode a word big-endian at the element width.

        Values that fit neither unsigned nor signed are truncated with a
        warning.
        """
        size = element_type.size
        bits = size * 8
        if bits < WORD_BITS:
            signed = word - (1 << WORD_BITS) if word >> (WORD_BITS - 1) else word
            if not (word < (1 << bits) or -(1 << (bits - 1)) <= signed < 0):
                truncated = word & ((1 << bits) - 1)
                self._diagnostics.warning(
                    location,
                    f"value {signed} does not fit in {element_type}, truncated to {truncated}",
                )
            word &= (1 << bits) - 1

        return word.to_bytes(size, "big")

    def _embed(self, stmt: Embed) -> None:
        self.symbols.check_unique(stmt.name, stmt.location)

        resolved = resolve_path(stmt.path, stmt.location.filename, self._include_paths)
        if resolved is None:
            raise EmbedError(stmt.path, "file not found", stmt.location)

        try:
            data = resolved.read_bytes()
        except OSError as e:
            raise EmbedError(stmt.path, e.strerror or str(e), stmt.location) from e

        address = len(self._memory)
        self._memory.extend(data)
        self.symbols.define(stmt.name, Variable(stmt.location, address, len(data)))
        logger.debug("Embedded %s: %d bytes at %d", resolved, len(data), address)
