"""
AVM Disassembler
================

Reads an AVM artifact back into assembly text, using the same instruction
table as the code generator.

Symbolic names cannot be recovered: arguments come back as the raw words
they were lowered to. The entry point is restored as an ``.entry`` label and
the memory segment as a single ``let memory byte = ...`` declaration, so the
output assembles back to an equivalent artifact.

Usage:
    from anasm.disassembler import Disassembler

    exe = AvmExecutable.read("hello")
    print(Disassembler().disassemble_to_text(exe, name="hello"))
"""

from dataclasses import dataclass
from typing import Optional

from anasm.avm import AvmExecutable, InstructionRecord
from anasm.assembler.instructions import instruction_by_opcode
from anasm.config import ENTRY_LABEL


BYTES_PER_LINE = 16


@dataclass
class DisassembledInstruction:
    """
    A single decoded instruction record.

    Attributes:
        index: Position in the program segment
        opcode: The opcode byte
        argument: The raw argument word
        mnemonic: The mnemonic, or None for an opcode missing from the table
        has_arg: Whether the mnemonic takes an argument
    """
    index: int
    opcode: int
    argument: int
    mnemonic: Optional[str] = None
    has_arg: bool = False

    def __str__(self) -> str:
        if self.mnemonic is None:
            return f"# unknown opcode 0x{self.opcode:02X}, argument {self.argument}"
        if self.has_arg:
            return f"{self.mnemonic} {self.argument}"
        return self.mnemonic


class Disassembler:
    """
    Decodes AVM program segments.

    Attributes:
        indent: Prefix for instruction lines in text output
    """

    def __init__(self, indent: str = "    "):
        self.indent = indent

    def disassemble_one(self, index: int, record: InstructionRecord) -> DisassembledInstruction:
        entry = instruction_by_opcode(record.opcode)
        if entry is None:
            return DisassembledInstruction(index, record.opcode, record.argument)

        mnemonic, info = entry
        return DisassembledInstruction(
            index, record.opcode, record.argument, mnemonic, info.has_arg
        )

    def disassemble(self, executable: AvmExecutable) -> list[DisassembledInstruction]:
        return [
            self.disassemble_one(index, record)
            for index, record in enumerate(executable.program)
        ]

    def disassemble_to_text(self, executable: AvmExecutable, name: Optional[str] = None) -> str:
        """
        Produce assembly source for the whole artifact.

        Args:
            executable: The parsed artifact
            name: Shown in the header comment
        """
        major, minor, patch = executable.version
        lines = []
        if name:
            lines.append(f"# Disassembly of {name}")
        lines.append(f"# AVM format {major}.{minor}.{patch}")
        lines.append(
            f"# {len(executable.program)} instructions, "
            f"{len(executable.memory)} bytes of memory"
        )
        lines.append("")

        if executable.memory:
            lines.extend(self._memory_lines(executable.memory))
            lines.append("")

        for instr in self.disassemble(executable):
            if instr.index == executable.entry_point:
                lines.append(f".{ENTRY_LABEL}")
            lines.append(f"{self.indent}{instr}")

        if executable.entry_point >= len(executable.program):
            lines.append(f".{ENTRY_LABEL}")

        return "\n".join(lines) + "\n"

    def _memory_lines(self, memory: bytes) -> list[str]:
        rows = [
            ", ".join(f"0x{b:02X}" for b in memory[i:i + BYTES_PER_LINE])
            for i in range(0, len(memory), BYTES_PER_LINE)
        ]
        lines = ["let memory byte ="]
        for i, row in enumerate(rows):
            separator = "," if i < len(rows) - 1 else ""
            lines.append(f"{self.indent}{row}{separator}")
        return lines


def disassemble(data: bytes, name: Optional[str] = None) -> str:
    """
    Disassemble raw artifact bytes to assembly text.

    Raises:
        ValueError: If the data is not a well-formed artifact
    """
    return Disassembler().disassemble_to_text(AvmExecutable.from_bytes(data), name)
