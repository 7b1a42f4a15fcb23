"""
AVM Instruction Set Definition
==============================

This module defines the AVM 1.13 instruction table: each mnemonic maps to
its opcode byte and whether it takes an argument word.

The table is shared by the code generator and the disassembler, so a
program assembled and disassembled again comes back with the same
mnemonics.

Encoding
--------
Every instruction is a fixed 9-byte record: the opcode byte followed by an
8-byte big-endian argument word. Instructions without an argument store a
zero word.

| Group            | Mnemonics                                   |
|------------------|---------------------------------------------|
| Stack            | nop psh* pop dup* swp* emp set cpy          |
| Integer math     | add sub mul div mod inc dec neg not         |
| Float math       | fad fsb fmu fdi fin fde                     |
| Control flow     | jmp* jnz* cal* ret hlt                      |
| Comparison       | equ neq grt geq les leq (and u*, f* forms)  |
| Logic / bitwise  | and orr ban bor bsr bsl                     |
| Memory           | r08 r16 r32 r64 w08 w16 w32 w64             |
| Files            | ope clo wrf rdf szf flu                     |
| Libraries        | lol cll llf ulf clf                         |
| Debugging        | dmp prt fpr                                 |

(* takes an argument)
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InstructionInfo:
    """
    Encoding of a single mnemonic.

    Attributes:
        opcode: The opcode byte
        has_arg: True if the instruction is followed by an argument
    """
    opcode: int
    has_arg: bool = False

    def __repr__(self) -> str:
        arg = ", arg" if self.has_arg else ""
        return f"InstructionInfo(0x{self.opcode:02X}{arg})"


INSTRUCTIONS: dict[str, InstructionInfo] = {
    "nop": InstructionInfo(0x00),

    "psh": InstructionInfo(0x10, has_arg=True),
    "pop": InstructionInfo(0x11),

    "add": InstructionInfo(0x20),
    "sub": InstructionInfo(0x21),
    "mul": InstructionInfo(0x22),
    "div": InstructionInfo(0x23),
    "mod": InstructionInfo(0x24),
    "inc": InstructionInfo(0x25),
    "dec": InstructionInfo(0x26),

    "fad": InstructionInfo(0x27),
    "fsb": InstructionInfo(0x28),
    "fmu": InstructionInfo(0x29),
    "fdi": InstructionInfo(0x2A),
    "fin": InstructionInfo(0x2B),
    "fde": InstructionInfo(0x2C),

    "neg": InstructionInfo(0x2D),
    "not": InstructionInfo(0x2E),

    "jmp": InstructionInfo(0x30, has_arg=True),
    "jnz": InstructionInfo(0x31, has_arg=True),

    "equ": InstructionInfo(0x32),
    "neq": InstructionInfo(0x33),
    "grt": InstructionInfo(0x34),
    "geq": InstructionInfo(0x35),
    "les": InstructionInfo(0x36),
    "leq": InstructionInfo(0x37),

    "cal": InstructionInfo(0x38, has_arg=True),
    "ret": InstructionInfo(0x39),

    "ueq": InstructionInfo(0x3A),
    "une": InstructionInfo(0x3B),
    "ugr": InstructionInfo(0x3C),
    "ugq": InstructionInfo(0x3D),
    "ule": InstructionInfo(0x3E),
    "ulq": InstructionInfo(0x3F),

    "feq": InstructionInfo(0x40),
    "fne": InstructionInfo(0x41),
    "fgr": InstructionInfo(0x42),
    "fgq": InstructionInfo(0x43),
    "fle": InstructionInfo(0x44),
    "flq": InstructionInfo(0x45),

    "and": InstructionInfo(0x46),
    "orr": InstructionInfo(0x47),

    "dup": InstructionInfo(0x50, has_arg=True),
    "swp": InstructionInfo(0x51, has_arg=True),
    "emp": InstructionInfo(0x52),
    "set": InstructionInfo(0x53),
    "cpy": InstructionInfo(0x54),

    "r08": InstructionInfo(0x60),
    "r16": InstructionInfo(0x61),
    "r32": InstructionInfo(0x62),
    "r64": InstructionInfo(0x63),

    "w08": InstructionInfo(0x64),
    "w16": InstructionInfo(0x65),
    "w32": InstructionInfo(0x66),
    "w64": InstructionInfo(0x67),

    "ope": InstructionInfo(0x70),
    "clo": InstructionInfo(0x71),
    "wrf": InstructionInfo(0x72),
    "rdf": InstructionInfo(0x73),
    "szf": InstructionInfo(0x74),
    "flu": InstructionInfo(0x75),

    "ban": InstructionInfo(0x80),
    "bor": InstructionInfo(0x81),
    "bsr": InstructionInfo(0x82),
    "bsl": InstructionInfo(0x83),

    "lol": InstructionInfo(0x90),
    "cll": InstructionInfo(0x91),
    "llf": InstructionInfo(0x92),
    "ulf": InstructionInfo(0x93),
    "clf": InstructionInfo(0x94),

    "dmp": InstructionInfo(0xF0),
    "prt": InstructionInfo(0xF1),
    "fpr": InstructionInfo(0xF2),

    "hlt": InstructionInfo(0xFF),
}

# Reverse lookup for the disassembler
_BY_OPCODE: dict[int, str] = {info.opcode: name for name, info in INSTRUCTIONS.items()}


def instruction_by_opcode(opcode: int) -> Optional[tuple[str, InstructionInfo]]:
    """
    Look up an instruction by its opcode byte.

    Returns:
        (mnemonic, info), or None if the opcode is not in the table
    """
    name = _BY_OPCODE.get(opcode)
    if name is None:
        return None
    return name, INSTRUCTIONS[name]
