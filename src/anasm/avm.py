"""
AVM Executable Format
=====================

This module reads and writes the binary artifact executed by the AVM.

File Layout
-----------
All words are 8-byte big-endian unsigned integers.

```
Offset  Size    Description
0       3       Magic number: "AVM"
3       3       Format version: major, minor, patch
6       8       Program size (number of instructions)
14      8       Memory size (bytes)
22      8       Entry point (instruction index)
30      N       Memory segment (N = memory size)
30+N    M*9     Program segment: M records of opcode byte + argument word
```

An executable file starts with the interpreter line ``#!/usr/bin/avm``
before the magic, and has its execute permission bits set.
"""

import logging
import os
import stat
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from anasm.errors import OutputError
from anasm.config import FORMAT_VERSION


logger = logging.getLogger(__name__)


MAGIC = b"AVM"
SHEBANG = b"#!/usr/bin/avm\n"

HEADER_FORMAT = ">3s3BQQQ"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 30

RECORD_FORMAT = ">BQ"
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)  # 9


@dataclass(frozen=True)
class InstructionRecord:
    """
    One encoded instruction.

    Attributes:
        opcode: The opcode byte
        argument: The argument word (0 when the instruction takes none)
    """
    opcode: int
    argument: int = 0

    def to_bytes(self) -> bytes:
        return struct.pack(RECORD_FORMAT, self.opcode, self.argument)

    @classmethod
    def from_bytes(cls, data: bytes) -> "InstructionRecord":
        opcode, argument = struct.unpack(RECORD_FORMAT, data)
        return cls(opcode, argument)


@dataclass
class AvmExecutable:
    """
    An assembled program: memory segment, instruction records, entry point.

    Example:
        exe = AvmExecutable(memory=b"", program=[InstructionRecord(0xFF)])
        exe.write("prog")
    """
    memory: bytes = field(default_factory=bytes)
    program: list[InstructionRecord] = field(default_factory=list)
    entry_point: int = 0
    version: tuple[int, int, int] = FORMAT_VERSION

    def header(self) -> bytes:
        """Serialize the fixed-size header."""
        return struct.pack(
            HEADER_FORMAT,
            MAGIC,
            *self.version,
            len(self.program),
            len(self.memory),
            self.entry_point,
        )

    def to_bytes(self, executable: bool = False) -> bytes:
        """
        Serialize the whole artifact.

        Args:
            executable: Prefix the interpreter line
        """
        result = bytearray()
        if executable:
            result.extend(SHEBANG)
        result.extend(self.header())
        result.extend(self.memory)
        for record in self.program:
            result.extend(record.to_bytes())
        return bytes(result)

    @classmethod
    def from_bytes(cls, data: bytes) -> "AvmExecutable":
        """
        Parse an artifact, with or without the interpreter line.

        Raises:
            ValueError: If the data is not a well-formed artifact
        """
        if data.startswith(b"#!"):
            newline = data.find(b"\n")
            if newline == -1:
                raise ValueError("AVM file truncated after interpreter line")
            data = data[newline + 1:]

        if len(data) < HEADER_SIZE:
            raise ValueError(f"AVM file too short: {len(data)} bytes")

        magic, major, minor, patch, program_size, memory_size, entry_point = (
            struct.unpack_from(HEADER_FORMAT, data)
        )
        if magic != MAGIC:
            raise ValueError(f"Invalid AVM magic: {magic!r}")

        expected = HEADER_SIZE + memory_size + program_size * RECORD_SIZE
        if len(data) < expected:
            raise ValueError(
                f"AVM file truncated: expected {expected} bytes, got {len(data)}"
            )

        memory = bytes(data[HEADER_SIZE:HEADER_SIZE + memory_size])

        program = []
        offset = HEADER_SIZE + memory_size
        for _ in range(program_size):
            program.append(InstructionRecord.from_bytes(data[offset:offset + RECORD_SIZE]))
            offset += RECORD_SIZE

        return cls(memory, program, entry_point, (major, minor, patch))

    def write(self, path: Union[str, Path], executable: bool = True) -> None:
        """
        Write the artifact to a file.

        When executable, the interpreter line goes first and the execute
        bits are added before the header is written. A partially written
        file is left in place on failure.

        Raises:
            OutputError: If the file cannot be created or written
        """
        path = Path(path)
        try:
            with open(path, "wb") as f:
                if executable:
                    f.write(SHEBANG)
                    mode = os.stat(path).st_mode
                    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

                f.write(self.header())
                f.write(self.memory)
                for record in self.program:
                    f.write(record.to_bytes())
        except OSError as e:
            raise OutputError(f"cannot write '{path}': {e.strerror or e}") from e

        logger.debug(
            "Wrote %s: %d instructions, %d bytes of memory, entry %d",
            path, len(self.program), len(self.memory), self.entry_point,
        )

    @classmethod
    def read(cls, path: Union[str, Path]) -> "AvmExecutable":
        """Read and parse an artifact file."""
        return cls.from_bytes(Path(path).read_bytes())
