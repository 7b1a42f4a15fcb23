# =============================================================================
# test_avm.py - AVM Artifact Format Tests
# =============================================================================
# Tests for reading and writing the AVM binary format.
#
# Test coverage includes:
#   - Header layout and byte order
#   - Memory and program segments
#   - Interpreter line and execute permissions
#   - Malformed input
# =============================================================================

import os
import stat

import pytest
from anasm.avm import (
    HEADER_SIZE,
    RECORD_SIZE,
    SHEBANG,
    AvmExecutable,
    InstructionRecord,
)
from anasm.config import FORMAT_VERSION
from anasm.errors import OutputError


def sample() -> AvmExecutable:
    return AvmExecutable(
        memory=b"hi\x00",
        program=[InstructionRecord(0x10, 7), InstructionRecord(0x00)],
        entry_point=1,
    )


class TestLayout:
    """Byte layout of the artifact."""

    def test_sizes(self):
        assert HEADER_SIZE == 30
        assert RECORD_SIZE == 9

    def test_header(self):
        header = sample().header()
        assert header[:3] == b"AVM"
        assert tuple(header[3:6]) == FORMAT_VERSION
        assert header[6:14] == (2).to_bytes(8, "big")
        assert header[14:22] == (3).to_bytes(8, "big")
        assert header[22:30] == (1).to_bytes(8, "big")

    def test_version_bytes(self):
        # The patch byte repeats the minor version
        assert AvmExecutable().to_bytes()[:6] == b"AVM\x01\x0d\x0d"

    def test_record(self):
        assert InstructionRecord(0x10, 0x0102).to_bytes() == (
            b"\x10" + b"\x00" * 6 + b"\x01\x02"
        )

    def test_segments_follow_header(self):
        data = sample().to_bytes()
        assert data[HEADER_SIZE:HEADER_SIZE + 3] == b"hi\x00"
        assert data[HEADER_SIZE + 3:] == (
            InstructionRecord(0x10, 7).to_bytes() + InstructionRecord(0x00).to_bytes()
        )

    def test_executable_prefix(self):
        data = sample().to_bytes(executable=True)
        assert data.startswith(SHEBANG)
        assert data[len(SHEBANG):] == sample().to_bytes()

    def test_empty_program(self):
        data = AvmExecutable().to_bytes()
        assert len(data) == HEADER_SIZE


class TestReading:
    """Parsing artifacts back."""

    def test_round_trip(self):
        assert AvmExecutable.from_bytes(sample().to_bytes()) == sample()

    def test_strips_interpreter_line(self):
        assert AvmExecutable.from_bytes(sample().to_bytes(executable=True)) == sample()

    def test_too_short(self):
        with pytest.raises(ValueError, match="too short"):
            AvmExecutable.from_bytes(b"AVM\x01")

    def test_bad_magic(self):
        data = b"XYZ" + sample().to_bytes()[3:]
        with pytest.raises(ValueError, match="magic"):
            AvmExecutable.from_bytes(data)

    def test_truncated(self):
        with pytest.raises(ValueError, match="truncated"):
            AvmExecutable.from_bytes(sample().to_bytes()[:-1])


class TestWriting:
    """Writing artifacts to disk."""

    def test_write_executable(self, tmp_path):
        path = tmp_path / "prog"
        sample().write(path)

        assert path.read_bytes() == sample().to_bytes(executable=True)
        mode = os.stat(path).st_mode
        assert mode & stat.S_IXUSR
        assert mode & stat.S_IXGRP
        assert mode & stat.S_IXOTH

    def test_write_plain(self, tmp_path):
        path = tmp_path / "prog"
        sample().write(path, executable=False)

        assert path.read_bytes() == sample().to_bytes()
        assert not os.stat(path).st_mode & stat.S_IXUSR

    def test_read(self, tmp_path):
        path = tmp_path / "prog"
        sample().write(path)
        assert AvmExecutable.read(path) == sample()

    def test_write_to_missing_directory(self, tmp_path):
        with pytest.raises(OutputError, match="cannot write"):
            sample().write(tmp_path / "no" / "such" / "dir" / "prog")
