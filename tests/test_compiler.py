# =============================================================================
# test_compiler.py - Code Generator Tests
# =============================================================================
# Tests for the two compiler passes.
#
# Test coverage includes:
#   - Label resolution and the entry point
#   - Instruction records and argument checks
#   - Memory layout of let declarations (widths, strings, fills, floats)
#   - embed
#   - Macro/variable ordering, redefinitions and error recovery
# =============================================================================

import pytest
from anasm.assembler.ast import Instruction, IntLiteral, LabelDecl, Program
from anasm.assembler.compiler import Compiler
from anasm.assembler.instructions import INSTRUCTIONS
from anasm.assembler.parser import parse_source
from anasm.assembler.symbols import Label, Macro, Variable
from anasm.avm import InstructionRecord
from anasm.diagnostics import Diagnostics, Severity
from anasm.errors import CompilationAborted, FatalAssemblerError, SourceLocation


# =============================================================================
# Helper Functions
# =============================================================================

def compile_source(source: str, filename: str = "<test>"):
    """Parse and compile; return (executable or None, diagnostics, compiler)."""
    diagnostics = Diagnostics()
    program = parse_source(source, filename, diagnostics)
    assert not diagnostics.happened(), diagnostics.report()

    compiler = Compiler(diagnostics)
    return compiler.compile(program), diagnostics, compiler


def compile_ok(source: str, filename: str = "<test>"):
    executable, diagnostics, _ = compile_source(source, filename)
    assert executable is not None, diagnostics.report()
    return executable


def compile_errors(source: str) -> list[str]:
    executable, diagnostics, _ = compile_source(source)
    assert executable is None
    return [d.message for d in diagnostics.errors()]


def op(name: str) -> int:
    return INSTRUCTIONS[name].opcode


# =============================================================================
# Pass 1: Resolution
# =============================================================================

class TestResolution:
    """Label addresses and the entry point."""

    def test_labels_get_instruction_index(self):
        _, _, compiler = compile_source(".entry\nnop\n.loop\nnop\nnop\n.end\nhlt")
        labels = compiler.symbols.labels()
        assert labels["entry"].address == 0
        assert labels["loop"].address == 1
        assert labels["end"].address == 3

    def test_entry_point(self):
        exe = compile_ok("nop\nnop\n.entry\nhlt")
        assert exe.entry_point == 2

    def test_declarations_do_not_count_as_instructions(self):
        exe = compile_ok("let x i64 = 1\nmac Y = 2\n.entry\nhlt")
        assert exe.entry_point == 0

    def test_missing_entry(self):
        executable, diagnostics, _ = compile_source("psh 1\nhlt")
        assert executable is None
        [diag] = diagnostics.diagnostics
        assert diag.message == "program entry point label 'entry' not found"
        assert diag.location is None

    def test_entry_must_be_label(self):
        assert compile_errors("mac entry = 1\nhlt") == [
            "program entry point label 'entry' not found",
        ]

    def test_duplicate_label(self):
        executable, diagnostics, _ = compile_source(".entry\nnop\n.entry\nhlt")
        assert executable is None
        messages = [(d.severity, d.message) for d in diagnostics.diagnostics]
        assert messages == [
            (Severity.ERROR, "redefinition of 'entry'"),
            (Severity.NOTE, "'entry' previously defined here"),
        ]
        assert diagnostics.diagnostics[1].location.line == 1

    def test_custom_entry_label(self):
        diagnostics = Diagnostics()
        program = parse_source(".start\nhlt", "<test>", diagnostics)
        exe = Compiler(diagnostics, entry_label="start").compile(program)
        assert exe.entry_point == 0


# =============================================================================
# Pass 2: Instructions
# =============================================================================

class TestInstructions:
    """Program segment generation."""

    def test_records(self):
        exe = compile_ok(".entry\npsh 1\npsh 2\nadd\nhlt")
        assert exe.program == [
            InstructionRecord(op("psh"), 1),
            InstructionRecord(op("psh"), 2),
            InstructionRecord(op("add"), 0),
            InstructionRecord(op("hlt"), 0),
        ]

    def test_forward_label_reference(self):
        exe = compile_ok(".entry\njmp end\nnop\n.end\nhlt")
        assert exe.program[0] == InstructionRecord(op("jmp"), 2)

    def test_implicit_push(self):
        exe = compile_ok(".entry\n(+ 40 2)\nhlt")
        assert exe.program[0] == InstructionRecord(op("psh"), 42)

    def test_negative_argument(self):
        exe = compile_ok(".entry\npsh -1\nhlt")
        assert exe.program[0].argument == 2**64 - 1

    def test_float_argument(self):
        exe = compile_ok(".entry\npsh 1.5\nhlt")
        assert exe.program[0].argument == 0x3FF8000000000000

    def test_variable_address_argument(self):
        exe = compile_ok("let a i64 = 1\nlet b byte = 2\n.entry\npsh b\nhlt")
        assert exe.program[0].argument == 8


# =============================================================================
# Pass 2: Memory
# =============================================================================

class TestMemory:
    """Memory segment layout."""

    def test_memory_starts_empty(self):
        exe = compile_ok(".entry\nhlt")
        assert exe.memory == b""

    @pytest.mark.parametrize("type_name,data", [
        ("byte", b"\x12"),
        ("char", b"\x12"),
        ("i16", b"\x00\x12"),
        ("i32", b"\x00\x00\x00\x12"),
        ("i64", b"\x00\x00\x00\x00\x00\x00\x00\x12"),
    ])
    def test_element_width(self, type_name, data):
        exe = compile_ok(f"let x {type_name} = 0x12\n.entry\nhlt")
        assert exe.memory == data

    def test_big_endian(self):
        exe = compile_ok("let x i32 = 0x01020304\n.entry\nhlt")
        assert exe.memory == b"\x01\x02\x03\x04"

    def test_negative_element(self):
        exe = compile_ok("let x i16 = -2\n.entry\nhlt")
        assert exe.memory == b"\xff\xfe"

    def test_float_element(self):
        exe = compile_ok("let x f64 = 1.5\n.entry\nhlt")
        assert exe.memory == bytes.fromhex("3ff8000000000000")

    def test_string_initializer(self):
        exe = compile_ok('let msg char = "hi\\n", 0\n.entry\nhlt')
        assert exe.memory == b"hi\n\x00"

    def test_string_widened_per_byte(self):
        exe = compile_ok('let s i16 = "ab"\n.entry\nhlt')
        assert exe.memory == b"\x00a\x00b"

    def test_fill(self):
        exe = compile_ok("let buf i16 = 7 .. 3\n.entry\nhlt")
        assert exe.memory == b"\x00\x07" * 3

    def test_fill_count_from_macro(self):
        exe = compile_ok("mac N = 4\nlet buf byte = 0 .. N\n.entry\nhlt")
        assert exe.memory == b"\x00" * 4

    def test_zero_fill(self):
        _, _, compiler = compile_source("let buf byte = 1 .. 0\n.entry\nhlt")
        assert compiler.symbols.lookup("buf").size == 0

    def test_negative_fill_count(self):
        assert compile_errors("let buf byte = 0 .. -1\n.entry\nhlt") == [
            "fill count must not be negative",
        ]

    def test_fill_count_too_large(self):
        executable, diagnostics, _ = compile_source(
            "let buf byte = 0 .. 0x7FFFFFFFFFFFFFFF\n.entry\nhlt"
        )
        assert executable is None
        [error] = diagnostics.errors()
        assert error.message == "fill count too large"
        assert error.location.column == 21

    def test_wide_fill_checked_in_bytes(self):
        assert compile_errors("let buf i64 = 0 .. 0x10000000\n.entry\nhlt") == [
            "fill count too large",
        ]

    def test_variables_are_consecutive(self):
        _, _, compiler = compile_source(
            'let a i32 = 1, 2\nlet b char = "xyz"\nlet c i64 = 0\n.entry\nhlt'
        )
        variables = compiler.symbols.variables()
        assert (variables["a"].address, variables["a"].size) == (0, 8)
        assert (variables["b"].address, variables["b"].size) == (8, 3)
        assert (variables["c"].address, variables["c"].size) == (11, 8)

    def test_sizeof_variable_in_later_declaration(self):
        exe = compile_ok('let msg char = "hello"\nlet len i64 = (sizeof msg)\n.entry\nhlt')
        assert exe.memory[-8:] == (5).to_bytes(8, "big")

    def test_truncation_warning(self):
        executable, diagnostics, _ = compile_source("let x byte = 300\n.entry\nhlt")
        assert executable is not None
        assert executable.memory == bytes([300 & 0xFF])
        [warning] = diagnostics.diagnostics
        assert warning.severity is Severity.WARNING
        assert warning.message == "value 300 does not fit in byte, truncated to 44"

    def test_signed_byte_fits(self):
        executable, diagnostics, _ = compile_source("let x byte = -128, 255\n.entry\nhlt")
        assert executable.memory == b"\x80\xff"
        assert diagnostics.diagnostics == []


# =============================================================================
# Embed
# =============================================================================

class TestEmbed:
    """embed appends file contents to memory."""

    def test_embed(self, tmp_path):
        (tmp_path / "data.bin").write_bytes(b"\x01\x02\x03")
        main = tmp_path / "main.anasm"
        source = 'let pad byte = 9\nembed blob "./data.bin"\n.entry\npsh (sizeof blob)\nhlt'

        exe, diagnostics, compiler = compile_source(source, str(main))
        assert exe is not None, diagnostics.report()
        assert exe.memory == b"\x09\x01\x02\x03"
        blob = compiler.symbols.lookup("blob")
        assert isinstance(blob, Variable)
        assert (blob.address, blob.size) == (1, 3)
        assert exe.program[0].argument == 3

    def test_embed_missing_file(self, tmp_path):
        diagnostics = Diagnostics()
        program = parse_source(
            'embed blob "./missing.bin"\n.entry\nhlt',
            str(tmp_path / "main.anasm"),
            diagnostics,
        )
        compiler = Compiler(diagnostics)
        assert compiler.resolve(program)
        with pytest.raises(FatalAssemblerError, match="cannot embed './missing.bin': file not found"):
            compiler.generate(program)


# =============================================================================
# Symbols and Ordering
# =============================================================================

class TestSymbols:
    """Macro and variable declarations."""

    def test_macro_value(self):
        _, _, compiler = compile_source("mac SIZE = (* 4 16)\n.entry\nhlt")
        symbol = compiler.symbols.lookup("SIZE")
        assert isinstance(symbol, Macro)
        assert symbol.value == 64

    def test_macro_can_reference_label(self):
        exe = compile_ok("mac TARGET = end\n.entry\njmp TARGET\n.end\nhlt")
        assert exe.program[0].argument == 1

    def test_macro_used_before_declaration(self):
        executable, diagnostics, _ = compile_source(".entry\npsh SIZE\nhlt\nmac SIZE = 4")
        assert executable is None
        messages = [d.message for d in diagnostics.diagnostics]
        assert messages == [
            "'SIZE' used before its declaration",
            "'SIZE' declared here",
        ]
        assert diagnostics.diagnostics[1].location.line == 4

    def test_label_and_macro_share_namespace(self):
        assert compile_errors(".entry\n.x\nhlt\nmac x = 1") == ["redefinition of 'x'"]

    def test_macro_before_label(self):
        """The label is the later declaration even though pass 1 sees it first."""
        executable, diagnostics, compiler = compile_source("mac x = 1\n.x\n.entry\nhlt")
        assert executable is None
        error, note = diagnostics.diagnostics
        assert (error.severity, error.message, error.location.line) == (
            Severity.ERROR, "redefinition of 'x'", 2,
        )
        assert (note.severity, note.location.line) == (Severity.NOTE, 1)
        assert compiler.symbols.lookup("x") is None

    def test_variable_before_label(self):
        assert compile_errors("let x byte = 0\n.entry\n.x\nhlt") == ["redefinition of 'x'"]

    def test_variable_redefinition(self):
        assert compile_errors("let x i64 = 1\nlet x byte = 2\n.entry\nhlt") == [
            "redefinition of 'x'",
        ]

    def test_failed_macro_does_not_cascade(self):
        """A macro whose value fails is still declared."""
        assert compile_errors("mac A = (/ 1 0)\nmac B = (+ A 1)\n.entry\npsh B\nhlt") == [
            "division by zero",
        ]

    def test_argument_count_checks(self):
        """Hand-built programs are checked against the instruction table."""
        loc = SourceLocation("<test>", 1, 1)
        program = Program([
            LabelDecl(loc, "entry"),
            Instruction(loc, "psh"),
            Instruction(loc, "hlt", IntLiteral(loc, 1)),
        ])
        diagnostics = Diagnostics()
        assert Compiler(diagnostics).compile(program) is None
        assert [d.message for d in diagnostics.errors()] == [
            "'psh' expects an argument",
            "'hlt' takes no argument",
        ]

    def test_errors_are_collected_across_statements(self):
        assert compile_errors(".entry\npsh a\npsh b\nhlt") == [
            "undeclared identifier 'a'",
            "undeclared identifier 'b'",
        ]

    def test_error_limit_aborts(self):
        diagnostics = Diagnostics(max_errors=2)
        program = parse_source(".entry\npsh a\npsh b\npsh c\nhlt", "<test>", diagnostics)
        with pytest.raises(CompilationAborted):
            Compiler(diagnostics).compile(program)
        assert diagnostics.truncated
