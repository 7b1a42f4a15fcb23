"""
anasm Error Hierarchy
=====================

This module defines the exception hierarchy for the assembler. All
exceptions inherit from AnasmError, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
AnasmError (base)
├── AssemblerError (located, reportable errors)
│   ├── AssemblySyntaxError - wrong token where a construct was expected
│   ├── UndefinedSymbolError - reference to an undeclared name
│   ├── DuplicateSymbolError - name declared more than once
│   ├── ExpressionError - constant expression cannot be evaluated
│   ├── InstructionError - unknown mnemonic or wrong argument count
│   └── FatalAssemblerError (stops the current phase)
│       ├── LexicalError - malformed literal, unexpected character
│       ├── IncludeError - included file unreadable or circular
│       ├── EmbedError - embedded file unreadable
│       └── OutputError - artifact cannot be created or written
└── CompilationAborted (diagnostics already hold the details)
    └── TooManyErrors - maximum diagnostic count exceeded

Design Philosophy
-----------------
Non-fatal errors are raised by the statement being processed, caught by the
pass that processes it and recorded in a Diagnostics collector, so a single
run reports as many independent problems as possible. Fatal errors unwind
the whole phase.

Error messages follow this format:
    Error: filename:line:column: description
        12 | source line text
           |      ^~~~
    Note: filename:line:column: secondary context
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class AnasmError(Exception):
    """
    Base exception for all anasm errors.

        try:
            assembler.assemble_file("program.anasm", "program")
        except AnasmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Path of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        length: Number of characters covered by the located construct
        source_line: Full text of the source line, for context rendering
    """
    filename: str
    line: int
    column: int
    length: int = 1
    source_line: str = ""

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(AnasmError):
    """
    Base exception for all reportable assembler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error, shown as a note (optional)
        notes: Secondary (location, message) pairs, such as a previous
               declaration of the same name
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        notes: Optional[list[tuple[SourceLocation, str]]] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.notes = list(notes or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location and hint.

        Example output:
            hello.anasm:15:9: error: undeclared identifier 'cnt'
            hint: did you mean 'count'?
        """
        if self.location:
            text = f"{self.location}: error: {self.message}"
        else:
            text = f"error: {self.message}"

        if self.hint:
            text += f"\nhint: {self.hint}"

        return text


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Examples:
        - Identifier expected but a literal found
        - Missing '=' in a let or mac declaration
        - Unmatched parenthesis
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to a name that is not a label, variable or macro.

    The evaluator suggests similarly-named symbols when this error occurs,
    helping to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        similar_symbols: Optional[list[str]] = None,
        message: Optional[str] = None,
        notes: Optional[list[tuple[SourceLocation, str]]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        hint = None
        if self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            message or f"undeclared identifier '{symbol}'",
            location=location,
            hint=hint,
            notes=notes,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Name declared more than once.

    Labels, variables and macros share one namespace, so a label and a macro
    with the same name collide too. The original declaration is attached as
    a note.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        notes = []
        if original_location:
            notes.append((original_location, f"'{symbol}' previously defined here"))

        super().__init__(
            f"redefinition of '{symbol}'",
            location=location,
            notes=notes,
        )


class ExpressionError(AssemblerError):
    """
    Error evaluating a constant expression.

    Raised when an expression cannot be evaluated, typically due to:
    - Too few operands for an operator
    - Division by zero
    - sizeof applied to a label or macro
    - A value form used where it is not allowed (string, type, fill)
    """
    pass


class InstructionError(AssemblerError):
    """
    Invalid instruction.

    Raised for mnemonics that are not in the instruction table.
    """
    pass


class FatalAssemblerError(AssemblerError):
    """
    An error that stops the current phase immediately.

    Passes re-raise these instead of recording and continuing.
    """
    pass


class LexicalError(FatalAssemblerError):
    """
    The lexer produced an error token.

    Examples:
        - Unexpected character in source
        - Unterminated string or character literal
        - Unknown escape sequence
        - Malformed number
    """
    pass


class IncludeError(FatalAssemblerError):
    """
    Error including a file.

    Raised when:
    - Include file not found or unreadable
    - Circular include detected
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        notes: Optional[list[tuple[SourceLocation, str]]] = None,
        search_paths: Optional[list[str]] = None,
    ):
        self.included_filename = filename
        self.reason = reason
        self.search_paths = search_paths or []

        hint = None
        if self.search_paths:
            paths_str = ", ".join(self.search_paths)
            hint = f"searched in: {paths_str}"

        super().__init__(
            f"cannot include '{filename}': {reason}",
            location=location,
            hint=hint,
            notes=notes,
        )


class EmbedError(FatalAssemblerError):
    """Embedded file not found or unreadable."""

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
    ):
        self.embedded_filename = filename
        self.reason = reason
        super().__init__(f"cannot embed '{filename}': {reason}", location=location)


class OutputError(FatalAssemblerError):
    """
    The output artifact could not be created or written.

    A partially written file is left as is.
    """
    pass


# =============================================================================
# Abort Signals
# =============================================================================

class CompilationAborted(AnasmError):
    """
    Raised to unwind the pipeline after a fatal problem was recorded.

    The diagnostics collector already holds the details, so this exception
    carries only a short summary.
    """

    def __init__(self, message: str = "Compilation aborted"):
        super().__init__(message)


class TooManyErrors(CompilationAborted):
    """
    Raised when the maximum number of diagnostics has been exceeded.

    This prevents a badly broken source from flooding the terminal.
    """

    def __init__(self, max_errors: int):
        self.max_errors = max_errors
        super().__init__(f"Too many errors ({max_errors}), compilation aborted")
