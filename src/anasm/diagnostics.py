"""
Diagnostics Collection and Rendering
====================================

The parser and compiler do not print anything themselves. They record
errors, warnings and notes into a Diagnostics object that is passed to them
explicitly. The driver checks ``happened()`` between phases and the CLI
prints ``report()`` at the end.

Every recorded error and note counts toward ``max_errors``; warnings do
not. Recording one more than the maximum raises TooManyErrors, which
aborts the compilation; the report then ends with a truncation marker.

Rendering
---------
A located diagnostic shows the offending source line split around the
highlighted span, with an underline below it::

    Error: prog.anasm:3:5: redefinition of 'x'
        3 | let x i64 = 2
          |     ^
    Note: prog.anasm:1:5: 'x' previously defined here
        1 | mac x = 1
          |     ^

Colors are produced with click.style and are only included when requested.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import click

from anasm.errors import AssemblerError, SourceLocation, TooManyErrors


TAB_WIDTH = 4

TRUNCATION_MARKER = "...\nCompilation aborted"


class Severity(Enum):
    """Diagnostic severity, with the display name and color of each."""
    ERROR = ("Error", "red")
    WARNING = ("Warning", "yellow")
    NOTE = ("Note", "cyan")

    @property
    def title(self) -> str:
        return self.value[0]

    @property
    def color(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class Diagnostic:
    """
    A single recorded message.

    Attributes:
        severity: Error, warning or note
        message: Human-readable description
        location: Source location, or None for simple diagnostics
    """
    severity: Severity
    message: str
    location: Optional[SourceLocation] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def split_line(self) -> tuple[str, str, str]:
        """
        Split the source line around the located span.

        Returns:
            (text before the span, the span, text after the span), with tabs
            expanded so the underline lines up
        """
        if self.location is None:
            return "", "", ""

        line = self.location.source_line
        start = max(self.location.column - 1, 0)
        end = start + max(self.location.length, 1)

        def expand(text: str) -> str:
            return text.replace("\t", " " * TAB_WIDTH)

        return expand(line[:start]), expand(line[start:end]), expand(line[end:])

    def render(self, color: bool = False) -> str:
        """
        Format the diagnostic for display.

        Args:
            color: Include ANSI styling produced by click.style
        """
        def style(text: str, **kwargs) -> str:
            return click.style(text, **kwargs) if color else text

        title = style(f"{self.severity.title}:", fg=self.severity.color, bold=True)

        if self.location is None:
            return f"{title} {self.message}"

        lines = [f"{title} {style(str(self.location), bold=True)}: {self.message}"]

        if self.location.source_line:
            pre, main, post = self.split_line()
            gutter = str(self.location.line)
            highlighted = style(main, fg=self.severity.color, bold=True)
            lines.append(f"    {gutter} | {pre}{highlighted}{post}")

            underline = "^" + "~" * (len(main) - 1) if main else "^"
            lines.append(
                f"    {' ' * len(gutter)} | {' ' * len(pre)}"
                f"{style(underline, fg=self.severity.color)}"
            )

        return "\n".join(lines)


class Diagnostics:
    """
    Collects diagnostics for batch reporting.

    Example:
        diagnostics = Diagnostics(max_errors=8)

        try:
            parser = Parser(source, "prog.anasm", diagnostics)
            program = parser.parse()
        except CompilationAborted:
            pass  # details are already recorded

        if diagnostics.happened():
            click.echo(diagnostics.report(), err=True)
    """

    def __init__(self, max_errors: int = 8, show_warnings: bool = True):
        """
        Initialize the collector.

        Args:
            max_errors: Maximum number of errors and notes recorded
                        before TooManyErrors is raised
            show_warnings: If False, warnings are dropped
        """
        self.max_errors = max_errors
        self.show_warnings = show_warnings
        self.diagnostics: list[Diagnostic] = []
        self.truncated = False
        self._error_count = 0
        self._counted = 0

    # =========================================================================
    # Recording
    # =========================================================================

    def _record(self, diagnostic: Diagnostic) -> None:
        if diagnostic.severity is Severity.WARNING and not self.show_warnings:
            return

        # Warnings never abort the run
        if diagnostic.severity is not Severity.WARNING:
            if self._counted >= self.max_errors:
                self.truncated = True
                raise TooManyErrors(self.max_errors)
            self._counted += 1

        self.diagnostics.append(diagnostic)
        if diagnostic.is_error:
            self._error_count += 1

    def error(self, location: SourceLocation, message: str) -> None:
        self._record(Diagnostic(Severity.ERROR, message, location))

    def warning(self, location: SourceLocation, message: str) -> None:
        self._record(Diagnostic(Severity.WARNING, message, location))

    def note(self, location: SourceLocation, message: str) -> None:
        self._record(Diagnostic(Severity.NOTE, message, location))

    def simple_error(self, message: str) -> None:
        self._record(Diagnostic(Severity.ERROR, message))

    def simple_warning(self, message: str) -> None:
        self._record(Diagnostic(Severity.WARNING, message))

    def simple_note(self, message: str) -> None:
        self._record(Diagnostic(Severity.NOTE, message))

    def add(self, error: AssemblerError) -> None:
        """
        Record an assembler exception together with its notes.

        The hint, if any, becomes a note at the error location.

        Raises:
            TooManyErrors: If the maximum count is exceeded
        """
        if error.location is not None:
            self.error(error.location, error.message)
        else:
            self.simple_error(error.message)

        for location, message in error.notes:
            self.note(location, message)

        if error.hint:
            if error.location is not None:
                self.note(error.location, error.hint[:1].upper() + error.hint[1:])
            else:
                self.simple_note(error.hint[:1].upper() + error.hint[1:])

    # =========================================================================
    # Queries
    # =========================================================================

    def happened(self) -> bool:
        """Return True if any error-class diagnostic was recorded."""
        return self._error_count > 0

    def error_count(self) -> int:
        return self._error_count

    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity is Severity.WARNING)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    def report(self, color: bool = False) -> str:
        """
        Format all recorded diagnostics, separated by blank lines.

        Ends with the truncation marker when the maximum was exceeded.
        """
        parts = [d.render(color=color) for d in self.diagnostics]
        text = "\n\n".join(parts)

        if self.truncated:
            text = f"{text}\n{TRUNCATION_MARKER}" if text else TRUNCATION_MARKER

        return text

    def reset(self) -> None:
        """Forget all recorded diagnostics."""
        self.diagnostics.clear()
        self.truncated = False
        self._error_count = 0
        self._counted = 0
