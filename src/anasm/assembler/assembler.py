"""
AVM Assembler - Main Interface
==============================

This module provides the Assembler class, which runs the whole pipeline:
parse, resolve labels, generate code, write the artifact.

Each phase must finish without errors before the next one starts. When a
phase fails, the diagnostics collected so far are kept in
``assembler.diagnostics`` and nothing is written.

Example Usage
-------------
>>> from anasm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> ok = asm.assemble('''
... .entry
...     psh 1
...     psh 2
...     add
...     hlt
... ''', "sum.anasm", "sum")
>>> if not ok:
...     print(asm.report())

Command-Line Usage
------------------
    $ anasm sum.anasm -o sum
"""

import logging
from pathlib import Path
from typing import Optional, Union

from anasm.errors import CompilationAborted, FatalAssemblerError
from anasm.config import AssemblerConfig
from anasm.diagnostics import Diagnostics
from anasm.avm import AvmExecutable
from anasm.assembler.ast import Program
from anasm.assembler.compiler import Compiler
from anasm.assembler.parser import Parser
from anasm.assembler.symbols import SymbolTable


logger = logging.getLogger(__name__)


class Assembler:
    """
    Main AVM assembler class.

    Attributes:
        config: Options for the run
        diagnostics: Errors, warnings and notes of the last run
        executable: The artifact of the last successful run
        symbols: Symbol table of the last run that reached code generation
    """

    def __init__(self, config: Optional[AssemblerConfig] = None):
        self.config = config if config is not None else AssemblerConfig()
        self.diagnostics = Diagnostics(self.config.max_errors, self.config.show_warnings)
        self.executable: Optional[AvmExecutable] = None
        self.symbols: Optional[SymbolTable] = None

    def assemble(
        self,
        source: str,
        path: str = "<input>",
        output_path: Optional[Union[str, Path]] = None,
    ) -> bool:
        """
        Assemble source text and write the artifact.

        Args:
            source: Assembly source text
            path: Source path, for diagnostics and relative includes
            output_path: Where to write the artifact; None to skip writing

        Returns:
            True on success. On failure see ``diagnostics``.
        """
        self.diagnostics.reset()
        self.executable = None
        self.symbols = None

        try:
            executable = self._run(source, path)
            if executable is None:
                return False

            if output_path is not None:
                executable.write(output_path, executable=self.config.executable)

        except FatalAssemblerError as e:
            self._record_fatal(e)
            return False
        except CompilationAborted as e:
            logger.debug("%s: %s", path, e)
            return False

        self.executable = executable
        return True

    def _run(self, source: str, path: str) -> Optional[AvmExecutable]:
        include_paths = self.config.include_paths

        logger.debug("Assembling %s", path)
        program: Program = Parser(source, path, self.diagnostics, include_paths).parse()
        if self.diagnostics.happened():
            return None
        logger.debug("%s: %d instructions after includes", path, program.instruction_count())

        compiler = Compiler(self.diagnostics, include_paths, self.config.entry_label)
        self.symbols = compiler.symbols

        if not compiler.resolve(program):
            return None

        return compiler.generate(program)

    def _record_fatal(self, error: FatalAssemblerError) -> None:
        try:
            self.diagnostics.add(error)
        except CompilationAborted:
            pass  # the truncation marker already ends the report

    def assemble_string(self, source: str, filename: str = "<input>") -> Optional[AvmExecutable]:
        """
        Assemble source text without writing anything.

        Returns:
            The executable, or None on failure
        """
        if self.assemble(source, filename):
            return self.executable
        return None

    def assemble_file(
        self,
        filepath: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
    ) -> bool:
        """
        Assemble a source file.

        Args:
            filepath: Path to the source file
            output_path: Where to write the artifact; None to skip writing
        """
        filepath = Path(filepath)
        try:
            source = filepath.read_text(encoding="utf-8")
        except OSError as e:
            self.diagnostics.reset()
            self.diagnostics.simple_error(f"cannot read '{filepath}': {e.strerror or e}")
            return False
        except UnicodeDecodeError as e:
            self.diagnostics.reset()
            self.diagnostics.simple_error(f"cannot read '{filepath}': {e.reason}")
            return False

        return self.assemble(source, str(filepath), output_path)

    def has_errors(self) -> bool:
        return self.diagnostics.happened()

    def report(self, color: bool = False) -> str:
        """Formatted diagnostics of the last run."""
        return self.diagnostics.report(color=color)


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(
    source: str,
    path: str = "<input>",
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[AssemblerConfig] = None,
) -> bool:
    """
    Assemble source text in one call.

    Returns:
        True on success
    """
    return Assembler(config).assemble(source, path, output_path)


def assemble_file(
    filepath: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[AssemblerConfig] = None,
) -> bool:
    """Assemble a source file in one call."""
    return Assembler(config).assemble_file(filepath, output_path)
