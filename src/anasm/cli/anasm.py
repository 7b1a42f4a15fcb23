"""
anasm - AVM Assembler Command-Line Interface
============================================

Assembles AVM source files into executables, and with ``-d`` turns an
executable back into assembly text.

Usage Examples
--------------
Basic assembly:
    $ anasm hello.anasm            # writes ./hello

With output file:
    $ anasm hello.anasm -o build/hello

Plain artifact without the interpreter line:
    $ anasm --no-executable hello.anasm

With include paths:
    $ anasm -I lib -I vendor/std main.anasm

Disassembly:
    $ anasm -d hello               # writes ./hello.anasm
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from anasm import __version__
from anasm.assembler import Assembler
from anasm.avm import AvmExecutable
from anasm.config import APP_NAME, DEFAULT_MAX_ERRORS, SOURCE_EXTENSION, AssemblerConfig
from anasm.disassembler import Disassembler
from anasm.cli.errors import ExitCode, handle_cli_exception


def default_output_path(input_file: Path, disasm: bool = False) -> Path:
    """
    Output path used when -o is not given.

    The result is a bare file name, so it lands in the current directory.
    Assembling strips the extension (or appends ``.out`` if there is none);
    disassembling appends ``.anasm`` (or ``.out`` if the input already ends
    in ``.anasm``).
    """
    name = Path(input_file.name)

    if disasm:
        if name.suffix == SOURCE_EXTENSION:
            return Path(f"{name}.out")
        return Path(f"{name}{SOURCE_EXTENSION}")

    if not name.suffix:
        return Path(f"{name}.out")
    return name.with_suffix("")


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: input name without extension)",
)
@click.option(
    "-e", "--executable/--no-executable",
    default=True,
    help="Write the #!/usr/bin/avm line and set execute permissions. Default: enabled.",
)
@click.option(
    "--no-warnings",
    is_flag=True,
    help="Do not report warnings",
)
@click.option(
    "-m", "--max-errors",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_ERRORS,
    show_default=True,
    help="Errors and notes reported before assembly is aborted",
)
@click.option(
    "-I", "--include",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Add include/embed search path (can be repeated)",
)
@click.option(
    "-d", "--disasm",
    is_flag=True,
    help="Disassemble INPUT_FILE instead of assembling it",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name=APP_NAME)
def main(
    input_file: Path,
    output: Optional[Path],
    executable: bool,
    no_warnings: bool,
    max_errors: int,
    include: tuple[Path, ...],
    disasm: bool,
    verbose: bool,
) -> None:
    """
    Assemble AVM source code.

    INPUT_FILE is the assembly source (.anasm), or with -d an AVM executable.

    \b
    Examples:
        anasm hello.anasm              # Outputs ./hello
        anasm hello.anasm -o out/prog  # Specify output file
        anasm -I lib/ main.anasm       # Add include path
        anasm -d hello                 # Outputs ./hello.anasm
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    output_file = output if output is not None else default_output_path(input_file, disasm)

    if disasm:
        try:
            code = _disassemble(input_file, output_file, verbose)
        except Exception as e:
            handle_cli_exception(e, verbose=verbose, error_type="Disassembly")
        sys.exit(code)

    config = AssemblerConfig(
        max_errors=max_errors,
        executable=executable,
        show_warnings=not no_warnings,
        include_paths=list(include),
    )

    try:
        code = _assemble(input_file, output_file, config, verbose)
    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")
    sys.exit(code)


def _assemble(input_file: Path, output_file: Path, config: AssemblerConfig, verbose: bool) -> ExitCode:
    asm = Assembler(config)

    if verbose:
        click.echo(f"Assembling {input_file}...")

    ok = asm.assemble_file(input_file, output_file)

    # Warnings are printed on success too; click drops the colors off a tty
    if asm.diagnostics.diagnostics or asm.diagnostics.truncated:
        click.echo(asm.report(color=True), err=True)

    if not ok:
        return ExitCode.BUILD_ERROR

    if verbose:
        exe = asm.executable
        click.echo(
            f"Wrote {len(exe.program)} instructions and {len(exe.memory)} bytes "
            f"of memory to {output_file}"
        )
        click.echo(f"Entry point: {exe.entry_point}")
    return ExitCode.SUCCESS


def _disassemble(input_file: Path, output_file: Path, verbose: bool) -> ExitCode:
    if verbose:
        click.echo(f"Disassembling {input_file}...")

    exe = AvmExecutable.read(input_file)
    text = Disassembler().disassemble_to_text(exe, name=input_file.name)
    output_file.write_text(text, encoding="utf-8")

    if verbose:
        click.echo(f"Wrote {len(exe.program)} instructions to {output_file}")
    return ExitCode.SUCCESS


if __name__ == "__main__":
    main()
