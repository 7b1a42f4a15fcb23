"""
anasm Configuration
===================

Application constants and the options that control one assembler run.

The command-line front-end builds an AssemblerConfig from its options;
library users can construct one directly:

    >>> from anasm.config import AssemblerConfig
    >>> from anasm.assembler import Assembler
    >>> config = AssemblerConfig(max_errors=3, executable=False)
    >>> Assembler(config).assemble_file("prog.anasm", "prog")
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


APP_NAME = "anasm"

VERSION_MAJOR = 1
VERSION_MINOR = 13
VERSION_PATCH = 0

VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

# Version written into the artifact header; the AVM checks major and minor.
# The patch byte repeats the minor version, as the reference writer does.
FORMAT_VERSION = (VERSION_MAJOR, VERSION_MINOR, VERSION_MINOR)

# Largest memory segment a program may declare
MAX_MEMORY_SIZE = 1 << 30

SOURCE_EXTENSION = ".anasm"

DEFAULT_MAX_ERRORS = 8

ENTRY_LABEL = "entry"


@dataclass
class AssemblerConfig:
    """
    Options for a single assembler run.

    Attributes:
        max_errors: Errors and notes recorded before the run is aborted
        executable: Write the interpreter line and set the execute bits
        show_warnings: Report warnings (they never fail the run)
        include_paths: Extra directories searched by include and embed
        entry_label: Label whose address becomes the entry point
    """
    max_errors: int = DEFAULT_MAX_ERRORS
    executable: bool = True
    show_warnings: bool = True
    include_paths: list[Union[str, Path]] = field(default_factory=list)
    entry_label: str = ENTRY_LABEL
