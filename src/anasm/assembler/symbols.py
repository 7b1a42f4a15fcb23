"""
Symbol Table
============

Labels, variables and macros share a single namespace: one mapping from
name to a Label, Variable or Macro entry. A redefinition check is therefore
a single lookup, and a label can never shadow a macro of the same name.

| Kind     | Value used in expressions          | sizeof      |
|----------|------------------------------------|-------------|
| Label    | instruction index                  | error       |
| Variable | byte address in the memory segment | byte size   |
| Macro    | the stored word                    | error       |
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Union

from anasm.errors import DuplicateSymbolError, SourceLocation


@dataclass
class Label:
    """
    A named program position.

    Attributes:
        location: Where the label was declared
        address: Index of the next instruction (not a byte offset)
    """
    location: SourceLocation
    address: int

    kind = "label"

    @property
    def value(self) -> int:
        return self.address


@dataclass
class Variable:
    """
    A named region of the memory segment.

    Attributes:
        location: Where the variable was declared
        address: Offset of the first byte in the memory segment
        size: Total size in bytes
    """
    location: SourceLocation
    address: int
    size: int

    kind = "variable"

    @property
    def value(self) -> int:
        return self.address


@dataclass
class Macro:
    """A named compile-time constant word."""
    location: SourceLocation
    value: int

    kind = "macro"


Symbol = Union[Label, Variable, Macro]


class SymbolTable:
    """
    Flat name -> symbol mapping shared by both compiler passes.

    Example:
        table = SymbolTable()
        table.define("loop", Label(location, 3))
        table.lookup("loop").value  # 3
    """

    def __init__(self):
        self._symbols: dict[str, Symbol] = {}

    def define(self, name: str, symbol: Symbol) -> None:
        """
        Add a symbol.

        Raises:
            DuplicateSymbolError: If the name is already taken by any kind.
                The existing entry is left untouched.
        """
        self.check_unique(name, symbol.location)
        self._symbols[name] = symbol

    def check_unique(self, name: str, location: SourceLocation) -> None:
        """Raise DuplicateSymbolError if the name is already declared."""
        existing = self._symbols.get(name)
        if existing is not None:
            raise DuplicateSymbolError(name, location, existing.location)

    def lookup(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def labels(self) -> dict[str, Label]:
        return {n: s for n, s in self._symbols.items() if isinstance(s, Label)}

    def variables(self) -> dict[str, Variable]:
        return {n: s for n, s in self._symbols.items() if isinstance(s, Variable)}

    def macros(self) -> dict[str, Macro]:
        return {n: s for n, s in self._symbols.items() if isinstance(s, Macro)}

    def names(self) -> list[str]:
        return list(self._symbols)

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)
