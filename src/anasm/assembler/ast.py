"""
Abstract Syntax Tree
====================

Node types produced by the parser and consumed by the compiler passes.

The node set is closed: every pass dispatches over it with ``match`` and
falls through to an error for anything it does not handle, so adding a node
kind means visiting each pass.

Statements
----------
- Instruction: ``psh 5``, ``add``, or a bare expression (implicit ``psh``)
- LabelDecl: ``.loop``
- MacroDecl: ``mac size = 16``
- VarDecl: ``let buf byte = 0 .. 16``
- Embed: ``embed image "logo.bin"``

Expressions
-----------
- IntLiteral, FloatLiteral, StringLiteral
- Identifier: a label, variable or macro name
- TypeName: an element type, valid only inside sizeof
- BinaryOp: ``(+ a b c)``, n-ary and left-folded
- SizeOf: ``(sizeof i64)``, ``(sizeof buf)``
- Fill: ``value .. count``, valid only as a let initializer
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from anasm.errors import SourceLocation


# =============================================================================
# Element Types
# =============================================================================

class ElementType(Enum):
    """Element types of variables, with their width in bytes."""
    BYTE = "byte"
    CHAR = "char"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    F64 = "f64"

    @property
    def size(self) -> int:
        return _ELEMENT_SIZES[self]

    def __str__(self) -> str:
        return self.value


_ELEMENT_SIZES = {
    ElementType.BYTE: 1,
    ElementType.CHAR: 1,
    ElementType.I16: 2,
    ElementType.I32: 4,
    ElementType.I64: 8,
    ElementType.F64: 8,
}


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class Node:
    """Base class for all nodes. Every node has a source location."""
    location: SourceLocation


@dataclass
class Statement(Node):
    pass


@dataclass
class Expression(Node):
    pass


# =============================================================================
# Expressions
# =============================================================================

@dataclass
class IntLiteral(Expression):
    """Integer literal, already converted from its base. May be negative."""
    value: int


@dataclass
class FloatLiteral(Expression):
    value: float


@dataclass
class StringLiteral(Expression):
    """String literal with escapes decoded."""
    value: str


@dataclass
class Identifier(Expression):
    name: str


@dataclass
class TypeName(Expression):
    type: ElementType


@dataclass
class BinaryOp(Expression):
    """
    N-ary operator application.

    Attributes:
        operator: One of + - * / % ^ & | >> <<
        operands: Operand expressions; at least two are needed to evaluate,
                  which is checked by the evaluator rather than the parser
    """
    operator: str
    operands: list[Expression] = field(default_factory=list)


@dataclass
class SizeOf(Expression):
    target: Union[Identifier, TypeName]


@dataclass
class Fill(Expression):
    """``value .. count``: value repeated count times."""
    value: Expression
    count: Expression


# =============================================================================
# Statements
# =============================================================================

@dataclass
class Instruction(Statement):
    """
    Machine instruction.

    Attributes:
        name: Mnemonic, as found in the instruction table
        argument: Argument expression, present exactly when the
                  instruction takes one
    """
    name: str
    argument: Optional[Expression] = None


@dataclass
class LabelDecl(Statement):
    name: str


@dataclass
class MacroDecl(Statement):
    name: str
    value: Expression


@dataclass
class VarDecl(Statement):
    """
    Variable declaration.

    Attributes:
        name: Variable name
        element_type: Type of each element
        initializers: Scalar expressions, Fill nodes or string literals
    """
    name: str
    element_type: ElementType
    initializers: list[Expression] = field(default_factory=list)


@dataclass
class Embed(Statement):
    """
    Variable backed by the bytes of a file.

    Attributes:
        name: Variable name
        path: File path as written in the source
    """
    name: str
    path: str


@dataclass
class Program:
    """
    A compilation unit with all includes spliced in, in source order.

    Attributes:
        statements: Flattened statement list
        filename: Name of the top-level source
    """
    statements: list[Statement] = field(default_factory=list)
    filename: str = "<input>"

    def instruction_count(self) -> int:
        return sum(1 for s in self.statements if isinstance(s, Instruction))
