"""
Constant Expression Evaluator
=============================

This module evaluates the constant expressions that appear in macro values,
variable initializers and instruction arguments. Everything happens at
assemble time; the result is always a single 64-bit word.

Words
-----
A word is an unsigned 64-bit integer. Integer and float values share it:

- Integer literals are stored two's complement, so ``-1`` becomes
  ``0xFFFFFFFFFFFFFFFF``.
- Float literals are stored as their IEEE-754 double bit pattern, so
  ``3.14`` becomes ``0x40091EB851EB851F``, not ``3``.
- Characters are their byte value.

Operators
---------
Operator forms are prefix and n-ary: ``(+ a b c)`` is ``(a + b) + c``. At
least two operands are required.

| Operator | Meaning                                              |
|----------|------------------------------------------------------|
| + - *    | Wrap-around arithmetic                               |
| / %      | Unsigned division and remainder; zero divisor fails  |
| & |      | Bitwise AND and OR                                   |
| << >>    | Logical shifts; shifting by 64 or more gives 0       |
| ^        | Floating-point power, converted back to an integer   |

Symbols
-------
Identifiers resolve through the shared symbol table: labels to their
instruction index, variables to their memory address, macros to their
value. ``(sizeof NAME)`` is the byte size of a variable and
``(sizeof TYPE)`` the width of an element type.

Code generation runs in source order, so a macro or variable must be
declared before it is used. Labels are all known before code generation
starts and may be referenced anywhere.

Example Usage
-------------
>>> from anasm.assembler.expressions import ExpressionEvaluator
>>> from anasm.assembler.parser import parse_expression
>>> from anasm.assembler.symbols import SymbolTable
>>> evaluator = ExpressionEvaluator(SymbolTable())
>>> evaluator.evaluate(parse_expression("(+ 1 2 3)"))
6
"""

import math
import struct
from typing import Optional

from anasm.errors import (
    ExpressionError,
    SourceLocation,
    UndefinedSymbolError,
)
from anasm.assembler.ast import (
    BinaryOp,
    Expression,
    Fill,
    FloatLiteral,
    Identifier,
    IntLiteral,
    SizeOf,
    StringLiteral,
    TypeName,
)
from anasm.assembler.symbols import SymbolTable, Variable


WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1


def to_word(value: int) -> int:
    """Wrap an integer into an unsigned 64-bit word."""
    return value & WORD_MASK


def float_to_word(value: float) -> int:
    """Reinterpret a double as the word holding its bit pattern."""
    return struct.unpack(">Q", struct.pack(">d", value))[0]


def word_to_float(word: int) -> float:
    """Reinterpret a word's bit pattern as a double."""
    return struct.unpack(">d", struct.pack(">Q", to_word(word)))[0]


class ExpressionEvaluator:
    """
    Evaluates expression nodes against a symbol table.

    Attributes:
        symbols: The shared symbol table
        pending: Names declared later in the source, with the location of
                 their declaration; used to explain forward references
    """

    def __init__(
        self,
        symbols: SymbolTable,
        pending: Optional[dict[str, SourceLocation]] = None,
    ):
        self.symbols = symbols
        self.pending = pending if pending is not None else {}

    def evaluate(self, expr: Expression) -> int:
        """
        Evaluate an expression to a word.

        Raises:
            ExpressionError: For invalid operations or misplaced value forms
            UndefinedSymbolError: For names that are not declared (yet)
        """
        match expr:
            case IntLiteral(value=value):
                return to_word(value)
            case FloatLiteral(value=value):
                return float_to_word(value)
            case Identifier():
                return self._resolve_identifier(expr)
            case SizeOf():
                return self._evaluate_sizeof(expr)
            case BinaryOp():
                return self._evaluate_operator(expr)
            case StringLiteral():
                raise ExpressionError(
                    "string literal is only allowed as a 'let' initializer",
                    expr.location,
                )
            case Fill():
                raise ExpressionError(
                    "fill expression is only allowed as a 'let' initializer",
                    expr.location,
                )
            case TypeName(type=element_type):
                raise ExpressionError(
                    f"type '{element_type}' is not a value",
                    expr.location,
                    hint=f"use (sizeof {element_type}) for its size",
                )
            case _:
                raise ExpressionError(
                    f"cannot evaluate {type(expr).__name__}", expr.location
                )

    # =========================================================================
    # Operators
    # =========================================================================

    def _evaluate_operator(self, expr: BinaryOp) -> int:
        count = len(expr.operands)
        if count < 2:
            raise ExpressionError(
                f"'{expr.operator}' expects at least 2 arguments, got {count}",
                expr.location,
            )

        result = self.evaluate(expr.operands[0])
        for operand in expr.operands[1:]:
            value = self.evaluate(operand)
            result = self._apply(expr.operator, result, value, operand.location)

        return result

    def _apply(
        self,
        operator: str,
        left: int,
        right: int,
        location: SourceLocation,
    ) -> int:
        """Apply one binary step of a folded operator to two words."""
        if operator == "+":
            return to_word(left + right)
        if operator == "-":
            return to_word(left - right)
        if operator == "*":
            return to_word(left * right)
        if operator in ("/", "%"):
            if right == 0:
                kind = "division" if operator == "/" else "modulo"
                raise ExpressionError(f"{kind} by zero", location)
            return left // right if operator == "/" else left % right
        if operator == "&":
            return left & right
        if operator == "|":
            return left | right
        if operator == "<<":
            return 0 if right >= WORD_BITS else to_word(left << right)
        if operator == ">>":
            return 0 if right >= WORD_BITS else left >> right
        if operator == "^":
            return self._power(left, right, location)

        raise ExpressionError(f"unknown operator '{operator}'", location)

    def _power(self, base: int, exponent: int, location: SourceLocation) -> int:
        try:
            result = float(base) ** float(exponent)
        except OverflowError:
            raise ExpressionError("result of '^' is out of range", location) from None

        if not math.isfinite(result) or not 0 <= result < 2.0 ** WORD_BITS:
            raise ExpressionError("result of '^' is out of range", location)

        return to_word(int(result))

    # =========================================================================
    # Symbols
    # =========================================================================

    def _evaluate_sizeof(self, expr: SizeOf) -> int:
        target = expr.target
        if isinstance(target, TypeName):
            return target.type.size

        symbol = self.symbols.lookup(target.name)
        if symbol is None:
            self._undefined(target)

        if not isinstance(symbol, Variable):
            raise ExpressionError(
                f"sizeof cannot be applied to {symbol.kind} '{target.name}'",
                target.location,
                notes=[(symbol.location, f"'{target.name}' defined here")],
            )

        return symbol.size

    def _resolve_identifier(self, expr: Identifier) -> int:
        symbol = self.symbols.lookup(expr.name)
        if symbol is None:
            self._undefined(expr)
        return to_word(symbol.value)

    def _undefined(self, expr: Identifier) -> None:
        """Raise the error for a name missing from the symbol table."""
        later = self.pending.get(expr.name)
        if later is not None:
            raise UndefinedSymbolError(
                expr.name,
                location=expr.location,
                message=f"'{expr.name}' used before its declaration",
                notes=[(later, f"'{expr.name}' declared here")],
            )

        raise UndefinedSymbolError(
            expr.name,
            location=expr.location,
            similar_symbols=self._find_similar_symbols(expr.name),
        )

    def _find_similar_symbols(self, name: str) -> list[str]:
        """
        Find symbols with similar names for error hints.

        Uses simple edit distance heuristic.
        """
        name_lower = name.lower()
        similar = []

        for sym in self.symbols:
            sym_lower = sym.lower()
            if sym_lower == name_lower or (
                abs(len(sym) - len(name)) <= 1
                and self._edit_distance(name_lower, sym_lower) <= 2
            ):
                similar.append(sym)

        return similar[:3]

    @staticmethod
    def _edit_distance(s1: str, s2: str) -> int:
        """Calculate Levenshtein edit distance between two strings."""
        if len(s1) < len(s2):
            s1, s2 = s2, s1

        distances = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1):
            new_distances = [i + 1]
            for j, c2 in enumerate(s2):
                if c1 == c2:
                    new_distances.append(distances[j])
                else:
                    new_distances.append(1 + min(
                        distances[j], distances[j + 1], new_distances[-1]
                    ))
            distances = new_distances

        return distances[-1]


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate_expression(expr: Expression, symbols: Optional[SymbolTable] = None) -> int:
    """
    Evaluate a single expression against an optional symbol table.

    Returns:
        The expression value as an unsigned 64-bit word
    """
    if symbols is None:
        symbols = SymbolTable()
    return ExpressionEvaluator(symbols).evaluate(expr)
