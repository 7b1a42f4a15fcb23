"""
AVM Assembly Language Parser
============================

This module implements a recursive-descent parser for the AVM assembly
language. It pulls tokens from the lexer one at a time (a single token of
lookahead) and produces a Program: the flat list of statements of the
compilation unit, with included files spliced in place.

Statement Types
---------------
1. **Instruction**: a mnemonic, followed by an argument when the
   instruction table says it takes one
   ```
   psh 5
   add
   jmp loop
   ```

2. **Implicit push**: any bare expression is shorthand for ``psh``
   ```
   5          # same as: psh 5
   (+ a 1)    # same as: psh (+ a 1)
   ```

3. **LabelDecl**: ``.loop``

4. **VarDecl**: ``let NAME TYPE = init, init, ...`` where each init is an
   expression, a string, or ``value .. count``
   ```
   let msg char = "hello\\n", 0
   let buf byte = 0 .. 64
   ```

5. **MacroDecl**: ``mac SIZE = (* 4 16)``

6. **Embed**: ``embed logo "logo.bin"``

7. **include**: ``include "lib.anasm"`` parses the file and splices its
   statements into the current position.

Include Resolution
------------------
Paths starting with ``.`` are relative to the directory of the including
file. Other paths are tried relative to the working directory, then in each
include search path. A file that is already being parsed further up the
include chain is rejected as a circular include.

Error Recovery
--------------
A syntax error is recorded in the diagnostics collector, the offending
token is skipped and parsing continues with the next token, so one run
reports several errors. Lexical and include errors are fatal: they are
recorded and CompilationAborted is raised.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from anasm.errors import (
    AssemblerError,
    AssemblySyntaxError,
    CompilationAborted,
    FatalAssemblerError,
    IncludeError,
    InstructionError,
    LexicalError,
    SourceLocation,
)
from anasm.diagnostics import Diagnostics
from anasm.assembler.lexer import (
    INTEGER_TOKENS,
    OPERATOR_TOKENS,
    TYPE_TOKENS,
    Lexer,
    Token,
    TokenType,
)
from anasm.assembler.ast import (
    BinaryOp,
    ElementType,
    Embed,
    Expression,
    Fill,
    FloatLiteral,
    Identifier,
    Instruction,
    IntLiteral,
    LabelDecl,
    MacroDecl,
    Program,
    SizeOf,
    Statement,
    StringLiteral,
    TypeName,
    VarDecl,
)
from anasm.assembler.instructions import INSTRUCTIONS


logger = logging.getLogger(__name__)


INTEGER_BASES = {
    TokenType.DECIMAL: 10,
    TokenType.HEXADECIMAL: 16,
    TokenType.OCTAL: 8,
    TokenType.BINARY: 2,
}

# Integer literals may be written signed or unsigned
INTEGER_MIN = -(1 << 63)
INTEGER_MAX = (1 << 64) - 1

EXPRESSION_START = INTEGER_TOKENS | TYPE_TOKENS | {
    TokenType.FLOAT,
    TokenType.CHARACTER,
    TokenType.STRING,
    TokenType.LPAREN,
}


# =============================================================================
# Path Resolution
# =============================================================================

def resolve_path(
    path: str,
    including_file: str,
    search_paths: Sequence[Union[str, Path]] = (),
) -> Optional[Path]:
    """
    Resolve a path written in an include or embed statement.

    Args:
        path: The path as written in the source
        including_file: Name of the file containing the statement
        search_paths: Extra directories to try for non-relative paths

    Returns:
        The first existing candidate, or None
    """
    if path.startswith("."):
        base = Path(including_file).parent if including_file != "<input>" else Path()
        candidate = base / path
        return candidate if candidate.is_file() else None

    candidates = [Path(path)] + [Path(directory) / path for directory in search_paths]
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    return None


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses AVM assembly source into a Program.

    Usage:
        diagnostics = Diagnostics()
        parser = Parser(source, "main.anasm", diagnostics)
        program = parser.parse()

    Errors are reported through the diagnostics collector; check
    ``diagnostics.happened()`` after parsing.
    """

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        diagnostics: Optional[Diagnostics] = None,
        include_paths: Sequence[Union[str, Path]] = (),
        include_stack: Optional[list[tuple[str, Optional[SourceLocation]]]] = None,
    ):
        """
        Initialize the parser.

        Args:
            source: Source text to parse
            filename: Source filename for error reporting and relative paths
            diagnostics: Collector for errors and warnings
            include_paths: Directories searched by include
            include_stack: Files being parsed further up the include chain,
                           with the location that included each of them
        """
        self.filename = filename
        self._lexer = Lexer(source, filename)
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._include_paths = list(include_paths)
        self._token: Optional[Token] = None

        if include_stack is None:
            include_stack = []
            if filename != "<input>" and Path(filename).is_file():
                include_stack.append((str(Path(filename).resolve()), None))
        self._include_stack = include_stack

    def parse(self) -> Program:
        """
        Parse the whole unit.

        Returns:
            Program with includes spliced in

        Raises:
            CompilationAborted: After a fatal error was recorded
            TooManyErrors: If the diagnostics limit was exceeded
        """
        logger.debug("Parsing %s", self.filename)
        statements: list[Statement] = []

        try:
            self._fetch()

            while not self._check(TokenType.EOF):
                try:
                    statements.extend(self._parse_statement())
                except FatalAssemblerError:
                    raise
                except AssemblerError as e:
                    self._diagnostics.add(e)
                    # Skip the offending token and carry on
                    if not self._check(TokenType.EOF):
                        self._advance()

        except FatalAssemblerError as e:
            self._diagnostics.add(e)
            raise CompilationAborted() from e

        logger.debug("Parsed %d statements from %s", len(statements), self.filename)
        return Program(statements, self.filename)

    def parse_expression(self) -> Expression:
        """
        Parse a single expression that must make up the whole source.

        Errors are raised, not recorded.
        """
        self._fetch()
        expr = self._parse_expression()
        if not self._check(TokenType.EOF):
            raise AssemblySyntaxError(
                f"unexpected {self._describe(self._token)} after expression",
                self._token.location,
            )
        return expr

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _fetch(self) -> None:
        """Read the next token from the lexer into the lookahead slot."""
        token = self._lexer.next_token()
        if token.type is TokenType.ERROR:
            raise LexicalError(token.text, token.location)
        self._token = token

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._token
        if token.type is not TokenType.EOF:
            self._fetch()
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._token.type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, what: str) -> Token:
        """Consume a token of the given type or raise a syntax error."""
        if not self._check(token_type):
            raise AssemblySyntaxError(
                f"expected {what}, got {self._describe(self._token)}",
                self._token.location,
            )
        return self._advance()

    @staticmethod
    def _describe(token: Token) -> str:
        """Describe a token for error messages."""
        if token.type is TokenType.EOF:
            return "end of file"
        if token.type is TokenType.STRING:
            return "string literal"
        if token.type is TokenType.IDENTIFIER and token.text in INSTRUCTIONS:
            return f"instruction '{token.text}'"
        return f"'{token.text}'"

    def _starts_expression(self) -> bool:
        if self._check(TokenType.IDENTIFIER):
            return self._token.text not in INSTRUCTIONS
        return self._token.type in EXPRESSION_START

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> list[Statement]:
        """Parse one statement. An include yields many."""
        token = self._token

        if token.type is TokenType.IDENTIFIER:
            return [self._parse_instruction()]
        if token.type is TokenType.LABEL:
            self._advance()
            return [LabelDecl(token.location, token.text)]
        if token.type is TokenType.LET:
            return [self._parse_let()]
        if token.type is TokenType.MAC:
            return [self._parse_mac()]
        if token.type is TokenType.EMBED:
            return [self._parse_embed()]
        if token.type is TokenType.INCLUDE:
            return self._parse_include()
        if token.type in EXPRESSION_START:
            return [Instruction(token.location, "psh", self._parse_expression())]

        raise AssemblySyntaxError(
            f"expected statement, got {self._describe(token)}",
            token.location,
        )

    def _parse_instruction(self) -> Instruction:
        token = self._token
        info = INSTRUCTIONS.get(token.text)
        if info is None:
            raise InstructionError(
                f"unknown instruction '{token.text}'",
                token.location,
                hint=f"use 'psh {token.text}' to push the value of a symbol",
            )

        self._advance()
        argument = self._parse_expression() if info.has_arg else None
        return Instruction(token.location, token.text, argument)

    def _parse_name(self) -> Token:
        """Parse a declared name; instruction mnemonics are not allowed."""
        if self._check(TokenType.IDENTIFIER) and self._token.text in INSTRUCTIONS:
            raise AssemblySyntaxError(
                f"expected identifier, got instruction '{self._token.text}'",
                self._token.location,
            )
        return self._expect(TokenType.IDENTIFIER, "identifier")

    def _parse_type(self) -> ElementType:
        if not self._check(*TYPE_TOKENS):
            raise AssemblySyntaxError(
                f"expected type, got {self._describe(self._token)}",
                self._token.location,
                hint="types are byte, char, i16, i32, i64 and f64",
            )
        return ElementType(self._advance().text)

    def _parse_let(self) -> VarDecl:
        """let NAME TYPE = init (, init)*"""
        location = self._advance().location
        name = self._parse_name()
        element_type = self._parse_type()
        self._expect(TokenType.EQUALS, "'='")

        initializers = [self._parse_initializer()]
        while self._match(TokenType.COMMA):
            initializers.append(self._parse_initializer())

        return VarDecl(location, name.text, element_type, initializers)

    def _parse_initializer(self) -> Expression:
        """expr | expr .. expr"""
        value = self._parse_expression()
        if self._match(TokenType.FILL):
            count = self._parse_expression()
            return Fill(value.location, value, count)
        return value

    def _parse_mac(self) -> MacroDecl:
        """mac NAME = expr"""
        location = self._advance().location
        name = self._parse_name()
        self._expect(TokenType.EQUALS, "'='")
        return MacroDecl(location, name.text, self._parse_expression())

    def _parse_embed(self) -> Embed:
        """embed NAME "path" """
        location = self._advance().location
        name = self._parse_name()
        path = self._expect(TokenType.STRING, "file path string")
        return Embed(location, name.text, path.text)

    def _parse_include(self) -> list[Statement]:
        """include "path": parse the file and return its statements."""
        location = self._advance().location
        path_token = self._expect(TokenType.STRING, "file path string")
        path = path_token.text

        resolved = resolve_path(path, self.filename, self._include_paths)
        if resolved is None:
            raise IncludeError(
                path,
                "file not found",
                path_token.location,
                search_paths=[str(p) for p in self._include_paths],
            )

        key = str(resolved.resolve())
        for active, included_at in self._include_stack:
            if active == key:
                notes = []
                if included_at is not None:
                    notes.append((included_at, f"'{path}' first included here"))
                raise IncludeError(path, "circular include", path_token.location, notes=notes)

        try:
            source = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IncludeError(path, str(e), path_token.location) from e

        logger.debug("Including %s (%s)", resolved, location)

        parser = Parser(
            source,
            str(resolved),
            self._diagnostics,
            self._include_paths,
            self._include_stack + [(key, path_token.location)],
        )
        return parser.parse().statements

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        token = self._token

        if token.type in INTEGER_TOKENS:
            self._advance()
            return IntLiteral(token.location, self._integer_value(token))

        if token.type is TokenType.FLOAT:
            self._advance()
            return FloatLiteral(token.location, float(token.text))

        if token.type is TokenType.CHARACTER:
            self._advance()
            return IntLiteral(token.location, ord(token.text))

        if token.type is TokenType.STRING:
            self._advance()
            return StringLiteral(token.location, token.text)

        if token.type in TYPE_TOKENS:
            self._advance()
            return TypeName(token.location, ElementType(token.text))

        if token.type is TokenType.IDENTIFIER and token.text not in INSTRUCTIONS:
            self._advance()
            return Identifier(token.location, token.text)

        if token.type is TokenType.LPAREN:
            return self._parse_parenthesized()

        raise AssemblySyntaxError(
            f"expected expression, got {self._describe(token)}",
            token.location,
        )

    def _integer_value(self, token: Token) -> int:
        value = int(token.text, INTEGER_BASES[token.type])
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            raise AssemblySyntaxError(
                f"integer literal '{token.text}' does not fit in 64 bits",
                token.location,
            )
        return value

    def _parse_parenthesized(self) -> Expression:
        """(sizeof TYPE|NAME) or (OP expr*)"""
        open_paren = self._advance()

        if self._match(TokenType.SIZEOF):
            if self._check(*TYPE_TOKENS):
                type_token = self._advance()
                target = TypeName(type_token.location, ElementType(type_token.text))
            elif self._check(TokenType.IDENTIFIER):
                name = self._parse_name()
                target = Identifier(name.location, name.text)
            else:
                raise AssemblySyntaxError(
                    f"expected type or identifier after 'sizeof', "
                    f"got {self._describe(self._token)}",
                    self._token.location,
                )
            self._expect_closing(open_paren)
            return SizeOf(open_paren.location, target)

        if not self._check(*OPERATOR_TOKENS):
            raise AssemblySyntaxError(
                f"expected operator or 'sizeof' after '(', "
                f"got {self._describe(self._token)}",
                self._token.location,
            )

        operator = self._advance().text
        operands = []
        while self._starts_expression():
            operands.append(self._parse_expression())

        self._expect_closing(open_paren)
        return BinaryOp(open_paren.location, operator, operands)

    def _expect_closing(self, open_paren: Token) -> None:
        if not self._match(TokenType.RPAREN):
            raise AssemblySyntaxError(
                "expected matching ')'",
                self._token.location,
                notes=[(open_paren.location, "opened here")],
            )


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(
    source: str,
    filename: str = "<input>",
    diagnostics: Optional[Diagnostics] = None,
    include_paths: Sequence[Union[str, Path]] = (),
) -> Program:
    """
    Parse source text into a Program.

    Args:
        source: Source text
        filename: Name used in diagnostics and for relative includes
        diagnostics: Collector for errors (a new one if None)
        include_paths: Directories searched by include
    """
    return Parser(source, filename, diagnostics, include_paths).parse()


def parse_file(
    path: Union[str, Path],
    diagnostics: Optional[Diagnostics] = None,
    include_paths: Sequence[Union[str, Path]] = (),
) -> Program:
    """
    Read and parse a source file.

    Raises:
        OSError: If the file cannot be read
    """
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    return Parser(source, str(path), diagnostics, include_paths).parse()


def parse_expression(text: str) -> Expression:
    """
    Parse a standalone expression, raising on any error.

    Example:
        >>> parse_expression("(+ 1 2)")
        BinaryOp(location=..., operator='+', operands=[...])
    """
    return Parser(text).parse_expression()
