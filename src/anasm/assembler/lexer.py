"""
AVM Assembly Language Lexer
===========================

This module implements a lexer (tokenizer) for the AVM assembly language.
It converts source text into a stream of tokens that the parser consumes
one at a time.

Token Types
-----------
- IDENTIFIER: Mnemonics and symbol names
- LABEL: Label declarations (.name)
- Numbers: decimal, hexadecimal, octal, binary and float literals
- STRING: Double-quoted strings ("hello")
- CHARACTER: Single-quoted characters ('A')
- Keywords: let, mac, include, embed, sizeof
- Types: byte, char, i16, i32, i64, f64
- Operators: + - * / % ^ & | >> <<
- Delimiters: , = ( ) ..
- EOF: End of input
- ERROR: Malformed input; the token text is the message

Number Formats
--------------
| Format      | Prefix   | Example  | Value |
|-------------|----------|----------|-------|
| Decimal     | (none)   | 123, -5  | 123   |
| Hexadecimal | 0x       | 0x7F     | 127   |
| Octal       | 0o       | 0o177    | 127   |
| Binary      | 0b       | 0b1010   | 10    |
| Float       | (none)   | 3.14     | 3.14  |

A ``-`` is part of a literal only when a digit follows it directly;
otherwise it is the subtraction operator.

Errors
------
The lexer never raises. Malformed input produces an ERROR token whose text
is the diagnostic message, and ``tokenize()`` stops after it. The parser
treats an error token as fatal for the whole unit.

Example
-------
>>> from anasm.assembler.lexer import Lexer
>>> lexer = Lexer(".entry psh 0x41 # push 'A'", "example.anasm")
>>> for token in lexer.tokenize():
...     print(token)
Token(LABEL, 'entry', 1:1)
Token(IDENTIFIER, 'psh', 1:8)
Token(HEXADECIMAL, '0x41', 1:12)
Token(EOF, 1:27)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator
import string

from anasm.errors import SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the AVM assembly language."""

    # Structural tokens
    EOF = auto()
    ERROR = auto()

    # Names
    IDENTIFIER = auto()   # Mnemonics and symbol names
    LABEL = auto()        # .name

    # Literals
    DECIMAL = auto()
    HEXADECIMAL = auto()
    OCTAL = auto()
    BINARY = auto()
    FLOAT = auto()
    CHARACTER = auto()    # 'x', text holds the decoded character
    STRING = auto()       # "...", text holds the decoded string

    # Delimiters
    COMMA = auto()        # ,
    EQUALS = auto()       # =
    LPAREN = auto()       # (
    RPAREN = auto()       # )
    FILL = auto()         # ..

    # Keywords
    LET = auto()
    MAC = auto()
    INCLUDE = auto()
    EMBED = auto()
    SIZEOF = auto()

    # Element types
    TYPE_BYTE = auto()
    TYPE_CHAR = auto()
    TYPE_I16 = auto()
    TYPE_I32 = auto()
    TYPE_I64 = auto()
    TYPE_F64 = auto()

    # Operators
    PLUS = auto()         # +
    MINUS = auto()        # -
    STAR = auto()         # *
    SLASH = auto()        # /
    PERCENT = auto()      # %
    CARET = auto()        # ^
    AMPERSAND = auto()    # &
    PIPE = auto()         # |
    RSHIFT = auto()       # >>
    LSHIFT = auto()       # <<


INTEGER_TOKENS = frozenset({
    TokenType.DECIMAL,
    TokenType.HEXADECIMAL,
    TokenType.OCTAL,
    TokenType.BINARY,
})

TYPE_TOKENS = frozenset({
    TokenType.TYPE_BYTE,
    TokenType.TYPE_CHAR,
    TokenType.TYPE_I16,
    TokenType.TYPE_I32,
    TokenType.TYPE_I64,
    TokenType.TYPE_F64,
})

OPERATOR_TOKENS = frozenset({
    TokenType.PLUS,
    TokenType.MINUS,
    TokenType.STAR,
    TokenType.SLASH,
    TokenType.PERCENT,
    TokenType.CARET,
    TokenType.AMPERSAND,
    TokenType.PIPE,
    TokenType.RSHIFT,
    TokenType.LSHIFT,
})

KEYWORDS = {
    "let": TokenType.LET,
    "mac": TokenType.MAC,
    "include": TokenType.INCLUDE,
    "embed": TokenType.EMBED,
    "sizeof": TokenType.SIZEOF,
    "byte": TokenType.TYPE_BYTE,
    "char": TokenType.TYPE_CHAR,
    "i16": TokenType.TYPE_I16,
    "i32": TokenType.TYPE_I32,
    "i64": TokenType.TYPE_I64,
    "f64": TokenType.TYPE_F64,
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from the source code.

    Attributes:
        type: The TokenType classification
        text: Raw lexeme for names and numbers, the decoded value for
              strings and characters, the message for error tokens
        location: Where the token starts, its length and source line
    """
    type: TokenType
    text: str
    location: SourceLocation

    def __repr__(self) -> str:
        where = f"{self.location.line}:{self.location.column}"
        if self.type is TokenType.EOF:
            return f"Token({self.type.name}, {where})"
        return f"Token({self.type.name}, {self.text!r}, {where})"


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes AVM assembly source code.

    Usage:
        lexer = Lexer(source_text, filename)
        token = lexer.next_token()      # one at a time
        tokens = list(lexer.tokenize())  # or all at once

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_"

    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    WHITESPACE = " \t\r\n\v\f"

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "%": TokenType.PERCENT,
        "^": TokenType.CARET,
        "&": TokenType.AMPERSAND,
        "|": TokenType.PIPE,
        ",": TokenType.COMMA,
        "=": TokenType.EQUALS,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
    }

    ESCAPE_SEQUENCES = {
        "0": "\0",
        "a": "\a",
        "b": "\b",
        "e": "\x1b",
        "f": "\f",
        "n": "\n",
        "r": "\r",
        "t": "\t",
        "v": "\v",
        "\\": "\\",
        '"': '"',
        "'": "'",
    }

    # prefix letter -> (token type, digit set, name used in messages)
    NUMBER_PREFIXES = {
        "x": (TokenType.HEXADECIMAL, string.hexdigits, "hexadecimal"),
        "o": (TokenType.OCTAL, string.octdigits, "octal"),
        "b": (TokenType.BINARY, "01", "binary"),
    }

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self._lines = source.split("\n")

        self._pos = 0
        self._line = 1
        self._column = 1

        # Where the current token started
        self._start_pos = 0
        self._start_line = 1
        self._start_column = 1

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens until the end of input or the first error.

        The final token yielded is either EOF or ERROR.
        """
        while True:
            token = self.next_token()
            yield token
            if token.type in (TokenType.EOF, TokenType.ERROR):
                return

    def next_token(self) -> Token:
        """Scan and return the next token."""
        self._skip_whitespace_and_comments()

        self._start_pos = self._pos
        self._start_line = self._line
        self._start_column = self._column

        if self._at_end():
            return self._make_token(TokenType.EOF, "")

        return self._scan_token()

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """
        Look at character at current position + offset without advancing.

        Returns empty string if past end of source.
        """
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line and column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        """Consume next character if it matches expected."""
        if self._peek() == expected:
            self._advance()
            return True
        return False

    def _is_ident_char(self, char: str) -> bool:
        # '' in a string is always True, so check for end of input first
        return bool(char) and char in self.IDENT_CHARS

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _source_line(self, line: int) -> str:
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1].rstrip("\r")
        return ""

    def _make_token(self, token_type: TokenType, text: str) -> Token:
        """Create a token spanning from the token start to the current position."""
        location = SourceLocation(
            self.filename,
            self._start_line,
            self._start_column,
            max(self._pos - self._start_pos, 1),
            self._source_line(self._start_line),
        )
        return Token(token_type, text, location)

    def _error(self, message: str, at_start: bool = False) -> Token:
        """
        Create an error token located at the current character, or at the
        start of the current token when at_start is set.
        """
        if at_start:
            line, column = self._start_line, self._start_column
        else:
            line, column = self._line, self._column
        location = SourceLocation(
            self.filename,
            line,
            column,
            1,
            self._source_line(line),
        )
        return Token(TokenType.ERROR, message, location)

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()
            if char in self.WHITESPACE:
                self._advance()
            elif char == "#":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
            else:
                return

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_word()

        if char.isdigit() or (char == "-" and self._peek(1).isdigit()):
            return self._scan_number()

        if char == ".":
            return self._scan_dot()

        if char == '"':
            return self._scan_string()

        if char == "'":
            return self._scan_char()

        if char in "<>":
            self._advance()
            if not self._match(char):
                return self._error(f"expected '{char}{char}' after '{char}'")
            token_type = TokenType.LSHIFT if char == "<" else TokenType.RSHIFT
            return self._make_token(token_type, char * 2)

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(self.SINGLE_CHAR_TOKENS[char], char)

        return self._error(f"unexpected character '{char}'")

    def _scan_word(self) -> Token:
        """Scan an identifier or keyword."""
        chars = []
        while self._is_ident_char(self._peek()):
            chars.append(self._advance())

        word = "".join(chars)
        return self._make_token(KEYWORDS.get(word, TokenType.IDENTIFIER), word)

    def _scan_dot(self) -> Token:
        """Scan a label declaration (.name) or the fill operator (..)."""
        self._advance()  # consume .

        if self._match("."):
            return self._make_token(TokenType.FILL, "..")

        if not self._is_ident_char(self._peek()):
            if self._at_end() or self._peek() in self.WHITESPACE:
                return self._error("expected label name after '.'")
            return self._error(f"unexpected character '{self._peek()}' in label name")

        chars = []
        while self._is_ident_char(self._peek()):
            chars.append(self._advance())

        return self._make_token(TokenType.LABEL, "".join(chars))

    def _scan_number(self) -> Token:
        """
        Scan a numeric literal.

        The token text is the raw lexeme including sign and prefix, so the
        parser can convert it with int(text, base).
        """
        chars = []
        if self._peek() == "-":
            chars.append(self._advance())

        prefix = self._peek(1).lower() if self._peek() == "0" else ""
        if prefix in self.NUMBER_PREFIXES:
            token_type, digits, kind = self.NUMBER_PREFIXES[prefix]
            chars.append(self._advance())  # 0
            chars.append(self._advance())  # x, o or b
            return self._scan_digits(chars, token_type, digits, kind)

        while self._peek().isdigit():
            chars.append(self._advance())

        if self._peek() == "." and self._peek(1).isdigit():
            chars.append(self._advance())  # .
            return self._scan_digits(chars, TokenType.FLOAT, string.digits, "float")

        if self._is_ident_char(self._peek()):
            return self._error(
                f"unexpected character '{self._peek()}' in decimal number"
            )

        return self._make_token(TokenType.DECIMAL, "".join(chars))

    def _scan_digits(
        self,
        chars: list[str],
        token_type: TokenType,
        digits: str,
        kind: str,
    ) -> Token:
        """Scan the digit run after a prefix or decimal point."""
        count = 0
        while self._peek() and self._peek() in digits:
            chars.append(self._advance())
            count += 1

        if self._is_ident_char(self._peek()) or (
            token_type is TokenType.FLOAT and self._peek() == "."
            and self._peek(1).isdigit()
        ):
            return self._error(f"unexpected character '{self._peek()}' in {kind} number")

        if count == 0:
            return self._error(f"expected {kind} digits")

        return self._make_token(token_type, "".join(chars))

    def _scan_escape(self) -> str | Token:
        """
        Decode an escape sequence after the backslash.

        Returns the decoded character, or an error token.
        """
        if self._at_end() or self._peek() == "\n":
            return self._error("unterminated escape sequence")

        char = self._peek()
        if char not in self.ESCAPE_SEQUENCES:
            return self._error(f"unknown escape sequence '\\{char}'")

        self._advance()
        return self.ESCAPE_SEQUENCES[char]

    def _scan_string(self) -> Token:
        """Scan a double-quoted string literal with escapes decoded."""
        self._advance()  # consume opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(TokenType.STRING, "".join(chars))

            if char == "\n":
                break

            if char == "\\":
                self._advance()
                decoded = self._scan_escape()
                if isinstance(decoded, Token):
                    return decoded
                chars.append(decoded)
            else:
                chars.append(self._advance())

        return self._error("unterminated string literal", at_start=True)

    def _scan_char(self) -> Token:
        """Scan a single-quoted character literal."""
        self._advance()  # consume opening '

        if self._at_end() or self._peek() == "\n":
            return self._error("unterminated character literal")

        if self._peek() == "'":
            return self._error("empty character literal")

        if self._peek() == "\\":
            self._advance()
            decoded = self._scan_escape()
            if isinstance(decoded, Token):
                return decoded
        else:
            decoded = self._advance()

        if len(decoded.encode("utf-8")) != 1:
            return self._error("character literal must be a single byte")

        if self._peek() != "'":
            if self._at_end() or self._peek() == "\n":
                return self._error("unterminated character literal")
            return self._error("character literal must contain exactly one character")
        self._advance()  # consume closing '

        return self._make_token(TokenType.CHARACTER, decoded)
