# =============================================================================
# test_lexer.py - Lexer Unit Tests
# =============================================================================
# Tests for the AVM assembly lexer.
#
# Test coverage includes:
#   - Identifiers, labels, keywords and element types
#   - Number formats: decimal, 0x, 0o, 0b, float, negative literals
#   - String and character literals with escape sequences
#   - Operators, delimiters and the fill operator
#   - Comments, whitespace and location tracking
#   - Error tokens for malformed input
# =============================================================================

import pytest
from anasm.assembler.lexer import Lexer, TokenType


# =============================================================================
# Helper Functions
# =============================================================================

def tokenize(source: str) -> list:
    """Tokenize and drop the trailing EOF token."""
    tokens = list(Lexer(source, "<test>").tokenize())
    return [t for t in tokens if t.type is not TokenType.EOF]


def single(source: str):
    """Tokenize source that must produce exactly one token."""
    tokens = tokenize(source)
    assert len(tokens) == 1, tokens
    return tokens[0]


def error_message(source: str) -> str:
    """Tokenize and return the message of the final error token."""
    tokens = list(Lexer(source, "<test>").tokenize())
    assert tokens[-1].type is TokenType.ERROR, tokens
    return tokens[-1].text


# =============================================================================
# Basic Token Recognition
# =============================================================================

class TestBasicTokens:
    """Test basic token recognition."""

    def test_empty_source(self):
        """Empty source produces only EOF."""
        tokens = list(Lexer("").tokenize())
        assert [t.type for t in tokens] == [TokenType.EOF]

    def test_whitespace_and_comments_only(self):
        assert tokenize("  \t\n# just a comment\n\n") == []

    def test_identifier(self):
        token = single("psh")
        assert token.type is TokenType.IDENTIFIER
        assert token.text == "psh"

    def test_identifier_with_digits_and_underscores(self):
        token = single("_buf_2")
        assert token.type is TokenType.IDENTIFIER
        assert token.text == "_buf_2"

    def test_label(self):
        """A label's text does not include the leading dot."""
        token = single(".entry")
        assert token.type is TokenType.LABEL
        assert token.text == "entry"

    @pytest.mark.parametrize("word,token_type", [
        ("let", TokenType.LET),
        ("mac", TokenType.MAC),
        ("include", TokenType.INCLUDE),
        ("embed", TokenType.EMBED),
        ("sizeof", TokenType.SIZEOF),
        ("byte", TokenType.TYPE_BYTE),
        ("char", TokenType.TYPE_CHAR),
        ("i16", TokenType.TYPE_I16),
        ("i32", TokenType.TYPE_I32),
        ("i64", TokenType.TYPE_I64),
        ("f64", TokenType.TYPE_F64),
    ])
    def test_keywords(self, word, token_type):
        assert single(word).type is token_type

    def test_keywords_are_case_sensitive(self):
        assert single("LET").type is TokenType.IDENTIFIER

    def test_statement_sequence(self):
        tokens = tokenize("let x i64 = 5")
        assert [t.type for t in tokens] == [
            TokenType.LET,
            TokenType.IDENTIFIER,
            TokenType.TYPE_I64,
            TokenType.EQUALS,
            TokenType.DECIMAL,
        ]


# =============================================================================
# Numbers
# =============================================================================

class TestNumbers:
    """Number literals keep their raw text for the parser to convert."""

    @pytest.mark.parametrize("text,token_type", [
        ("123", TokenType.DECIMAL),
        ("0", TokenType.DECIMAL),
        ("0x7F", TokenType.HEXADECIMAL),
        ("0XfF", TokenType.HEXADECIMAL),
        ("0o177", TokenType.OCTAL),
        ("0b1010", TokenType.BINARY),
        ("3.14", TokenType.FLOAT),
    ])
    def test_number_formats(self, text, token_type):
        token = single(text)
        assert token.type is token_type
        assert token.text == text

    def test_negative_decimal(self):
        token = single("-5")
        assert token.type is TokenType.DECIMAL
        assert token.text == "-5"

    def test_negative_hex(self):
        token = single("-0x10")
        assert token.type is TokenType.HEXADECIMAL
        assert token.text == "-0x10"

    def test_negative_float(self):
        token = single("-2.5")
        assert token.type is TokenType.FLOAT
        assert token.text == "-2.5"

    def test_minus_without_digit_is_operator(self):
        tokens = tokenize("(- a 1)")
        assert tokens[1].type is TokenType.MINUS

    def test_number_followed_by_fill(self):
        """'0..4' is a number, the fill operator and a number."""
        tokens = tokenize("0..4")
        assert [t.type for t in tokens] == [
            TokenType.DECIMAL, TokenType.FILL, TokenType.DECIMAL,
        ]

    def test_bad_hex_digit(self):
        assert error_message("0x1g") == "unexpected character 'g' in hexadecimal number"

    def test_missing_hex_digits(self):
        assert error_message("0x") == "expected hexadecimal digits"

    def test_bad_binary_digit(self):
        assert error_message("0b102") == "unexpected character '2' in binary number"

    def test_letter_after_decimal(self):
        assert error_message("12ab") == "unexpected character 'a' in decimal number"

    def test_float_with_two_points(self):
        assert error_message("1.2.3") == "unexpected character '.' in float number"


# =============================================================================
# Strings and Characters
# =============================================================================

class TestStringsAndCharacters:
    """String and character literals carry their decoded value."""

    def test_simple_string(self):
        token = single('"hello"')
        assert token.type is TokenType.STRING
        assert token.text == "hello"

    def test_empty_string(self):
        assert single('""').text == ""

    def test_string_escapes(self):
        assert single(r'"a\n\t\0\\\"\e"').text == "a\n\t\0\\\"\x1b"

    def test_string_keeps_hash(self):
        """A '#' inside a string does not start a comment."""
        assert single('"# not a comment"').text == "# not a comment"

    def test_unterminated_string(self):
        assert error_message('"abc') == "unterminated string literal"

    def test_unterminated_string_points_at_opening_quote(self):
        location = list(Lexer('psh "abc', "<test>").tokenize())[-1].location
        assert (location.line, location.column) == (1, 5)
        location = list(Lexer('\n  "abc\ndef"', "<test>").tokenize())[-1].location
        assert (location.line, location.column) == (2, 3)
        assert location.source_line == '  "abc'

    def test_string_cannot_span_lines(self):
        assert error_message('"abc\ndef"') == "unterminated string literal"

    def test_unknown_escape(self):
        assert error_message(r'"\q"') == "unknown escape sequence '\\q'"

    def test_character(self):
        token = single("'A'")
        assert token.type is TokenType.CHARACTER
        assert token.text == "A"

    def test_character_escape(self):
        assert single(r"'\n'").text == "\n"

    def test_escaped_quote_character(self):
        assert single(r"'\''").text == "'"

    def test_empty_character(self):
        assert error_message("''") == "empty character literal"

    def test_multiple_characters(self):
        assert error_message("'ab'") == "character literal must contain exactly one character"

    def test_multibyte_character(self):
        assert error_message("'é'") == "character literal must be a single byte"


# =============================================================================
# Operators and Delimiters
# =============================================================================

class TestOperators:
    """Operator and delimiter tokens."""

    @pytest.mark.parametrize("text,token_type", [
        ("+", TokenType.PLUS),
        ("-", TokenType.MINUS),
        ("*", TokenType.STAR),
        ("/", TokenType.SLASH),
        ("%", TokenType.PERCENT),
        ("^", TokenType.CARET),
        ("&", TokenType.AMPERSAND),
        ("|", TokenType.PIPE),
        (">>", TokenType.RSHIFT),
        ("<<", TokenType.LSHIFT),
        (",", TokenType.COMMA),
        ("=", TokenType.EQUALS),
        ("(", TokenType.LPAREN),
        (")", TokenType.RPAREN),
        ("..", TokenType.FILL),
    ])
    def test_operator(self, text, token_type):
        token = single(text)
        assert token.type is token_type
        assert token.text == text

    def test_single_angle_bracket(self):
        assert error_message("> 1") == "expected '>>' after '>'"

    def test_unexpected_character(self):
        assert error_message("psh 1 @") == "unexpected character '@'"

    def test_lone_dot(self):
        assert error_message(". entry") == "expected label name after '.'"


# =============================================================================
# Comments and Locations
# =============================================================================

class TestLocations:
    """Line and column tracking."""

    def test_comment_runs_to_end_of_line(self):
        tokens = tokenize("psh 1 # comment psh 2\nadd")
        assert [t.text for t in tokens] == ["psh", "1", "add"]

    def test_line_and_column(self):
        tokens = tokenize("\n  psh 42")
        assert tokens[0].location.line == 2
        assert tokens[0].location.column == 3
        assert tokens[1].location.column == 7

    def test_token_length(self):
        token = single("  0x1234")
        assert token.location.length == 6

    def test_location_carries_source_line(self):
        tokens = tokenize("nop\n  psh 1\n")
        assert tokens[1].location.source_line == "  psh 1"

    def test_location_filename(self):
        token = next(Lexer("nop", "prog.anasm").tokenize())
        assert token.location.filename == "prog.anasm"
        assert str(token.location) == "prog.anasm:1:1"

    def test_error_stops_tokenizing(self):
        tokens = list(Lexer("nop @ nop").tokenize())
        assert tokens[-1].type is TokenType.ERROR
        assert len(tokens) == 2

    def test_error_location_points_at_character(self):
        tokens = list(Lexer("nop  @").tokenize())
        assert tokens[-1].location.column == 6
