"""TOG Lexer Tests.

Token kinds, literal payloads, positions, comments, and lexical errors.
"""

import pytest

from tog.errors import ErrorKind, LexError
from tog.lexer import TokenType, tokenize


def types(source):
    return [t.type for t in tokenize(source)]


class TestTokens:
    """Keywords, identifiers and punctuation."""

    def test_keywords_and_identifiers(self):
        toks = tokenize("fn let struct enum trait impl for in if else while return match break continue")
        assert [t.type for t in toks[:-1]] == [
            TokenType.FN, TokenType.LET, TokenType.STRUCT, TokenType.ENUM,
            TokenType.TRAIT, TokenType.IMPL, TokenType.FOR, TokenType.IN,
            TokenType.IF, TokenType.ELSE, TokenType.WHILE, TokenType.RETURN,
            TokenType.MATCH, TokenType.BREAK, TokenType.CONTINUE,
        ]
        assert toks[-1].type == TokenType.EOF

    def test_type_names_and_self_are_identifiers(self):
        toks = tokenize("int float string bool array self _")
        assert all(t.type == TokenType.IDENT for t in toks[:-1])

    def test_double_colon_is_one_token(self):
        assert types("Option::Some") == [
            TokenType.IDENT, TokenType.DOUBLE_COLON, TokenType.IDENT, TokenType.EOF,
        ]

    def test_single_colon_still_lexes(self):
        assert types("x: int") == [TokenType.IDENT, TokenType.COLON, TokenType.IDENT, TokenType.EOF]

    def test_two_char_operators(self):
        assert types("== != <= >= && || -> =>")[:-1] == [
            TokenType.EQ, TokenType.NEQ, TokenType.LTE, TokenType.GTE,
            TokenType.AND, TokenType.OR, TokenType.ARROW, TokenType.FAT_ARROW,
        ]

    def test_empty_source_is_just_eof(self):
        assert types("") == [TokenType.EOF]


class TestLiterals:
    """Numbers and strings."""

    def test_int_and_float(self):
        toks = tokenize("42 3.14")
        assert toks[0].type == TokenType.INT_LIT and toks[0].value == "42"
        assert toks[1].type == TokenType.FLOAT_LIT and toks[1].value == "3.14"

    def test_dot_without_digit_ends_number(self):
        assert types("1.foo")[:3] == [TokenType.INT_LIT, TokenType.DOT, TokenType.IDENT]

    def test_string_escapes(self):
        tok = tokenize(r'"a\nb\t\"q\"\\"')[0]
        assert tok.type == TokenType.STRING_LIT
        assert tok.value == 'a\nb\t"q"\\'

    def test_invalid_escape_is_error(self):
        with pytest.raises(LexError) as exc:
            tokenize(r'"bad \q"')
        assert exc.value.diagnostic.kind == ErrorKind.LEX_ERROR

    def test_unterminated_string_reports_opening_quote(self):
        with pytest.raises(LexError) as exc:
            tokenize('let s = "never closed')
        assert exc.value.location.line == 1
        assert exc.value.location.column == 9


class TestCommentsAndPositions:
    """Comments are dropped; every token knows its position."""

    def test_line_comment_discarded(self):
        assert types("1 // two three\n4") == [TokenType.INT_LIT, TokenType.INT_LIT, TokenType.EOF]

    def test_block_comment_discarded(self):
        assert types("1 /* 2\n 3 */ 4") == [TokenType.INT_LIT, TokenType.INT_LIT, TokenType.EOF]

    def test_unterminated_block_comment(self):
        with pytest.raises(LexError):
            tokenize("/* open")

    def test_line_and_column(self):
        toks = tokenize("let x\n  = 5")
        assert (toks[0].location.line, toks[0].location.column) == (1, 1)
        assert (toks[1].location.line, toks[1].location.column) == (1, 5)
        assert (toks[2].location.line, toks[2].location.column) == (2, 3)

    def test_filename_recorded(self):
        tok = tokenize("x", filename="prog.tog")[0]
        assert tok.location.file == "prog.tog"


class TestLexErrors:
    """Unrecognized characters."""

    @pytest.mark.parametrize("source", ["@", "let a = #", "a & b", "a | b"])
    def test_unexpected_character(self, source):
        with pytest.raises(LexError) as exc:
            tokenize(source)
        assert "Unexpected character" in exc.value.message
        assert exc.value.location is not None
