import pytest

from crysp.crysp_errors import LexicalError
from crysp.crysp_lexer import tokenize


def kinds(src: str):
    return [t.kind for t in tokenize(src)]


def values(src: str):
    return [t.value for t in tokenize(src) if t.value is not None]


def test_empty_source_is_just_end():
    assert kinds("") == ['END']


def test_keywords_identifiers_and_numbers():
    toks = tokenize("let x = 10")
    assert [(t.kind, t.value) for t in toks] == [
        ('KEYWORD', 'let'), ('IDENTIFIER', 'x'), ('ASSIGN', None), ('INT', 10), ('END', None),
    ]


def test_longest_symbol_wins():
    assert kinds("a += 1; b++ <= c") == [
        'IDENTIFIER', 'ADDTO', 'INT', 'BLOCKSEP', 'IDENTIFIER', 'INCR', 'LESSEQ', 'IDENTIFIER', 'END',
    ]


@pytest.mark.parametrize("src, expected", [
    ("1.5", 1.5),
    (".5", 0.5),
    ("2e3", 2000.0),
    ("1e-2", 0.01),
    ("3.", 3.0),
])
def test_float_forms(src, expected):
    tok = tokenize(src)[0]
    assert tok.kind == 'FLOAT'
    assert tok.value == pytest.approx(expected)


def test_dot_after_an_operand_is_member_access():
    assert kinds("a.1") == ['IDENTIFIER', 'DOT', 'INT', 'END']
    assert kinds("f().5") == ['IDENTIFIER', 'OPAREN', 'CPAREN', 'DOT', 'INT', 'END']
    assert kinds("x + .5") == ['IDENTIFIER', 'ADD', 'FLOAT', 'END']
    assert kinds("(.5)") == ['OPAREN', 'FLOAT', 'CPAREN', 'END']


def test_string_escapes_and_quotes():
    assert values(r'"a\nb" ' + r"'it\'s'") == ["a\nb", "it's"]


def test_comments_are_dropped_but_line_breaks_kept():
    src = "a // trailing\n/* block\n comment */ b"
    assert kinds(src) == ['IDENTIFIER', 'NEWL', 'IDENTIFIER', 'END']


def test_positions_are_one_based_and_inclusive():
    toks = tokenize("let\n  abc")
    ident = toks[2]
    assert (ident.range.start.line, ident.range.start.col) == (2, 3)
    assert (ident.range.end.line, ident.range.end.col) == (2, 5)


@pytest.mark.parametrize("src, message", [
    ("1..2", "Unexpected character: ."),
    ("1e5e2", "Unexpected character: e"),
    ("12abc", "Identifier names cannot start with a numeric digit"),
    ('"open', "Expected a closing string quote before the end of line"),
    ("a # b", "Unexpected character: #"),
])
def test_lexical_errors(src, message):
    with pytest.raises(LexicalError) as exc:
        tokenize(src)
    assert exc.value.message == message
    assert exc.value.range is not None
