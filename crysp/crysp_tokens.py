"""
Token kinds, source positions and the lexical tables shared by the lexer,
the grammar loader and diagnostics.
"""

from dataclasses import dataclass
from typing import Any, Optional

# =================================================================
# Token kinds
# =================================================================

TOKEN_STRING = 'STRING'
TOKEN_INT = 'INT'
TOKEN_FLOAT = 'FLOAT'

TOKEN_KEYWORD = 'KEYWORD'
TOKEN_IDENTIFIER = 'IDENTIFIER'

TOKEN_AND = 'AND'
TOKEN_OR = 'OR'
TOKEN_NOT = 'NOT'

TOKEN_EQUALS = 'EQUALS'
TOKEN_NOTEQ = 'NOTEQ'
TOKEN_GREATER = 'GREATER'
TOKEN_LESS = 'LESS'
TOKEN_GREATEREQ = 'GREATEREQ'
TOKEN_LESSEQ = 'LESSEQ'

TOKEN_ASSIGN = 'ASSIGN'
TOKEN_ADDTO = 'ADDTO'
TOKEN_SUBFROM = 'SUBFROM'
TOKEN_MULBY = 'MULBY'
TOKEN_DIVBY = 'DIVBY'
TOKEN_POWERBY = 'POWERBY'
TOKEN_MODBY = 'MODBY'
TOKEN_INCR = 'INCR'
TOKEN_DECR = 'DECR'

TOKEN_ADD = 'ADD'
TOKEN_SUB = 'SUB'
TOKEN_MUL = 'MUL'
TOKEN_DIV = 'DIV'
TOKEN_POW = 'POW'
TOKEN_MOD = 'MOD'

TOKEN_SEP = 'SEP'
TOKEN_DOT = 'DOT'
TOKEN_COLON = 'COLON'
TOKEN_BLOCKSEP = 'BLOCKSEP'
TOKEN_NEWL = 'NEWL'

TOKEN_OPAREN = 'OPAREN'
TOKEN_CPAREN = 'CPAREN'
TOKEN_OBRACK = 'OBRACK'
TOKEN_CBRACK = 'CBRACK'
TOKEN_OCURLY = 'OCURLY'
TOKEN_CCURLY = 'CCURLY'

TOKEN_END = 'END'

# =================================================================
# Lexical tables
# =================================================================

KEYWORDS = frozenset([
    'and', 'or', 'not', 'is',
    'let', 'func', 'const', 'enum', 'event',
    'true', 'false', 'null',
    'if', 'else', 'switch', 'case', 'default',
    'while', 'do', 'for', 'in', 'repeat', 'try', 'catch',
    'return', 'break', 'continue', 'throw', 'delete',
    'class', 'new', 'super', 'self', 'get', 'set',
])

SYMBOLS = {
    '&&': TOKEN_AND,
    '||': TOKEN_OR,
    '!': TOKEN_NOT,

    '==': TOKEN_EQUALS,
    '!=': TOKEN_NOTEQ,
    '>': TOKEN_GREATER,
    '<': TOKEN_LESS,
    '>=': TOKEN_GREATEREQ,
    '<=': TOKEN_LESSEQ,

    '+=': TOKEN_ADDTO,
    '-=': TOKEN_SUBFROM,
    '*=': TOKEN_MULBY,
    '/=': TOKEN_DIVBY,
    '^=': TOKEN_POWERBY,
    '%=': TOKEN_MODBY,
    '++': TOKEN_INCR,
    '--': TOKEN_DECR,
    '=': TOKEN_ASSIGN,

    '+': TOKEN_ADD,
    '-': TOKEN_SUB,
    '*': TOKEN_MUL,
    '/': TOKEN_DIV,
    '^': TOKEN_POW,
    '%': TOKEN_MOD,

    ',': TOKEN_SEP,
    '.': TOKEN_DOT,
    ':': TOKEN_COLON,
    ';': TOKEN_BLOCKSEP,
    '\n': TOKEN_NEWL,

    '(': TOKEN_OPAREN,
    ')': TOKEN_CPAREN,
    '[': TOKEN_OBRACK,
    ']': TOKEN_CBRACK,
    '{': TOKEN_OCURLY,
    '}': TOKEN_CCURLY,
}

# Reverse table used when a token has to be shown to a user.
TOKEN_SYMBOLS = {kind: symbol for symbol, kind in SYMBOLS.items()}
TOKEN_SYMBOLS[TOKEN_NEWL] = 'new line'
TOKEN_SYMBOLS[TOKEN_END] = 'end of input'

TOKEN_KINDS = frozenset(
    [TOKEN_STRING, TOKEN_INT, TOKEN_FLOAT, TOKEN_KEYWORD, TOKEN_IDENTIFIER, TOKEN_END]
    + list(SYMBOLS.values())
)

STRING_ESCAPE_CODES = {
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'v': '\v',
}


# =================================================================
# Positions
# =================================================================

@dataclass(frozen=True)
class Position:
    """A point in the source text. `line` and `col` are one-based."""
    index: int
    line: int
    col: int

    def __str__(self) -> str:
        return f"{self.line}:{self.col}"


@dataclass(frozen=True)
class PositionRange:
    """An inclusive span of source text."""
    start: Position
    end: Position

    def merge(self, other: Optional['PositionRange']) -> 'PositionRange':
        if other is None:
            return self
        start = self.start if self.start.index <= other.start.index else other.start
        end = self.end if self.end.index >= other.end.index else other.end
        return PositionRange(start, end)

    @property
    def multiline(self) -> bool:
        return self.start.line != self.end.line


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any = None
    range: Optional[PositionRange] = None

    def matches(self, kind: str, value: Any = None) -> bool:
        return self.kind == kind and (value is None or self.value == value)

    def describe(self) -> str:
        """Human readable form used in syntax errors."""
        if self.kind in TOKEN_SYMBOLS:
            return TOKEN_SYMBOLS[self.kind]
        if self.kind == TOKEN_STRING:
            return repr(self.value)
        if self.value is not None:
            return str(self.value)
        return self.kind

    def __repr__(self) -> str:
        if self.value is None:
            return f"({self.kind})"
        return f"({self.kind}:{self.value!r})"
