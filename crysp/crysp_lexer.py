"""
Character-level scanner: turns source text into the token stream consumed by
the rule engine. Comments are stripped, string escapes decoded, and every
token carries the inclusive source range it was read from.
"""

import string
from typing import List

from crysp.crysp_errors import (
    LexicalError, ERROR_UNEXP_CHAR, ERROR_NUMERIC_IDNTF, ERROR_UNCLOSED_STR, h
)
from crysp.crysp_tokens import (
    Token, Position, PositionRange, KEYWORDS, SYMBOLS, STRING_ESCAPE_CODES,
    TOKEN_STRING, TOKEN_INT, TOKEN_FLOAT, TOKEN_KEYWORD, TOKEN_IDENTIFIER,
    TOKEN_NEWL, TOKEN_END, TOKEN_CPAREN, TOKEN_CBRACK,
)

NUMERIC = string.digits
NUMERIC_DOT = '.'
NUMERIC_EXP = 'e'
QUOTES = '"\''
WORD = string.ascii_letters + string.digits + '_$'

COMMENT_LINE = '//'
COMMENT_BLOCK_START = '/*'
COMMENT_BLOCK_END = '*/'

# Longest symbol first so '+=' wins over '+'.
_SYMBOL_LENGTHS = sorted({len(s) for s in SYMBOLS}, reverse=True)


def is_numeric(char) -> bool:
    return char is not None and len(char) == 1 and char in NUMERIC


def takes_suffix(token: Token) -> bool:
    """True when a '.' after `token` is member access, never a decimal point."""
    if token.kind == TOKEN_KEYWORD:
        return token.value in ('true', 'false', 'null')
    return token.kind in (TOKEN_IDENTIFIER, TOKEN_STRING, TOKEN_INT, TOKEN_FLOAT, TOKEN_CPAREN, TOKEN_CBRACK)


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.index = 0
        self.line = 1
        self.col = 1
        self._last = Position(0, 1, 1)

    # -----------------------------------------------------------------
    # Cursor helpers
    # -----------------------------------------------------------------

    @property
    def char(self):
        return self.text[self.index] if self.index < len(self.text) else None

    def peek(self, offset: int = 1):
        i = self.index + offset
        return self.text[i] if i < len(self.text) else None

    def pos(self) -> Position:
        return Position(self.index, self.line, self.col)

    def advance(self):
        self._last = self.pos()
        if self.char == '\n':
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        self.index += 1

    def span(self, start: Position) -> PositionRange:
        """Range from `start` to the last consumed character."""
        return PositionRange(start, self._last)

    def error(self, message: str, start: Position = None) -> LexicalError:
        start = start or self.pos()
        end = self._last if self._last.index >= start.index else start
        return LexicalError(message, PositionRange(start, end), text=self.text)

    # -----------------------------------------------------------------
    # Scanning
    # -----------------------------------------------------------------

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        while self.char is not None:
            char = self.char
            if self.text.startswith(COMMENT_LINE, self.index):
                # The newline itself still separates statements.
                while self.char is not None and self.char != '\n':
                    self.advance()
            elif self.text.startswith(COMMENT_BLOCK_START, self.index):
                self.skip_block_comment()
            elif char == '\n':
                start = self.pos()
                self.advance()
                tokens.append(Token(TOKEN_NEWL, None, PositionRange(start, start)))
            elif char.isspace():
                self.advance()
            elif char in QUOTES:
                tokens.append(self.make_string(char))
            elif is_numeric(char) or (char == NUMERIC_DOT and is_numeric(self.peek())
                                      and not (tokens and takes_suffix(tokens[-1]))):
                tokens.append(self.make_number())
            elif char in WORD:
                tokens.append(self.make_word())
            else:
                tokens.append(self.make_symbol())
        end = self.pos()
        tokens.append(Token(TOKEN_END, None, PositionRange(end, end)))
        return tokens

    def skip_block_comment(self):
        self.advance()
        self.advance()
        while self.char is not None and not self.text.startswith(COMMENT_BLOCK_END, self.index):
            self.advance()
        if self.char is not None:
            self.advance()
            self.advance()

    def make_string(self, quote: str) -> Token:
        start = self.pos()
        self.advance()
        chars = []
        while self.char != quote:
            if self.char is None or self.char == '\n':
                raise self.error(ERROR_UNCLOSED_STR, start)
            if self.char == '\\':
                self.advance()
                if self.char is None:
                    raise self.error(ERROR_UNCLOSED_STR, start)
                chars.append(STRING_ESCAPE_CODES.get(self.char, self.char))
            else:
                chars.append(self.char)
            self.advance()
        self.advance()
        return Token(TOKEN_STRING, ''.join(chars), self.span(start))

    def make_number(self) -> Token:
        start = self.pos()
        text = []
        dots = exps = 0
        dot_after_exp = dangling_exp = False
        while is_numeric(self.char) or self.char in (NUMERIC_DOT, NUMERIC_EXP):
            char = self.char
            text.append(char)
            dangling_exp = False
            if char == NUMERIC_DOT:
                dots += 1
                if exps:
                    dot_after_exp = True
            elif char == NUMERIC_EXP:
                exps += 1
                dangling_exp = True
                self.advance()
                if self.char in ('+', '-') and is_numeric(self.peek()):
                    text.append(self.char)
                    self.advance()
                continue
            self.advance()

        if self.char is not None and self.char in WORD:
            raise self.error(ERROR_NUMERIC_IDNTF, start)
        if dots > 1 or dot_after_exp:
            raise self.error(h(ERROR_UNEXP_CHAR, NUMERIC_DOT), start)
        if exps > 1 or dangling_exp:
            raise self.error(h(ERROR_UNEXP_CHAR, NUMERIC_EXP), start)

        literal = ''.join(text)
        if dots or exps:
            return Token(TOKEN_FLOAT, float(literal), self.span(start))
        return Token(TOKEN_INT, int(literal), self.span(start))

    def make_word(self) -> Token:
        start = self.pos()
        chars = []
        while self.char is not None and self.char in WORD:
            chars.append(self.char)
            self.advance()
        word = ''.join(chars)
        kind = TOKEN_KEYWORD if word in KEYWORDS else TOKEN_IDENTIFIER
        return Token(kind, word, self.span(start))

    def make_symbol(self) -> Token:
        start = self.pos()
        for length in _SYMBOL_LENGTHS:
            candidate = self.text[self.index:self.index + length]
            if len(candidate) == length and candidate in SYMBOLS:
                for _ in range(length):
                    self.advance()
                return Token(SYMBOLS[candidate], None, self.span(start))
        raise LexicalError(h(ERROR_UNEXP_CHAR, self.char), PositionRange(start, start), text=self.text)


def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokenize()
