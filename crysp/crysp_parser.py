"""
Table-driven recursive-descent parser.

The Parser walks the compiled GrammarTable over a token list. Variations of a
rule are tried in order; a variation that fails rewinds the cursor and the
next one is tried. Results are memoised per (rule, position) so backtracking
stays linear in practice.
"""

from typing import Any, Dict, List, Optional, Tuple

from crysp.crysp_errors import CryspSyntaxError, ERROR_UNEXP_TOKEN, ERROR_TOO_DEEP, h, dbg
from crysp.crysp_grammar import (
    GrammarTable, Rule, TokenItem, RuleItem, ErrorItem, FOLD, ENTER_BLOCK, PASS, default_grammar,
)
from crysp.crysp_nodes import Node, Block, NODE_BUILDERS
from crysp.crysp_tokens import Token, PositionRange, TOKEN_NEWL, TOKEN_END
from crysp.crysp_lexer import tokenize


class _NoMatch:
    def __repr__(self) -> str:
        return '<no match>'


# A failed match. Distinct from None, which is a successful match that
# produced nothing (an empty variation, or only skipped tokens).
NO_MATCH = _NoMatch()


class _Capture:
    """Values recorded while matching one variation, in order."""

    def __init__(self):
        self.entries: List[Tuple[Optional[str], Any]] = []

    def add(self, label: Optional[str], value: Any):
        self.entries.append((label, value))

    def extend(self, other: '_Capture'):
        self.entries.extend(other.entries)

    @property
    def fields(self) -> Dict[str, Any]:
        return {label: value for label, value in self.entries if label is not None}

    @property
    def items(self) -> list:
        return [value for label, value in self.entries if label is None]

    @property
    def values(self) -> list:
        return [value for _, value in self.entries]


class Parser:
    def __init__(self, tokens: List[Token], text: Optional[str] = None,
                 grammar: Optional[GrammarTable] = None):
        self.tokens = tokens
        self.text = text
        self.grammar = grammar if grammar is not None else default_grammar()
        self.index = 0
        # Index of the furthest token any matcher failed on.
        self.furthest = 0
        self._memo: Dict[Tuple[str, int], Tuple[Any, int]] = {}

    def parse(self) -> Block:
        try:
            result = self.match_rule(self.grammar.start)
            self._skip_newlines()
            if result is NO_MATCH or self.token.kind != TOKEN_END:
                raise self.unexpected(self.tokens[max(self.furthest, self.index)])
        except CryspSyntaxError as err:
            if err.text is None:
                err.text = self.text
            raise
        except RecursionError:
            # The cursor is left on the token where nesting ran out of room.
            raise self.unexpected(self.token, ERROR_TOO_DEEP) from None
        if result is None:
            return Block()
        if not isinstance(result, Block):
            result = Block((result,), getattr(result, 'range', None))
        dbg("PARSE ok", len(result.statements), "statements")
        return result

    # -----------------------------------------------------------------
    # Cursor
    # -----------------------------------------------------------------

    @property
    def token(self) -> Token:
        return self.tokens[min(self.index, len(self.tokens) - 1)]

    def _skip_newlines(self):
        while self.token.kind == TOKEN_NEWL:
            self.index += 1

    def _fail(self) -> bool:
        if self.index > self.furthest:
            self.furthest = self.index
        return False

    def unexpected(self, token: Token, message: Optional[str] = None) -> CryspSyntaxError:
        return CryspSyntaxError(message or h(ERROR_UNEXP_TOKEN, token.describe()), token.range, text=self.text)

    def _span(self, mark: int) -> Optional[PositionRange]:
        """Range of the tokens consumed since `mark`, ignoring line breaks."""
        first, last = mark, self.index - 1
        while first <= last and self.tokens[first].kind == TOKEN_NEWL:
            first += 1
        while last >= first and self.tokens[last].kind == TOKEN_NEWL:
            last -= 1
        if last < first:
            return None
        return PositionRange(self.tokens[first].range.start, self.tokens[last].range.end)

    # -----------------------------------------------------------------
    # Rules and variations
    # -----------------------------------------------------------------

    def match_rule(self, name: str):
        key = (name, self.index)
        if key in self._memo:
            result, end = self._memo[key]
            self.index = end
            return result

        rule = self.grammar[name]
        start = self.index
        # Seeded as a failure so left recursion terminates instead of looping.
        self._memo[key] = (NO_MATCH, start)
        result = NO_MATCH
        for variation in rule.variations:
            self.index = start
            result = self.match_variation(rule, variation)
            if result is not NO_MATCH:
                break
        else:
            self.index = start
        self._memo[key] = (result, self.index)
        return result

    def match_variation(self, rule: Rule, variation):
        mark = self.index
        capture = _Capture()
        for at, item in enumerate(variation):
            if item is FOLD:
                return self._fold(rule, capture, variation[at + 1:], mark)
            if item is ENTER_BLOCK:
                return self._block(rule, capture, variation[at + 1:], mark)
            if not self.match_item(rule, item, capture):
                return NO_MATCH
        return self._finish(rule, capture, mark)

    def match_item(self, rule: Rule, item, capture: _Capture) -> bool:
        if isinstance(item, ErrorItem):
            self._skip_newlines()
            raise self.unexpected(self.token, item.message)

        save = self.index
        if rule.newline_sensitive:
            # A line break ends the variation unless it is what we want.
            if self.token.kind == TOKEN_NEWL and not (isinstance(item, TokenItem) and item.wants_newline):
                return self._fail()
        else:
            self._skip_newlines()

        if isinstance(item, TokenItem):
            token = self.token
            if not item.matches(token):
                return self._fail()
            if item.peek:
                self.index = save
                return True
            self.index += 1
            if not item.skip:
                capture.add(item.label, token)
            return True

        skipped = self.index
        result = self.match_rule(item.name)
        if result is NO_MATCH:
            return False
        if result is None and self.index == skipped:
            # An empty match leaves the line breaks for the caller.
            self.index = save
        if result is not None:
            capture.add(item.label, result)
        return True

    def _match_sequence(self, rule: Rule, items) -> Optional[_Capture]:
        """Match `items` once from the cursor; rewinds and returns None on failure."""
        save = self.index
        step = _Capture()
        for item in items:
            if not self.match_item(rule, item, step):
                self.index = save
                return None
        return step

    def _fold(self, rule: Rule, capture: _Capture, continuation, mark: int):
        head_label = capture.entries[0][0] if capture.entries else None
        while True:
            save = self.index
            step = self._match_sequence(rule, continuation)
            if step is None or self.index == save:
                self.index = save
                break
            capture.extend(step)
            node = self._build(rule, capture, mark)
            capture = _Capture()
            capture.add(head_label, node)
        # Without any continuation the head passes through untouched.
        return self._passthrough(capture, mark)

    def _block(self, rule: Rule, capture: _Capture, pattern, mark: int):
        while True:
            save = self.index
            step = self._match_sequence(rule, pattern)
            if step is None or self.index == save:
                self.index = save
                break
            value = self._passthrough(step, save)
            if value is not None:
                capture.add(None, value)
        return self._finish(rule, capture, mark)

    def _finish(self, rule: Rule, capture: _Capture, mark: int):
        if rule.node == PASS:
            return self._passthrough(capture, mark)
        return self._build(rule, capture, mark)

    def _passthrough(self, capture: _Capture, mark: int):
        values = capture.values
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        block = Block(tuple(values), self._span(mark))
        self._check_raw_tokens(block)
        return block

    def _build(self, rule: Rule, capture: _Capture, mark: int) -> Node:
        node = NODE_BUILDERS[rule.node](capture.fields, capture.items, self._span(mark))
        self._check_raw_tokens(node)
        return node

    def _check_raw_tokens(self, node: Node):
        # A token may only sit in a node field if a builder put it in a
        # token-typed one; anywhere else it means the input was incomplete.
        for child in node.children():
            if isinstance(child, Token):
                self._skip_newlines()
                raise self.unexpected(self.token)


def parse(text: str, grammar: Optional[GrammarTable] = None) -> Block:
    return Parser(tokenize(text), text, grammar).parse()
