"""
Loads the declarative grammar table and compiles its item strings into
matcher objects the rule engine can walk without re-parsing text.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

import yaml

from crysp.crysp_tokens import TOKEN_KINDS, TOKEN_NEWL, Token

PASS = 'pass'
FOLD_MARK = '*'
BLOCK_MARK = '**'

DEFAULT_GRAMMAR_PATH = Path(__file__).parent / "grammar" / "crysp_grammar.yaml"

_LABEL = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*)=([@$].*)$')
_RULE_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class GrammarError(Exception):
    """The grammar table itself is malformed. This is a programmer error and is
    raised when the table is loaded, never while parsing a script."""


# =================================================================
# Compiled items
# =================================================================

@dataclass(frozen=True)
class TokenItem:
    alternatives: Tuple[Tuple[str, Optional[str]], ...]
    skip: bool = False
    label: Optional[str] = None
    # Lookahead: succeeds or fails without consuming anything.
    peek: bool = False

    def matches(self, token: Token) -> bool:
        return any(token.matches(kind, value) for kind, value in self.alternatives)

    @property
    def wants_newline(self) -> bool:
        return any(kind == TOKEN_NEWL for kind, _ in self.alternatives)


@dataclass(frozen=True)
class RuleItem:
    name: str
    label: Optional[str] = None


@dataclass(frozen=True)
class ErrorItem:
    message: str


class Marker:
    """FOLD and ENTER_BLOCK instructions."""
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name


FOLD = Marker('FOLD')
ENTER_BLOCK = Marker('ENTER_BLOCK')

Item = Union[TokenItem, RuleItem, ErrorItem, Marker]


@dataclass(frozen=True)
class Rule:
    name: str
    node: str
    variations: Tuple[Tuple[Item, ...], ...]
    newline_sensitive: bool = False


# =================================================================
# Compilation
# =================================================================

def compile_item(text: str, rule: str) -> Item:
    if not isinstance(text, str) or not text:
        raise GrammarError(f"Rule '{rule}': empty or non-string item {text!r}")
    if text == FOLD_MARK:
        return FOLD
    if text == BLOCK_MARK:
        return ENTER_BLOCK
    if text.startswith('!'):
        return ErrorItem(text[1:])
    if text.startswith('?'):
        item = compile_item(text[1:], rule)
        if not isinstance(item, TokenItem) or item.skip or item.label is not None:
            raise GrammarError(f"Rule '{rule}': lookahead {text!r} must be a plain token matcher")
        return TokenItem(item.alternatives, peek=True)

    label = None
    m = _LABEL.match(text)
    if m:
        label, text = m.group(1), m.group(2)

    if text.startswith('$'):
        name = text[1:]
        if not _RULE_NAME.match(name):
            raise GrammarError(f"Rule '{rule}': bad rule reference {text!r}")
        return RuleItem(name, label)

    if text.startswith('@'):
        body = text[1:]
        skip = body.endswith('&')
        if skip:
            body = body[:-1]
            if label is not None:
                raise GrammarError(f"Rule '{rule}': skipped token {text!r} cannot carry a label")
        alternatives = []
        for alt in body.split('|'):
            kind, _, value = alt.partition(':')
            if kind not in TOKEN_KINDS:
                raise GrammarError(f"Rule '{rule}': unknown token kind '{kind}'")
            alternatives.append((kind, value or None))
        return TokenItem(tuple(alternatives), skip, label)

    raise GrammarError(f"Rule '{rule}': unrecognised item {text!r}")


def _references_newline(variations) -> bool:
    return any(isinstance(item, TokenItem) and item.wants_newline
               for variation in variations for item in variation)


def _check_variation(rule: str, node: str, variation: Tuple[Item, ...]):
    markers = [i for i, item in enumerate(variation) if isinstance(item, Marker)]
    if len(markers) > 1:
        raise GrammarError(f"Rule '{rule}': at most one fold or block marker per variation")
    if not markers:
        return
    at = markers[0]
    marker = variation[at]
    if at == len(variation) - 1:
        raise GrammarError(f"Rule '{rule}': {marker!r} must be followed by at least one item")
    if marker is FOLD:
        if at == 0:
            raise GrammarError(f"Rule '{rule}': FOLD needs a head before it")
        if node == PASS:
            raise GrammarError(f"Rule '{rule}': FOLD needs a node kind to fold into")


class GrammarTable:
    """A compiled grammar: rule name -> Rule, plus the start rule."""

    def __init__(self, definition: dict, node_kinds: Optional[Iterable[str]] = None):
        if not isinstance(definition, dict) or 'rules' not in definition:
            raise GrammarError("Grammar table must be a mapping with a 'rules' section")
        if node_kinds is None:
            from crysp.crysp_nodes import NODE_BUILDERS
            node_kinds = NODE_BUILDERS.keys()
        known_nodes = set(node_kinds) | {PASS}

        self.rules: Dict[str, Rule] = {}
        for name, entry in (definition['rules'] or {}).items():
            if not isinstance(entry, dict):
                raise GrammarError(f"Rule '{name}' must be a mapping")
            node = entry.get('node', PASS)
            if node not in known_nodes:
                raise GrammarError(f"Rule '{name}': unknown node kind '{node}'")
            variations = tuple(
                tuple(compile_item(text, name) for text in (variation or []))
                for variation in entry.get('variations', [])
            )
            for variation in variations:
                _check_variation(name, node, variation)
            sensitive = bool(entry.get('newline', False)) or _references_newline(variations)
            self.rules[name] = Rule(name, node, variations, sensitive)

        for rule in self.rules.values():
            for variation in rule.variations:
                for item in variation:
                    if isinstance(item, RuleItem) and item.name not in self.rules:
                        raise GrammarError(f"Rule '{rule.name}' references unknown rule '{item.name}'")

        self.start = definition.get('start', 'program')
        if self.start not in self.rules:
            raise GrammarError(f"Start rule '{self.start}' is not defined")

    def __getitem__(self, name: str) -> Rule:
        return self.rules[name]

    def __contains__(self, name: str) -> bool:
        return name in self.rules

    @classmethod
    def from_yaml(cls, text: str, node_kinds=None) -> 'GrammarTable':
        return cls(yaml.safe_load(text), node_kinds)

    @classmethod
    def from_file(cls, path, node_kinds=None) -> 'GrammarTable':
        with open(path, 'r', encoding='utf-8') as f:
            return cls(yaml.safe_load(f), node_kinds)


_default_grammar: Optional[GrammarTable] = None


def default_grammar() -> GrammarTable:
    """The bundled grammar, compiled once per process."""
    global _default_grammar
    if _default_grammar is None:
        _default_grammar = GrammarTable.from_file(DEFAULT_GRAMMAR_PATH)
    return _default_grammar
