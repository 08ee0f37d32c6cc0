"""
AST node definitions and the builders the rule engine uses to turn a matched
grammar variation into a node.

Each grammar rule names the node kind it produces; the builder for that kind
receives the labelled fields and the unlabelled items recorded while matching,
plus the source range of the consumed tokens. Builders never guess a node's
meaning from the shape of what was matched.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple

from crysp.crysp_errors import CryspSyntaxError, ERROR_ASSIGN_TARGET
from crysp.crysp_tokens import (
    Token, PositionRange, TOKEN_IDENTIFIER, TOKEN_INT, TOKEN_FLOAT, TOKEN_STRING, TOKEN_KEYWORD,
)


# =================================================================
# Base
# =================================================================

@dataclass(frozen=True)
class Node:
    """Base class. `_node_fields` lists the fields that must hold nodes."""
    _node_fields = ()

    def children(self):
        """Values of every node-typed field, with sequences flattened."""
        for name in self._node_fields:
            value = getattr(self, name)
            if isinstance(value, (tuple, list)):
                yield from value
            elif value is not None:
                yield value


# =================================================================
# Expressions
# =================================================================

@dataclass(frozen=True)
class Atom(Node):
    """A literal or an identifier reference."""
    token: Token
    range: Optional[PositionRange] = None

    @property
    def is_identifier(self) -> bool:
        return self.token.kind == TOKEN_IDENTIFIER

    @property
    def is_number(self) -> bool:
        return self.token.kind in (TOKEN_INT, TOKEN_FLOAT)


@dataclass(frozen=True)
class BinaryOp(Node):
    left: Node
    op: Token
    right: Node
    range: Optional[PositionRange] = None
    _node_fields = ('left', 'right')


@dataclass(frozen=True)
class UnaryOp(Node):
    op: Token
    operand: Node
    range: Optional[PositionRange] = None
    _node_fields = ('operand',)


@dataclass(frozen=True)
class MemberAccess(Node):
    """`base.name` (accessor is the identifier Atom, computed=False) or
    `base[expr]` (computed=True)."""
    base: Node
    accessor: Node
    computed: bool = False
    range: Optional[PositionRange] = None
    _node_fields = ('base', 'accessor')


@dataclass(frozen=True)
class FuncCall(Node):
    callee: Node
    args: Tuple[Node, ...] = ()
    range: Optional[PositionRange] = None
    _node_fields = ('callee', 'args')


@dataclass(frozen=True)
class FuncDeclare(Node):
    """Named declaration (statement, hoisted) or anonymous function expression."""
    name: Optional[str]
    params: Tuple[str, ...]
    body: Node
    expression_bodied: bool = False
    range: Optional[PositionRange] = None
    _node_fields = ('body',)


@dataclass(frozen=True)
class VarDeclare(Node):
    name: str
    value: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('value',)


@dataclass(frozen=True)
class VarAssign(Node):
    name: str
    op: Token
    value: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('value',)


@dataclass(frozen=True)
class MemberAssign(Node):
    target: MemberAccess
    op: Token
    value: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('target', 'value')


# =================================================================
# Statements
# =================================================================

@dataclass(frozen=True)
class Block(Node):
    statements: Tuple[Node, ...] = ()
    range: Optional[PositionRange] = None
    _node_fields = ('statements',)


@dataclass(frozen=True)
class If(Node):
    cond: Node
    then: Node
    otherwise: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('cond', 'then', 'otherwise')


@dataclass(frozen=True)
class SwitchCase(Node):
    """One `case test:` clause; `test` is None for `default:`."""
    test: Optional[Node]
    body: Block
    range: Optional[PositionRange] = None
    _node_fields = ('test', 'body')


@dataclass(frozen=True)
class Switch(Node):
    discriminant: Node
    cases: Tuple[SwitchCase, ...] = ()
    default: Optional[Block] = None
    # Index into `cases` before which `default:` was written.
    default_position: int = 0
    range: Optional[PositionRange] = None
    _node_fields = ('discriminant', 'cases', 'default')

    def clauses(self):
        """(test, body) pairs in source order, default included with test None."""
        out = [(case.test, case.body) for case in self.cases]
        if self.default is not None:
            out.insert(self.default_position, (None, self.default))
        return out


@dataclass(frozen=True)
class While(Node):
    cond: Node
    body: Node
    range: Optional[PositionRange] = None
    _node_fields = ('cond', 'body')


@dataclass(frozen=True)
class DoWhile(Node):
    body: Node
    cond: Node
    range: Optional[PositionRange] = None
    _node_fields = ('body', 'cond')


@dataclass(frozen=True)
class Repeat(Node):
    count: Node
    body: Node
    range: Optional[PositionRange] = None
    _node_fields = ('count', 'body')


@dataclass(frozen=True)
class TryCatch(Node):
    body: Block
    param: Optional[str]
    handler: Block
    range: Optional[PositionRange] = None
    _node_fields = ('body', 'handler')


@dataclass(frozen=True)
class Return(Node):
    value: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('value',)


@dataclass(frozen=True)
class Break(Node):
    range: Optional[PositionRange] = None


@dataclass(frozen=True)
class Continue(Node):
    range: Optional[PositionRange] = None


@dataclass(frozen=True)
class Delete(Node):
    target: MemberAccess
    range: Optional[PositionRange] = None
    _node_fields = ('target',)


@dataclass(frozen=True)
class Throw(Node):
    value: Optional[Node] = None
    range: Optional[PositionRange] = None
    _node_fields = ('value',)


# =================================================================
# Parse-time helpers (never reach the evaluator)
# =================================================================

@dataclass(frozen=True)
class Suffix(Node):
    """One postfix step: `.name`, `[index]` or `(args)`."""
    member: Optional[str] = None
    index: Optional[Node] = None
    args: Optional[Tuple[Node, ...]] = None
    range: Optional[PositionRange] = None
    _node_fields = ('index', 'args')


@dataclass(frozen=True)
class Arguments(Node):
    items: Tuple[Node, ...] = ()
    range: Optional[PositionRange] = None
    _node_fields = ('items',)


@dataclass(frozen=True)
class Params(Node):
    names: Tuple[str, ...] = ()
    range: Optional[PositionRange] = None


# =================================================================
# Builders
# =================================================================

Fields = Dict[str, Any]


def _name(token: Optional[Token]) -> Optional[str]:
    return token.value if token is not None else None


def build_atom(fields: Fields, items: list, rng) -> Atom:
    return Atom(fields['token'], rng)


def build_binary(fields: Fields, items: list, rng) -> BinaryOp:
    return BinaryOp(fields['left'], fields['op'], fields['right'], rng)


def build_unary(fields: Fields, items: list, rng) -> UnaryOp:
    return UnaryOp(fields['op'], fields['operand'], rng)


def build_block(fields: Fields, items: list, rng) -> Block:
    return Block(tuple(items), rng)


def build_braced(fields: Fields, items: list, rng) -> Block:
    # The braces belong to the block's range even when it is empty.
    body = fields.get('body') or Block()
    return replace(body, range=rng)


def build_if(fields: Fields, items: list, rng) -> If:
    return If(fields['cond'], fields['then'], fields.get('otherwise'), rng)


def build_switch_case(fields: Fields, items: list, rng) -> SwitchCase:
    return SwitchCase(fields.get('test'), fields.get('body') or Block(), rng)


def build_switch(fields: Fields, items: list, rng) -> Switch:
    clauses = fields.get('clauses')
    cases = []
    default = None
    default_position = None
    for clause in (clauses.statements if clauses is not None else ()):
        if clause.test is None:
            if default is not None:
                raise CryspSyntaxError("More than one default clause in switch statement", clause.range)
            default = clause.body
            default_position = len(cases)
        else:
            cases.append(clause)
    if default_position is None:
        default_position = len(cases)
    return Switch(fields['discriminant'], tuple(cases), default, default_position, rng)


def build_while(fields: Fields, items: list, rng) -> While:
    return While(fields['cond'], fields['body'], rng)


def build_do_while(fields: Fields, items: list, rng) -> DoWhile:
    return DoWhile(fields['body'], fields['cond'], rng)


def build_repeat(fields: Fields, items: list, rng) -> Repeat:
    return Repeat(fields['count'], fields['body'], rng)


def build_try_catch(fields: Fields, items: list, rng) -> TryCatch:
    return TryCatch(fields['body'], _name(fields.get('param')), fields['handler'], rng)


def build_var_declare(fields: Fields, items: list, rng) -> VarDeclare:
    return VarDeclare(fields['name'].value, fields.get('value'), rng)


def build_assign(fields: Fields, items: list, rng) -> Node:
    target = fields['target']
    match target:
        case Atom() if target.is_identifier:
            return VarAssign(target.token.value, fields['op'], fields.get('value'), rng)
        case MemberAccess():
            return MemberAssign(target, fields['op'], fields.get('value'), rng)
    raise CryspSyntaxError(ERROR_ASSIGN_TARGET, getattr(target, 'range', rng))


def build_suffix(fields: Fields, items: list, rng) -> Suffix:
    if 'member' in fields:
        return Suffix(member=fields['member'].value, range=rng)
    if 'index' in fields:
        return Suffix(index=fields['index'], range=rng)
    args = fields.get('args')
    return Suffix(args=args.items if args is not None else (), range=rng)


def build_postfix(fields: Fields, items: list, rng) -> Node:
    base, suffix = fields['base'], fields['suffix']
    if suffix.args is not None:
        return FuncCall(base, suffix.args, rng)
    if suffix.member is not None:
        accessor = Atom(Token(TOKEN_IDENTIFIER, suffix.member, suffix.range), suffix.range)
        return MemberAccess(base, accessor, False, rng)
    return MemberAccess(base, suffix.index, True, rng)


def build_arguments(fields: Fields, items: list, rng) -> Arguments:
    return Arguments(tuple(items), rng)


def build_params(fields: Fields, items: list, rng) -> Params:
    names = []
    for item in items:
        if isinstance(item, Params):
            names.extend(item.names)
        else:
            names.append(item.token.value)
    return Params(tuple(names), rng)


def build_func_declare(fields: Fields, items: list, rng) -> FuncDeclare:
    params = fields.get('params')
    names = params.names if params is not None else ()
    if 'expr' in fields:
        return FuncDeclare(_name(fields.get('name')), names, fields['expr'], True, rng)
    return FuncDeclare(_name(fields.get('name')), names, fields['body'], False, rng)


def build_return(fields: Fields, items: list, rng) -> Return:
    return Return(fields.get('value'), rng)


def build_break(fields: Fields, items: list, rng) -> Break:
    return Break(rng)


def build_continue(fields: Fields, items: list, rng) -> Continue:
    return Continue(rng)


def build_delete(fields: Fields, items: list, rng) -> Delete:
    target = fields['target']
    if not isinstance(target, MemberAccess):
        raise CryspSyntaxError("delete expects a member access", getattr(target, 'range', rng))
    return Delete(target, rng)


def build_throw(fields: Fields, items: list, rng) -> Throw:
    return Throw(fields.get('value'), rng)


NODE_BUILDERS: Dict[str, Callable[[Fields, list, Optional[PositionRange]], Node]] = {
    'Atom': build_atom,
    'BinaryOp': build_binary,
    'UnaryOp': build_unary,
    'Block': build_block,
    'Braced': build_braced,
    'If': build_if,
    'SwitchCase': build_switch_case,
    'Switch': build_switch,
    'While': build_while,
    'DoWhile': build_do_while,
    'Repeat': build_repeat,
    'TryCatch': build_try_catch,
    'VarDeclare': build_var_declare,
    'Assign': build_assign,
    'Suffix': build_suffix,
    'Postfix': build_postfix,
    'Arguments': build_arguments,
    'Params': build_params,
    'FuncDeclare': build_func_declare,
    'Return': build_return,
    'Break': build_break,
    'Continue': build_continue,
    'Delete': build_delete,
    'Throw': build_throw,
}
