"""
The Crysp tree-walking evaluator.

Expressions evaluate to runtime values. Statements may instead produce a
control signal (`ReturnSignal`, `BreakSignal`, `ContinueSignal`) which the
enclosing construct consumes. Errors are raised as `CryspError` subclasses.
"""

import itertools
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from crysp.crysp_context import (
    Bindings, Context, NameAlreadyDeclared, NameNotDefined, FUNCTION, LOOP, SWITCH,
)
from crysp.crysp_datatypes import Builtin, Null, Number, Boolean, String, Function
from crysp.crysp_errors import (
    CryspError, CryspRuntimeError, ThrownError, dbg, h,
    RTERROR_NOT_DEFINED, RTERROR_ALREADY_DECLARED, RTERROR_NOT_A_FUNC, RTERROR_NOT_ENOUGH_ARGS,
    RTERROR_WRITE_PROPS_NULL, RTERROR_STACK,
    RTERROR_ILLEGAL_RETURN, RTERROR_ILLEGAL_BREAK, RTERROR_ILLEGAL_CONTINUE,
)
from crysp.crysp_nodes import (
    Node, Atom, BinaryOp, UnaryOp, Block, If, Switch, While, DoWhile, Repeat, TryCatch,
    VarDeclare, VarAssign, MemberAccess, MemberAssign, FuncDeclare, FuncCall,
    Return, Break, Continue, Delete, Throw,
)
from crysp.crysp_tokens import (
    Token, PositionRange, TOKEN_KEYWORD, TOKEN_IDENTIFIER, TOKEN_INT, TOKEN_FLOAT, TOKEN_STRING,
    TOKEN_ASSIGN, TOKEN_INCR, TOKEN_DECR,
)

# Operator token (kind, or keyword text) -> value method.
BINARYOP_MAP = {
    'ADD': 'add',
    'SUB': 'subtract',
    'MUL': 'multiply',
    'DIV': 'divide',
    'POW': 'power',
    'MOD': 'modulo',
    'EQUALS': 'equals',
    'is': 'equals',
    'NOTEQ': 'not_equals',
    'GREATER': 'greater',
    'LESS': 'less',
    'GREATEREQ': 'greater_eq',
    'LESSEQ': 'less_eq',
    'AND': 'and_',
    'and': 'and_',
    'OR': 'or_',
    'or': 'or_',
}

UNARYOP_MAP = {
    'ADD': 'numerify',
    'SUB': 'negate',
    'NOT': 'invert',
    'not': 'invert',
}

ASSIGNOP_MAP = {
    'ADDTO': 'add',
    'SUBFROM': 'subtract',
    'MULBY': 'multiply',
    'DIVBY': 'divide',
    'POWERBY': 'power',
    'MODBY': 'modulo',
}

STEP = {TOKEN_INCR: 1.0, TOKEN_DECR: -1.0}

KEYWORD_VALUES = {
    'true': lambda: Boolean(True),
    'false': lambda: Boolean(False),
    'null': lambda: Null(),
}


def op_key(token: Token) -> str:
    return token.value if token.kind == TOKEN_KEYWORD else token.kind


# =================================================================
# Control signals
# =================================================================

@dataclass
class ControlSignal:
    range: Optional[PositionRange] = None
    context: Optional[Context] = None


@dataclass
class ReturnSignal(ControlSignal):
    value: Builtin = None


@dataclass
class BreakSignal(ControlSignal):
    pass


@dataclass
class ContinueSignal(ControlSignal):
    pass


Result = Union[Builtin, ControlSignal]


def hoisted(statements):
    """Named function declarations first, everything else in source order."""
    first = [s for s in statements if isinstance(s, FuncDeclare) and s.name]
    rest = [s for s in statements if not (isinstance(s, FuncDeclare) and s.name)]
    return first + rest


class Evaluator:
    """The Crysp execution engine."""

    def __init__(self):
        self.side_effects: List[Any] = []

    def _dbg(self, *parts):
        dbg(*parts)

    def _error(self, message: str, node: Optional[Node], context: Context) -> CryspRuntimeError:
        return CryspRuntimeError(message, getattr(node, 'range', None), context)

    def _locate(self, err: CryspError, node: Optional[Node], context: Context) -> CryspError:
        if err.range is None:
            err.range = getattr(node, 'range', None)
        if err.context is None:
            err.context = context
        return err

    # -----------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------

    def interpret(self, program: Block, context: Context) -> Builtin:
        """Run a whole program directly in `context` so that its top-level
        declarations persist there."""
        result = self._eval_block(program, context, scoped=False)
        if isinstance(result, ControlSignal):
            return Null()
        return result

    def evaluate(self, node: Node, context: Context) -> Result:
        match node:
            case Atom():
                return self._eval_atom(node, context)
            case BinaryOp():
                return self._eval_binary(node, context)
            case UnaryOp():
                operand = self.evaluate(node.operand, context)
                return getattr(operand, UNARYOP_MAP[op_key(node.op)])().located(node.range)
            case Block():
                return self._eval_block(node, context)
            case If():
                if self._truthy(node.cond, context):
                    return self.evaluate(node.then, context)
                if node.otherwise is not None:
                    return self.evaluate(node.otherwise, context)
                return Null()
            case While():
                return self._eval_while(node, context)
            case DoWhile():
                return self._eval_do_while(node, context)
            case Repeat():
                return self._eval_repeat(node, context)
            case Switch():
                return self._eval_switch(node, context)
            case TryCatch():
                return self._eval_try(node, context)
            case VarDeclare():
                return self._eval_declare(node, context)
            case VarAssign():
                return self._eval_assign(node, context)
            case MemberAccess():
                base = self.evaluate(node.base, context)
                key = self._member_key(node, context)
                try:
                    return base.member(key)
                except CryspRuntimeError as err:
                    raise self._locate(err, node, context)
            case MemberAssign():
                return self._eval_member_assign(node, context)
            case FuncDeclare():
                return self._eval_func_declare(node, context)
            case FuncCall():
                return self._eval_call(node, context)
            case Return():
                value = self.evaluate(node.value, context) if node.value is not None else Null()
                return ReturnSignal(node.range, context, value)
            case Break():
                return BreakSignal(node.range, context)
            case Continue():
                return ContinueSignal(node.range, context)
            case Delete():
                return self._eval_delete(node, context)
            case Throw():
                if node.value is None:
                    raise ThrownError("Exception", None, node.range, context)
                value = self.evaluate(node.value, context)
                raise ThrownError(value.cast_str().value, value, node.range, context)
        raise TypeError(f"Cannot evaluate {type(node).__name__}")

    # -----------------------------------------------------------------
    # Expressions
    # -----------------------------------------------------------------

    def _truthy(self, node: Node, context: Context) -> bool:
        return self.evaluate(node, context).cast_bool().value

    def _eval_atom(self, node: Atom, context: Context) -> Builtin:
        token = node.token
        if token.kind == TOKEN_IDENTIFIER:
            try:
                return context.bindings.lookup(token.value)
            except NameNotDefined:
                raise self._error(h(RTERROR_NOT_DEFINED, token.value), node, context)
        if token.kind in (TOKEN_INT, TOKEN_FLOAT):
            return Number(float(token.value), range=node.range)
        if token.kind == TOKEN_STRING:
            return String(token.value, range=node.range)
        if token.kind == TOKEN_KEYWORD and token.value in KEYWORD_VALUES:
            return KEYWORD_VALUES[token.value]().located(node.range)
        raise self._error(f"Unexpected literal {token!r}", node, context)

    def _binary(self, method: str, left: Builtin, right: Builtin, node: Node, context: Context) -> Builtin:
        try:
            return getattr(left, method)(right)
        except CryspRuntimeError as err:
            raise self._locate(err, node, context)

    def _eval_binary(self, node: BinaryOp, context: Context) -> Builtin:
        method = BINARYOP_MAP[op_key(node.op)]
        left = self.evaluate(node.left, context)
        # Short circuit: the right operand is only evaluated when it decides.
        if method == 'and_' and not left.cast_bool().value:
            return left
        if method == 'or_' and left.cast_bool().value:
            return left
        right = self.evaluate(node.right, context)
        return self._binary(method, left, right, node, context).located(node.range)

    def _member_key(self, node: MemberAccess, context: Context) -> str:
        if not node.computed:
            return node.accessor.token.value
        return self.evaluate(node.accessor, context).cast_str().value

    def _apply_assign(self, op: Token, current: Builtin, value_node: Optional[Node],
                      node: Node, context: Context) -> Builtin:
        if op.kind in STEP:
            return Number(current.numerify().value + STEP[op.kind])
        value = self.evaluate(value_node, context)
        if op.kind == TOKEN_ASSIGN:
            return value
        return self._binary(ASSIGNOP_MAP[op.kind], current, value, node, context)

    def _eval_declare(self, node: VarDeclare, context: Context) -> Builtin:
        bindings = context.bindings
        if bindings.has_here(node.name):
            raise self._error(h(RTERROR_ALREADY_DECLARED, node.name), node, context)
        value = self.evaluate(node.value, context) if node.value is not None else Null()
        try:
            bindings.declare(node.name, value)
        except NameAlreadyDeclared:
            raise self._error(h(RTERROR_ALREADY_DECLARED, node.name), node, context)
        return value

    def _eval_assign(self, node: VarAssign, context: Context) -> Builtin:
        try:
            current = context.bindings.lookup(node.name)
        except NameNotDefined:
            raise self._error(h(RTERROR_NOT_DEFINED, node.name), node, context)
        value = self._apply_assign(node.op, current, node.value, node, context)
        context.bindings.assign(node.name, value)
        return value

    def _writable_member(self, target: MemberAccess, node: Node, context: Context):
        """(current value, key) for a member about to be written or deleted."""
        base = self.evaluate(target.base, context)
        key = self._member_key(target, context)
        try:
            return base, base.member(key), key
        except CryspRuntimeError:
            raise self._error(h(RTERROR_WRITE_PROPS_NULL, key), node, context)

    def _eval_member_assign(self, node: MemberAssign, context: Context) -> Builtin:
        base, current, key = self._writable_member(node.target, node, context)
        value = self._apply_assign(node.op, current, node.value, node, context)
        owner = current.owner()
        if owner is not None:
            owner.set_member(key, value)
        return value

    def _eval_delete(self, node: Delete, context: Context) -> Builtin:
        base, current, key = self._writable_member(node.target, node, context)
        owner = current.owner()
        if owner is not None:
            owner.delete_member(key)
        return Null()

    # -----------------------------------------------------------------
    # Functions
    # -----------------------------------------------------------------

    def _eval_func_declare(self, node: FuncDeclare, context: Context) -> Builtin:
        func = Function(node.params, node.body, node.expression_bodied, node.name, context, range=node.range)
        if node.name is None:
            return func
        try:
            context.bindings.declare(node.name, func)
        except NameAlreadyDeclared:
            raise self._error(h(RTERROR_ALREADY_DECLARED, node.name), node, context)
        return Null()

    def _callee_name(self, node: FuncCall, callee: Builtin) -> str:
        match node.callee:
            case Atom() if node.callee.is_identifier:
                return node.callee.token.value
            case MemberAccess(computed=False):
                return node.callee.accessor.token.value
        if isinstance(callee, Function) and callee.name:
            return callee.name
        return callee.cast_str().value

    def _eval_call(self, node: FuncCall, context: Context) -> Builtin:
        callee = self.evaluate(node.callee, context)
        if not isinstance(callee, Function):
            raise self._error(h(RTERROR_NOT_A_FUNC, self._callee_name(node, callee)), node, context)
        args = [self.evaluate(arg, context) for arg in node.args]
        if len(args) < len(callee.params):
            raise self._error(h(RTERROR_NOT_ENOUGH_ARGS, self._callee_name(node, callee)), node, context)
        return self.call(callee, args, node, context)

    def call(self, func: Function, args: List[Builtin], node: Optional[Node], context: Context) -> Builtin:
        """Invoke `func`. The call context hangs off the caller (for tracebacks)
        while its bindings extend the closure's (for lexical scope)."""
        entry = node.range.start if node is not None and node.range is not None else None
        if func.native is not None:
            self._dbg("CALL native", func.name, "argc", len(args))
            try:
                return func.native(*args)
            except CryspRuntimeError as err:
                raise self._locate(err, node, context)

        closure_bindings = func.closure.bindings if func.closure is not None else None
        call_context = Context(func.name or "<anonymous>", context, entry, FUNCTION, Bindings(closure_bindings))
        for name, value in zip(func.params, args):
            call_context.bindings.vars[name] = value
        self._dbg("CALL", call_context.name, "argc", len(args))
        try:
            result = self.evaluate(func.body, call_context)
        except RecursionError:
            raise self._error(RTERROR_STACK, node, context) from None

        if isinstance(result, ReturnSignal):
            return result.value
        if isinstance(result, ControlSignal):
            return Null()
        if func.expression_bodied:
            return result
        return Null()

    # -----------------------------------------------------------------
    # Statements
    # -----------------------------------------------------------------

    def _check_signal(self, signal: ControlSignal, context: Context):
        match signal:
            case ReturnSignal() if not context.is_inside_function():
                raise CryspRuntimeError(RTERROR_ILLEGAL_RETURN, signal.range, signal.context)
            case BreakSignal() if not context.is_inside_loop(include_switch=True):
                raise CryspRuntimeError(RTERROR_ILLEGAL_BREAK, signal.range, signal.context)
            case ContinueSignal() if not context.is_inside_loop(include_switch=True):
                raise CryspRuntimeError(RTERROR_ILLEGAL_CONTINUE, signal.range, signal.context)

    def _eval_block(self, node: Block, context: Context, scoped: bool = True) -> Result:
        if scoped:
            entry = node.range.start if node.range is not None else None
            context = context.child("<block>", entry)
        result: Result = Null()
        for statement in hoisted(node.statements):
            result = self.evaluate(statement, context)
            if isinstance(result, ControlSignal):
                self._check_signal(result, context)
                return result
        return result

    def _iterate(self, body: Node, context: Context, last: Builtin):
        """Run one loop body. Returns (keep going, last value, signal to propagate)."""
        result = self.evaluate(body, context)
        match result:
            case BreakSignal():
                return False, last, None
            case ContinueSignal():
                return True, last, None
            case ControlSignal():
                return False, last, result
        return True, result, None

    def _loop_context(self, node: Node, context: Context) -> Context:
        entry = node.range.start if node.range is not None else None
        return context.child("<loop>", entry, LOOP)

    def _eval_while(self, node: While, context: Context) -> Result:
        loop_context = self._loop_context(node, context)
        last: Builtin = Null()
        while self._truthy(node.cond, context):
            keep_going, last, signal = self._iterate(node.body, loop_context, last)
            if signal is not None:
                return signal
            if not keep_going:
                break
        return last

    def _eval_do_while(self, node: DoWhile, context: Context) -> Result:
        loop_context = self._loop_context(node, context)
        last: Builtin = Null()
        while True:
            keep_going, last, signal = self._iterate(node.body, loop_context, last)
            if signal is not None:
                return signal
            if not keep_going or not self._truthy(node.cond, context):
                break
        return last

    def _eval_repeat(self, node: Repeat, context: Context) -> Result:
        count = self.evaluate(node.count, context).numerify().value
        if count == math.inf:
            iterations = itertools.count()
        elif math.isfinite(count):
            iterations = range(math.floor(count + 0.5))
        else:
            iterations = range(0)
        loop_context = self._loop_context(node, context)
        last: Builtin = Null()
        for _ in iterations:
            keep_going, last, signal = self._iterate(node.body, loop_context, last)
            if signal is not None:
                return signal
            if not keep_going:
                break
        return last

    def _eval_switch(self, node: Switch, context: Context) -> Result:
        value = self.evaluate(node.discriminant, context)
        clauses = node.clauses()
        start = None
        for at, (test, _) in enumerate(clauses):
            if test is not None and self.evaluate(test, context).same_as(value):
                start = at
                break
        if start is None:
            if node.default is None:
                return Null()
            start = node.default_position
        entry = node.range.start if node.range is not None else None
        switch_context = context.child("<switch>", entry, SWITCH)
        last: Builtin = Null()
        # Fall through from the first matching clause to the end; `continue`
        # ends the current clause only.
        for _, body in clauses[start:]:
            keep_going, last, signal = self._iterate(body, switch_context, last)
            if signal is not None:
                return signal
            if not keep_going:
                break
        return last

    def _eval_try(self, node: TryCatch, context: Context) -> Result:
        try:
            return self.evaluate(node.body, context)
        except CryspRuntimeError as err:
            self._dbg("CATCH", err.kind, err.message)
            entry = node.handler.range.start if node.handler.range is not None else None
            catch_context = context.child("<catch>", entry)
            if node.param is not None:
                catch_context.bindings.declare(node.param, String(err.message))
            return self.evaluate(node.handler, catch_context)
