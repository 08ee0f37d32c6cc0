"""
Formats Crysp ASTs back into source text that parses to the same tree, and
runtime values into the text `print` and `str()` show.
"""

import math

from crysp.crysp_datatypes import (
    Builtin, Null, Number, Boolean, String, Function, Dictionary, format_number,
)
from crysp.crysp_nodes import (
    Atom, BinaryOp, UnaryOp, Block, If, Switch, While, DoWhile, Repeat, TryCatch,
    VarDeclare, VarAssign, MemberAccess, MemberAssign, FuncDeclare, FuncCall,
    Return, Break, Continue, Delete, Throw,
)
from crysp.crysp_tokens import (
    Token, TOKEN_SYMBOLS, TOKEN_KEYWORD, TOKEN_STRING, TOKEN_INT, TOKEN_FLOAT, STRING_ESCAPE_CODES,
)

_ESCAPES = {char: '\\' + code for code, char in STRING_ESCAPE_CODES.items()}
_ESCAPES['\\'] = '\\\\'
_ESCAPES['"'] = '\\"'

# Nodes that must be parenthesised when they appear inside another expression.
_LOOSE = (VarDeclare, VarAssign, MemberAssign, FuncDeclare)


def quote(text: str) -> str:
    return '"' + ''.join(_ESCAPES.get(c, c) for c in text) + '"'


def op_text(token: Token) -> str:
    if token.kind == TOKEN_KEYWORD:
        return token.value
    return TOKEN_SYMBOLS[token.kind]


class Printer:
    """Formats Crysp nodes and values into readable, valid Crysp source."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a node or a value."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            return repr(obj)
        return handler(obj, level)

    def format_program(self, program: Block) -> str:
        """A top-level Block, without braces."""
        return "\n".join(self._statement(s, 0) for s in program.statements)

    def display(self, value: Builtin) -> str:
        """Text shown by `print`: strings unquoted, everything else formatted."""
        if isinstance(value, String):
            return value.value
        return self.pformat(value)

    def _create_handlers(self):
        return {
            # Values
            Null: lambda v, l: 'null',
            Number: lambda v, l: format_number(v.value),
            Boolean: lambda v, l: 'true' if v.value else 'false',
            String: lambda v, l: quote(v.value),
            Function: self._pformat_function_value,
            Dictionary: self._pformat_dictionary,
            # Nodes
            Atom: self._pformat_atom,
            BinaryOp: self._pformat_binary,
            UnaryOp: self._pformat_unary,
            Block: self._pformat_block,
            If: self._pformat_if,
            Switch: self._pformat_switch,
            While: lambda n, l: f"while ({self._expr(n.cond, l)}) {self.pformat(n.body, l)}",
            DoWhile: lambda n, l: f"do {self.pformat(n.body, l)} while ({self._expr(n.cond, l)})",
            Repeat: lambda n, l: f"repeat ({self._expr(n.count, l)}) {self.pformat(n.body, l)}",
            TryCatch: self._pformat_try,
            VarDeclare: self._pformat_declare,
            VarAssign: lambda n, l: self._pformat_assign(n.name, n, l),
            MemberAssign: lambda n, l: self._pformat_assign(self.pformat(n.target, l), n, l),
            MemberAccess: self._pformat_member,
            FuncDeclare: self._pformat_func,
            FuncCall: self._pformat_call,
            Return: lambda n, l: self._keyword_with_value('return', n, l),
            Throw: lambda n, l: self._keyword_with_value('throw', n, l),
            Break: lambda n, l: 'break',
            Continue: lambda n, l: 'continue',
            Delete: lambda n, l: f"delete {self.pformat(n.target, l)}",
        }

    # -----------------------------------------------------------------
    # Values
    # -----------------------------------------------------------------

    def _pformat_function_value(self, func: Function, level):
        return f"<func {func.name}>" if func.name else "<func>"

    def _pformat_dictionary(self, d: Dictionary, level):
        if not d.entries:
            return "{}"
        parts = [f"{k}: {self.pformat(v, level + 1)}" for k, v in d.entries.items()]
        return "{" + ", ".join(parts) + "}"

    # -----------------------------------------------------------------
    # Expressions
    # -----------------------------------------------------------------

    def _expr(self, node, level):
        """Format a node in expression position."""
        text = self.pformat(node, level)
        if isinstance(node, _LOOSE):
            return f"({text})"
        return text

    def _pformat_atom(self, node: Atom, level):
        token = node.token
        if token.kind == TOKEN_STRING:
            return quote(token.value)
        if token.kind == TOKEN_FLOAT:
            value = token.value
            if math.isinf(value):
                return "1e999"
            return repr(value)
        if token.kind == TOKEN_INT:
            return str(token.value)
        return str(token.value)

    def _pformat_binary(self, node: BinaryOp, level):
        return f"({self._expr(node.left, level)} {op_text(node.op)} {self._expr(node.right, level)})"

    def _pformat_unary(self, node: UnaryOp, level):
        return f"({op_text(node.op)} {self._expr(node.operand, level)})"

    def _base(self, node, level):
        # A bare number followed by "." would read as a decimal point.
        if isinstance(node, Atom) and node.is_number:
            return f"({self.pformat(node, level)})"
        return self._expr(node, level)

    def _pformat_member(self, node: MemberAccess, level):
        if node.computed:
            return f"{self._base(node.base, level)}[{self._expr(node.accessor, level)}]"
        return f"{self._base(node.base, level)}.{node.accessor.token.value}"

    def _pformat_call(self, node: FuncCall, level):
        args = ", ".join(self._expr(a, level) for a in node.args)
        return f"{self._base(node.callee, level)}({args})"

    def _pformat_declare(self, node: VarDeclare, level):
        if node.value is None:
            return f"let {node.name}"
        return f"let {node.name} = {self.pformat(node.value, level)}"

    def _pformat_assign(self, target: str, node, level):
        if node.value is None:
            return f"{target}{op_text(node.op)}"
        return f"{target} {op_text(node.op)} {self.pformat(node.value, level)}"

    def _pformat_func(self, node: FuncDeclare, level):
        params = ", ".join(node.params)
        head = f"func {node.name}({params})" if node.name else f"func ({params})"
        if node.expression_bodied:
            return f"{head}: {self._expr(node.body, level)}"
        return f"{head} {self.pformat(node.body, level)}"

    # -----------------------------------------------------------------
    # Statements
    # -----------------------------------------------------------------

    def _statement(self, node, level):
        # Anonymous functions and bare blocks need parentheses to stay expressions.
        if isinstance(node, FuncDeclare) and node.name is None:
            return f"({self.pformat(node, level)})"
        return self.pformat(node, level)

    def _pformat_block(self, node: Block, level):
        if not node.statements:
            return "{}"
        indent = self._indent_char * (level + 1)
        body = "\n".join(indent + self._statement(s, level + 1) for s in node.statements)
        return "{\n" + body + "\n" + self._indent_char * level + "}"

    def _pformat_if(self, node: If, level):
        then = node.then
        # Keep a trailing `else` attached to this `if`, not a nested one.
        if node.otherwise is not None and isinstance(then, If) and then.otherwise is None:
            then = Block((then,))
        text = f"if ({self._expr(node.cond, level)}) {self._statement(then, level)}"
        if node.otherwise is not None:
            text += f" else {self._statement(node.otherwise, level)}"
        return text

    def _pformat_switch(self, node: Switch, level):
        indent = self._indent_char * (level + 1)
        inner = self._indent_char * (level + 2)
        lines = [f"switch ({self._expr(node.discriminant, level)}) {{"]
        for test, body in node.clauses():
            label = "default:" if test is None else f"case {self._expr(test, level + 1)}:"
            lines.append(indent + label)
            lines.extend(inner + self._statement(s, level + 2) for s in body.statements)
        lines.append(self._indent_char * level + "}")
        return "\n".join(lines)

    def _pformat_try(self, node: TryCatch, level):
        catch = f" catch ({node.param}) " if node.param is not None else " catch "
        return f"try {self.pformat(node.body, level)}{catch}{self.pformat(node.handler, level)}"

    def _keyword_with_value(self, keyword, node, level):
        if node.value is None:
            return keyword
        return f"{keyword} {self.pformat(node.value, level)}"
