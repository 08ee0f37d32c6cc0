"""
Language-level exceptions and their diagnostic rendering.

Every error the pipeline can produce is a `CryspError`. The runtime driver
catches them and hands them back inside an `ExecutionResult`, so embedders
never see a host-level abort for a faulty script.
"""

import os
import sys
from typing import Optional, TYPE_CHECKING

from crysp.crysp_tokens import PositionRange

if TYPE_CHECKING:
    from crysp.crysp_context import Context


def dbg(*parts):
    """Trace to stderr when CRYSP_DEBUG is set to a non-empty value."""
    if os.environ.get("CRYSP_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except OSError:
            pass


class CryspError(Exception):
    """Base class: a message, the implicated source range and, for runtime
    errors, the Context that was active when the error happened."""
    kind = 'Exception'

    def __init__(self, message: str, range: Optional[PositionRange] = None,
                 context: Optional['Context'] = None, text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.range = range
        self.context = context
        self.text = text

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"

    # -----------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------

    def render(self, source: Optional[str] = None) -> str:
        """Kind, message and location, the offending line underlined, and a
        traceback of the enclosing function contexts (innermost first)."""
        source = source if source is not None else self.text
        out = [str(self)]
        if self.range is not None:
            out[0] += f" (line {self.range.start.line}, col {self.range.start.col})"
            snippet = self._source_context(source)
            if snippet:
                out.append(snippet)
        trace = self.traceback_lines()
        if trace:
            out.append("Traceback (innermost first):")
            out.extend(self._collapse(trace))
        return "\n".join(out)

    @staticmethod
    def _collapse(trace: list) -> list:
        """Frame lines with runs of identical frames folded into one line."""
        lines = []
        at = 0
        while at < len(trace):
            run = at + 1
            while run < len(trace) and trace[run] == trace[at]:
                run += 1
            name, pos = trace[at]
            lines.append(f"  at {name} ({pos})")
            if run - at > 1:
                lines.append(f"  ... repeated {run - at - 1} more times")
            at = run
        return lines

    def _source_context(self, source: Optional[str]) -> str:
        if not source:
            return ""
        lines = source.split("\n")
        start, end = self.range.start, self.range.end
        if start.line < 1 or start.line > len(lines):
            return ""
        content = lines[start.line - 1]
        # Underline to the end of the line when the range spans several lines.
        stop = len(content) if self.range.multiline else end.col
        width = max(stop - start.col + 1, 1)
        gutter = str(start.line)
        pad = " " * len(gutter)
        return (
            f"> {gutter} | {content}\n"
            f"  {pad} | {' ' * (start.col - 1)}{'^' * width}"
        )

    def traceback_lines(self) -> list:
        """(context name, position) pairs from the innermost function outwards."""
        if self.context is None:
            return []
        frames = []
        pos = self.range.start if self.range is not None else None
        ctx = self.context.nearest_function()
        while ctx is not None:
            frames.append((ctx.name, pos if pos is not None else "1:1"))
            pos = ctx.entry_position
            ctx = ctx.parent.nearest_function() if ctx.parent is not None else None
        return frames


class LexicalError(CryspError):
    kind = 'LexicalError'


class CryspSyntaxError(CryspError):
    kind = 'SyntaxError'


class CryspRuntimeError(CryspError):
    kind = 'RuntimeError'


class DivisionByZero(CryspRuntimeError):
    def __init__(self, range: Optional[PositionRange] = None, context: Optional['Context'] = None):
        super().__init__("Division by zero", range, context)


class ThrownError(CryspRuntimeError):
    """Raised by a `throw` statement; `value` is the thrown runtime value."""
    def __init__(self, message: str, value=None, range=None, context=None):
        super().__init__(message, range, context)
        self.value = value


# Message templates (the `$` is replaced by the offending name or symbol).
ERROR_UNEXP_CHAR = "Unexpected character: $"
ERROR_NUMERIC_IDNTF = "Identifier names cannot start with a numeric digit"
ERROR_UNCLOSED_STR = "Expected a closing string quote before the end of line"
ERROR_UNEXP_TOKEN = "Unexpected token: $"
ERROR_MEMBER_DOT = 'member access via "." only allows identifiers'
ERROR_ASSIGN_TARGET = "Invalid assignment target"
ERROR_TOO_DEEP = "Expression is nested too deeply"

RTERROR_NOT_DEFINED = "$ is not defined in this scope"
RTERROR_ALREADY_DECLARED = "$ has already been declared in this scope"
RTERROR_NOT_A_FUNC = "$ is not a function"
RTERROR_NOT_ENOUGH_ARGS = "Not enough arguments passed to $"
RTERROR_READ_PROPS_NULL = "Cannot read properties of null (reading '$')"
RTERROR_WRITE_PROPS_NULL = "Cannot write properties of null (writing '$')"
RTERROR_STACK = "Maximum call stack size exceeded"
RTERROR_ILLEGAL_RETURN = "Illegal return statement outside of a function"
RTERROR_ILLEGAL_BREAK = "Illegal break statement outside of a loop or switch"
RTERROR_ILLEGAL_CONTINUE = "Illegal continue statement outside of a loop"


def h(template: str, repl) -> str:
    return template.replace("$", str(repl))
