"""
Embedding entry points: the ScriptRunner pipeline (lex, parse, evaluate), the
standard library bound into every runner's prelude, and the structured
ExecutionResult handed back to the host.
"""

import inspect
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from crysp.crysp_context import Bindings, Context
from crysp.crysp_datatypes import (
    Builtin, Null, Number, Boolean, String, Dictionary, from_python, native_function,
)
from crysp.crysp_errors import CryspError, CryspRuntimeError, RTERROR_STACK, dbg
from crysp.crysp_grammar import default_grammar
from crysp.crysp_interpreter import Evaluator
from crysp.crysp_lexer import Lexer
from crysp.crysp_parser import Parser
from crysp.crysp_printer import Printer


class StdLib:
    """Python implementations of the built-in functions. Every method whose
    name starts with a single underscore is bound into the prelude under the
    name without it."""

    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator
        self.printer = Printer()

    def _print(self, *values):
        message = " ".join(self.printer.display(v) for v in values)
        self.evaluator.side_effects.append({'topics': ['stdout'], 'message': message})
        return Null()

    def _str(self, value):
        return value.cast_str()

    def _num(self, value):
        return value.numerify()

    def _bool(self, value):
        return value.cast_bool()

    def _type(self, value):
        return String(value.kind)

    def _len(self, value):
        match value:
            case String(value=s):
                return Number(len(s))
            case Dictionary(entries=entries):
                return Number(len(entries))
        raise CryspRuntimeError(f"len expects a string or dictionary, got {value.kind}")

    def _keys(self, container):
        """Member names of a dictionary, as a dictionary indexed from 0."""
        if not isinstance(container, Dictionary):
            return Dictionary()
        return Dictionary({str(i): String(k) for i, k in enumerate(container.entries)})

    def _has(self, container, key):
        if not isinstance(container, Dictionary):
            return Boolean(False)
        return Boolean(key.cast_str().value in container.entries)

    def _dict(self):
        return Dictionary()


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Optional[Builtin] = None
    error: Optional[CryspError] = None
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """The rendered diagnostic: kind, message, location, source snippet and traceback."""
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class ScriptRunner:
    """Lexes, parses and evaluates Crysp source against a persistent global context.

    Both the parser and the evaluator recurse once per nesting level of the
    script, so each script runs on a worker thread with a large stack and a
    raised interpreter recursion limit."""

    RECURSION_LIMIT = 20_000
    STACK_SIZE = 256 * 1024 * 1024

    def __init__(self, prelude: Optional[Dict[str, Any]] = None, load_prelude: bool = True):
        self.grammar = default_grammar()
        self.evaluator = Evaluator()

        # The prelude has its own table so scripts may shadow built-ins at top level.
        self.prelude = Bindings()
        if load_prelude:
            stdlib = StdLib(self.evaluator)
            for name, member in inspect.getmembers(stdlib):
                if name.startswith('_') and not name.startswith('__') and callable(member):
                    self.prelude.vars[name[1:]] = native_function(member, name[1:])
            self.prelude.vars['shared'] = Dictionary()
        for name, value in (prelude or {}).items():
            self.prelude.vars[name] = from_python(value)

        self.global_context = Context("global", bindings=Bindings(self.prelude))

    def parse(self, source_code: str):
        tokens = Lexer(source_code).tokenize()
        return Parser(tokens, source_code, self.grammar).parse()

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        outcome: Dict[str, Any] = {}

        def work():
            try:
                outcome['result'] = self._handle_script(source_code)
            except BaseException as exc:
                outcome['exception'] = exc

        previous_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(previous_limit, self.RECURSION_LIMIT))
        try:
            previous_size = threading.stack_size(self.STACK_SIZE)
            try:
                worker = threading.Thread(target=work, name="crysp-script")
                worker.start()
            finally:
                threading.stack_size(previous_size)
            worker.join()
        finally:
            sys.setrecursionlimit(previous_limit)

        if 'exception' in outcome:
            raise outcome['exception']
        return outcome['result']

    def _handle_script(self, source_code: str) -> ExecutionResult:
        self.evaluator.side_effects.clear()
        try:
            program = self.parse(source_code)
            value = self.evaluator.interpret(program, self.global_context)
        except CryspError as err:
            return self._error_result(err, source_code)
        except RecursionError:
            return self._error_result(CryspRuntimeError(RTERROR_STACK), source_code)
        dbg("RESULT", value)
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.evaluator.side_effects),
        )

    def _error_result(self, err: CryspError, source_code: str) -> ExecutionResult:
        if err.text is None:
            err.text = source_code
        message = err.render(source_code)
        dbg("ERROR", err.kind, err.message)
        self.evaluator.side_effects.append({'topics': ['stderr'], 'message': message})
        return ExecutionResult(
            status='error',
            error=err,
            error_message=message,
            side_effects=list(self.evaluator.side_effects),
        )


def run(source_code: str, prelude: Optional[Dict[str, Any]] = None) -> ExecutionResult:
    """Run one script in a fresh runner."""
    return ScriptRunner(prelude).handle_script(source_code)
