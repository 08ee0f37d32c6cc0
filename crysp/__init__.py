from crysp.crysp_runtime import ScriptRunner, ExecutionResult, StdLib, run
from crysp.crysp_errors import (
    CryspError, LexicalError, CryspSyntaxError, CryspRuntimeError, DivisionByZero, ThrownError,
)
from crysp.crysp_printer import Printer

__all__ = [
    'ScriptRunner', 'ExecutionResult', 'StdLib', 'run', 'Printer',
    'CryspError', 'LexicalError', 'CryspSyntaxError', 'CryspRuntimeError', 'DivisionByZero', 'ThrownError',
]
