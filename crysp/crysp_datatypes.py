"""
Runtime values.

Every value the evaluator produces is one of six immutable variants. Each
operation is a single method that matches over the variants, so adding a
variant means visiting every operation here and nowhere else.
"""

import inspect
import math
import weakref
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple, TYPE_CHECKING

from crysp.crysp_errors import (
    CryspRuntimeError, DivisionByZero, RTERROR_READ_PROPS_NULL, RTERROR_WRITE_PROPS_NULL, h,
)
from crysp.crysp_tokens import PositionRange

if TYPE_CHECKING:
    from crysp.crysp_context import Context
    from crysp.crysp_nodes import Node


def format_number(value: float) -> str:
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _count(value: float) -> int:
    """Truncate toward zero; non-finite counts collapse to 0."""
    return int(value) if math.isfinite(value) else 0


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and exponent == int(exponent) and int(exponent) % 2:
            return -math.inf
        return math.inf
    except ValueError:
        # 0 to a negative power, or a negative base to a fractional power.
        if base == 0:
            return math.inf
        return math.nan


def _key(key) -> str:
    return key.cast_str().value if isinstance(key, Builtin) else str(key)


@dataclass(frozen=True, eq=False)
class Builtin:
    """Base of all runtime values.

    `range` is where the value was produced. `container` is a weak handle to
    the Dictionary a value was read out of, which member assignment and
    delete write back through.
    """
    range: Optional[PositionRange] = field(default=None, kw_only=True)
    container: Optional[weakref.ref] = field(default=None, kw_only=True, repr=False)

    kind = 'value'

    def located(self, range: Optional[PositionRange]) -> 'Builtin':
        if range is None or isinstance(self, (Dictionary, Function)):
            return self
        return replace(self, range=range)

    def owner(self) -> Optional['Dictionary']:
        return self.container() if self.container is not None else None

    # -----------------------------------------------------------------
    # Conversions
    # -----------------------------------------------------------------

    def numerify(self) -> 'Number':
        match self:
            case Null():
                return Number(0.0)
            case Number(value=v):
                return Number(v)
            case Boolean(value=v):
                return Number(1.0 if v else 0.0)
            case String(value=s):
                return Number(1.0 if s else 0.0)
            case Dictionary() | Function():
                return Number(1.0)
        raise TypeError(f"unknown value {self!r}")

    def cast_bool(self) -> 'Boolean':
        # NaN is truthy: the rule is "numerify is not zero".
        return Boolean(self.numerify().value != 0)

    def cast_str(self) -> 'String':
        match self:
            case Null():
                return String('null')
            case Number(value=v):
                return String(format_number(v))
            case Boolean(value=v):
                return String('true' if v else 'false')
            case String():
                return self
            case Dictionary() | Function():
                from crysp.crysp_printer import Printer
                return String(Printer().pformat(self))
        raise TypeError(f"unknown value {self!r}")

    def to_python(self) -> Any:
        match self:
            case Null():
                return None
            case Number(value=v) | Boolean(value=v) | String(value=v):
                return v
            case Dictionary(entries=e):
                return {k: v.to_python() for k, v in e.items()}
        return self

    # -----------------------------------------------------------------
    # Arithmetic
    # -----------------------------------------------------------------

    def _string_and_count(self, other) -> Optional[Tuple[str, int]]:
        """(text, count) when exactly one operand is a String."""
        if isinstance(self, String) and not isinstance(other, String):
            return self.value, _count(other.numerify().value)
        if isinstance(other, String) and not isinstance(self, String):
            return other.value, _count(self.numerify().value)
        return None

    def add(self, other: 'Builtin') -> 'Builtin':
        if isinstance(self, String) or isinstance(other, String):
            return String(self.cast_str().value + other.cast_str().value)
        return Number(self.numerify().value + other.numerify().value)

    def subtract(self, other: 'Builtin') -> 'Builtin':
        pair = self._string_and_count(other)
        if pair is not None:
            text, n = pair
            n = max(0, min(n, len(text)))
            return String(text[:len(text) - n])
        return Number(self.numerify().value - other.numerify().value)

    def multiply(self, other: 'Builtin') -> 'Builtin':
        pair = self._string_and_count(other)
        if pair is not None:
            text, n = pair
            if n < 0:
                return String(text[::-1] * -n)
            return String(text * n)
        return Number(self.numerify().value * other.numerify().value)

    def divide(self, other: 'Builtin') -> 'Builtin':
        pair = self._string_and_count(other)
        if pair is not None:
            text, n = pair
            if n == 0:
                raise DivisionByZero()
            keep = int(len(text) / n)
            return String(text[:keep] if keep > 0 else '')
        divisor = other.numerify().value
        if divisor == 0:
            raise DivisionByZero()
        return Number(self.numerify().value / divisor)

    def modulo(self, other: 'Builtin') -> 'Number':
        divisor = other.numerify().value
        if divisor == 0:
            raise DivisionByZero()
        try:
            return Number(math.fmod(self.numerify().value, divisor))
        except ValueError:
            return Number(math.nan)

    def power(self, other: 'Builtin') -> 'Number':
        return Number(_power(self.numerify().value, other.numerify().value))

    def negate(self) -> 'Number':
        return Number(-self.numerify().value)

    def invert(self) -> 'Boolean':
        return Boolean(not self.cast_bool().value)

    # -----------------------------------------------------------------
    # Comparison and logic
    # -----------------------------------------------------------------

    def same_as(self, other: 'Builtin') -> bool:
        match self, other:
            case Null(), Null():
                return True
            case Number(value=a), Number(value=b):
                return a == b
            case Boolean(value=a), Boolean(value=b):
                return a == b
            case String(value=a), String(value=b):
                return a == b
            case Dictionary(), Dictionary():
                return self.entries is other.entries
            case Function(), Function():
                return (self.body is other.body and self.closure is other.closure
                        and self.native is other.native)
        return False

    def equals(self, other: 'Builtin') -> 'Boolean':
        return Boolean(self.same_as(other))

    def not_equals(self, other: 'Builtin') -> 'Boolean':
        return Boolean(not self.same_as(other))

    def _ordered(self, other: 'Builtin'):
        if isinstance(self, String) and isinstance(other, String):
            return self.value, other.value
        return self.numerify().value, other.numerify().value

    def greater(self, other: 'Builtin') -> 'Boolean':
        a, b = self._ordered(other)
        return Boolean(a > b)

    def less(self, other: 'Builtin') -> 'Boolean':
        a, b = self._ordered(other)
        return Boolean(a < b)

    def greater_eq(self, other: 'Builtin') -> 'Boolean':
        a, b = self._ordered(other)
        return Boolean(a >= b)

    def less_eq(self, other: 'Builtin') -> 'Boolean':
        a, b = self._ordered(other)
        return Boolean(a <= b)

    def and_(self, other: 'Builtin') -> 'Builtin':
        return other if self.cast_bool().value else self

    def or_(self, other: 'Builtin') -> 'Builtin':
        return self if self.cast_bool().value else other

    # -----------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------

    def member(self, key) -> 'Builtin':
        name = _key(key)
        match self:
            case Null():
                raise CryspRuntimeError(h(RTERROR_READ_PROPS_NULL, name))
            case Dictionary(entries=entries):
                handle = weakref.ref(self)
                if name in entries:
                    return replace(entries[name], container=handle)
                return Null(container=handle)
            case String(value=s) if name == 'length':
                return Number(float(len(s)))
        return Null()

    def set_member(self, key, value: 'Builtin') -> 'Builtin':
        name = _key(key)
        match self:
            case Null():
                raise CryspRuntimeError(h(RTERROR_WRITE_PROPS_NULL, name))
            case Dictionary(entries=entries):
                entries[name] = value
        return value

    def delete_member(self, key) -> 'Builtin':
        name = _key(key)
        match self:
            case Null():
                raise CryspRuntimeError(h(RTERROR_WRITE_PROPS_NULL, name))
            case Dictionary(entries=entries):
                entries.pop(name, None)
        return Null()


@dataclass(frozen=True, eq=False)
class Null(Builtin):
    kind = 'null'


@dataclass(frozen=True, eq=False)
class Number(Builtin):
    value: float = 0.0
    kind = 'number'

    def __post_init__(self):
        if not isinstance(self.value, float):
            object.__setattr__(self, 'value', float(self.value))


@dataclass(frozen=True, eq=False)
class Boolean(Builtin):
    value: bool = False
    kind = 'boolean'


@dataclass(frozen=True, eq=False)
class String(Builtin):
    value: str = ''
    kind = 'string'


@dataclass(frozen=True, eq=False)
class Function(Builtin):
    """A closure over the Context it was defined in, or a host callable."""
    params: Tuple[str, ...] = ()
    body: Optional['Node'] = None
    expression_bodied: bool = False
    name: Optional[str] = None
    closure: Optional['Context'] = field(default=None, repr=False)
    native: Optional[Callable[..., Builtin]] = field(default=None, repr=False)
    kind = 'function'


@dataclass(frozen=True, eq=False)
class Dictionary(Builtin):
    """A string-keyed mutable map. Two Dictionary values are the same value
    only when they share storage."""
    entries: Dict[str, Builtin] = field(default_factory=dict)
    kind = 'dictionary'


def from_python(obj) -> Builtin:
    """Convert a host value into a runtime value."""
    if isinstance(obj, Builtin):
        return obj
    if obj is None:
        return Null()
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, (int, float)):
        return Number(float(obj))
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, dict):
        return Dictionary({str(k): from_python(v) for k, v in obj.items()})
    if callable(obj):
        return native_function(obj, convert=True)
    raise TypeError(f"Cannot convert {type(obj).__name__} to a runtime value")


def native_function(fn: Callable, name: Optional[str] = None, convert: bool = False) -> Function:
    """Wrap a host callable. Its positional parameters become the function's
    arity; surplus arguments are dropped unless it takes *args. With
    `convert`, arguments and result cross the boundary as plain Python values."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        signature = None
    if signature is None:
        params, variadic = (), True
    else:
        parameters = signature.parameters.values()
        params = tuple(p.name for p in parameters if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
                       and p.default is p.empty)
        variadic = any(p.kind == p.VAR_POSITIONAL for p in parameters)

    def native(*args):
        if not variadic:
            args = args[:len(params)]
        if convert:
            return from_python(fn(*[a.to_python() for a in args]))
        return fn(*args)

    return Function(params, name=name or getattr(fn, '__name__', None), native=native)
