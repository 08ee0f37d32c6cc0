"""
Scope chain and dynamic context.

`Bindings` is the lexical variable table: each table has a parent and name
lookup walks outward. `Context` is the dynamic frame: it records where it was
entered, which kind of construct it belongs to (so `return`, `break` and
`continue` can be validated) and which Bindings are in scope.
"""

from typing import Dict, Optional, TYPE_CHECKING

from crysp.crysp_tokens import Position

if TYPE_CHECKING:
    from crysp.crysp_datatypes import Builtin


class NameNotDefined(KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name


class NameAlreadyDeclared(KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name


class Bindings:
    def __init__(self, parent: Optional['Bindings'] = None, initial: Optional[Dict[str, 'Builtin']] = None):
        self.vars: Dict[str, 'Builtin'] = dict(initial or {})
        self.parent = parent

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def __getitem__(self, name: str) -> 'Builtin':
        return self.lookup(name)

    def has_here(self, name: str) -> bool:
        return name in self.vars

    def find_owner(self, name: str) -> Optional['Bindings']:
        table = self
        while table is not None:
            if name in table.vars:
                return table
            table = table.parent
        return None

    def lookup(self, name: str) -> 'Builtin':
        owner = self.find_owner(name)
        if owner is None:
            raise NameNotDefined(name)
        return owner.vars[name]

    def declare(self, name: str, value: 'Builtin') -> 'Builtin':
        if name in self.vars:
            raise NameAlreadyDeclared(name)
        self.vars[name] = value
        return value

    def assign(self, name: str, value: 'Builtin') -> 'Builtin':
        owner = self.find_owner(name)
        if owner is None:
            raise NameNotDefined(name)
        owner.vars[name] = value
        return value


# Context boundaries.
FUNCTION = 'function'
LOOP = 'loop'
SWITCH = 'switch'


class Context:
    def __init__(self, name: str, parent: Optional['Context'] = None,
                 entry_position: Optional[Position] = None, boundary: Optional[str] = None,
                 bindings: Optional[Bindings] = None):
        self.name = name
        self.parent = parent
        self.entry_position = entry_position
        self.boundary = boundary
        if bindings is None:
            bindings = Bindings(parent.bindings if parent is not None else None)
        self.bindings = bindings

    def __repr__(self) -> str:
        return f"<Context {self.name}{' ' + self.boundary if self.boundary else ''}>"

    def child(self, name: str, entry_position: Optional[Position] = None,
              boundary: Optional[str] = None) -> 'Context':
        """A nested context whose bindings extend this one's."""
        return Context(name, self, entry_position, boundary)

    def nearest_function(self) -> 'Context':
        """The innermost enclosing function context, or the root."""
        ctx = self
        while ctx.boundary != FUNCTION and ctx.parent is not None:
            ctx = ctx.parent
        return ctx

    def is_inside_function(self) -> bool:
        return self.nearest_function().boundary == FUNCTION

    def is_inside_loop(self, include_switch: bool = False) -> bool:
        """True when a loop (or a switch, for `break`) encloses this context
        without crossing a function boundary."""
        ctx = self
        while ctx is not None:
            if ctx.boundary == LOOP or (include_switch and ctx.boundary == SWITCH):
                return True
            if ctx.boundary == FUNCTION:
                return False
            ctx = ctx.parent
        return False
