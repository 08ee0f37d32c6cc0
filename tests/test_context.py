import pytest

from crysp.crysp_context import (
    Bindings, Context, NameAlreadyDeclared, NameNotDefined, FUNCTION, LOOP, SWITCH,
)
from crysp.crysp_datatypes import Number


def test_lookup_walks_outward_and_assign_updates_the_owner():
    outer = Bindings()
    outer.declare("x", Number(1))
    inner = Bindings(outer)
    assert inner.lookup("x").value == 1.0
    assert not inner.has_here("x")
    inner.assign("x", Number(2))
    assert outer.vars["x"].value == 2.0
    assert "x" not in inner.vars


def test_declare_twice_in_one_table_fails_but_shadowing_is_allowed():
    outer = Bindings()
    outer.declare("x", Number(1))
    with pytest.raises(NameAlreadyDeclared):
        outer.declare("x", Number(2))
    inner = Bindings(outer)
    inner.declare("x", Number(3))
    assert inner["x"].value == 3.0
    assert outer["x"].value == 1.0


def test_missing_names():
    table = Bindings()
    with pytest.raises(NameNotDefined) as exc:
        table.lookup("ghost")
    assert exc.value.name == "ghost"
    with pytest.raises(NameNotDefined):
        table.assign("ghost", Number(1))
    assert "ghost" not in table


def test_child_context_extends_bindings():
    root = Context("global")
    root.bindings.declare("a", Number(1))
    block = root.child("<block>")
    assert block.parent is root
    assert block.bindings.parent is root.bindings
    assert block.bindings.lookup("a").value == 1.0


def test_nearest_function_and_inside_function():
    root = Context("global")
    assert root.nearest_function() is root
    assert not root.is_inside_function()
    fn = Context("f", root, boundary=FUNCTION)
    block = fn.child("<block>")
    assert block.nearest_function() is fn
    assert block.is_inside_function()


def test_loop_and_switch_boundaries_stop_at_functions():
    root = Context("global")
    loop = root.child("<loop>", boundary=LOOP)
    switch = root.child("<switch>", boundary=SWITCH)
    assert loop.child("<block>").is_inside_loop()
    assert not switch.child("<block>").is_inside_loop()
    assert switch.child("<block>").is_inside_loop(include_switch=True)

    fn = Context("f", loop, boundary=FUNCTION)
    assert not fn.child("<block>").is_inside_loop(include_switch=True)
