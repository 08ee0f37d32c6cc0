import pytest

from crysp import ScriptRunner, run
from crysp.crysp_datatypes import Dictionary, Function, Number, String
from crysp.crysp_nodes import Block
from crysp.crysp_runtime import StdLib
from crysp.crysp_interpreter import Evaluator
from crysp.crysp_errors import CryspRuntimeError
from crysp.crysp_grammar import default_grammar


@pytest.fixture
def stdlib():
    return StdLib(Evaluator())


def test_stdlib_methods_are_bound_without_underscore():
    runner = ScriptRunner()
    for name in ("print", "str", "num", "bool", "type", "len", "keys", "has", "dict"):
        assert isinstance(runner.prelude.vars[name], Function)
    assert isinstance(runner.prelude.vars["shared"], Dictionary)


def test_print_joins_arguments_with_spaces(stdlib):
    stdlib._print(String("a"), Number(1), String("b"))
    assert stdlib.evaluator.side_effects == [{'topics': ['stdout'], 'message': "a 1 b"}]


def test_len_rejects_other_kinds(stdlib):
    assert stdlib._len(Dictionary({"a": Number(1)})).value == 1.0
    with pytest.raises(CryspRuntimeError):
        stdlib._len(Number(3))


def test_keys_lists_member_names_in_insertion_order():
    res = run("let d = dict()\nd.b = 1\nd.a = 2\nlet k = keys(d)\nk[0] + k[1] + len(k)")
    assert res.value.to_python() == "ba2"
    assert run("len(keys(3))").value.to_python() == 0


def test_has_is_false_for_non_dictionaries(stdlib):
    assert stdlib._has(String("abc"), String("length")).value is False


def test_parse_returns_a_program_block():
    program = ScriptRunner().parse("let a = 1; a")
    assert isinstance(program, Block)
    assert len(program.statements) == 2


def test_runners_do_not_share_globals():
    first, second = ScriptRunner(), ScriptRunner()
    assert first.handle_script("let only_here = 1").status == 'success'
    assert second.handle_script("only_here").status == 'error'


def test_runners_share_the_compiled_grammar():
    assert ScriptRunner().grammar is ScriptRunner().grammar is default_grammar()


def test_evaluator_state_is_only_the_side_effect_log():
    runner = ScriptRunner()
    runner.handle_script("print(1)")
    assert vars(runner.evaluator) == {"side_effects": [{"topics": ["stdout"], "message": "1"}]}


def test_host_prelude_values_are_converted():
    res = run("cfg.depth * 2 + len(cfg.name)", prelude={"cfg": {"depth": 4, "name": "abc"}})
    assert res.status == 'success'
    assert res.value.to_python() == 11


def test_host_callable_errors_surface_as_runtime_errors():
    def strict(value):
        raise CryspRuntimeError("strict says no")

    res = run("strict(1)", prelude={"strict": strict})
    assert res.status == 'error'
    assert "RuntimeError: strict says no (line 1, col 1)" in res.error_message
