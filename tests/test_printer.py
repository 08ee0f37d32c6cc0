import pytest

from crysp import ScriptRunner
from crysp.crysp_datatypes import Null, Number, Boolean, String, Function, Dictionary
from crysp.crysp_parser import parse
from crysp.crysp_printer import Printer, quote


@pytest.fixture
def printer():
    return Printer(indent_width=2)


def fmt(printer, src):
    return printer.format_program(parse(src))


# Test cases: (id, object, expected_string)
VALUE_CASES = [
    ("null", Null(), "null"),
    ("int", Number(3), "3"),
    ("float", Number(-1.5), "-1.5"),
    ("true", Boolean(True), "true"),
    ("string", String('say "hi"\n'), '"say \\"hi\\"\\n"'),
    ("named_func", Function(name="f"), "<func f>"),
    ("anon_func", Function(), "<func>"),
    ("empty_dict", Dictionary(), "{}"),
    ("nested_dict", Dictionary({"a": Dictionary({"b": Number(2)})}), "{a: {b: 2}}"),
]


@pytest.mark.parametrize("case_id, value, expected", VALUE_CASES, ids=[c[0] for c in VALUE_CASES])
def test_format_values(printer, case_id, value, expected):
    assert printer.pformat(value) == expected


def test_display_leaves_strings_unquoted(printer):
    assert printer.display(String("plain")) == "plain"
    assert printer.display(Number(2)) == "2"


def test_quote_escapes_backslashes():
    assert quote("a\\b") == '"a\\\\b"'


@pytest.mark.parametrize("src, expected", [
    ("let x = 1 + 2 * 3", "let x = (1 + (2 * 3))"),
    ("-a ^ 2", "(- (a ^ 2))"),
    ("not a or b", "((not a) or b)"),
    ("a.b[c](1, 'x')", 'a.b[c](1, "x")'),
    ("(1).x", "(1).x"),
    ("n++", "n++"),
    ("d.k -= 2", "d.k -= 2"),
    ("let y", "let y"),
    ("f(x = 1)", "f((x = 1))"),
    ("func f(a, b): a + b", "func f(a, b): (a + b)"),
    ("(func () {})", "(func () {})"),
    ("if (a) b else c", "if (a) b else c"),
    ("return", "return"),
    ("delete d.k", "delete d.k"),
])
def test_format_expressions_and_statements(printer, src, expected):
    assert fmt(printer, src) == expected


def test_blocks_are_indented(printer):
    src = "while (i < 3) { i++; if (i == 2) { break } }"
    assert fmt(printer, src) == (
        "while ((i < 3)) {\n"
        "  i++\n"
        "  if ((i == 2)) {\n"
        "    break\n"
        "  }\n"
        "}"
    )


def test_switch_layout(printer):
    src = "switch (x) { case 1: a; b default: c }"
    assert fmt(printer, src) == (
        "switch (x) {\n"
        "  case 1:\n"
        "    a\n"
        "    b\n"
        "  default:\n"
        "    c\n"
        "}"
    )


ROUND_TRIP_PROGRAM = """
func fact(n) {
  if (n <= 1) return 1
  return n * fact(n - 1)
}
let d = dict()
d.items = 0
let i = 0
while (i < 5) {
  i++
  if (i % 2 == 0) continue
  d.items += i
}
switch (d.items) {
  case 9: d.tag = 'nine'
  default: d.tag += '!'
}
try { throw 'x' } catch (e) { d.err = e }
repeat (2) d.items--
do { i-- } while (i > 0)
let sq = func (x): x * x
fact(4) + sq(d.items) + d.tag + d.err
"""


def test_round_trip_reproduces_tree_and_result(printer):
    printed = fmt(printer, ROUND_TRIP_PROGRAM)
    assert fmt(printer, printed) == printed

    direct = ScriptRunner().handle_script(ROUND_TRIP_PROGRAM)
    reprinted = ScriptRunner().handle_script(printed)
    assert direct.status == reprinted.status == 'success'
    assert direct.value.to_python() == reprinted.value.to_python() == "73nine!x"
