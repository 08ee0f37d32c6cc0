import math

import pytest

from crysp.crysp_datatypes import (
    Null, Number, Boolean, String, Function, Dictionary, format_number, from_python,
)
from crysp.crysp_errors import CryspRuntimeError, DivisionByZero


@pytest.mark.parametrize("value, expected", [
    (3.0, "3"),
    (-0.0, "0"),
    (2.5, "2.5"),
    (math.inf, "Infinity"),
    (-math.inf, "-Infinity"),
    (math.nan, "NaN"),
    (1e21, "1e+21"),
])
def test_format_number(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize("value, number, truthy", [
    (Null(), 0.0, False),
    (Boolean(True), 1.0, True),
    (String(""), 0.0, False),
    (String("0"), 1.0, True),
    (Number(0), 0.0, False),
    (Dictionary(), 1.0, True),
    (Function(), 1.0, True),
])
def test_numerify_and_truthiness(value, number, truthy):
    assert value.numerify().value == number
    assert value.cast_bool().value is truthy


def test_nan_is_truthy():
    assert Number(math.nan).cast_bool().value is True


def test_cast_str():
    assert Null().cast_str().value == "null"
    assert Boolean(False).cast_str().value == "false"
    assert Number(7).cast_str().value == "7"
    assert Function(name="f").cast_str().value == "<func f>"
    assert Dictionary({"a": Number(1), "b": String("x")}).cast_str().value == '{a: 1, b: "x"}'


def test_add_concatenates_when_either_side_is_a_string():
    assert String("a").add(Number(1)).value == "a1"
    assert Number(1).add(String("a")).value == "1a"
    assert Number(1).add(Boolean(True)).value == 2.0
    assert Null().add(Number(1)).value == 1.0


@pytest.mark.parametrize("left, right, expected", [
    (String("hello"), Number(2), "hel"),
    (Number(2), String("hello"), "hel"),
    (String("hi"), Number(10), ""),
    (String("hi"), Number(-3), "hi"),
])
def test_string_subtract_drops_trailing_characters(left, right, expected):
    assert left.subtract(right).value == expected


@pytest.mark.parametrize("left, right, expected", [
    (String("ab"), Number(3), "ababab"),
    (String("ab"), Number(-2), "baba"),
    (String("ab"), Number(0), ""),
    (String("ab"), Number(2.9), "abab"),
])
def test_string_multiply(left, right, expected):
    assert left.multiply(right).value == expected


def test_string_divide_keeps_a_fraction():
    assert String("abcdef").divide(Number(2)).value == "abc"
    assert String("abcdef").divide(Number(4)).value == "a"
    assert String("abcdef").divide(Number(-2)).value == ""
    with pytest.raises(DivisionByZero):
        String("abc").divide(Number(0))


def test_two_strings_use_numeric_rules():
    assert String("a").subtract(String("b")).value == 0.0
    assert String("a").multiply(String("")).value == 0.0


def test_numeric_division_and_modulo():
    assert Number(7).divide(Number(2)).value == 3.5
    assert Number(-7).modulo(Number(3)).value == -1.0
    with pytest.raises(DivisionByZero) as exc:
        Number(1).divide(Null())
    assert exc.value.message == "Division by zero"
    with pytest.raises(DivisionByZero):
        Number(1).modulo(Number(0))


@pytest.mark.parametrize("base, exponent, expected", [
    (2, 10, 1024.0),
    (0, -1, math.inf),
    (10, 400, math.inf),
    (-10, 401, -math.inf),
])
def test_power(base, exponent, expected):
    assert Number(base).power(Number(exponent)).value == expected


def test_power_domain_error_is_nan():
    assert math.isnan(Number(-8).power(Number(0.5)).value)


def test_strict_equality():
    assert Number(1).equals(Number(1)).value
    assert not Number(1).equals(String("1")).value
    assert not Null().equals(Boolean(False)).value
    assert Null().equals(Null()).value
    d = Dictionary()
    assert d.equals(d).value
    assert not d.equals(Dictionary()).value
    assert Number(1).not_equals(Number(2)).value


def test_ordering():
    assert String("apple").less(String("banana")).value
    assert String("10").less(Number(2)).value is True  # "10" numerifies to 1
    assert Number(3).greater_eq(Number(3)).value
    assert not Number(math.nan).less(Number(1)).value


def test_logical_operators_return_an_operand():
    zero, word = Number(0), String("x")
    assert zero.and_(word) is zero
    assert word.and_(zero) is zero
    assert zero.or_(word) is word
    assert word.or_(zero) is word


def test_member_access():
    d = Dictionary({"k": Number(5)})
    assert d.member("k").value == 5.0
    assert d.member("k").owner() is d
    missing = d.member("nope")
    assert isinstance(missing, Null) and missing.owner() is d
    assert String("four").member("length").value == 4.0
    assert isinstance(Number(3).member("x"), Null)
    with pytest.raises(CryspRuntimeError) as exc:
        Null().member("x")
    assert exc.value.message == "Cannot read properties of null (reading 'x')"


def test_set_and_delete_member():
    d = Dictionary()
    d.set_member("a", Number(1))
    assert d.entries["a"].value == 1.0
    d.delete_member("a")
    assert "a" not in d.entries
    Number(1).set_member("a", Number(2))
    with pytest.raises(CryspRuntimeError) as exc:
        Null().set_member("a", Number(1))
    assert exc.value.message == "Cannot write properties of null (writing 'a')"


def test_from_python_round_trip():
    value = from_python({"n": 1, "s": "x", "b": True, "z": None, "d": {"x": 2.5}})
    assert isinstance(value, Dictionary)
    assert value.to_python() == {"n": 1.0, "s": "x", "b": True, "z": None, "d": {"x": 2.5}}


def test_from_python_wraps_callables():
    func = from_python(lambda a, b: a + b)
    assert isinstance(func, Function)
    assert func.params == ("a", "b")
    assert func.native(Number(2), Number(3), Number(99)).value == 5.0
