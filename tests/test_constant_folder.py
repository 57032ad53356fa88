import math
from types import SimpleNamespace

import pytest

from chlvm.js.parser import parse_script
from chlvm.vm.constant_folder import ConstantFolder, parse_js_number, to_i16, to_u16


def _expr(source: str):
    return parse_script(source).body[0].expression


def _lit(value):
    return SimpleNamespace(type="Literal", value=value)


@pytest.mark.parametrize(
    "source, expected",
    [
        ("2+3*4", 14),
        ("10 & 255", 10),
        ("!0", 1),
        ("!5", 0),
        ("-(3)", -3),
        ("~5", -6),
        ("~4294967295", 0),
        ('"12" * 2', 24),
        ("(1, 2, 7)", 7),
        ("0 || 9", 9),
        ("3 || 9", 3),
        ("0 && 9", 0),
        ("2 && 9", 9),
        ("1 ? 4 : 5", 4),
        ("0 ? 4 : 5", 5),
        ("1 << 4", 16),
        ("-16 >> 2", -4),
        ("7 % 4", 3),
        ("-7 % 4", -3),
        ("6 ^ 3", 5),
    ],
)
def test_fold_expressions(source: str, expected: float) -> None:
    assert ConstantFolder().fold(_expr(source)) == expected


def test_fold_nullish_coalescing() -> None:
    node = SimpleNamespace(type="LogicalExpression", operator="??", left=_lit(1), right=_lit(2))
    assert ConstantFolder().fold(node) == 1

    unresolved = SimpleNamespace(type="Identifier", name="nope")
    node = SimpleNamespace(type="LogicalExpression", operator="??", left=unresolved, right=_lit(2))
    assert ConstantFolder().fold(node) == 2


def test_fold_parenthesized_node_passes_through() -> None:
    node = SimpleNamespace(type="ParenthesizedExpression", expression=_lit(8))
    assert ConstantFolder().fold(node) == 8


def test_unknown_identifier_is_unresolved() -> None:
    folder = ConstantFolder()
    assert folder.fold(_expr("missing + 1")) is None
    assert folder.fold(_expr("f(1)")) is None
    assert folder.fold(_expr("a.b")) is None


def test_nan_is_falsy() -> None:
    folder = ConstantFolder()
    assert folder.fold(_expr("(0 / 0) || 4")) == 4
    assert math.isnan(folder.fold(_expr("0 / 0")))
    assert folder.fold(_expr("1 / 0")) == math.inf


def test_recorded_variables_are_used() -> None:
    folder = ConstantFolder()
    assert folder.record("a", _expr("3 + 4")) == 7
    assert folder.record("b", _expr("unknown")) is None
    assert folder.fold(_expr("a * 2")) == 14
    assert "b" not in folder.variables


def test_resolve_index_accepts_one_unresolved_operand() -> None:
    folder = ConstantFolder()
    assert folder.resolve_index(_expr("r ^ 12")) == 12
    assert folder.resolve_index(_expr("40 + r")) == 40
    assert folder.resolve_index(_expr("r + s")) is None
    assert folder.resolve_index(_expr("3 ^ 4")) == 7


def test_resolve_index_saturates_to_u16() -> None:
    folder = ConstantFolder()
    assert folder.resolve_index(_expr("-5")) == 0
    assert folder.resolve_index(_expr("70000")) == 0xFFFF


def test_raw_literal_searches_calls_and_member_objects() -> None:
    folder = ConstantFolder()
    assert folder.raw_literal(_expr('f(x, "42")')) == 42
    assert folder.raw_literal(_expr("g(h(9))")) == 9
    assert folder.raw_literal(_expr("f(x)")) is None


def test_number_helpers() -> None:
    assert parse_js_number("12.5") == 12.5
    assert parse_js_number("1e3") == 1000
    assert parse_js_number("abc") is None
    assert to_u16(math.nan) == 0
    assert to_u16(12.9) == 12
    assert to_i16(40000) == -25536
    assert to_i16(-3.7) == -3


@pytest.mark.parametrize(
    "text, expected",
    [
        ("inf", math.inf),
        ("-Infinity", -math.inf),
        ("+INF", math.inf),
        (" 12.5 ", None),
        ("12.5\n", None),
        ("", None),
        ("0x10", None),
        ("1.", 1.0),
        (".5", 0.5),
    ],
)
def test_parse_js_number_follows_float_literal_rules(text: str, expected) -> None:
    assert parse_js_number(text) == expected


def test_parse_js_number_accepts_nan() -> None:
    assert math.isnan(parse_js_number("NaN"))
    assert math.isnan(ConstantFolder().fold(_expr('"nan" * 1')))


def test_fold_long_left_nested_chain() -> None:
    chain = " + ".join(["1"] * 3000)
    assert ConstantFolder().fold(_expr(chain)) == 3000
    assert ConstantFolder().fold(_expr(chain + " + x")) is None
