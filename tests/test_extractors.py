from chlvm.js.nodes import function_statements
from chlvm.js.parser import parse_script
from chlvm.vm.constant_folder import ConstantFolder
from chlvm.vm.extractors import (
    AssignmentExtractor,
    BinaryBitExtractor,
    BitExtractor,
    TestExtractor,
    equality_tests,
)


def _body(source: str):
    return function_statements(parse_script(source).body[0])


def test_bit_extractor_reads_indices_in_order() -> None:
    statements = _body("function h(r) { r[3] = r[r[4] ^ 9][5]; }")
    assert BitExtractor().collect(statements) == [3, 5, 9, 4]


def test_bit_extractor_skips_constants_index() -> None:
    statements = _body("function h(r) { r[3] = r[7][r[8]]; }")
    assert BitExtractor(constants_index=7).collect(statements) == [3, 8]


def test_bit_extractor_folds_known_identifiers() -> None:
    statements = _body("function h(r) { r[k] = r[z]; }")
    folder = ConstantFolder({"k": 11})
    assert BitExtractor(folder=folder).collect(statements) == [11]
    assert BitExtractor().collect(statements) == []


def test_equality_tests() -> None:
    expr = parse_script("t === 4 || 5 == t || t > 6").body[0].expression
    assert equality_tests(expr) == [4, 5]


def test_test_extractor_reads_ternary_chain() -> None:
    statements = _body("function h(r) { t === 1 ? r[1] = 0 : t === 2 ? r[2] = 0 : t === 3 && (r[3] = 0); }")
    assert TestExtractor().collect(statements[0]) == [1, 2, 3]


def test_test_extractor_reads_if_ladder() -> None:
    statements = _body(
        "function h(r) { if (t === 0) { r[1] = 1; } else if (t === 1 || t === 2) { r[2] = 2; } else { r[3] = 3; } }"
    )
    assert TestExtractor().collect(statements[0]) == [0, 1, 2]


def test_test_extractor_ignores_nested_functions() -> None:
    statements = _body("function h(r) { t === 1 ? function () { t === 9 && f(); } : t === 2 && g(); }")
    assert TestExtractor().collect(statements[0]) == [1, 2]


def test_assignment_extractor_keeps_first_occurrence() -> None:
    statements = _body("function h(r) { var a = r[1], u; b = r[2]; a = 3; r[4] = a; }")
    assert AssignmentExtractor().collect(statements) == ["a", "b"]


def test_binary_bit_extractor_flags_reversed_operands() -> None:
    statements = _body(
        "function h(r) { var a = r[1], b = r[2]; t === 0 ? (r[10] = a - b) : t === 1 && (r[11] = b - a); }"
    )
    identifiers = AssignmentExtractor().collect(statements)
    extractor = BinaryBitExtractor(None, identifiers)
    extractor.collect(statements[1])

    assert extractor.bits == [10, 11]
    assert extractor.swaps == [False, True]


def test_binary_bit_extractor_records_one_flag_per_tested_value() -> None:
    statements = _body("function h(r) { var a, b; a = 1; b = 2; t === 0 || t === 1 ? (r[5] = b * a) : 0; }")
    identifiers = AssignmentExtractor().collect(statements)
    extractor = BinaryBitExtractor(None, identifiers)
    extractor.collect(statements[-1])

    assert extractor.swaps == [True, True]
    assert extractor.bits == [5]


def test_binary_bit_extractor_folds_known_identifiers() -> None:
    statements = _body("function h(r) { var a, b; a = 1; b = 2; t === 0 ? (r[k] = a - b) : 0; }")
    identifiers = AssignmentExtractor().collect(statements)

    extractor = BinaryBitExtractor(None, identifiers, ConstantFolder({"k": 11}))
    extractor.collect(statements[-1])
    assert extractor.bits == [11]

    unfolded = BinaryBitExtractor(None, identifiers)
    unfolded.collect(statements[-1])
    assert unfolded.bits == []
