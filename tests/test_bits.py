import pytest

from chlvm.vm.bits import normalize_bits


def test_marker_runs_and_separators_are_stripped() -> None:
    assert normalize_bits([195, 188, 195, 188, 5, 127, 6]) == [5, 6]


def test_lone_first_marker_is_preserved() -> None:
    assert normalize_bits([195, 7]) == [195, 7]
    assert normalize_bits([188, 195]) == [188, 195]


def test_stripping_can_expose_a_new_pair() -> None:
    assert normalize_bits([195, 127, 188, 4]) == [4]
    assert normalize_bits([195, 195, 188, 188]) == []


@pytest.mark.parametrize(
    "raw",
    [
        [],
        [1, 2, 3],
        [195, 188, 195, 188, 5, 127, 6],
        [195, 195, 188, 188],
        [195, 127, 127, 188, 195, 188, 9],
        [127, 195, 7, 188],
    ],
)
def test_normalize_is_idempotent(raw) -> None:
    once = normalize_bits(raw)
    assert normalize_bits(once) == once


def test_custom_markers() -> None:
    assert normalize_bits([1, 2, 3, 0, 4], marker_pair=(1, 2), separator=0) == [3, 4]
