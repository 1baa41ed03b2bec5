import pytest

from gamestream.version import parse_version_quad


@pytest.mark.parametrize(
    "text, expected",
    [
        ("7.1.431.0", (7, 1, 431, 0)),
        ("7.1.431", (7, 1, 431, 0)),
        ("3.24.0.126", (3, 24, 0, 126)),
        ("12", (12, 0, 0, 0)),
        ("", (0, 0, 0, 0)),
    ],
)
def test_parses_dotted_versions(text, expected):
    assert parse_version_quad(text) == expected


def test_missing_component_between_dots_reads_as_zero():
    assert parse_version_quad("7..5") == (7, 0, 5, 0)


def test_leading_whitespace_and_signs_are_accepted():
    assert parse_version_quad(" 7. 2.-1") == (7, 2, -1, 0)


def test_non_numeric_text_reads_as_zeros():
    assert parse_version_quad("abc") == (0, 0, 0, 0)


def test_extra_components_are_ignored():
    assert parse_version_quad("1.2.3.4.5") == (1, 2, 3, 4)


def test_result_always_has_four_components():
    for text in ["1", "1.2", "1.2.3", "1.2.3.4", "x.y"]:
        assert len(parse_version_quad(text)) == 4