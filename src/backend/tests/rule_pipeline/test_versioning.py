import pytest

from common.rule_pipeline.versioning import (
    SemanticVersion,
    satisfies,
    try_parse_constraint,
    try_parse_version,
)


def test_parse_version_fills_missing_parts_and_keeps_prerelease():
    version = try_parse_version("v1.2")
    assert version == SemanticVersion(1, 2, 0)

    version = try_parse_version("2.0.0-beta.1+build.7")
    assert version.core == (2, 0, 0)
    assert version.prerelease == ("beta", "1")
    assert version.build == "build.7"
    assert str(version) == "2.0.0-beta.1+build.7"


@pytest.mark.parametrize("text", ["", "abc", "1.2.3.4", "01.0.0", None, 3])
def test_parse_version_rejects_invalid_text(text):
    assert try_parse_version(text) is None


def test_prerelease_precedence():
    ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-alpha.beta", "1.0.0-beta", "1.0.0-beta.2", "1.0.0-beta.11", "1.0.0-rc.1", "1.0.0"]
    parsed = [try_parse_version(v) for v in ordered]
    assert sorted(reversed(parsed)) == parsed


def test_build_metadata_is_ignored_for_equality():
    assert try_parse_version("1.0.0+a") == try_parse_version("1.0.0+b")


@pytest.mark.parametrize(
    "version, constraint, expected",
    [
        ("1.0.0", "1.0.0", True),
        ("1.0.1", "=1.0.0", False),
        ("2.5.0", "2.x", True),
        ("1.0.0", "2.x", False),
        ("3.0.0", "2.x", False),
        ("2.9.9", "2", True),
        ("1.2.9", "1.2", True),
        ("1.3.0", "1.2", False),
        ("1.9.0", "^1.2.3", True),
        ("2.0.0", "^1.2.3", False),
        ("0.2.5", "^0.2.3", True),
        ("0.3.0", "^0.2.3", False),
        ("0.0.3", "^0.0.3", True),
        ("0.0.4", "^0.0.3", False),
        ("1.2.9", "~1.2.3", True),
        ("1.3.0", "~1.2.3", False),
        ("1.5.0", ">=1.0.0 <2.0.0", True),
        ("2.0.0", ">=1.0.0 <2.0.0", False),
        ("2.0.0", ">= 1.0.0", True),
        ("1.0.5", ">1.0", False),
        ("1.1.0", ">1.0", True),
        ("1.1.0", ">1", False),
        ("2.0.0", ">1", True),
        ("1.0.1", ">1.0.0", True),
        ("1.9.9", "<=1.x", True),
        ("2.0.0", "<=1.x", False),
        ("0.9.0", "<1.0.0", True),
        ("3.1.0", "1.x || >=3.0.0", True),
        ("2.1.0", "1.x || >=3.0.0", False),
        ("9.9.9", "*", True),
    ],
)
def test_satisfies(version, constraint, expected):
    assert satisfies(version, constraint) is expected


def test_prerelease_needs_a_comparator_on_the_same_core_version():
    assert satisfies("1.2.3-beta.2", ">=1.2.3-beta.1") is True
    assert satisfies("1.2.4-beta.1", ">=1.2.3-beta.1") is False
    assert satisfies("2.0.0-rc.1", "2.x") is False


def test_prerelease_modifier_allows_prerelease_versions():
    assert satisfies("2.0.0-rc.1", "2.x@pre") is True
    assert satisfies("1.5.0-beta", ">=1.0.0 @prerelease") is True
    assert try_parse_constraint("@pre") is None


@pytest.mark.parametrize(
    "version, constraint",
    [
        ("not-a-version", "1.x"),
        ("1.0.0", "not a constraint"),
        ("1.0.0", ""),
        (None, "1.x"),
        ("1.0.0", None),
        ("1.0.0", ">=1.0.0 ||"),
        ("1.0.0", "x.1"),
    ],
)
def test_unparseable_input_fails_closed(version, constraint):
    assert satisfies(version, constraint) is False
