"""Tag predicate validation and trigger argument parsing."""

import pytest

from benchqueue.errors import SubmissionValidationError
from benchqueue.jobs.tagpred import (
    is_valid_tagpred,
    normalize,
    parse_benchmark_args,
)


@pytest.mark.parametrize(
    "tagpred",
    [
        "ALL",
        '"array"',
        '"array" && "linalg"',
        '"array" || "linalg"',
        '!"array"',
        '!("array" || "linalg") && "sparse"',
        '"array" and not "linalg"',
        "ALL && !\"slow\"",
        'ALL("array")',
    ],
)
def test_valid_predicates(tagpred):
    assert is_valid_tagpred(tagpred)


@pytest.mark.parametrize(
    "tagpred",
    [
        '"array" + "linalg"',
        "x = 1",
        "1",
        "foo",
        '__import__("os").system("ls")',
        '"array"[0]',
        '"a" if "b" else "c"',
        '"array" == "linalg"',
        "lambda: 1",
        "",
    ],
)
def test_invalid_predicates(tagpred):
    assert not is_valid_tagpred(tagpred)


def test_normalize_leaves_string_literals_alone():
    assert normalize('"a&&b" && !"c||d"') == '"a&&b"  and   not "c||d"'


def test_parse_args_single_tag():
    tagpred, against = parse_benchmark_args('"array"')
    assert tagpred == "'array'"
    assert against is None
    assert is_valid_tagpred(tagpred)


def test_parse_args_with_comparison():
    tagpred, against = parse_benchmark_args('"array" || "linalg", vs = "org/proj:main"')
    assert tagpred == "'array' or 'linalg'"
    assert against == "org/proj:main"


def test_parse_args_rejects_unknown_keyword():
    with pytest.raises(SubmissionValidationError, match="malformed comparison argument"):
        parse_benchmark_args('ALL, against = "org/proj"')


def test_parse_args_rejects_non_string_comparison():
    with pytest.raises(SubmissionValidationError):
        parse_benchmark_args("ALL, vs = 3")


def test_parse_args_rejects_garbage():
    with pytest.raises(SubmissionValidationError):
        parse_benchmark_args('"array", (')
