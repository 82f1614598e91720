"""Tag predicate parsing and validation.

A tag predicate selects the benchmarks to run, e.g.
``"array" && !("linalg" || "broadcast")`` or ``ALL``. Predicates are parsed
as Python expressions after rewriting ``&&``, ``||`` and ``!`` to their
keyword forms, then validated against a small whitelist of node types. The
whitelist only guards against evaluating arbitrary code; it does not check
that the tags exist.
"""

from __future__ import annotations

import ast

from benchqueue.errors import SubmissionValidationError

VALID_NAMES = frozenset({"ALL"})
COMPARISON_KEYWORD = "vs"


def normalize(text: str) -> str:
    """Rewrite C-style boolean operators outside of string literals."""
    out: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            out.append(ch)
        elif text.startswith("&&", i):
            out.append(" and ")
            i += 2
            continue
        elif text.startswith("||", i):
            out.append(" or ")
            i += 2
            continue
        elif ch == "!" and not text.startswith("!=", i):
            out.append(" not ")
        else:
            out.append(ch)
        i += 1
    return "".join(out).strip()


def _is_valid_node(node: ast.AST) -> bool:
    if isinstance(node, ast.Constant):
        return isinstance(node.value, str)
    if isinstance(node, ast.Name):
        return node.id in VALID_NAMES
    if isinstance(node, ast.BoolOp):
        return all(_is_valid_node(value) for value in node.values)
    if isinstance(node, ast.UnaryOp):
        return isinstance(node.op, ast.Not) and _is_valid_node(node.operand)
    if isinstance(node, ast.Call):
        return (
            isinstance(node.func, ast.Name)
            and node.func.id in VALID_NAMES
            and not node.keywords
            and all(_is_valid_node(arg) for arg in node.args)
        )
    return False


def _parse(text: str) -> ast.expr | None:
    try:
        return ast.parse(normalize(text), mode="eval").body
    except SyntaxError:
        return None


def is_valid_tagpred(tagpred: str) -> bool:
    """Return True if the predicate only uses negation, conjunction,
    disjunction, call form, ``ALL`` and string literals."""
    node = _parse(tagpred)
    return node is not None and _is_valid_node(node)


def parse_benchmark_args(argstr: str) -> tuple[str, str | None]:
    """Split trigger arguments into a tag predicate and an optional comparison.

    ``'"array", vs = "owner/repo:branch"'`` -> ``("'array'", "owner/repo:branch")``
    """
    try:
        call = ast.parse(f"_({normalize(argstr)})", mode="eval").body
    except SyntaxError as e:
        raise SubmissionValidationError(f"malformed benchmark arguments: {argstr}") from e
    if not isinstance(call, ast.Call) or not isinstance(call.func, ast.Name):
        raise SubmissionValidationError(f"malformed benchmark arguments: {argstr}")

    if len(call.args) != 1:
        raise SubmissionValidationError(
            f"expected exactly one tag predicate, got {len(call.args)}: {argstr}"
        )

    against: str | None = None
    for keyword in call.keywords:
        value = keyword.value
        if (
            keyword.arg != COMPARISON_KEYWORD
            or not isinstance(value, ast.Constant)
            or not isinstance(value.value, str)
        ):
            raise SubmissionValidationError(f"malformed comparison argument: {ast.unparse(keyword)}")
        against = value.value

    return ast.unparse(call.args[0]), against
