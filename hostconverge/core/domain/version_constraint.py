"""
Version constraints — does an installed version satisfy a declaration?

Pure functions, no I/O. Package managers report versions in their own
dialect (``1:1.24.0-2ubuntu7``, ``20.11.1-1nodesource1``, ``v5.3.0``);
only the leading numeric components of the upstream version are
compared.

Constraint syntax::

    ""  / "*" / "latest"   anything installed
    "1.24"                 same as "==1.24"
    "==1.24"               the declared components match (1.24.0, 1.24.7)
    ">=20", ">20", "<=3", "<3"
    "~=1.2"                same major, and >= 1.2
    ">=20,<21"             conjunction of the above
"""

from __future__ import annotations

import re

_OPERATORS = ("==", ">=", "<=", "~=", ">", "<")
_ANY = {"", "*", "latest"}
_LEADING_DIGITS = re.compile(r"^(\d+)")


def parse_version(version: str) -> tuple[int, ...]:
    """Extract the comparable numeric components of a version string.

    Raises:
        ValueError: If the version has no leading numeric component.
    """
    text = version.strip().lstrip("vV")
    if ":" in text:
        text = text.split(":", 1)[1]  # debian epoch
    text = re.split(r"[-+~]", text, maxsplit=1)[0]

    parts: list[int] = []
    for piece in text.split("."):
        m = _LEADING_DIGITS.match(piece)
        if not m:
            break
        parts.append(int(m.group(1)))
        if m.group(1) != piece:
            break  # "3rc1" — stop after the numeric prefix

    if not parts:
        raise ValueError(f"Unparseable version: {version!r}")
    return tuple(parts)


def parse_constraint(constraint: str | None) -> list[tuple[str, tuple[int, ...]]]:
    """Split a constraint into ``(operator, version)`` clauses.

    An empty list means "any version".

    Raises:
        ValueError: On an unparseable clause.
    """
    if constraint is None or constraint.strip() in _ANY:
        return []

    clauses: list[tuple[str, tuple[int, ...]]] = []
    for raw in constraint.split(","):
        clause = raw.strip()
        if not clause:
            raise ValueError(f"Empty clause in version constraint {constraint!r}")
        op = next((o for o in _OPERATORS if clause.startswith(o)), "==")
        ref = clause[len(op):].strip() if clause.startswith(op) else clause
        clauses.append((op, parse_version(ref)))
    return clauses


def pinned_version(constraint: str | None) -> str | None:
    """Return ``X`` when the constraint is exactly ``==X`` (or bare ``X``)."""
    if constraint is None or constraint.strip() in _ANY or "," in constraint:
        return None
    clause = constraint.strip()
    if clause.startswith("=="):
        return clause[2:].strip()
    if clause[0] in "<>~=":
        return None
    return clause


def _pad(a: tuple[int, ...], b: tuple[int, ...]) -> tuple[tuple[int, ...], tuple[int, ...]]:
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)), b + (0,) * (width - len(b))


def _clause_holds(op: str, version: tuple[int, ...], ref: tuple[int, ...]) -> bool:
    if op == "==":
        return version[: len(ref)] == ref
    if op == "~=":
        if version[0] != ref[0]:
            return False
        v, r = _pad(version, ref)
        return v >= r

    v, r = _pad(version, ref)
    if op == ">=":
        return v >= r
    if op == ">":
        return v > r
    if op == "<=":
        return v <= r
    return v < r


def satisfies(version: str, constraint: str | None) -> bool:
    """Check whether ``version`` satisfies every clause of ``constraint``.

    A version that cannot be parsed only satisfies the "any" constraint.
    """
    clauses = parse_constraint(constraint)
    if not clauses:
        return True
    try:
        parsed = parse_version(version)
    except ValueError:
        return False
    return all(_clause_holds(op, parsed, ref) for op, ref in clauses)
