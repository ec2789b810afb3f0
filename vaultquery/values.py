"""Variant model for frontmatter values and the coercion rules used by queries.

Frontmatter arrives from YAML as plain Python objects. Queries see them
through :class:`ValueKind`:

``STRING``   str
``NUMBER``   int or float (never bool)
``BOOLEAN``  bool
``DATE``     datetime.date or datetime.datetime
``LIST``     list or tuple of values
``MAPPING``  dict-like
``NULL``     an explicit ``null`` in the frontmatter
``MISSING``  the key does not exist

Comparison coercions, applied in order:

1. Either operand MISSING: every comparison is false.
2. Both operands parse as dates (date values or ISO ``YYYY-MM-DD[THH:MM[:SS]]``
   strings): compared as datetimes.
3. NUMBER against a numeric string: both compared as floats.
4. BOOLEAN against ``"true"``/``"false"``: compared as booleans.
5. Same kind: compared natively (strings case-sensitively).
6. Otherwise ``=`` is false, ``!=`` is true and ordering operators raise
   :class:`~vaultquery.errors.EvaluationError`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from .errors import EvaluationError
from .text import Messages

PLACEHOLDER = "—"
CYCLE_MARKER = "[Circular]"

_ISO_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class ValueKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    LIST = "list"
    MAPPING = "mapping"
    NULL = "null"
    MISSING = "missing"


def kind_of(value: object) -> ValueKind:
    if value is MISSING:
        return ValueKind.MISSING
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, (date, datetime)):
        return ValueKind.DATE
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, (list, tuple, set, frozenset)):
        return ValueKind.LIST
    return ValueKind.STRING


def parse_date(value: object) -> datetime | None:
    """Return *value* as a naive datetime when it is (or looks like) a date."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if not _ISO_DATE_RE.match(text):
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed.replace(tzinfo=None)
    return None


def parse_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMBER_RE.match(value.strip()):
        return float(value.strip())
    return None


def _parse_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def resolve_path(source: Mapping[str, Any] | None, dotted: str) -> Any:
    """Walk *dotted* through nested mappings, returning MISSING when absent."""
    if source is None:
        return MISSING
    if dotted in source:
        return source[dotted]
    current: Any = source
    for part in dotted.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return MISSING
    return current


def is_truthy(value: object) -> bool:
    if value is MISSING or value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, Mapping)):
        return len(value) > 0
    return bool(value)


def _coerce_pair(left: object, right: object) -> tuple[object, object] | None:
    left_date = parse_date(left)
    right_date = parse_date(right)
    if left_date is not None and right_date is not None:
        return left_date, right_date
    if left_date is not None or right_date is not None:
        # A date only ever compares against another date.
        return None

    left_kind = kind_of(left)
    right_kind = kind_of(right)
    if ValueKind.NUMBER in (left_kind, right_kind):
        left_num = parse_number(left)
        right_num = parse_number(right)
        if left_num is not None and right_num is not None:
            return left_num, right_num
    if ValueKind.BOOLEAN in (left_kind, right_kind):
        left_bool = _parse_bool(left)
        right_bool = _parse_bool(right)
        if left_bool is not None and right_bool is not None:
            return left_bool, right_bool
    if left_kind == right_kind and left_kind in (
        ValueKind.STRING,
        ValueKind.NUMBER,
        ValueKind.BOOLEAN,
        ValueKind.NULL,
    ):
        return left, right
    if left_kind == right_kind == ValueKind.LIST:
        return list(left), list(right)  # type: ignore[arg-type]
    if left_kind == right_kind == ValueKind.MAPPING:
        return dict(left), dict(right)  # type: ignore[arg-type]
    return None


def equals(left: object, right: object) -> bool:
    if left is MISSING or right is MISSING:
        return False
    pair = _coerce_pair(left, right)
    if pair is None:
        return False
    return pair[0] == pair[1]


def compare(op: str, left: object, right: object) -> bool:
    """Evaluate ``left <op> right`` under the module's coercion rules."""
    if left is MISSING or right is MISSING:
        return False
    if op == "=":
        return equals(left, right)
    if op == "!=":
        return not equals(left, right)
    pair = _coerce_pair(left, right)
    orderable = pair is not None and kind_of(pair[0]) not in (
        ValueKind.NULL,
        ValueKind.MAPPING,
    )
    if not orderable:
        raise EvaluationError(
            Messages.ERROR_TYPE_MISMATCH.format(
                left=kind_of(left).value, right=kind_of(right).value, op=op
            )
        )
    a, b = pair
    try:
        if op == ">":
            return a > b
        if op == ">=":
            return a >= b
        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
    except TypeError as exc:
        raise EvaluationError(
            Messages.ERROR_TYPE_MISMATCH.format(
                left=kind_of(left).value, right=kind_of(right).value, op=op
            )
        ) from exc
    raise EvaluationError(f"Unknown operator '{op}'")


def contains(container: object, needle: object) -> bool:
    """Membership for lists, substring for strings, key lookup for mappings."""
    if container is MISSING or container is None or needle is MISSING:
        return False
    kind = kind_of(container)
    if kind == ValueKind.LIST:
        return any(equals(item, needle) for item in container)  # type: ignore[union-attr]
    if kind == ValueKind.STRING:
        if not isinstance(needle, str):
            needle = render_value(needle)
        return needle in container  # type: ignore[operator]
    if kind == ValueKind.MAPPING:
        return isinstance(needle, str) and needle in container  # type: ignore[operator]
    raise EvaluationError(Messages.ERROR_CONTAINS_TARGET.format(kind=kind.value))


_KIND_RANK = {
    ValueKind.NUMBER: 0,
    ValueKind.DATE: 1,
    ValueKind.BOOLEAN: 2,
    ValueKind.STRING: 3,
    ValueKind.LIST: 4,
    ValueKind.MAPPING: 5,
}


def sort_key(value: object) -> tuple[int, Any]:
    """Return a total-order key; MISSING and NULL are handled by the caller."""
    as_date = parse_date(value)
    if as_date is not None:
        return _KIND_RANK[ValueKind.DATE], as_date
    kind = kind_of(value)
    if kind == ValueKind.NUMBER:
        return _KIND_RANK[kind], float(value)  # type: ignore[arg-type]
    if kind == ValueKind.BOOLEAN:
        return _KIND_RANK[kind], bool(value)
    if kind == ValueKind.STRING:
        return _KIND_RANK[kind], str(value).casefold()
    return _KIND_RANK.get(kind, 6), render_value(value).casefold()


def render_value(value: object, *, placeholder: str = PLACEHOLDER) -> str:
    """Render any frontmatter value as display text, guarding against cycles."""
    return _render(value, placeholder, set())


def _render(value: object, placeholder: str, seen: set[int]) -> str:
    if value is MISSING or value is None:
        return placeholder
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, datetime):
        if value.time() == time.min and value.tzinfo is None:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        marker = id(value)
        if marker in seen:
            return CYCLE_MARKER
        seen.add(marker)
        try:
            if isinstance(value, Mapping):
                parts = [
                    f"{key}: {_render(item, placeholder, seen)}"
                    for key, item in value.items()
                ]
                return "{" + ", ".join(parts) + "}"
            items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
            return ", ".join(_render(item, placeholder, seen) for item in items)
        finally:
            seen.discard(marker)
    return str(value)
