"""Query builder and evaluator for model lookups.

Queries are plain serializable payloads. The wrapper layer hands them to the
client untouched; only the reference clients evaluate them.

    >>> Where("firstName").eq("Adam").and_("age").ge(21).to_dict()
    {'ands': [{'field': 'firstName', 'op': 'eq', 'value': 'Adam'}, {'field': 'age', 'op': 'ge', 'value': 21}]}
"""

from __future__ import annotations

import operator
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}

_MISSING = object()


def _lookup(entity: Mapping[str, Any], field: str) -> Any:
    """Resolve a dotted field path, returning ``_MISSING`` when absent."""
    value: Any = entity
    for part in field.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


class Query:
    """Immutable conjunction of criteria, optionally OR-ed with other queries and sorted.

    :param ands: Criteria that must all hold, as ``(field, op, value)`` triples.
    :param ors: Alternative queries; an entity matching any of them matches.
    :param sort: Optional ``(field, descending)`` ordering.
    """

    __slots__ = ("_ands", "_ors", "_sort")

    def __init__(
        self,
        ands: Iterable[tuple[str, str, Any]] = (),
        ors: Iterable[Query] = (),
        sort: tuple[str, bool] | None = None,
    ) -> None:
        ands = tuple(ands)
        for _field, op, _value in ands:
            if op not in _OPERATORS:
                raise ValueError(f"Unknown query operator '{op}'. Known operators: {sorted(_OPERATORS)}")
        self._ands = ands
        self._ors = tuple(ors)
        self._sort = sort

    def and_(self, field: str) -> Where:
        """Start another criterion that must also hold."""
        return Where(field, self)

    def or_(self, query: Query) -> Query:
        """Return a query that also matches whatever ``query`` matches."""
        return Query(self._ands, (*self._ors, query), self._sort)

    def order_by(self, field: str) -> Query:
        return Query(self._ands, self._ors, (field, False))

    def order_by_desc(self, field: str) -> Query:
        return Query(self._ands, self._ors, (field, True))

    def _with(self, field: str, op: str, value: Any) -> Query:
        return Query((*self._ands, (field, op, value)), self._ors, self._sort)

    # region: evaluation
    def matches(self, entity: Mapping[str, Any]) -> bool:
        """Return ``True`` if ``entity`` satisfies this query."""
        if not self._ands and not self._ors:
            return True
        if self._ands and all(self._check(entity, *criterion) for criterion in self._ands):
            return True
        return any(q.matches(entity) for q in self._ors)

    @staticmethod
    def _check(entity: Mapping[str, Any], field: str, op: str, value: Any) -> bool:
        actual = _lookup(entity, field)
        if actual is _MISSING:
            return False
        try:
            return bool(_OPERATORS[op](actual, value))
        except TypeError:
            return False

    def apply(self, entities: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Filter and order ``entities``, returning copies of the matches."""
        found = [dict(e) for e in entities if self.matches(e)]
        if self._sort is not None:
            field, descending = self._sort
            present = [e for e in found if _lookup(e, field) is not _MISSING]
            absent = [e for e in found if _lookup(e, field) is _MISSING]
            present.sort(key=lambda e: _lookup(e, field), reverse=descending)
            found = present + absent
        return found

    # endregion

    # region: serialization
    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self._ands:
            data["ands"] = [{"field": f, "op": op, "value": v} for f, op, v in self._ands]
        if self._ors:
            data["ors"] = [q.to_dict() for q in self._ors]
        if self._sort is not None:
            data["sort"] = {"field": self._sort[0], "desc": self._sort[1]}
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Query:
        """Build a query from its serialized form.

        A mapping without ``ands``/``ors``/``sort`` keys is read as field equality,
        so ``{"lastName": "Doe"}`` matches every entity whose ``lastName`` is ``"Doe"``.
        """
        if not any(key in data for key in ("ands", "ors", "sort")):
            return cls(ands=[(str(field), "eq", value) for field, value in data.items()])
        ands = [(str(c["field"]), str(c["op"]), c.get("value")) for c in data.get("ands", [])]
        ors = [cls.from_dict(q) for q in data.get("ors", [])]
        raw_sort = data.get("sort")
        sort = (str(raw_sort["field"]), bool(raw_sort.get("desc", False))) if raw_sort else None
        return cls(ands=ands, ors=ors, sort=sort)

    @classmethod
    def coerce(cls, value: Query | Mapping[str, Any] | None) -> Query:
        """Accept a ``Query``, its serialized form, or ``None`` (match everything)."""
        if value is None:
            return cls()
        if isinstance(value, Query):
            return value
        if isinstance(value, Mapping):
            return cls.from_dict(value)
        raise TypeError(f"Expected Query, mapping or None, got {type(value).__name__}")

    # endregion

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Query):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(repr(self.to_dict()))

    def __repr__(self) -> str:
        return f"Query({self.to_dict()!r})"


class Where:
    """A pending criterion on ``field``; completing it yields a :class:`Query`.

    :param field: Dotted path of the entity field to compare.
    :param query: The query the criterion is appended to.
    """

    __slots__ = ("_field", "_query")

    def __init__(self, field: str, query: Query | None = None) -> None:
        if not field:
            raise ValueError("field must be a non-empty string")
        self._field = field
        self._query = query or Query()

    def eq(self, value: Any) -> Query:
        return self._query._with(self._field, "eq", value)

    def ne(self, value: Any) -> Query:
        return self._query._with(self._field, "ne", value)

    def gt(self, value: Any) -> Query:
        return self._query._with(self._field, "gt", value)

    def ge(self, value: Any) -> Query:
        return self._query._with(self._field, "ge", value)

    def lt(self, value: Any) -> Query:
        return self._query._with(self._field, "lt", value)

    def le(self, value: Any) -> Query:
        return self._query._with(self._field, "le", value)

    def __repr__(self) -> str:
        return f"Where({self._field!r})"
