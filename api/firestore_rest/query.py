"""
Query building for the ``documents:runQuery`` endpoint.

Only single-field comparisons ANDed together and an optional limit are supported.
Field paths are dotted, ``profile.tier`` filters on a field nested in a map.
Results come back in whatever order the store returns them; sort client-side
when an ordering matters.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from firestore_rest.codec import encode_field_path, encode_value
from firestore_rest.exceptions import ValidationError

if TYPE_CHECKING:
    from firestore_rest.models.document import QuerySnapshot
    from firestore_rest.stores.base import AsyncDocumentStore

logger = getLogger(__name__)


class Operator(str, Enum):
    """Comparison operators accepted by ``where``."""

    EQUAL = "EQUAL"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"

    @classmethod
    def parse(cls, op: str | Operator) -> Operator:
        """Accepts an operator, its wire name or its comparison symbol."""
        if isinstance(op, Operator):
            return op
        if op in _SYMBOLS:
            return _SYMBOLS[op]
        try:
            return cls(op)
        except ValueError:
            raise ValidationError(f"Unsupported query operator: {op!r}") from None


_SYMBOLS = {
    "==": Operator.EQUAL,
    "<": Operator.LESS_THAN,
    ">": Operator.GREATER_THAN,
    "<=": Operator.LESS_THAN_OR_EQUAL,
    ">=": Operator.GREATER_THAN_OR_EQUAL,
}


@dataclass(frozen=True)
class FieldFilter:
    field_path: str
    op: Operator
    value: Any

    def to_api(self) -> dict[str, Any]:
        return {
            "fieldFilter": {
                "field": {"fieldPath": encode_field_path(self.field_path)},
                "op": self.op.value,
                "value": encode_value(self.value),
            }
        }


@dataclass(frozen=True)
class QuerySpec:
    """An immutable description of a query against one collection."""

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    limit: int | None = None

    def to_structured_query(self) -> dict[str, Any]:
        """
        Translate the spec to the ``structuredQuery`` wire shape.

        A single filter is sent bare. Several filters are wrapped in an AND composite,
        the store rejects a composite holding a single filter.
        """
        structured_query: dict[str, Any] = {"from": [{"collectionId": self.collection}]}
        if len(self.filters) == 1:
            structured_query["where"] = self.filters[0].to_api()
        elif self.filters:
            structured_query["where"] = {
                "compositeFilter": {
                    "op": "AND",
                    "filters": [f.to_api() for f in self.filters],
                }
            }
        if self.limit is not None:
            structured_query["limit"] = self.limit
        return structured_query


class Query:
    """
    Fluent query builder bound to a store.

    Every call returns a new query, the receiver is never modified.
    """

    def __init__(self, store: AsyncDocumentStore, spec: QuerySpec):
        self._store = store
        self.spec = spec

    def where(self, field_path: str, op: str | Operator, value: Any) -> Query:
        """
        Add a filter. Filters are ANDed together.

        :param field_path: The field to compare.
        :param op: ``==``, ``<``, ``>``, ``<=``, ``>=`` or the matching ``Operator``.
        :param value: The value to compare against.
        """
        if not field_path:
            raise ValidationError("Query filters require a field path")
        new_filter = FieldFilter(field_path, Operator.parse(op), value)
        return Query(self._store, replace(self.spec, filters=self.spec.filters + (new_filter,)))

    def limit(self, count: int) -> Query:
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValidationError(f"Query limit must be a positive integer, got {count!r}")
        return Query(self._store, replace(self.spec, limit=count))

    async def get(self) -> QuerySnapshot:
        """Run the query and return the matching documents."""
        return await self._store.run_query(self.spec)

    execute = get
