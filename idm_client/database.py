"""
Database module - QueryBuilder for the generic query endpoint.

Implements fluent API for building table operations.
Chained calls only record state; nothing is sent until the builder is
awaited or execute() is called. Each await compiles and sends a fresh
request, so awaiting the same builder twice performs the call twice.
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Optional, List, Dict, Any, Union, Generator
import logging

from .config import QUERY_ENDPOINT
from .errors import QueryResultError
from .http import RequestPipeline
from .types import QueryResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

FILTER_OPERATORS = frozenset(
    ["eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is"]
)
WRITE_ACTIONS = frozenset(["insert", "update", "delete"])
RAW_COLUMN_KEY = "__column"


def raw(column: str) -> Dict[str, str]:
    """Reference another column as a filter value instead of a literal."""
    return {RAW_COLUMN_KEY: column}


def normalize_columns(columns: Union[str, List[str], None]) -> List[str]:
    if not columns or columns == "*":
        return ["*"]
    if isinstance(columns, (list, tuple)):
        return [c.strip() for c in columns if c and c.strip()]
    return [c.strip() for c in str(columns).split(",") if c.strip()]


def parse_or_expression(expression: str) -> List[Dict[str, Any]]:
    """Parse "col.op.value,col.op.value" into filters.

    Segments with missing parts or an unknown operator are dropped.
    The value keeps any further dots ("email.ilike.%@x.org").
    """
    filters: List[Dict[str, Any]] = []
    for chunk in str(expression).split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split(".")
        column, operator, rest = parts[0].strip(), "", parts[2:]
        if len(parts) > 1:
            operator = parts[1].strip()
        if not column or not operator or not rest or operator not in FILTER_OPERATORS:
            logger.warning("Dropping unparseable or() segment %r", chunk)
            continue
        filters.append({"column": column, "operator": operator, "value": ".".join(rest)})
    return filters


@dataclass
class QueryState:
    """Accumulated operations for one builder."""
    table: str
    action: str = "select"
    columns: List[str] = field(default_factory=lambda: ["*"])
    filters: List[Dict[str, Any]] = field(default_factory=list)
    or_groups: List[Dict[str, Any]] = field(default_factory=list)
    order: List[Dict[str, str]] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    payload: Any = None
    returning: Optional[List[str]] = None
    count: Optional[str] = None
    single_mode: Optional[str] = None  # None, 'single' or 'maybeSingle'

    def compile(self) -> Dict[str, Any]:
        """Serialize into the request envelope. Empty optional parts are omitted."""
        body: Dict[str, Any] = {
            "action": self.action,
            "table": self.table,
            "columns": list(self.columns),
        }
        if self.filters:
            body["filters"] = [dict(f) for f in self.filters]
        if self.order:
            body["order"] = [dict(o) for o in self.order]
        if self.payload is not None:
            body["values"] = self.payload
        if self.returning is not None:
            body["returning"] = list(self.returning)
        if self.count:
            body["count"] = self.count
        if self.limit is not None or self.offset is not None:
            page: Dict[str, int] = {}
            if self.limit is not None:
                page["limit"] = self.limit
            if self.offset is not None:
                page["offset"] = self.offset
            body["range"] = page
        if self.or_groups:
            body["groups"] = [
                {"operator": g["operator"], "filters": [dict(f) for f in g["filters"]]}
                for g in self.or_groups
            ]
        return body


class QueryBuilder(Generic[T]):
    """Fluent API for building table queries and writes."""

    def __init__(self, table: str, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline
        self._state = QueryState(table=table)

    @property
    def state(self) -> QueryState:
        return self._state

    def compile(self) -> Dict[str, Any]:
        return self._state.compile()

    def select(
        self, columns: Union[str, List[str]] = "*", count: Optional[str] = None
    ) -> "QueryBuilder[T]":
        """Projection for reads; after insert/update/delete it sets the returned columns."""
        normalized = normalize_columns(columns)
        if self._state.action in WRITE_ACTIONS:
            self._state.returning = normalized
        else:
            self._state.columns = normalized
            self._state.action = "select"
        if count:
            self._state.count = count
        return self

    def insert(self, values: Union[Dict[str, Any], List[Dict[str, Any]]]) -> "QueryBuilder[T]":
        """Insert rows."""
        self._state.action = "insert"
        self._state.payload = values
        return self

    def update(self, values: Dict[str, Any]) -> "QueryBuilder[T]":
        """Update rows matching filters."""
        self._state.action = "update"
        self._state.payload = values
        return self

    def delete(self) -> "QueryBuilder[T]":
        """Delete rows matching filters."""
        self._state.action = "delete"
        return self

    def _add_filter(self, column: str, operator: str, value: Any) -> "QueryBuilder[T]":
        self._state.filters.append({"column": column, "operator": operator, "value": value})
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: equal."""
        return self._add_filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: not equal."""
        return self._add_filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: greater than."""
        return self._add_filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: greater than or equal."""
        return self._add_filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: less than."""
        return self._add_filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: less than or equal."""
        return self._add_filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> "QueryBuilder[T]":
        """Filter: LIKE pattern match (case sensitive)."""
        return self._add_filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder[T]":
        """Filter: ILIKE pattern match (case insensitive)."""
        return self._add_filter(column, "ilike", pattern)

    def is_(self, column: str, value: Any) -> "QueryBuilder[T]":
        """Filter: IS (null / true / false)."""
        return self._add_filter(column, "is", value)

    def in_(self, column: str, values: List[Any]) -> "QueryBuilder[T]":
        """Filter: IN array of values."""
        return self._add_filter(column, "in", list(values))

    def or_(self, expression: str) -> "QueryBuilder[T]":
        """Add one OR group from "col.op.value,..."; the group is ANDed with everything else."""
        if not expression:
            return self
        filters = parse_or_expression(expression)
        if filters:
            self._state.or_groups.append({"operator": "or", "filters": filters})
        return self

    def order(self, column: str, ascending: bool = True) -> "QueryBuilder[T]":
        """Order results. Repeated calls add secondary sort keys."""
        self._state.order.append({"column": column, "direction": "asc" if ascending else "desc"})
        return self

    def limit(self, count: int) -> "QueryBuilder[T]":
        """Limit number of results."""
        self._state.limit = count
        return self

    def range(self, start: int, end: int) -> "QueryBuilder[T]":
        """Inclusive row range; replaces any earlier limit."""
        if isinstance(start, int) and isinstance(end, int):
            self._state.offset = start
            self._state.limit = end - start + 1
        return self

    def single(self) -> "QueryBuilder[T]":
        """Expect exactly one row; zero rows raises QueryResultError."""
        self._state.single_mode = "single"
        return self

    def maybe_single(self) -> "QueryBuilder[T]":
        """Return the first row or None."""
        self._state.single_mode = "maybeSingle"
        return self

    async def execute(self) -> QueryResponse[Any]:
        """Compile the current state, send it and post-process the rows."""
        body = self._state.compile()
        response = await self._pipeline.api_fetch(QUERY_ENDPOINT, "POST", body)
        meta = response.meta or {}
        count = meta.get("count")

        data = response.data
        if data is not None and not isinstance(data, list):
            data = [data]

        mode = self._state.single_mode
        if not mode:
            return QueryResponse(data=data, error=None, count=count)

        if not data:
            if mode == "single":
                raise QueryResultError("No rows found")
            return QueryResponse(data=None, error=None, count=count)

        if mode == "maybeSingle" and len(data) > 1:
            logger.warning(
                "maybe_single() on %s received %d rows, using the first",
                self._state.table,
                len(data),
            )
        return QueryResponse(data=data[0], error=None, count=count)

    def __await__(self) -> Generator[Any, None, QueryResponse[Any]]:
        return self.execute().__await__()
