"""
Faceted list queries: one filtered page, its total, and facet counts.

A list endpoint describes its table once as a FacetedSource. Requests are
parsed into ListFilters, and plan_faceted_query() builds three independent
statements that share the same base filter (visibility scope, date range,
free-text search):

- count_query: base filter + facet filter -> total matching rows
- list_query:  same predicate, newest first, one page
- facet_query: base filter only, grouped by the facet column, so the UI can
  show counts for facet values that are not currently selected
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import FromClause

logger = logging.getLogger(__name__)

DEFAULT_PAGE: int = 1
DEFAULT_LIMIT: int = 10

_DAY_END: time = time(23, 59, 59, 999000)


def coerce_positive_int(value: Any, default: int) -> int:
    """Parse a query-string number; anything non-numeric or below 1 yields ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 1 else default


def split_filter_values(raw: Optional[str]) -> tuple[str, ...]:
    """Split a comma-joined filter into distinct, trimmed values (first occurrence wins)."""
    if not raw:
        return ()
    values: list[str] = []
    for part in raw.split(","):
        value = part.strip()
        if value and value not in values:
            values.append(value)
    return tuple(values)


def parse_day(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string; invalid input is ignored rather than rejected."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.warning("Ignoring invalid date filter", extra={"value": value})
        return None


def day_start(day: date) -> datetime:
    """00:00:00.000 UTC on ``day``."""
    return datetime.combine(day, time.min)


def day_end(day: date) -> datetime:
    """23:59:59.999 UTC on ``day``."""
    return datetime.combine(day, _DAY_END)


def total_pages(total: int, limit: int) -> int:
    """Number of pages for ``total`` rows; never less than 1."""
    if limit < 1:
        limit = DEFAULT_LIMIT
    return max(1, math.ceil(total / limit))


@dataclass(frozen=True)
class ListFilters:
    """Parsed list-endpoint parameters."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    facet_values: tuple[str, ...] = ()
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @classmethod
    def from_params(
        cls,
        *,
        page: Any = None,
        limit: Any = None,
        facet: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> ListFilters:
        day_from = parse_day(date_from)
        day_to = parse_day(date_to)
        term = search.strip() if search else None
        return cls(
            page=coerce_positive_int(page, DEFAULT_PAGE),
            limit=coerce_positive_int(limit, DEFAULT_LIMIT),
            facet_values=split_filter_values(facet),
            search=term or None,
            created_from=day_start(day_from) if day_from else None,
            created_to=day_end(day_to) if day_to else None,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> dict[str, int]:
        """Pagination block for list responses."""
        return {
            "total": total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": total_pages(total, self.limit),
        }


@dataclass(frozen=True)
class FacetedSource:
    """How one table is listed, searched and faceted."""

    name: str
    from_clause: FromClause
    columns: Sequence[Any]
    facet_column: Any
    timestamp_column: Any
    search_columns: Sequence[Any] = field(default_factory=tuple)


@dataclass(frozen=True)
class FacetedQueryPlan:
    count_query: Select[Any]
    list_query: Select[Any]
    facet_query: Select[Any]


def facet_filter_clause(column: Any, values: Sequence[str]) -> Optional[ColumnElement[bool]]:
    """Equality for one value, set membership for several, None for none."""
    if not values:
        return None
    if len(values) == 1:
        return column == values[0]
    return column.in_(list(values))


def base_conditions(
    source: FacetedSource,
    scope_clause: Optional[ColumnElement[bool]],
    filters: ListFilters,
    extra: Iterable[ColumnElement[bool]] = (),
) -> list[ColumnElement[bool]]:
    """Visibility, caller-specific, date-range and search predicates (no facet filter)."""
    conditions: list[ColumnElement[bool]] = []
    if scope_clause is not None:
        conditions.append(scope_clause)
    conditions.extend(extra)
    if filters.created_from is not None:
        conditions.append(source.timestamp_column >= filters.created_from)
    if filters.created_to is not None:
        conditions.append(source.timestamp_column <= filters.created_to)
    if filters.search and source.search_columns:
        conditions.append(
            or_(*(column.icontains(filters.search, autoescape=True) for column in source.search_columns))
        )
    return conditions


def plan_faceted_query(
    source: FacetedSource,
    scope_clause: Optional[ColumnElement[bool]],
    filters: ListFilters,
    extra: Iterable[ColumnElement[bool]] = (),
) -> FacetedQueryPlan:
    """Build the count, page and facet statements for one list request."""
    base = base_conditions(source, scope_clause, filters, extra)

    filtered = list(base)
    facet_clause = facet_filter_clause(source.facet_column, filters.facet_values)
    if facet_clause is not None:
        filtered.append(facet_clause)

    count_query = select(func.count()).select_from(source.from_clause).where(*filtered)

    list_query = (
        select(*source.columns)
        .select_from(source.from_clause)
        .where(*filtered)
        .order_by(source.timestamp_column.desc())
        .limit(filters.limit)
        .offset(filters.offset)
    )

    facet_query = (
        select(source.facet_column, func.count().label("count"))
        .select_from(source.from_clause)
        .where(*base)
        .group_by(source.facet_column)
    )

    return FacetedQueryPlan(
        count_query=count_query,
        list_query=list_query,
        facet_query=facet_query,
    )


def facet_counts(rows: Iterable[Sequence[Any]]) -> dict[str, int]:
    """Turn ``(value, count)`` rows into a mapping, skipping NULL values."""
    return {str(value): int(count) for value, count in rows if value is not None}
