"""
Query building for list endpoints.

``ListQuery`` translates request filter, sort and pagination
parameters into parameterised SQL for one table.  All resources share
the same conventions:

* pagination is 1‑indexed and the page size is clamped to
  ``[1, max_limit]``;
* sorting accepts a comma‑separated list of allow‑listed fields, a
  leading ``-`` meaning descending; anything else falls back to the
  resource's default order;
* the visibility predicate on ``is_active`` is applied uniformly, with
  a per‑resource default (products hide inactive rows unless told
  otherwise, users show everything).

Column names never come from user input directly: filters take column
names from the calling service and sort fields are mapped through an
allow‑list.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import InvalidId

# Largest value SQLite can store in an INTEGER PRIMARY KEY.
MAX_ID = 2**63 - 1


def parse_id(raw: str, resource: str) -> int:
    """Convert a path identifier to an integer primary key.

    Raises ``InvalidId`` (``"Invalid <resource> ID"``) for anything that
    is not a positive integer.
    """
    value = raw.strip() if isinstance(raw, str) else str(raw)
    if not (value.isascii() and value.isdigit()) or not 1 <= int(value) <= MAX_ID:
        raise InvalidId(f"Invalid {resource} ID")
    return int(value)


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def build(cls, page: Optional[int], limit: Optional[int], default_limit: int, max_limit: int) -> "PageRequest":
        page = page if page and page > 0 else 1
        limit = limit if limit is not None else default_limit
        limit = min(max(limit, 1), max_limit)
        # Pages past the last representable OFFSET are simply empty.
        page = min(page, MAX_ID // limit + 1)
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_meta(page: PageRequest, total: int, total_key: str = "totalItems") -> Dict[str, Any]:
    """Pagination block returned alongside list payloads."""
    total_pages = math.ceil(total / page.limit) if total else 0
    return {
        "currentPage": page.page,
        "totalPages": total_pages,
        total_key: total,
        "hasNextPage": page.page * page.limit < total,
        "hasPrevPage": page.page > 1,
    }


@dataclass
class ListQuery:
    """Accumulates WHERE clauses and ORDER BY for a single table.

    ``sortable`` maps public sort names (e.g. ``createdAt``) to column
    names; ``default_sort`` is a sort expression in the public syntax.
    """

    table: str
    sortable: Dict[str, str]
    default_sort: str
    clauses: List[str] = field(default_factory=list)
    params: List[Any] = field(default_factory=list)
    order: str = ""

    def where(self, clause: str, *params: Any) -> "ListQuery":
        self.clauses.append(clause)
        self.params.extend(params)
        return self

    def equals(self, column: str, value: Any) -> "ListQuery":
        if value is not None and value != "":
            self.where(f"{column} = ?", value)
        return self

    def between(self, column: str, low: Optional[float], high: Optional[float]) -> "ListQuery":
        if low is not None:
            self.where(f"{column} >= ?", low)
        if high is not None:
            self.where(f"{column} <= ?", high)
        return self

    def visible(self, is_active: Optional[bool], default: Optional[bool]) -> "ListQuery":
        """Apply the ``is_active`` visibility predicate.

        An explicit ``is_active`` wins; otherwise ``default`` applies,
        where ``None`` means no filtering at all.
        """
        effective = default if is_active is None else is_active
        if effective is not None:
            self.where("is_active = ?", 1 if effective else 0)
        return self

    def contains_any(self, columns: Sequence[str], text: Optional[str], split_terms: bool = False) -> "ListQuery":
        """Case‑insensitive substring match of ``text`` over ``columns``.

        With ``split_terms`` every whitespace‑separated term is matched
        separately and a row matches if any term does.
        """
        if not text or not text.strip():
            return self
        terms = text.split() if split_terms else [text.strip()]
        parts: List[str] = []
        for term in terms:
            pattern = f"%{_escape_like(term.lower())}%"
            for column in columns:
                parts.append(f"LOWER({column}) LIKE ? ESCAPE '\\'")
                self.params.append(pattern)
        self.clauses.append("(" + " OR ".join(parts) + ")")
        return self

    def json_array_overlaps(self, column: str, values: Iterable[str]) -> "ListQuery":
        """Match rows whose JSON array ``column`` holds any of ``values``."""
        values = [v for v in values if v]
        if values:
            placeholders = ", ".join("?" for _ in values)
            self.where(
                f"EXISTS (SELECT 1 FROM json_each({self.table}.{column}) WHERE json_each.value IN ({placeholders}))",
                *values,
            )
        return self

    def sort(self, expression: Optional[str]) -> "ListQuery":
        self.order = self._order_clause(expression) or self._order_clause(self.default_sort)
        return self

    def _order_clause(self, expression: Optional[str]) -> str:
        if not expression:
            return ""
        terms: List[str] = []
        for raw in expression.split(","):
            name = raw.strip()
            direction = "ASC"
            if name.startswith("-"):
                name, direction = name[1:], "DESC"
            elif name.startswith("+"):
                name = name[1:]
            column = self.sortable.get(name)
            if column is None:
                # One unknown field invalidates the whole expression.
                return ""
            terms.append(f"{column} {direction}")
        if not terms:
            return ""
        # Rows created within the same second keep insertion order.
        terms.append("id DESC" if terms[0].endswith("DESC") else "id ASC")
        return ", ".join(terms)

    def _where_sql(self) -> str:
        return (" WHERE " + " AND ".join(self.clauses)) if self.clauses else ""

    def count_sql(self) -> tuple:
        return f"SELECT COUNT(*) FROM {self.table}{self._where_sql()}", tuple(self.params)

    def select_sql(self, page: Optional[PageRequest] = None, columns: str = "*") -> tuple:
        if not self.order:
            self.sort(None)
        sql = f"SELECT {columns} FROM {self.table}{self._where_sql()} ORDER BY {self.order}"
        params = list(self.params)
        if page is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([page.limit, page.offset])
        return sql, tuple(params)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
