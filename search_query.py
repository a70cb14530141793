"""Normalization of raw book-search parameters.

Every parameter arrives as an optional string straight from a query string
(or a CLI option). Nothing here raises: malformed or out-of-range values fall
back to safe defaults so the resulting ``SearchQuery`` is always usable for
an SQL ``ORDER BY``/``LIMIT``/``OFFSET``.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

ALLOWED_SORT_FIELDS = ("title", "publishedYear", "createdAt")
ALLOWED_ORDERS = ("asc", "desc")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 50
# Largest page whose OFFSET still fits in an SQLite INTEGER
MAX_PAGE = (2**63 - 1) // MAX_LIMIT
DEFAULT_SORT_BY = "createdAt"
DEFAULT_ORDER = "desc"

# Leading integer, the rest of the string is ignored ("12abc" -> 12)
_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")


@dataclass(frozen=True)
class SearchQuery:
    search: str = ""
    genre: str = ""
    author_name: str = ""
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = DEFAULT_SORT_BY
    order: str = DEFAULT_ORDER

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def to_params(self) -> Dict[str, str]:
        """String form of the descriptor, using the query-string parameter names."""
        return {
            "search": self.search,
            "genre": self.genre,
            "authorName": self.author_name,
            "page": str(self.page),
            "limit": str(self.limit),
            "sortBy": self.sort_by,
            "order": self.order,
        }


def parse_int(raw: Any) -> Optional[int]:
    """Parse the leading integer of ``raw``; None when there is none."""
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    match = _LEADING_INT_RE.match(str(raw))
    if not match:
        return None
    return int(match.group(1))


def _text(raw: Any) -> str:
    return raw if isinstance(raw, str) else ""


def normalize_page(raw: Any) -> int:
    page = parse_int(raw)
    if page is None or page < 1:
        return DEFAULT_PAGE
    return min(page, MAX_PAGE)


def normalize_limit(raw: Any) -> int:
    limit = parse_int(raw)
    if limit is None or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def normalize_sort_by(raw: Any) -> str:
    return raw if raw in ALLOWED_SORT_FIELDS else DEFAULT_SORT_BY


def normalize_order(raw: Any) -> str:
    order = _text(raw).lower()
    return order if order in ALLOWED_ORDERS else DEFAULT_ORDER


def normalize_search_query(params: Mapping[str, Any]) -> SearchQuery:
    """Build a ``SearchQuery`` from raw query parameters.

    ``params`` uses the query-string names (``search``, ``genre``,
    ``authorName``, ``page``, ``limit``, ``sortBy``, ``order``); missing keys
    and ``None`` values mean "not given".
    """
    return SearchQuery(
        search=_text(params.get("search")),
        genre=_text(params.get("genre")),
        author_name=_text(params.get("authorName")),
        page=normalize_page(params.get("page")),
        limit=normalize_limit(params.get("limit")),
        sort_by=normalize_sort_by(params.get("sortBy")),
        order=normalize_order(params.get("order")),
    )


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination metadata for one page of a result set of ``total`` rows.

    An empty result set has zero pages, so both ``hasNext`` and ``hasPrev``
    are false whatever page was requested.
    """
    total_pages = math.ceil(total / limit) if total > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1 and total_pages > 0,
    }
