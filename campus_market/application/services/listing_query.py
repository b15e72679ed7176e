"""
Public listing search.

Query parameters arrive as loose text. ``ListingQuery.from_params`` coerces them with
forgiving defaults (bad paging input falls back, unknown sort orders become ``newest``)
and ``Pagination.compute`` derives the page metadata from the match count.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ...domain.models import ItemCriteria
from ...domain.models.item import SORT_NEWEST, SORT_ORDERS
from ...domain.ports.persistence import PersistenceGateway
from .listing_views import ListingView, build_views

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 100
ALL_CATEGORIES = "all"
MAX_OFFSET = 2**63 - 1

_SEARCH_TOKEN = re.compile(r"\w+", re.UNICODE)


@dataclass(slots=True, frozen=True)
class ListingQuery:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    criteria: ItemCriteria = ItemCriteria()
    sort_by: str = SORT_NEWEST

    @property
    def offset(self) -> int:
        # Pages past the end stay empty; SQLite cannot bind a larger OFFSET.
        return min((self.page - 1) * self.limit, MAX_OFFSET)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "ListingQuery":
        category = _clean(params.get("category"))
        if category and category.lower() == ALL_CATEGORIES:
            category = None

        sort_by = _clean(params.get("sortBy")) or SORT_NEWEST
        if sort_by not in SORT_ORDERS:
            sort_by = SORT_NEWEST

        criteria = ItemCriteria(
            category=category,
            min_price=_parse_price(params.get("minPrice")),
            max_price=_parse_price(params.get("maxPrice")),
            search_terms=tuple(_SEARCH_TOKEN.findall(_clean(params.get("search")) or "")),
        )
        return cls(
            page=_parse_positive_int(params.get("page"), DEFAULT_PAGE),
            limit=min(_parse_positive_int(params.get("limit"), DEFAULT_LIMIT), MAX_LIMIT),
            criteria=criteria,
            sort_by=sort_by,
        )


@dataclass(slots=True, frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool

    @classmethod
    def compute(cls, total_items: int, page: int, limit: int) -> "Pagination":
        total_pages = math.ceil(total_items / limit) if total_items else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass(slots=True)
class ListingPage:
    listings: List[ListingView]
    pagination: Pagination


class ListingQueryService:
    """Runs filtered, sorted and paged searches over available listings."""

    def __init__(self, persistence: PersistenceGateway) -> None:
        self._persistence = persistence

    def list_items(self, params: Mapping[str, Any]) -> ListingPage:
        query = ListingQuery.from_params(params)
        items, total = self._persistence.search_items(
            query.criteria, query.sort_by, query.offset, query.limit
        )
        logger.debug(
            "Listing query page=%s limit=%s sort=%s matched %s",
            query.page,
            query.limit,
            query.sort_by,
            total,
        )
        return ListingPage(
            listings=build_views(self._persistence, items),
            pagination=Pagination.compute(total, query.page, query.limit),
        )


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_positive_int(value: Any, default: int) -> int:
    text = _clean(value)
    if text is None:
        return default
    try:
        number = int(text)
    except ValueError:
        return default
    return number if number > 0 else default


def _parse_price(value: Any) -> Optional[float]:
    text = _clean(value)
    if text is None:
        return None
    try:
        price = float(text)
    except ValueError:
        return None
    return price if math.isfinite(price) else None
