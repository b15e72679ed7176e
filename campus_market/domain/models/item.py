from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

SORT_NEWEST = "newest"
SORT_OLDEST = "oldest"
SORT_PRICE_LOW = "price-low"
SORT_PRICE_HIGH = "price-high"
SORT_ORDERS = (SORT_NEWEST, SORT_OLDEST, SORT_PRICE_LOW, SORT_PRICE_HIGH)


@dataclass(slots=True)
class Item:
    id: int
    title: str
    description: str
    price: float
    category: str
    condition: str
    images: List[str]
    seller_id: int
    is_available: bool
    is_sold: bool
    sold_to_id: Optional[int]
    sold_at: Optional[datetime]
    views: int
    favorites: List[int]
    tags: List[str]
    location: str
    created_at: datetime
    updated_at: datetime

    def is_owned_by(self, user_id: int) -> bool:
        return self.seller_id == user_id


@dataclass(slots=True, frozen=True)
class ItemCriteria:
    """Filter applied to the public listing query; sold items are always excluded."""

    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    search_terms: Tuple[str, ...] = field(default_factory=tuple)
