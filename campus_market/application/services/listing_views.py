from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from ...domain.models import Item, User
from ...domain.ports.persistence import UserRepository


@dataclass(slots=True)
class ListingView:
    """A listing together with the accounts it references."""

    item: Item
    seller: Optional[User]
    buyer: Optional[User] = None


def build_views(users: UserRepository, items: Sequence[Item]) -> List[ListingView]:
    """Resolve sellers and buyers for many listings with a single lookup."""
    ids = {item.seller_id for item in items}
    ids.update(item.sold_to_id for item in items if item.sold_to_id is not None)
    people = users.get_users_by_ids(ids)
    return [
        ListingView(
            item=item,
            seller=people.get(item.seller_id),
            buyer=people.get(item.sold_to_id) if item.sold_to_id is not None else None,
        )
        for item in items
    ]
