from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from ..models import Item, ItemCriteria, User


class UserRepository(Protocol):
    """Persistence functions related to campus accounts."""

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def get_user_by_institutional_id(self, institutional_id: str) -> Optional[User]:
        ...

    def get_users_by_ids(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ...

    def create_user(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        phone: str,
        whatsapp: str,
        year: str,
        branch: str,
        institutional_id: str,
        email_otp: str,
        email_otp_expiry: datetime,
    ) -> User:
        ...

    def set_user_otp(self, user_id: int, otp: str, expires_at: datetime) -> None:
        ...

    def mark_user_verified(self, user_id: int) -> bool:
        """Flip an unverified account to verified; ``False`` if it already was."""
        ...

    def delete_user(self, user_id: int) -> bool:
        ...


class ItemRepository(Protocol):
    """Persistence functions related to listings and their favorites."""

    def create_item(
        self,
        *,
        seller_id: int,
        title: str,
        description: str,
        price: float,
        category: str,
        condition: str,
        images: List[str],
        tags: List[str],
        location: str,
    ) -> Item:
        ...

    def get_item(self, item_id: int) -> Optional[Item]:
        ...

    def update_item(self, item_id: int, updates: Dict[str, Any]) -> Item:
        ...

    def delete_item(self, item_id: int) -> bool:
        ...

    def increment_item_views(self, item_id: int) -> Optional[Item]:
        ...

    def toggle_item_favorite(self, item_id: int, user_id: int) -> Optional[bool]:
        """Return the new membership, or ``None`` if the item does not exist."""
        ...

    def mark_item_sold(
        self, item_id: int, sold_at: datetime, buyer_id: Optional[int]
    ) -> Optional[Item]:
        ...

    def search_items(
        self,
        criteria: ItemCriteria,
        sort_by: str,
        offset: int,
        limit: int,
    ) -> Tuple[List[Item], int]:
        """Return one page of available items and the total number of matches."""
        ...

    def get_items_by_seller(self, seller_id: int) -> List[Item]:
        ...

    def get_items_favorited_by(self, user_id: int) -> List[Item]:
        ...


class PersistenceGateway(UserRepository, ItemRepository, Protocol):
    """Composite gateway combining every persistence concern used by the app."""

    pass
