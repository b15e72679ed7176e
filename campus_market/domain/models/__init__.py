"""Domain models for the campus marketplace."""

from .item import Item, ItemCriteria
from .user import User

__all__ = [
    "Item",
    "ItemCriteria",
    "User",
]
