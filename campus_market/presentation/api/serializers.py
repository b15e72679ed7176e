"""JSON projections; password hashes and OTP state never leave this module."""

from datetime import datetime
from typing import Any, Dict, Optional

from ...application.services.listing_views import ListingView
from ...domain.models import User


def serialize_profile(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "whatsapp": user.whatsapp,
        "year": user.year,
        "branch": user.branch,
        "institutionalId": user.institutional_id,
        "profileImage": user.profile_image,
        "isVerified": user.is_verified,
        "rating": user.rating,
        "totalRatings": user.total_ratings,
        "createdAt": _iso(user.created_at),
    }


def serialize_seller(user: Optional[User], include_contact: bool = False) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "year": user.year,
        "branch": user.branch,
        "rating": user.rating,
    }
    if include_contact:
        data["phone"] = user.phone
        data["whatsapp"] = user.whatsapp
    return data


def serialize_listing(view: ListingView, include_contact: bool = False) -> Dict[str, Any]:
    item = view.item
    buyer = None
    if view.buyer is not None:
        buyer = {"id": view.buyer.id, "name": view.buyer.name, "email": view.buyer.email}
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "price": item.price,
        "category": item.category,
        "condition": item.condition,
        "images": list(item.images),
        "seller": serialize_seller(view.seller, include_contact=include_contact),
        "isAvailable": item.is_available,
        "isSold": item.is_sold,
        "soldTo": buyer,
        "soldAt": _iso(item.sold_at),
        "views": item.views,
        "favorites": list(item.favorites),
        "tags": list(item.tags),
        "location": item.location,
        "createdAt": _iso(item.created_at),
        "updatedAt": _iso(item.updated_at),
    }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
