from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....application.services.listing_service import ListingService
from ....core.dependencies import get_listing_service
from ....domain.models import User
from ...api.dependencies import get_current_user
from ...api.serializers import serialize_listing

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me/items")
def my_items(
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    views = service.listings_for_seller(current_user)
    return {"items": [serialize_listing(view) for view in views], "count": len(views)}


@router.get("/me/favorites")
def my_favorites(
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    views = service.favorites_of(current_user)
    return {"items": [serialize_listing(view) for view in views], "count": len(views)}
