from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile, status

from ....application.services.listing_query import ListingQueryService
from ....application.services.listing_service import ListingService
from ....core.dependencies import get_listing_query_service, get_listing_service
from ....domain.errors import MarketplaceError
from ....domain.models import User
from ....domain.ports.media import ImageUpload
from ...api.dependencies import get_current_user
from ...api.errors import to_http_exception
from ...api.schemas.items import MarkSoldPayload
from ...api.serializers import serialize_listing

router = APIRouter(prefix="/api/items", tags=["Items"])


@router.get("")
def list_items(
    request: Request,
    service: ListingQueryService = Depends(get_listing_query_service),
) -> Dict[str, Any]:
    page = service.list_items(dict(request.query_params))
    return {
        "items": [serialize_listing(view) for view in page.listings],
        "pagination": page.pagination.to_dict(),
    }


@router.get("/{item_id}")
def get_item(
    item_id: int,
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    try:
        view = service.get_listing(item_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return serialize_listing(view, include_contact=True)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_item(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    condition: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    fields = {
        "title": title,
        "description": description,
        "price": price,
        "category": category,
        "condition": condition,
        "tags": tags,
    }
    try:
        view = service.create_listing(current_user, fields, _read_uploads(images))
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Item created successfully", "item": serialize_listing(view)}


@router.put("/{item_id}")
def update_item(
    item_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    condition: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    existing_images: Optional[List[str]] = Form(None, alias="existingImages"),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    fields = {
        "title": title,
        "description": description,
        "price": price,
        "category": category,
        "condition": condition,
        "tags": tags,
    }
    try:
        view = service.update_listing(
            item_id,
            current_user,
            fields,
            images=_read_uploads(images),
            kept_images=_split_urls(existing_images),
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Item updated successfully", "item": serialize_listing(view)}


@router.delete("/{item_id}")
def delete_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    try:
        service.delete_listing(item_id, current_user)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Item deleted successfully"}


@router.post("/{item_id}/favorite")
def toggle_favorite(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    try:
        favorited = service.toggle_favorite(item_id, current_user)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    message = "Item added to favorites" if favorited else "Item removed from favorites"
    return {"message": message, "isFavorited": favorited}


@router.post("/{item_id}/sold")
def mark_sold(
    item_id: int,
    payload: Optional[MarkSoldPayload] = Body(None),
    current_user: User = Depends(get_current_user),
    service: ListingService = Depends(get_listing_service),
) -> Dict[str, Any]:
    buyer_id = payload.buyer_id if payload else None
    try:
        service.mark_sold(item_id, current_user, buyer_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Item marked as sold"}


def _read_uploads(files: Optional[List[UploadFile]]) -> List[ImageUpload]:
    uploads: List[ImageUpload] = []
    for upload in files or []:
        # Browsers send an empty part when the file input is left blank.
        if not upload.filename:
            continue
        uploads.append(
            ImageUpload(
                filename=upload.filename,
                content_type=upload.content_type or "",
                data=upload.file.read(),
            )
        )
    return uploads


def _split_urls(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    urls: List[str] = []
    for value in values:
        urls.extend(part.strip() for part in value.split(",") if part.strip())
    return urls
