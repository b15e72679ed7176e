from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ...domain.errors import ForbiddenError, NoImagesError, NotFoundError, UpstreamUploadError, ValidationError
from ...domain.models import Item, User
from ...domain.ports.media import ImageHost, ImageUpload
from ...domain.ports.persistence import PersistenceGateway
from ...domain.validation import validate_images, validate_listing, validate_listing_changes
from .account_service import utc_now
from .listing_views import ListingView, build_views

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_URL = "https://via.placeholder.com/400x300?text=Item+Image"


class ListingService:
    """Creates listings and applies seller-only mutations to them."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        image_host: Optional[ImageHost] = None,
        *,
        placeholder_url: str = DEFAULT_PLACEHOLDER_URL,
        default_location: str = "PICT Campus",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._persistence = persistence
        self._image_host = image_host
        self._placeholder_url = placeholder_url
        self._default_location = default_location
        self._clock = clock

    # Queries ----------------------------------------------------------------
    def get_listing(self, item_id: int) -> ListingView:
        """Fetch a listing for display; every call counts as one view."""
        item = self._persistence.increment_item_views(item_id)
        if item is None:
            raise NotFoundError("Item not found")
        return self._view(item)

    def listings_for_seller(self, seller: User) -> List[ListingView]:
        return build_views(self._persistence, self._persistence.get_items_by_seller(seller.id))

    def favorites_of(self, user: User) -> List[ListingView]:
        return build_views(self._persistence, self._persistence.get_items_favorited_by(user.id))

    # Mutations ----------------------------------------------------------------
    def create_listing(
        self,
        seller: User,
        fields: Mapping[str, Any],
        images: Sequence[ImageUpload],
    ) -> ListingView:
        draft = validate_listing(fields)
        if not images:
            raise NoImagesError()
        validate_images(images)

        urls = self._upload_images(images)
        item = self._persistence.create_item(
            seller_id=seller.id,
            title=draft.title,
            description=draft.description,
            price=draft.price,
            category=draft.category,
            condition=draft.condition,
            images=urls,
            tags=draft.tags,
            location=self._default_location,
        )
        logger.info("Listing %s created by user %s with %d image(s)", item.id, seller.id, len(urls))
        return self._view(item)

    def update_listing(
        self,
        item_id: int,
        caller: User,
        fields: Mapping[str, Any],
        images: Sequence[ImageUpload] = (),
        kept_images: Optional[Sequence[str]] = None,
    ) -> ListingView:
        """
        Apply a partial update.

        Only supplied fields change. New images are appended to the current list, or to
        ``kept_images`` when the caller sends a trimmed list of existing URLs.
        """
        item = self._require_owned(item_id, caller, "update")
        changes = validate_listing_changes(fields)
        validate_images(images)

        updates = changes.as_updates()
        if kept_images is not None or images:
            base = item.images
            if kept_images is not None:
                wanted = set(kept_images)
                base = [url for url in item.images if url in wanted]
            final_images = base + self._upload_images(images)
            if not final_images:
                raise ValidationError({"images": "A listing needs at least one image"})
            if final_images != item.images:
                updates["images"] = final_images

        updated = self._persistence.update_item(item.id, updates) if updates else item
        logger.info("Listing %s updated by user %s (%s)", item.id, caller.id, ", ".join(updates) or "no changes")
        return self._view(updated)

    def delete_listing(self, item_id: int, caller: User) -> None:
        item = self._require_owned(item_id, caller, "delete")
        if not self._persistence.delete_item(item.id):
            raise NotFoundError("Item not found")
        logger.info("Listing %s deleted by user %s", item.id, caller.id)

    def mark_sold(self, item_id: int, caller: User, buyer_id: Optional[int] = None) -> ListingView:
        item = self._require_owned(item_id, caller, "mark as sold")
        if buyer_id is not None and self._persistence.get_user_by_id(buyer_id) is None:
            raise NotFoundError("Buyer not found")
        sold = self._persistence.mark_item_sold(item.id, self._clock(), buyer_id)
        if sold is None:
            raise NotFoundError("Item not found")
        logger.info("Listing %s marked sold by user %s", item.id, caller.id)
        return self._view(sold)

    def toggle_favorite(self, item_id: int, user: User) -> bool:
        favorited = self._persistence.toggle_item_favorite(item_id, user.id)
        if favorited is None:
            raise NotFoundError("Item not found")
        return favorited

    # Helpers ----------------------------------------------------------------
    def _require_owned(self, item_id: int, caller: User, action: str) -> Item:
        item = self._persistence.get_item(item_id)
        if item is None:
            raise NotFoundError("Item not found")
        if not item.is_owned_by(caller.id):
            raise ForbiddenError(f"Not authorized to {action} this item")
        return item

    def _upload_images(self, images: Sequence[ImageUpload]) -> List[str]:
        """Upload one file at a time; failures degrade to the placeholder URL."""
        urls: List[str] = []
        for image in images:
            if self._image_host is None:
                logger.info("Image host not configured, using placeholder for %s", image.filename)
                urls.append(self._placeholder_url)
                continue
            try:
                urls.append(self._image_host.upload(image))
            except UpstreamUploadError as exc:
                logger.warning("Upload of %s failed, using placeholder: %s", image.filename, exc)
                urls.append(self._placeholder_url)
        return urls

    def _view(self, item: Item) -> ListingView:
        return build_views(self._persistence, [item])[0]
