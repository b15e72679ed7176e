from concurrent.futures import ThreadPoolExecutor

import pytest

from campus_market.application.services.listing_service import ListingService
from campus_market.domain.errors import ForbiddenError, NoImagesError, NotFoundError, ValidationError

from conftest import PLACEHOLDER_URL, image, listing_fields


def test_create_listing_uploads_images_and_sets_defaults(listing_service, make_user, image_host):
    seller = make_user()

    view = listing_service.create_listing(seller, listing_fields(), [image("a.png"), image("b.jpg")])

    item = view.item
    assert item.images == ["https://images.test/1/a.png", "https://images.test/2/b.jpg"]
    assert item.is_available and not item.is_sold
    assert item.views == 0 and item.favorites == []
    assert item.location == "PICT Campus"
    assert item.tags == ["maths", "textbook"]
    assert view.seller.id == seller.id


def test_create_listing_without_images_persists_nothing(listing_service, make_user, persistence):
    seller = make_user()

    with pytest.raises(NoImagesError):
        listing_service.create_listing(seller, listing_fields(), [])

    assert persistence.get_items_by_seller(seller.id) == []


def test_create_listing_validates_fields_before_uploading(listing_service, make_user, image_host):
    seller = make_user()

    with pytest.raises(ValidationError):
        listing_service.create_listing(seller, listing_fields(title="ab"), [image()])

    assert image_host.uploaded == []


def test_failed_uploads_fall_back_to_placeholder(listing_service, make_user, image_host):
    image_host.fail = True

    view = listing_service.create_listing(make_user(), listing_fields(), [image("a.png"), image("b.png")])

    assert view.item.images == [PLACEHOLDER_URL, PLACEHOLDER_URL]


def test_missing_image_host_uses_placeholder(persistence, make_user):
    service = ListingService(persistence, None, placeholder_url=PLACEHOLDER_URL)

    view = service.create_listing(make_user(), listing_fields(), [image()])

    assert view.item.images == [PLACEHOLDER_URL]


def test_get_listing_counts_every_view(listing_service, make_user):
    created = listing_service.create_listing(make_user(), listing_fields(), [image()])

    listing_service.get_listing(created.item.id)
    view = listing_service.get_listing(created.item.id)

    assert view.item.views == 2


def test_get_missing_listing_is_not_found(listing_service):
    with pytest.raises(NotFoundError):
        listing_service.get_listing(999)


def test_partial_update_changes_only_sent_fields_and_appends_images(listing_service, make_user):
    seller = make_user()
    created = listing_service.create_listing(seller, listing_fields(), [image("a.png")])

    updated = listing_service.update_listing(
        created.item.id, seller, {"price": "275"}, images=[image("b.png")]
    ).item

    assert updated.price == 275.0
    assert updated.title == created.item.title
    assert updated.description == created.item.description
    assert updated.tags == created.item.tags
    assert updated.images == ["https://images.test/1/a.png", "https://images.test/2/b.png"]


def test_update_keeps_only_listed_existing_images(listing_service, make_user):
    seller = make_user()
    created = listing_service.create_listing(
        seller, listing_fields(), [image("a.png"), image("b.png"), image("c.png")]
    )
    first, _, third = created.item.images

    updated = listing_service.update_listing(
        created.item.id,
        seller,
        {},
        kept_images=[third, "https://elsewhere.test/x.png", first],
    ).item

    assert updated.images == [first, third]


def test_update_cannot_remove_every_image(listing_service, make_user):
    seller = make_user()
    created = listing_service.create_listing(seller, listing_fields(), [image()])

    with pytest.raises(ValidationError):
        listing_service.update_listing(created.item.id, seller, {}, kept_images=[])


def test_only_the_seller_may_change_a_listing(listing_service, make_user):
    seller = make_user()
    stranger = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    with pytest.raises(ForbiddenError):
        listing_service.update_listing(item_id, stranger, {"price": "1"})
    with pytest.raises(ForbiddenError):
        listing_service.delete_listing(item_id, stranger)
    with pytest.raises(ForbiddenError):
        listing_service.mark_sold(item_id, stranger)

    assert listing_service.get_listing(item_id).item.price == 350.0


def test_mutations_on_missing_listing_are_not_found(listing_service, make_user):
    user = make_user()

    with pytest.raises(NotFoundError):
        listing_service.update_listing(404, user, {"price": "1"})
    with pytest.raises(NotFoundError):
        listing_service.delete_listing(404, user)
    with pytest.raises(NotFoundError):
        listing_service.mark_sold(404, user)
    with pytest.raises(NotFoundError):
        listing_service.toggle_favorite(404, user)


def test_delete_removes_listing(listing_service, make_user, persistence):
    seller = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    listing_service.delete_listing(item_id, seller)

    assert persistence.get_item(item_id) is None


def test_mark_sold_records_buyer_and_timestamp(listing_service, make_user, clock):
    seller = make_user()
    buyer = make_user(name="Buyer")
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    view = listing_service.mark_sold(item_id, seller, buyer.id)

    assert view.item.is_sold and not view.item.is_available
    assert view.item.sold_at == clock()
    assert view.buyer.id == buyer.id


def test_mark_sold_with_unknown_buyer_is_not_found(listing_service, make_user):
    seller = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    with pytest.raises(NotFoundError):
        listing_service.mark_sold(item_id, seller, 9999)

    assert not listing_service.get_listing(item_id).item.is_sold


def test_mark_sold_twice_keeps_first_buyer_when_none_given(listing_service, make_user):
    seller = make_user()
    buyer = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    listing_service.mark_sold(item_id, seller, buyer.id)
    view = listing_service.mark_sold(item_id, seller)

    assert view.item.sold_to_id == buyer.id


def test_toggle_favorite_flips_membership(listing_service, make_user):
    seller = make_user()
    fan = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    assert listing_service.toggle_favorite(item_id, fan) is True
    assert [view.item.id for view in listing_service.favorites_of(fan)] == [item_id]
    assert listing_service.toggle_favorite(item_id, fan) is False
    assert listing_service.favorites_of(fan) == []


def test_concurrent_favorite_toggles_never_duplicate(listing_service, make_user, persistence):
    seller = make_user()
    fan = make_user()
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: listing_service.toggle_favorite(item_id, fan), range(9)))

    favorites = persistence.get_item(item_id).favorites
    assert favorites == [fan.id]
    assert results.count(True) == 5 and results.count(False) == 4


def test_concurrent_views_are_all_counted(listing_service, make_user):
    item_id = listing_service.create_listing(make_user(), listing_fields(), [image()]).item.id

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: listing_service.get_listing(item_id), range(20)))

    assert listing_service.get_listing(item_id).item.views == 21


def test_listings_for_seller_include_sold_items(listing_service, make_user):
    seller = make_user()
    first = listing_service.create_listing(seller, listing_fields(), [image()]).item.id
    second = listing_service.create_listing(seller, listing_fields(), [image()]).item.id
    listing_service.mark_sold(first, seller)

    assert [view.item.id for view in listing_service.listings_for_seller(seller)] == [second, first]


def test_concurrent_favorites_by_distinct_users_each_stick(listing_service, make_user, persistence):
    seller = make_user()
    fans = [make_user(name=f"Fan {n}") for n in range(10)]
    item_id = listing_service.create_listing(seller, listing_fields(), [image()]).item.id

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(lambda fan: listing_service.toggle_favorite(item_id, fan), fans))

    favorites = persistence.get_item(item_id).favorites
    assert results == [True] * len(fans)
    assert sorted(favorites) == sorted(fan.id for fan in fans)
    assert len(set(favorites)) == len(favorites)


def test_default_clock_stamps_sales_in_utc(persistence, make_user):
    service = ListingService(persistence, None, placeholder_url=PLACEHOLDER_URL)
    seller = make_user()
    item_id = service.create_listing(seller, listing_fields(), [image()]).item.id

    sold_at = service.mark_sold(item_id, seller).item.sold_at

    assert sold_at.tzinfo is not None and sold_at.utcoffset().total_seconds() == 0
