from datetime import datetime, timezone

import pytest

from campus_market.application.services.listing_query import ListingQuery, Pagination


def add_item(persistence, seller, title="Study lamp", price=100.0, category="Electronics", **extra):
    fields = {
        "seller_id": seller.id,
        "title": title,
        "description": extra.pop("description", "Works well, collect from hostel."),
        "price": price,
        "category": category,
        "condition": "Good",
        "images": ["https://images.test/1.png"],
        "tags": extra.pop("tags", []),
        "location": "PICT Campus",
    }
    return persistence.create_item(**fields)


@pytest.mark.parametrize(
    "total, page, limit, expected",
    [
        (0, 1, 12, (0, False, False)),
        (12, 1, 12, (1, False, False)),
        (13, 1, 12, (2, True, False)),
        (13, 2, 12, (2, False, True)),
        (30, 5, 10, (3, False, True)),
    ],
)
def test_pagination_compute(total, page, limit, expected):
    pagination = Pagination.compute(total, page, limit)

    assert (pagination.total_pages, pagination.has_next, pagination.has_prev) == expected
    assert pagination.to_dict()["totalItems"] == total


def test_query_defaults_and_forgiving_parsing():
    query = ListingQuery.from_params(
        {"page": "abc", "limit": "-4", "sortBy": "cheapest", "minPrice": "x", "category": "all"}
    )

    assert (query.page, query.limit, query.sort_by) == (1, 12, "newest")
    assert query.criteria.min_price is None
    assert query.criteria.category is None


def test_query_caps_limit_and_computes_offset():
    query = ListingQuery.from_params({"page": "3", "limit": "500"})

    assert query.limit == 100
    assert query.offset == 200


def test_price_range_with_price_low_sort(query_service, persistence, make_user):
    seller = make_user()
    for price in (50, 450, 100, 800, 250, 500, 99.5):
        add_item(persistence, seller, price=price)

    page = query_service.list_items({"minPrice": "100", "maxPrice": "500", "sortBy": "price-low"})

    prices = [view.item.price for view in page.listings]
    assert prices == [100, 250, 450, 500]
    assert page.pagination.total_items == 4


def test_sort_orders(query_service, persistence, make_user):
    seller = make_user()
    first = add_item(persistence, seller, price=300)
    second = add_item(persistence, seller, price=100)
    third = add_item(persistence, seller, price=200)

    def ids(sort_by):
        return [view.item.id for view in query_service.list_items({"sortBy": sort_by}).listings]

    assert ids("newest") == [third.id, second.id, first.id]
    assert ids("oldest") == [first.id, second.id, third.id]
    assert ids("price-high") == [first.id, third.id, second.id]
    assert ids("unknown") == ids("newest")


def test_category_filter_and_all_sentinel(query_service, persistence, make_user):
    seller = make_user()
    add_item(persistence, seller, category="Books")
    add_item(persistence, seller, category="Sports")

    books = query_service.list_items({"category": "Books"})
    everything = query_service.list_items({"category": "all"})
    nothing = query_service.list_items({"category": "Vehicles"})

    assert [view.item.category for view in books.listings] == ["Books"]
    assert everything.pagination.total_items == 2
    assert nothing.listings == [] and nothing.pagination.total_pages == 0


def test_sold_items_never_listed(query_service, persistence, make_user):
    seller = make_user()
    kept = add_item(persistence, seller)
    sold = add_item(persistence, seller)
    persistence.mark_item_sold(sold.id, datetime.now(timezone.utc), None)

    page = query_service.list_items({})

    assert [view.item.id for view in page.listings] == [kept.id]
    assert page.pagination.total_items == 1


def test_pages_partition_the_results(query_service, persistence, make_user):
    seller = make_user()
    created = [add_item(persistence, seller, price=10 + n) for n in range(7)]

    first = query_service.list_items({"page": "1", "limit": "3", "sortBy": "price-low"})
    third = query_service.list_items({"page": "3", "limit": "3", "sortBy": "price-low"})
    beyond = query_service.list_items({"page": "9", "limit": "3"})

    assert [view.item.id for view in first.listings] == [item.id for item in created[:3]]
    assert [view.item.id for view in third.listings] == [created[6].id]
    assert first.pagination.to_dict() == {
        "currentPage": 1,
        "totalPages": 3,
        "totalItems": 7,
        "hasNext": True,
        "hasPrev": False,
    }
    assert beyond.listings == [] and beyond.pagination.has_prev


def test_search_matches_title_description_and_tags(query_service, persistence, make_user):
    seller = make_user()
    calculator = add_item(persistence, seller, title="Scientific calculator", description="Casio fx-991 in box")
    drafter = add_item(persistence, seller, title="Mini drafter", description="Needed for engineering drawing", tags=["ED"])
    add_item(persistence, seller, title="Cricket bat", description="English willow, lightly used")

    def found(search):
        return {view.item.id for view in query_service.list_items({"search": search}).listings}

    assert found("calculator") == {calculator.id}
    assert found("casio drawing") == {calculator.id, drafter.id}
    assert found("drawings") == {drafter.id}
    assert found("ed") == {drafter.id}
    assert found('"unbalanced') == set()


def test_search_resolves_sellers_in_listing_views(query_service, persistence, make_user):
    seller = make_user(name="Rohan")
    add_item(persistence, seller)

    view = query_service.list_items({}).listings[0]

    assert view.seller.name == "Rohan"
    assert view.buyer is None


def test_page_far_beyond_the_end_is_empty_with_true_counts(query_service, persistence, make_user):
    seller = make_user()
    add_item(persistence, seller)
    add_item(persistence, seller)

    page = query_service.list_items({"page": str(10**19), "limit": "100"})

    assert page.listings == []
    assert page.pagination.to_dict() == {
        "currentPage": 10**19,
        "totalPages": 1,
        "totalItems": 2,
        "hasNext": False,
        "hasPrev": True,
    }
