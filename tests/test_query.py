import pytest

from catalog_api.app.core.errors import InvalidId
from catalog_api.app.core.query import MAX_ID, ListQuery, PageRequest, pagination_meta, parse_id

SORTS = {"createdAt": "created_at", "price": "price", "name": "name"}


@pytest.mark.parametrize("raw", ["abc", "0", "-1", "1.5", "", " ", "²", "99999999999999999999"])
def test_parse_id_rejects_malformed(raw):
    with pytest.raises(InvalidId) as info:
        parse_id(raw, "product")
    assert info.value.message == "Invalid product ID"


def test_parse_id_accepts_positive_integers():
    assert parse_id("12", "user") == 12
    assert parse_id(" 7 ", "user") == 7


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 12)),
        (0, 5, (1, 5)),
        (3, 500, (3, 100)),
        (2, 0, (2, 1)),
    ],
)
def test_page_request_clamps(page, limit, expected):
    request = PageRequest.build(page, limit, default_limit=12, max_limit=100)
    assert (request.page, request.limit) == expected


def test_page_request_keeps_offset_in_integer_range():
    request = PageRequest.build(10**18, 50, default_limit=12, max_limit=50)
    assert request.offset <= MAX_ID
    assert request.offset + request.limit > MAX_ID


def test_pagination_meta():
    meta = pagination_meta(PageRequest(page=2, limit=10), total=25)
    assert meta == {
        "currentPage": 2,
        "totalPages": 3,
        "totalItems": 25,
        "hasNextPage": True,
        "hasPrevPage": True,
    }
    last = pagination_meta(PageRequest(page=3, limit=10), total=25, total_key="totalUsers")
    assert last["hasNextPage"] is False
    assert last["totalUsers"] == 25


def test_pagination_meta_empty():
    meta = pagination_meta(PageRequest(page=1, limit=10), total=0)
    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False
    assert meta["hasPrevPage"] is False


def test_sort_expression():
    query = ListQuery("products", SORTS, default_sort="-createdAt").sort("-price,name")
    assert query.order == "price DESC, name ASC, id DESC"


def test_unknown_sort_falls_back_to_default():
    query = ListQuery("products", SORTS, default_sort="-createdAt").sort("password")
    assert query.order == "created_at DESC, id DESC"


def test_visibility_predicate():
    hidden = ListQuery("products", SORTS, "-createdAt").visible(None, default=True)
    assert hidden.clauses == ["is_active = ?"] and hidden.params == [1]
    override = ListQuery("products", SORTS, "-createdAt").visible(False, default=True)
    assert override.params == [0]
    unfiltered = ListQuery("users", SORTS, "-createdAt").visible(None, default=None)
    assert unfiltered.clauses == []


def test_select_sql_with_filters_and_page():
    query = (
        ListQuery("products", SORTS, "-createdAt")
        .equals("category", "Laptops")
        .equals("condition", None)
        .between("price", 10, None)
        .contains_any(("name",), "50%_off")
        .sort(None)
    )
    sql, params = query.select_sql(PageRequest(page=2, limit=5))
    assert sql == (
        "SELECT * FROM products WHERE category = ? AND price >= ? AND (LOWER(name) LIKE ? ESCAPE '\\')"
        " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
    )
    assert params == ("Laptops", 10, "%50\\%\\_off%", 5, 5)
    count_sql, count_params = query.count_sql()
    assert count_sql.startswith("SELECT COUNT(*) FROM products WHERE")
    assert count_params == ("Laptops", 10, "%50\\%\\_off%")
