import pytest

from conftest import make_product
from schemas.product import ProductFilter
from services.filters import filtered_query, summarize, like_pattern, split_csv
from utils.errors import ValidationError


@pytest.fixture
def catalogue(db):
    a = make_product(db, code="AAA001", name="Alpha", quantity=0, min_stock=5, sale_price=100.0,
                     cost_price=50.0, supplier="Nordic Supply", tags=["sale"], barcode="12345678")
    b = make_product(db, code="BBB002", name="Bravo", quantity=3, min_stock=5, sale_price=50.0,
                     cost_price=20.0, supplier="Acme", category="Books", tags=["new", "sale"])
    c = make_product(db, code="CCC003", name="Charlie", quantity=20, min_stock=5, sale_price=10.0,
                     cost_price=5.0, supplier="Acme", description="has 100% cotton")
    make_product(db, code="DDD004", name="Delta retired", status="inactive")
    return a, b, c


def codes(db, **criteria):
    return sorted(p.code for p in filtered_query(db, ProductFilter(**criteria)).all())


def test_only_active_products_by_default(db, catalogue):
    assert codes(db) == ["AAA001", "BBB002", "CCC003"]


def test_available_is_in_stock_plus_low_stock(db, catalogue):
    assert codes(db, stock_status="available") == ["BBB002", "CCC003"]
    assert codes(db, stock_status="out-of-stock") == ["AAA001"]
    assert codes(db, stock_status="all") == ["AAA001", "BBB002", "CCC003"]


def test_category_all_is_ignored(db, catalogue):
    assert codes(db, category="Books") == ["BBB002"]
    assert codes(db, category="all") == ["AAA001", "BBB002", "CCC003"]


def test_price_bounds_are_inclusive(db, catalogue):
    assert codes(db, min_price="50", max_price="100") == ["AAA001", "BBB002"]
    assert codes(db, max_price="10") == ["CCC003"]


def test_malformed_price_bound_is_ignored(db, catalogue):
    assert codes(db, min_price="cheap") == ["AAA001", "BBB002", "CCC003"]


def test_supplier_is_case_insensitive_substring(db, catalogue):
    assert codes(db, supplier="nordic") == ["AAA001"]
    assert codes(db, supplier="ACM") == ["BBB002", "CCC003"]


def test_tags_match_any_of_the_list(db, catalogue):
    assert codes(db, tags="new") == ["BBB002"]
    assert codes(db, tags="sale, missing") == ["AAA001", "BBB002"]


def test_barcode_exact_match(db, catalogue):
    assert codes(db, barcode="12345678") == ["AAA001"]
    assert codes(db, barcode="1234567") == []


def test_search_matches_any_field(db, catalogue):
    assert codes(db, search="bra") == ["BBB002"]
    assert codes(db, search="ccc") == ["CCC003"]
    assert codes(db, search="nordic") == ["AAA001"]
    # wildcard characters are literal
    assert codes(db, search="0%") == ["CCC003"]


def test_search_too_short_is_rejected(db, catalogue):
    with pytest.raises(ValidationError):
        codes(db, search="a")


def test_criteria_are_combined_with_and(db, catalogue):
    assert codes(db, supplier="acme", stock_status="low-stock") == ["BBB002"]


def test_summary_covers_filtered_set_only(db, catalogue):
    summary = summarize(filtered_query(db, ProductFilter(supplier="acme")))
    assert summary["count"] == 2
    assert summary["total_value"] == 350.0
    assert summary["avg_price"] == 30.0
    assert summary["low_stock_count"] == 1
    assert summary["out_of_stock_count"] == 0


def test_summary_of_empty_set(db):
    summary = summarize(filtered_query(db, ProductFilter()))
    assert summary == {
        "count": 0, "total_value": 0.0, "avg_price": 0.0,
        "low_stock_count": 0, "out_of_stock_count": 0,
    }


def test_helpers():
    assert like_pattern("50%_off") == "%50\\%\\_off%"
    assert split_csv(" a, ,b ") == ["a", "b"]
    assert split_csv(None) == []
