import pytest

from conftest import make_product
from services.abc import abc_analysis, classify


def seed_values(db, values):
    # quantity 1, so totalValue == salePrice
    for i, v in enumerate(values):
        make_product(db, code=f"ABC{i:03d}", name=f"Item {i}", quantity=1, sale_price=float(v), cost_price=0.0)


def test_classes_follow_running_cumulative_share(db):
    seed_values(db, [5, 50, 15, 30])
    report = abc_analysis(db)
    rows = [(p.total_value, p.classification, p.cumulative_percentage, p.rank) for p in report.products]
    assert rows == [
        (50.0, "A", 50.0, 1),
        (30.0, "A", 80.0, 2),
        (15.0, "B", 95.0, 3),
        (5.0, "C", 100.0, 4),
    ]
    assert report.total_value == 100.0


def test_first_product_above_80_percent_is_b(db):
    seed_values(db, [1000, 100, 10, 1])
    report = abc_analysis(db)
    top = report.products[0]
    assert top.value_percentage == 90.01
    assert top.classification == "B"
    assert [p.classification for p in report.products[1:]] == ["C", "C", "C"]
    assert report.products[-1].cumulative_percentage == 100.0


def test_summary_counts_add_up(db):
    seed_values(db, [40, 25, 20, 10, 3, 2])
    report = abc_analysis(db)
    summary = report.summary
    assert sum(s.count for s in summary.values()) == 6
    assert summary["A"].count == 2
    assert summary["A"].percentage == 65.0
    assert sum(s.value for s in summary.values()) == report.total_value
    assert set(report.insights) == {"A", "B", "C"}


def test_zero_total_value_is_all_c(db):
    seed_values(db, [0, 0])
    report = abc_analysis(db)
    assert [p.classification for p in report.products] == ["C", "C"]
    assert all(p.cumulative_percentage == 0.0 for p in report.products)
    assert report.summary["C"].percentage == 0.0


def test_empty_catalogue(db):
    report = abc_analysis(db)
    assert report.products == []
    assert report.total_value == 0.0
    assert report.summary["A"].count == 0


def test_ties_keep_id_order(db):
    seed_values(db, [10, 10, 10])
    ranked = [p.code for p in abc_analysis(db).products]
    assert ranked == ["ABC000", "ABC001", "ABC002"]


def test_inactive_products_are_excluded(db):
    seed_values(db, [10])
    make_product(db, code="GONE01", quantity=100, sale_price=100.0, status="inactive")
    assert len(abc_analysis(db).products) == 1


@pytest.mark.parametrize("cumulative,expected", [(80.0, "A"), (80.01, "B"), (95.0, "B"), (95.01, "C")])
def test_classify_boundaries(cumulative, expected):
    assert classify(cumulative, 100.0) == expected
