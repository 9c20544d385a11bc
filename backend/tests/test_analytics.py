from datetime import datetime, timedelta

from conftest import make_product, make_user
from models.stock import StockMovement
from services import analytics


def seed_example(db):
    # qty 0 / 3 / 20 against minStock 5: out, low and in stock
    make_product(db, code="EXA001", name="A", quantity=0, min_stock=5, sale_price=100.0, cost_price=60.0, supplier="North")
    make_product(db, code="EXB002", name="B", quantity=3, min_stock=5, sale_price=50.0, cost_price=30.0, supplier="North")
    make_product(db, code="EXC003", name="C", quantity=20, min_stock=5, sale_price=10.0, cost_price=5.0, supplier="South")


def test_overview(db):
    seed_example(db)
    make_product(db, code="OFF001", status="discontinued", quantity=100)
    o = analytics.overview(db)
    assert o.total_products == 3
    assert o.total_value == 350.0
    assert o.total_cost == 190.0
    assert o.avg_price == 53.33
    assert o.total_quantity == 23
    assert o.low_stock_count == 1
    assert o.out_of_stock_count == 1


def test_overview_of_empty_catalogue(db):
    o = analytics.overview(db)
    assert o.total_products == 0
    assert o.avg_price == 0.0
    assert o.total_value == 0.0


def test_category_stock_health(db):
    seed_example(db)
    [cat] = analytics.category_rollup(db)
    assert cat.category == "Electronics"
    assert cat.total_products == 3
    assert cat.stock_health == 33.33
    assert cat.low_stock_count == 1
    assert cat.out_of_stock_count == 1
    assert cat.supplier_count == 2
    assert cat.price_range.min == 10.0
    assert cat.price_range.max == 100.0


def test_category_stock_health_extremes(db):
    make_product(db, code="BKS001", category="Books", quantity=50, min_stock=5)
    make_product(db, code="TOY001", category="Toys", quantity=0)
    make_product(db, code="TOY002", category="Toys", quantity=0)
    health = {c.category: c.stock_health for c in analytics.category_rollup(db)}
    assert health == {"Books": 100.0, "Toys": 0.0}


def test_categories_sorted_by_value(db):
    make_product(db, code="CHE001", category="Food", quantity=1, sale_price=1.0, cost_price=1.0)
    make_product(db, code="EXP001", category="Sports", quantity=10, sale_price=100.0, cost_price=1.0)
    assert [c.category for c in analytics.category_rollup(db)] == ["Sports", "Food"]


def test_supplier_rollup(db):
    seed_example(db)
    make_product(db, code="NOS001", supplier="")
    sups = {s.supplier: s for s in analytics.supplier_rollup(db)}
    assert set(sups) == {"North", "South"}
    north = sups["North"]
    assert north.total_products == 2
    assert north.stock_health == 0.0
    assert north.category_count == 1
    assert north.avg_cost == 45.0
    assert sups["South"].stock_health == 100.0


def test_price_buckets_omit_empty_and_are_half_open(db):
    make_product(db, code="PB0001", sale_price=49.99, cost_price=1.0, quantity=2)
    make_product(db, code="PB0002", sale_price=50.0, cost_price=1.0, quantity=4)
    make_product(db, code="PB0003", sale_price=1500.0, cost_price=1.0, quantity=1)
    buckets = analytics.price_distribution(db)
    assert [b.label for b in buckets] == ["0-50", "50-100", "1000+"]
    assert buckets[0].count == 1
    assert buckets[1].avg_quantity == 4.0
    assert buckets[2].max is None


def test_dashboard(db):
    seed_example(db)
    old = make_product(db, code="OLD001", quantity=10, min_stock=1)
    old.created_at = datetime.utcnow() - timedelta(days=60)
    db.commit()

    data = analytics.dashboard(db, "30days")
    kpis = data["kpis"]
    assert kpis["totalProducts"] == 4
    assert kpis["newProducts"] == 3
    assert kpis["potentialProfit"] == kpis["potentialRevenue"] - kpis["totalCost"]
    assert [s.status for s in data["stockDistribution"]] == ["in-stock", "low-stock", "out-of-stock"]
    assert data["lowStockAlerts"][0].code == "EXA001"
    assert data["topValueProducts"][0].code == "EXC003"

    assert analytics.dashboard(db, "all")["kpis"]["newProducts"] == 4


def test_supplier_analysis_rankings(db):
    seed_example(db)
    data = analytics.supplier_analysis(db)
    assert data["summary"]["totalSuppliers"] == 2
    assert data["rankings"]["byStockHealth"][0].supplier == "South"
    assert data["rankings"]["byProductCount"][0].supplier == "North"


def test_inventory_movement_window(db):
    seed_example(db)
    admin = make_user(db, username="boss", email="boss@example.com", role="admin")
    product = analytics.top_value_products(db, 1)[0]
    db.add(StockMovement(product_id=product.id, user_id=admin.id, operation="add",
                         qty=5, quantity_before=20, quantity_after=25))
    db.commit()

    data = analytics.inventory_movement(db, start=datetime.utcnow() - timedelta(days=1))
    assert data["summary"]["totalMovements"] == 3
    assert data["summary"]["suppliers"] == ["North", "South"]
    assert len(data["adjustments"]) == 1
    assert data["adjustments"][0].qty == 5

    future = analytics.inventory_movement(db, start=datetime.utcnow() + timedelta(days=1))
    assert future["movements"] == []
    assert future["adjustments"] == []
