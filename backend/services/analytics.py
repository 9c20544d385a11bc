"""Aggregation engine: grouped and whole-collection statistics.

All figures are computed over active products only. Sums are returned as
they are; averages and percentages are rounded half-up to 2 decimals, and
an empty group always reports 0.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from models.product import Product, CATEGORIES, IN_STOCK, LOW_STOCK, OUT_OF_STOCK
from models.stock import StockMovement
from schemas.reports import (
    Overview, CategoryStats, SupplierStats, PriceBucket, PriceRange,
    StockSlice, ProductBrief, MovementOut,
)
from services.filters import ilike
from utils.numbers import round2, percentage

logger = logging.getLogger(__name__)

ACTIVE = Product.status == "active"

# Half-open [min, max) salePrice buckets, the last one unbounded
PRICE_BUCKETS = [
    (0, 50), (50, 100), (100, 250), (250, 500), (500, 1000), (1000, None),
]

PERIODS = {"7days": 7, "30days": 30, "90days": 90, "all": None}


def _count_status(status: str):
    return func.coalesce(func.sum(case((Product.stock_status == status, 1), else_=0)), 0)


def _has_supplier():
    return (Product.supplier.isnot(None)) & (Product.supplier != "")


def brief(p: Product) -> ProductBrief:
    return ProductBrief(
        id=p.id, code=p.code, name=p.name, category=p.category,
        quantity=p.quantity, min_stock=p.min_stock, stock_status=p.stock_status,
        total_value=p.total_value, supplier=p.supplier or "",
        created_at=p.created_at, updated_at=p.updated_at,
    )


def overview(db: Session) -> Overview:
    row = db.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.total_value), 0.0),
        func.coalesce(func.sum(Product.quantity * Product.cost_price), 0.0),
        func.avg(Product.sale_price),
        func.avg(Product.cost_price),
        func.coalesce(func.sum(Product.quantity), 0),
        _count_status(LOW_STOCK),
        _count_status(OUT_OF_STOCK),
    ).filter(ACTIVE).one()
    count, value, cost, avg_price, avg_cost, quantity, low, out = row
    return Overview(
        total_products=int(count or 0),
        total_value=float(value or 0.0),
        total_cost=float(cost or 0.0),
        avg_price=round2(avg_price),
        avg_cost=round2(avg_cost),
        total_quantity=int(quantity or 0),
        low_stock_count=int(low or 0),
        out_of_stock_count=int(out or 0),
    )


def category_rollup(db: Session) -> List[CategoryStats]:
    supplier_or_null = case((_has_supplier(), Product.supplier), else_=None)
    rows = (
        db.query(
            Product.category,
            func.count(Product.id).label("products"),
            func.coalesce(func.sum(Product.total_value), 0.0).label("value"),
            func.coalesce(func.sum(Product.quantity), 0).label("quantity"),
            func.avg(Product.sale_price).label("avg_price"),
            func.avg(Product.cost_price).label("avg_cost"),
            func.min(Product.sale_price).label("min_price"),
            func.max(Product.sale_price).label("max_price"),
            _count_status(LOW_STOCK).label("low"),
            _count_status(OUT_OF_STOCK).label("out"),
            func.count(func.distinct(supplier_or_null)).label("suppliers"),
        )
        .filter(ACTIVE)
        .group_by(Product.category)
        .all()
    )

    stats = []
    for r in rows:
        count = int(r.products)
        low, out = int(r.low), int(r.out)
        stats.append(CategoryStats(
            category=r.category,
            total_products=count,
            total_value=float(r.value),
            total_quantity=int(r.quantity),
            avg_price=round2(r.avg_price),
            avg_cost=round2(r.avg_cost),
            price_range=PriceRange(min=float(r.min_price or 0.0), max=float(r.max_price or 0.0)),
            low_stock_count=low,
            out_of_stock_count=out,
            stock_health=percentage(count - low - out, count),
            supplier_count=int(r.suppliers or 0),
            avg_profit_margin=percentage((r.avg_price or 0.0) - (r.avg_cost or 0.0), r.avg_price),
        ))
    stats.sort(key=lambda s: s.category)
    stats.sort(key=lambda s: s.total_value, reverse=True)
    return stats


def supplier_rollup(db: Session) -> List[SupplierStats]:
    rows = (
        db.query(
            Product.supplier,
            func.count(Product.id).label("products"),
            func.coalesce(func.sum(Product.total_value), 0.0).label("value"),
            func.coalesce(func.sum(Product.quantity), 0).label("quantity"),
            func.avg(Product.sale_price).label("avg_price"),
            func.avg(Product.cost_price).label("avg_cost"),
            _count_status(IN_STOCK).label("in_stock"),
        )
        .filter(ACTIVE, _has_supplier())
        .group_by(Product.supplier)
        .all()
    )

    categories = {}
    pairs = (
        db.query(Product.supplier, Product.category)
        .filter(ACTIVE, _has_supplier())
        .distinct()
        .all()
    )
    for supplier, category in pairs:
        categories.setdefault(supplier, set()).add(category)

    stats = []
    for r in rows:
        count = int(r.products)
        cats = sorted(categories.get(r.supplier, ()))
        stats.append(SupplierStats(
            supplier=r.supplier,
            total_products=count,
            total_value=float(r.value),
            total_quantity=int(r.quantity),
            avg_price=round2(r.avg_price),
            avg_cost=round2(r.avg_cost),
            category_count=len(cats),
            categories=cats,
            stock_health=percentage(int(r.in_stock), count),
            avg_profit_margin=percentage((r.avg_price or 0.0) - (r.avg_cost or 0.0), r.avg_price),
        ))
    stats.sort(key=lambda s: s.supplier)
    stats.sort(key=lambda s: s.total_value, reverse=True)
    return stats


def bucket_label(low, high) -> str:
    return f"{low}+" if high is None else f"{low}-{high}"


def price_distribution(db: Session) -> List[PriceBucket]:
    whens = [(Product.sale_price < high, idx) for idx, (_, high) in enumerate(PRICE_BUCKETS) if high is not None]
    bucket = case(*whens, else_=len(PRICE_BUCKETS) - 1).label("bucket")
    rows = (
        db.query(
            bucket,
            func.count(Product.id).label("count"),
            func.coalesce(func.sum(Product.total_value), 0.0).label("value"),
            func.avg(Product.quantity).label("avg_quantity"),
        )
        .filter(ACTIVE)
        .group_by(bucket)
        .all()
    )
    by_idx = {int(r.bucket): r for r in rows}

    result = []
    for idx, (low, high) in enumerate(PRICE_BUCKETS):
        r = by_idx.get(idx)
        if r is None or not r.count:
            continue
        result.append(PriceBucket(
            label=bucket_label(low, high),
            min=float(low),
            max=float(high) if high is not None else None,
            count=int(r.count),
            total_value=float(r.value),
            avg_quantity=round2(r.avg_quantity),
        ))
    return result


def price_range(db: Session) -> dict:
    low, high, avg = db.query(
        func.min(Product.sale_price), func.max(Product.sale_price), func.avg(Product.sale_price)
    ).filter(ACTIVE).one()
    return {
        "min_price": float(low or 0.0),
        "max_price": float(high or 0.0),
        "avg_price": round2(avg),
        "distribution": price_distribution(db),
    }


def category_counts(db: Session) -> List[dict]:
    rows = dict(
        (r.category, r)
        for r in db.query(
            Product.category,
            func.count(Product.id).label("count"),
            func.coalesce(func.sum(Product.total_value), 0.0).label("value"),
        ).filter(ACTIVE).group_by(Product.category).all()
    )
    out = []
    for name in CATEGORIES:
        r = rows.get(name)
        out.append({
            "category": name,
            "count": int(r.count) if r else 0,
            "totalValue": float(r.value) if r else 0.0,
        })
    return out


def supplier_counts(db: Session) -> List[dict]:
    rows = (
        db.query(Product.supplier, func.count(Product.id).label("count"))
        .filter(ACTIVE, _has_supplier())
        .group_by(Product.supplier)
        .order_by(Product.supplier.asc())
        .all()
    )
    return [{"name": r.supplier, "count": int(r.count)} for r in rows]


def stock_distribution(db: Session) -> List[StockSlice]:
    rows = (
        db.query(
            Product.stock_status,
            func.count(Product.id).label("count"),
            func.coalesce(func.sum(Product.total_value), 0.0).label("value"),
        )
        .filter(ACTIVE)
        .group_by(Product.stock_status)
        .all()
    )
    found = {r.stock_status: r for r in rows}
    return [
        StockSlice(status=s, count=int(found[s].count), value=float(found[s].value))
        for s in (IN_STOCK, LOW_STOCK, OUT_OF_STOCK) if s in found
    ]


def top_value_products(db: Session, limit: int = 5) -> List[ProductBrief]:
    rows = (
        db.query(Product).filter(ACTIVE)
        .order_by(Product.total_value.desc(), Product.id.asc())
        .limit(limit).all()
    )
    return [brief(p) for p in rows]


def low_stock_alerts(db: Session, limit: int = 10) -> List[ProductBrief]:
    rows = (
        db.query(Product)
        .filter(ACTIVE, Product.stock_status.in_([LOW_STOCK, OUT_OF_STOCK]))
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(limit).all()
    )
    return [brief(p) for p in rows]


def recent_products(db: Session, limit: int = 5) -> List[ProductBrief]:
    rows = (
        db.query(Product).filter(ACTIVE)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit).all()
    )
    return [brief(p) for p in rows]


def statistics(db: Session) -> dict:
    stats = overview(db)
    distribution = sorted(
        (c for c in category_counts(db) if c["count"]),
        key=lambda c: c["count"], reverse=True,
    )
    return {
        "overview": {
            "totalProducts": stats.total_products,
            "totalValue": stats.total_value,
            "avgPrice": stats.avg_price,
            "lowStockCount": stats.low_stock_count,
            "outOfStockCount": stats.out_of_stock_count,
        },
        "categoryDistribution": distribution,
        "recentProducts": recent_products(db),
    }


def dashboard(db: Session, period: str = "30days", now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    stats = overview(db)

    new_products = db.query(func.count(Product.id)).filter(ACTIVE)
    days = PERIODS.get(period)
    if days is not None:
        new_products = new_products.filter(Product.created_at >= now - timedelta(days=days))

    profit = stats.total_value - stats.total_cost
    margin = percentage(profit, stats.total_value) if stats.total_cost > 0 else 0.0

    return {
        "kpis": {
            "totalProducts": stats.total_products,
            "totalInventoryValue": stats.total_value,
            "totalCost": stats.total_cost,
            "potentialRevenue": stats.total_value,
            "potentialProfit": profit,
            "profitMargin": margin,
            "avgProductPrice": stats.avg_price,
            "avgCostPrice": stats.avg_cost,
            "totalQuantity": stats.total_quantity,
            "lowStockCount": stats.low_stock_count,
            "outOfStockCount": stats.out_of_stock_count,
            "newProducts": int(new_products.scalar() or 0),
        },
        "stockDistribution": stock_distribution(db),
        "topValueProducts": top_value_products(db),
        "lowStockAlerts": low_stock_alerts(db),
        "categoryPerformance": category_rollup(db),
        "lastUpdate": now,
    }


def category_analysis(db: Session) -> dict:
    cats = category_rollup(db)
    total_value = sum(c.total_value for c in cats)
    total_products = sum(c.total_products for c in cats)
    return {
        "categories": cats,
        "summary": {
            "totalCategories": len(cats),
            "totalProducts": total_products,
            "totalValue": total_value,
            "avgProductsPerCategory": round(total_products / len(cats)) if cats else 0,
        },
        "chartData": {
            "valueDistribution": [
                {"name": c.category, "value": c.total_value, "percentage": percentage(c.total_value, total_value)}
                for c in cats
            ],
            "productDistribution": [{"name": c.category, "count": c.total_products} for c in cats],
        },
    }


def supplier_analysis(db: Session, top: int = 5) -> dict:
    sups = supplier_rollup(db)
    total_products = sum(s.total_products for s in sups)

    def ranked(attr):
        return sorted(sups, key=lambda s: getattr(s, attr), reverse=True)[:top]

    return {
        "suppliers": sups,
        "summary": {
            "totalSuppliers": len(sups),
            "totalValue": sum(s.total_value for s in sups),
            "avgProductsPerSupplier": round(total_products / len(sups)) if sups else 0,
        },
        "rankings": {
            "byValue": ranked("total_value"),
            "byProductCount": ranked("total_products"),
            "byProfitMargin": ranked("avg_profit_margin"),
            "byStockHealth": ranked("stock_health"),
        },
    }


def inventory_movement(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category: Optional[str] = None,
    supplier: Optional[str] = None,
    limit: int = 100,
) -> dict:
    product_filters = [ACTIVE]
    if start:
        product_filters.append(Product.updated_at >= start)
    if end:
        product_filters.append(Product.updated_at <= end)
    if category and category != "all":
        product_filters.append(Product.category == category)
    if supplier:
        product_filters.append(ilike(Product.supplier, supplier))

    base = db.query(Product).filter(*product_filters)
    movements = base.order_by(Product.updated_at.desc(), Product.id.desc()).limit(limit).all()

    count, value = base.with_entities(
        func.count(Product.id), func.coalesce(func.sum(Product.total_value), 0.0)
    ).one()
    categories = sorted(c for (c,) in base.with_entities(Product.category).distinct().all())
    suppliers = sorted(
        s for (s,) in base.filter(_has_supplier()).with_entities(Product.supplier).distinct().all()
    )

    adjustments = db.query(StockMovement).join(Product, StockMovement.product_id == Product.id)
    if start:
        adjustments = adjustments.filter(StockMovement.created_at >= start)
    if end:
        adjustments = adjustments.filter(StockMovement.created_at <= end)
    if category and category != "all":
        adjustments = adjustments.filter(Product.category == category)
    if supplier:
        adjustments = adjustments.filter(ilike(Product.supplier, supplier))
    adjustments = adjustments.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()

    return {
        "movements": [brief(p) for p in movements],
        "adjustments": [
            MovementOut(
                id=m.id, product_id=m.product_id,
                product_code=m.product.code if m.product else None,
                product_name=m.product.name if m.product else None,
                operation=m.operation, qty=m.qty,
                quantity_before=m.quantity_before, quantity_after=m.quantity_after,
                user_id=m.user_id, created_at=m.created_at,
            )
            for m in adjustments
        ],
        "summary": {
            "totalMovements": int(count or 0),
            "totalValue": float(value or 0.0),
            "categories": categories,
            "suppliers": suppliers,
        },
    }
