"""ABC classification of active products by cumulative value share."""
import logging
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from models.product import Product
from schemas.reports import AbcItem, AbcClassSummary, AbcReport
from utils.numbers import round2, percentage

logger = logging.getLogger(__name__)

CLASSES = ("A", "B", "C")
A_LIMIT = 80.0
B_LIMIT = 95.0

INSIGHTS = {
    "A": "High-value products. Tight stock control and frequent review.",
    "B": "Medium-value products. Moderate control with periodic review.",
    "C": "Low-value products. Simple controls and bulk ordering.",
}


def classify(cumulative_pct: float, total_value: float) -> str:
    if total_value <= 0:
        return "C"
    if cumulative_pct <= A_LIMIT:
        return "A"
    if cumulative_pct <= B_LIMIT:
        return "B"
    return "C"


def rank_products(products: Iterable[Product]) -> List[AbcItem]:
    # sorted() is stable, so equal values keep their incoming (id) order
    ranked = sorted(products, key=lambda p: p.total_value or 0.0, reverse=True)
    total = sum(p.total_value or 0.0 for p in ranked)

    items = []
    running = 0.0
    for rank, p in enumerate(ranked, start=1):
        value = p.total_value or 0.0
        running += value
        # Tier boundaries are checked against the unrounded running share
        cumulative = running / total * 100 if total > 0 else 0.0
        items.append(AbcItem(
            id=p.id, code=p.code, name=p.name, category=p.category,
            quantity=p.quantity, sale_price=p.sale_price, total_value=value,
            classification=classify(cumulative, total),
            value_percentage=percentage(value, total),
            cumulative_percentage=round2(cumulative),
            rank=rank,
        ))
    return items


def summarize_classes(items: List[AbcItem]) -> Dict[str, AbcClassSummary]:
    total = sum(i.total_value for i in items)
    summary = {}
    for cls in CLASSES:
        members = [i for i in items if i.classification == cls]
        value = sum(i.total_value for i in members)
        summary[cls] = AbcClassSummary(
            count=len(members),
            value=value,
            percentage=percentage(value, total),
        )
    return summary


def abc_analysis(db: Session) -> AbcReport:
    products = (
        db.query(Product)
        .filter(Product.status == "active")
        .order_by(Product.id.asc())
        .all()
    )
    items = rank_products(products)
    summary = summarize_classes(items)
    logger.debug(
        "ABC analysis over %d products: %s",
        len(items), {k: v.count for k, v in summary.items()},
    )
    return AbcReport(
        products=items,
        summary=summary,
        total_value=sum(i.total_value for i in items),
        insights=dict(INSIGHTS),
    )
