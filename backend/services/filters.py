"""Filter builder: turns a product criteria bag into SQLAlchemy clauses.

Every query built here is restricted to active products; each criterion
that is present narrows the result further (AND), while the free-text
search matches any of its fields (OR).
"""
from typing import List, Optional

from sqlalchemy import func, case, or_
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql.expression import ColumnElement

from models.product import Product, ProductTag, IN_STOCK, LOW_STOCK, OUT_OF_STOCK
from schemas.product import ProductFilter
from utils.errors import ValidationError
from utils.numbers import parse_float, round2

MIN_SEARCH_LENGTH = 2
SEARCH_FIELDS = ("name", "code", "description", "supplier")
AVAILABLE = "available"
ALL = "all"


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with the wildcard characters escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def ilike(column, term: str) -> ColumnElement:
    return column.ilike(like_pattern(term), escape="\\")


def split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def clean_search(raw: Optional[str]) -> Optional[str]:
    """Normalise a search term, rejecting terms that are too short to be useful."""
    if raw is None:
        return None
    term = raw.strip()
    if not term:
        return None
    if len(term) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            "Search term too short",
            [f"search: must be at least {MIN_SEARCH_LENGTH} characters"],
        )
    return term


def search_clause(term: str, fields=SEARCH_FIELDS) -> ColumnElement:
    return or_(*[ilike(getattr(Product, f), term) for f in fields])


def build_filters(criteria: ProductFilter) -> List[ColumnElement]:
    clauses: List[ColumnElement] = [Product.status == "active"]

    if criteria.category and criteria.category != ALL:
        clauses.append(Product.category == criteria.category)

    if criteria.stock_status and criteria.stock_status != ALL:
        if criteria.stock_status == AVAILABLE:
            clauses.append(Product.stock_status.in_([IN_STOCK, LOW_STOCK]))
        else:
            clauses.append(Product.stock_status == criteria.stock_status)

    # Both bounds inclusive
    min_price = parse_float(criteria.min_price)
    if min_price is not None:
        clauses.append(Product.sale_price >= min_price)
    max_price = parse_float(criteria.max_price)
    if max_price is not None:
        clauses.append(Product.sale_price <= max_price)

    if criteria.supplier:
        clauses.append(ilike(Product.supplier, criteria.supplier.strip()))

    tags = split_csv(criteria.tags)
    if tags:
        clauses.append(Product.tags.any(ProductTag.name.in_(tags)))

    if criteria.barcode:
        clauses.append(Product.barcode == criteria.barcode.strip())

    term = clean_search(criteria.search)
    if term:
        clauses.append(search_clause(term))

    return clauses


def filtered_query(db: Session, criteria: ProductFilter) -> Query:
    return db.query(Product).filter(*build_filters(criteria))


def summarize(query: Query) -> dict:
    """Totals over an already filtered product query (not the whole catalogue)."""
    row = query.order_by(None).with_entities(
        func.count(Product.id),
        func.coalesce(func.sum(Product.total_value), 0.0),
        func.avg(Product.sale_price),
        func.coalesce(func.sum(case((Product.stock_status == LOW_STOCK, 1), else_=0)), 0),
        func.coalesce(func.sum(case((Product.stock_status == OUT_OF_STOCK, 1), else_=0)), 0),
    ).one()
    count, total_value, avg_price, low, out = row
    return {
        "count": int(count or 0),
        "total_value": float(total_value or 0.0),
        "avg_price": round2(avg_price),
        "low_stock_count": int(low or 0),
        "out_of_stock_count": int(out or 0),
    }
