import math
from typing import List, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Query

from models.product import Product, IN_STOCK, LOW_STOCK, OUT_OF_STOCK

DEFAULT_SORT = "createdAt"
DEFAULT_ORDER = "desc"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50

# Severity order: out-of-stock < low-stock < in-stock
STOCK_SEVERITY = case(
    (Product.stock_status == OUT_OF_STOCK, 0),
    (Product.stock_status == LOW_STOCK, 1),
    (Product.stock_status == IN_STOCK, 2),
    else_=3,
)

SORTABLE = {
    "code": func.lower(Product.code),
    "name": func.lower(Product.name),
    "category": func.lower(Product.category),
    "quantity": Product.quantity,
    "salePrice": Product.sale_price,
    "totalValue": Product.total_value,
    "stockStatus": STOCK_SEVERITY,
    "createdAt": Product.created_at,
}


def apply_sort(query: Query, sort_by: str = DEFAULT_SORT, sort_order: str = DEFAULT_ORDER) -> Query:
    # Equal keys keep insertion order (id), unknown fields leave the collection order alone
    col = SORTABLE.get(sort_by)
    if col is None:
        return query.order_by(Product.id.asc())
    primary = col.asc() if sort_order == "asc" else col.desc()
    return query.order_by(primary, Product.id.asc())


def page_meta(total: int, page: int, limit: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "has_next": page * limit < total,
        "has_prev": page > 1,
        "limit": limit,
    }


def paginate(query: Query, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> Tuple[List, dict]:
    """Slice one page; a page past the end yields no items, never an error."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, page_meta(total, page, limit)
