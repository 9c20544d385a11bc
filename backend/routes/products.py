# backend/routes/products.py
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user, require_admin
from utils.audit import write_log, client_ip
from utils.errors import ValidationError, NotFoundError
from models.users import User
from models.product import Product, CATEGORIES, UNITS, LOW_STOCK, OUT_OF_STOCK
from models.stock import StockMovement
import schemas.product as product_schemas
from services import analytics
from services.filters import (
    SEARCH_FIELDS, MIN_SEARCH_LENGTH, filtered_query, summarize, clean_search,
    search_clause, split_csv,
)
from services.pagination import apply_sort, paginate, DEFAULT_SORT, DEFAULT_ORDER, DEFAULT_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Products"])

DEFAULT_SEARCH_FIELDS = "name,code,description"

# ---- HELPERS ----
def _get_product(db: Session, product_id: int, lock: bool = False) -> Product:
    query = db.query(Product).filter(Product.id == product_id)
    if lock:
        query = query.with_for_update()
    product = query.first()
    if not product:
        raise NotFoundError("Product not found")
    return product

def _ensure_unique(db: Session, code: Optional[str], barcode: Optional[str], exclude_id: Optional[int] = None):
    # Advisory only; the unique constraints have the final word on commit
    errors = []
    if code:
        q = db.query(Product.id).filter(Product.code == code)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            errors.append("code: already in use")
    if barcode:
        q = db.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            errors.append("barcode: already in use")
    if errors:
        raise ValidationError("Product already exists", errors)

def _serialize(products: List[Product]) -> List[product_schemas.ProductResponse]:
    return [product_schemas.ProductResponse.from_product(p) for p in products]

def _by_status(db: Session, stock_status: str) -> List[Product]:
    return (
        db.query(Product)
        .filter(Product.status == "active", Product.stock_status == stock_status)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )

def search_score(product: Product, terms: List[str], fields: List[str], fuzzy: bool) -> int:
    """Relevance of a product for the search terms (case-insensitive)."""
    name = (product.name or "").lower()
    code = (product.code or "").lower()
    description = (product.description or "").lower()
    score = 0
    for term in terms:
        t = term.lower()
        if "name" in fields:
            if not fuzzy and name == t:
                score += 10
            elif t in name:
                score += 5
        if "code" in fields:
            if not fuzzy and code == t:
                score += 8
            elif t in code:
                score += 4
        if "description" in fields and t in description:
            score += 2
    return score


# =========================
# PRODUCT LIST
# =========================
@router.get("/products", response_model=product_schemas.ProductListResponse)
def list_products(
    category: Optional[str] = Query(None),
    stock_status: Optional[str] = Query(None, alias="stockStatus"),
    search: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    supplier: Optional[str] = Query(None),
    tags: Optional[str] = Query(None),
    barcode: Optional[str] = Query(None),
    sort_by: str = Query(DEFAULT_SORT, alias="sortBy"),
    sort_order: str = Query(DEFAULT_ORDER, alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    criteria = product_schemas.ProductFilter(
        category=category, stock_status=stock_status, search=search,
        min_price=min_price, max_price=max_price, supplier=supplier,
        tags=tags, barcode=barcode,
    )
    query = filtered_query(db, criteria)
    summary = summarize(query)
    items, meta = paginate(apply_sort(query, sort_by, sort_order), page, limit)

    applied = {
        "category": category, "stockStatus": stock_status, "search": search,
        "minPrice": min_price, "maxPrice": max_price, "supplier": supplier,
        "tags": tags, "barcode": barcode,
    }
    applied = {k: v for k, v in applied.items() if v not in (None, "")}
    applied.update({"sortBy": sort_by, "sortOrder": sort_order})

    return {
        "success": True,
        "data": _serialize(items),
        "pagination": meta,
        "filters": applied,
        "summary": summary,
    }


# =========================
# SEARCH
# =========================
@router.get("/products/search")
def search_products(
    q: str = Query(...),
    fields: str = Query(DEFAULT_SEARCH_FIELDS),
    fuzzy: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    term = clean_search(q)
    if term is None:
        raise ValidationError("Search term is required", ["q: must not be empty"])

    wanted = [f for f in split_csv(fields) if f in SEARCH_FIELDS]
    if not wanted:
        raise ValidationError(
            "No searchable fields given",
            [f"fields: must include any of {', '.join(SEARCH_FIELDS)}"],
        )

    terms = [term]
    if fuzzy:
        # Single letters would match nearly everything
        terms = [t for t in term.split() if len(t) >= MIN_SEARCH_LENGTH]
        if not terms:
            raise ValidationError(
                "Search term too short",
                [f"q: needs a word of at least {MIN_SEARCH_LENGTH} characters"],
            )
    candidates = (
        db.query(Product)
        .filter(Product.status == "active", or_(*[search_clause(t, wanted) for t in terms]))
        .order_by(Product.id.asc())
        .all()
    )
    scored = [(search_score(p, terms, wanted, fuzzy), p) for p in candidates]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    data = []
    for score, p in scored[:limit]:
        item = product_schemas.ProductResponse.from_product(p).model_dump(by_alias=True)
        item["searchScore"] = score
        data.append(item)

    return {
        "success": True,
        "data": data,
        "count": len(data),
        "total": len(scored),
        "query": {"q": term, "fields": wanted, "fuzzy": fuzzy},
    }


# =========================
# AGGREGATE VIEWS
# =========================
@router.get("/products/statistics")
def product_statistics(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    return {"success": True, "data": analytics.statistics(db)}

@router.get("/products/categories")
def product_categories(db: Session = Depends(get_db)):
    return {
        "success": True,
        "data": {
            "categories": analytics.category_counts(db),
            "available": list(CATEGORIES),
            "units": list(UNITS),
        },
    }

@router.get("/products/brands")
def product_brands(db: Session = Depends(get_db)):
    brands = analytics.supplier_counts(db)
    return {"success": True, "data": brands, "count": len(brands)}

@router.get("/products/low-stock")
def low_stock_products(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    items = _by_status(db, LOW_STOCK)
    return {"success": True, "data": _serialize(items), "count": len(items)}

@router.get("/products/out-of-stock")
def out_of_stock_products(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    items = _by_status(db, OUT_OF_STOCK)
    return {"success": True, "data": _serialize(items), "count": len(items)}

@router.get("/products/price-range")
def product_price_range(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    r = analytics.price_range(db)
    return {
        "success": True,
        "data": {
            "minPrice": r["min_price"],
            "maxPrice": r["max_price"],
            "avgPrice": r["avg_price"],
            "distribution": r["distribution"],
        },
    }


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/products/{product_id}", response_model=product_schemas.ProductEnvelope)
def get_product(
    product_id: int,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    product = _get_product(db, product_id)
    return {"success": True, "data": product_schemas.ProductResponse.from_product(product)}


# =========================
# CREATE
# =========================
@router.post("/products", response_model=product_schemas.ProductEnvelope, status_code=status.HTTP_201_CREATED)
def add_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    _ensure_unique(db, payload.code, payload.barcode)

    data = payload.model_dump(exclude={"tags"})
    product = Product(**data, created_by=current_user.id, updated_by=current_user.id)
    product.set_tags(payload.tags)

    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(
        db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
        status="SUCCESS", ip=client_ip(request), resource_id=product.id, meta={"code": product.code}
    )
    return {
        "success": True,
        "message": "Product created",
        "data": product_schemas.ProductResponse.from_product(product),
    }


# =========================
# UPDATE (partial)
# =========================
@router.put("/products/{product_id}", response_model=product_schemas.ProductEnvelope)
def update_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    for key in ("code", "name", "category", "quantity", "unit", "min_stock",
                "cost_price", "sale_price", "status"):
        if key in changes and changes[key] is None:
            raise ValidationError("Request validation failed", [f"{key}: may not be null"])

    # Price relation is checked against the merged record
    cost = changes.get("cost_price", product.cost_price)
    sale = changes.get("sale_price", product.sale_price)
    if sale < cost:
        raise ValidationError("Request validation failed", ["salePrice: cannot be lower than costPrice"])

    _ensure_unique(db, changes.get("code"), changes.get("barcode"), exclude_id=product.id)

    tags = changes.pop("tags", None)
    for key, value in changes.items():
        if key in ("description", "supplier") and value is None:
            value = ""
        setattr(product, key, value)
    if tags is not None:
        product.set_tags(tags)
    product.updated_by = current_user.id

    db.commit()
    db.refresh(product)

    write_log(
        db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
        status="SUCCESS", ip=client_ip(request), resource_id=product.id, meta={"fields": sorted(changes)}
    )
    return {
        "success": True,
        "message": "Product updated",
        "data": product_schemas.ProductResponse.from_product(product),
    }


# =========================
# DELETE (soft)
# =========================
@router.delete("/products/{product_id}")
def delete_product(
    product_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    product.status = "inactive"
    product.updated_by = current_user.id
    db.commit()

    write_log(
        db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
        status="SUCCESS", ip=client_ip(request), resource_id=product.id
    )
    return {"success": True, "message": f"Product '{product.name}' deleted"}


# =========================
# STOCK ADJUSTMENT
# =========================
@router.patch("/products/{product_id}/stock", response_model=product_schemas.ProductEnvelope)
def update_stock(
    product_id: int,
    payload: product_schemas.StockUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id, lock=True)
    before = product.quantity

    if payload.operation == "set":
        after = payload.quantity
    elif payload.operation == "add":
        after = before + payload.quantity
    else:
        after = before - payload.quantity

    if after < 0:
        raise ValidationError(
            "Insufficient stock",
            [f"quantity: cannot subtract {payload.quantity}, only {before} in stock"],
        )

    product.quantity = after
    product.updated_by = current_user.id
    db.add(StockMovement(
        product_id=product.id, user_id=current_user.id, operation=payload.operation,
        qty=after - before, quantity_before=before, quantity_after=after,
    ))
    db.commit()
    db.refresh(product)

    write_log(
        db, user_id=current_user.id, action="STOCK_UPDATE", resource="products",
        status="SUCCESS", ip=client_ip(request),
        resource_id=product.id, meta={"operation": payload.operation, "before": before, "after": after},
    )
    logger.info("Stock of %s changed %s -> %s", product.code, before, after)
    return {
        "success": True,
        "message": "Stock updated",
        "data": product_schemas.ProductResponse.from_product(product),
    }
