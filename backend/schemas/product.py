# backend/schemas/product.py
import re
from datetime import datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from utils.numbers import round2

Category = Literal[
    "Electronics", "Clothing", "Home & Garden", "Sports", "Books",
    "Cosmetics", "Food", "Toys", "Other",
]
Unit = Literal["piece", "kg", "gram", "liter", "ml", "meter", "cm", "package"]
ProductStatus = Literal["active", "inactive", "discontinued"]
StockStatus = Literal["in-stock", "low-stock", "out-of-stock"]

CODE_RE = re.compile(r"^[A-Z0-9]{3,10}$")
BARCODE_RE = re.compile(r"^\d{8,13}$")


# camelCase on the wire, snake_case in Python
class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Request bodies reject anything they do not declare
class RequestModel(APIModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _norm_code(value):
    if value is None:
        return None
    code = str(value).strip().upper()
    if not CODE_RE.match(code):
        raise ValueError("Code must be 3-10 characters of A-Z and 0-9")
    return code


def _norm_barcode(value):
    if value is None:
        return None
    barcode = str(value).strip()
    if not barcode:
        return None
    if not BARCODE_RE.match(barcode):
        raise ValueError("Barcode must be 8-13 digits")
    return barcode


def _norm_tags(value):
    if value is None:
        return None
    tags = []
    for tag in value:
        tag = str(tag).strip()
        if len(tag) > 30:
            raise ValueError("Tags may be at most 30 characters")
        if tag and tag not in tags:
            tags.append(tag)
    return tags


# Shared field normalisation for create and update payloads
class ProductFields(RequestModel):

    @field_validator("code", mode="before", check_fields=False)
    @classmethod
    def normalize_code(cls, v):
        return _norm_code(v)

    @field_validator("barcode", mode="before", check_fields=False)
    @classmethod
    def normalize_barcode(cls, v):
        return _norm_barcode(v)

    @field_validator("tags", check_fields=False)
    @classmethod
    def normalize_tags(cls, v):
        return _norm_tags(v)

    @field_validator("name", "supplier", "description", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


# Payload for POST /products
class ProductCreate(ProductFields):
    code: str
    name: str = Field(..., min_length=2, max_length=100)
    category: Category
    description: str = Field("", max_length=500)
    quantity: int = Field(..., ge=0)
    unit: Unit = "piece"
    min_stock: int = Field(10, ge=0)
    cost_price: float = Field(..., ge=0)
    sale_price: float = Field(..., ge=0)
    supplier: str = Field("", max_length=100)
    barcode: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: ProductStatus = "active"

    @model_validator(mode="after")
    def check_sale_price(self):
        if self.sale_price < self.cost_price:
            raise ValueError("salePrice cannot be lower than costPrice")
        return self


# Payload for PUT /products/{id}: only the fields sent are applied
class ProductUpdate(ProductFields):
    code: Optional[str] = None
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    category: Optional[Category] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: Optional[int] = Field(None, ge=0)
    unit: Optional[Unit] = None
    min_stock: Optional[int] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    supplier: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[ProductStatus] = None


# Payload for PATCH /products/{id}/stock
class StockUpdate(RequestModel):
    quantity: int = Field(..., ge=0)
    operation: Literal["set", "add", "subtract"]


class ImageOut(APIModel):
    id: int
    url: str
    is_primary: bool
    uploaded_at: datetime


class ProductResponse(APIModel):
    id: int
    code: str
    name: str
    category: str
    description: str = ""
    supplier: str = ""
    barcode: Optional[str] = None
    unit: str
    quantity: int
    min_stock: int
    cost_price: float
    sale_price: float
    total_value: float
    stock_status: StockStatus
    profit_margin: float
    tags: List[str] = []
    images: List[ImageOut] = []
    status: ProductStatus
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_product(cls, p) -> "ProductResponse":
        return cls(
            id=p.id, code=p.code, name=p.name, category=p.category,
            description=p.description or "", supplier=p.supplier or "", barcode=p.barcode,
            unit=p.unit, quantity=p.quantity, min_stock=p.min_stock,
            cost_price=p.cost_price, sale_price=p.sale_price,
            total_value=p.total_value, stock_status=p.stock_status,
            profit_margin=round2(p.profit_margin),
            tags=p.tag_names,
            images=[ImageOut.model_validate(img) for img in p.images],
            status=p.status, created_by=p.created_by, updated_by=p.updated_by,
            created_at=p.created_at, updated_at=p.updated_at,
        )


# Criteria bag consumed by the filter builder; prices stay raw strings so
# that malformed bounds can be dropped instead of rejected.
class ProductFilter(BaseModel):
    category: Optional[str] = None
    stock_status: Optional[str] = None
    search: Optional[str] = None
    min_price: Optional[str] = None
    max_price: Optional[str] = None
    supplier: Optional[str] = None
    tags: Optional[str] = None
    barcode: Optional[str] = None


class Pagination(APIModel):
    current: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool
    limit: int


class FilterSummary(APIModel):
    total_value: float
    avg_price: float
    low_stock_count: int
    out_of_stock_count: int


class ProductListResponse(APIModel):
    success: bool = True
    data: List[ProductResponse]
    pagination: Pagination
    filters: dict
    summary: FilterSummary


class ProductEnvelope(APIModel):
    success: bool = True
    message: Optional[str] = None
    data: ProductResponse
