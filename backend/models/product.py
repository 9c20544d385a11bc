# backend/models/product.py
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, event,
)
from sqlalchemy.orm import relationship
from database import Base

CATEGORIES = (
    "Electronics", "Clothing", "Home & Garden", "Sports", "Books",
    "Cosmetics", "Food", "Toys", "Other",
)
UNITS = ("piece", "kg", "gram", "liter", "ml", "meter", "cm", "package")

IN_STOCK = "in-stock"
LOW_STOCK = "low-stock"
OUT_OF_STOCK = "out-of-stock"


def derive_stock_status(quantity: int, min_stock: int) -> str:
    if quantity == 0:
        return OUT_OF_STOCK
    if quantity <= min_stock:
        return LOW_STOCK
    return IN_STOCK


# Model Product
# Catalogue entry with pricing and stock data. total_value and stock_status
# are derived columns, recomputed before every insert/update so that they
# can be filtered, sorted and aggregated in SQL.
class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity"),
        CheckConstraint("min_stock >= 0", name="ck_products_min_stock"),
        CheckConstraint("cost_price >= 0", name="ck_products_cost_price"),
        CheckConstraint("sale_price >= cost_price", name="ck_products_sale_ge_cost"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(10), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False, index=True)
    category = Column(String(30), nullable=False, index=True)
    description = Column(String(500), nullable=False, default="")
    supplier = Column(String(100), nullable=False, default="")
    # Unique when present; NULLs never collide
    barcode = Column(String(13), unique=True, nullable=True)
    unit = Column(String(10), nullable=False, default="piece")

    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=10)
    cost_price = Column(Float, nullable=False, default=0.0)
    sale_price = Column(Float, nullable=False, default=0.0)

    total_value = Column(Float, nullable=False, default=0.0)
    stock_status = Column(String(20), nullable=False, default=OUT_OF_STOCK, index=True)

    status = Column(String(20), nullable=False, default="active", index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    tags = relationship("ProductTag", cascade="all, delete-orphan", order_by="ProductTag.id")
    images = relationship("ProductImage", cascade="all, delete-orphan", order_by="ProductImage.id")

    def refresh_derived(self) -> None:
        quantity = self.quantity or 0
        self.total_value = quantity * (self.sale_price or 0.0)
        self.stock_status = derive_stock_status(quantity, self.min_stock if self.min_stock is not None else 10)

    @property
    def profit_margin(self) -> float:
        if not self.cost_price:
            return 0.0
        return (self.sale_price - self.cost_price) / self.cost_price * 100

    @property
    def tag_names(self):
        return [t.name for t in self.tags]

    def set_tags(self, names) -> None:
        # Keep first occurrence order, drop blanks and duplicates
        seen = []
        for name in names or []:
            name = name.strip()
            if name and name not in seen:
                seen.append(name)
        current = {t.name: t for t in self.tags}
        self.tags = [current.get(n) or ProductTag(name=n) for n in seen]


class ProductTag(Base):
    __tablename__ = "product_tags"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_product_tag"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(30), nullable=False, index=True)


# Images keep insertion order (id); at most one row per product has is_primary set.
class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    # Local file backing the URL, removed on eviction/delete
    file_path = Column(String, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _recompute_derived(mapper, connection, target):
    target.refresh_derived()
