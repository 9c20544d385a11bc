# schemas/reports.py
from datetime import datetime
from typing import Dict, List, Optional

from schemas.product import APIModel

# Whole-collection KPIs over active products
class Overview(APIModel):
    total_products: int = 0
    total_value: float = 0.0
    total_cost: float = 0.0
    avg_price: float = 0.0
    avg_cost: float = 0.0
    total_quantity: int = 0
    low_stock_count: int = 0
    out_of_stock_count: int = 0

class PriceRange(APIModel):
    min: float
    max: float

class CategoryStats(APIModel):
    category: str
    total_products: int
    total_value: float
    total_quantity: int
    avg_price: float
    avg_cost: float
    price_range: PriceRange
    low_stock_count: int
    out_of_stock_count: int
    stock_health: float
    supplier_count: int
    avg_profit_margin: float

class SupplierStats(APIModel):
    supplier: str
    total_products: int
    total_value: float
    total_quantity: int
    avg_price: float
    avg_cost: float
    category_count: int
    categories: List[str]
    stock_health: float
    avg_profit_margin: float

# One bucket of the salePrice distribution; max is None for the open-ended top bucket
class PriceBucket(APIModel):
    label: str
    min: float
    max: Optional[float] = None
    count: int
    total_value: float
    avg_quantity: float

class StockSlice(APIModel):
    status: str
    count: int
    value: float

# Compact product row used in dashboards and report listings
class ProductBrief(APIModel):
    id: int
    code: str
    name: str
    category: str
    quantity: int
    min_stock: int
    stock_status: str
    total_value: float
    supplier: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AbcItem(APIModel):
    id: int
    code: str
    name: str
    category: str
    quantity: int
    sale_price: float
    total_value: float
    classification: str
    value_percentage: float
    cumulative_percentage: float
    rank: int

class AbcClassSummary(APIModel):
    count: int = 0
    value: float = 0.0
    percentage: float = 0.0

class AbcReport(APIModel):
    products: List[AbcItem]
    summary: Dict[str, AbcClassSummary]
    total_value: float
    insights: Dict[str, str]

class MovementOut(APIModel):
    id: int
    product_id: int
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    operation: str
    qty: int
    quantity_before: int
    quantity_after: int
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
