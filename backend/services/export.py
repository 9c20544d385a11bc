"""Report exporter: pandas frames written to xlsx (XlsxWriter) or csv bytes."""
import io
import logging
from datetime import datetime
from typing import Callable, Dict, List, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from config import settings
from models.product import Product, LOW_STOCK, OUT_OF_STOCK
from services import analytics
from utils.errors import ValidationError, UnexpectedError

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

HEADER_FILL = "#E0E0E0"
OUT_OF_STOCK_FILL = "#FFCCCC"
OUT_OF_STOCK_LABEL = "OUT OF STOCK"
LOW_STOCK_LABEL = "LOW STOCK"

INVENTORY_COLUMNS = [
    "Code", "Name", "Category", "Quantity", "Unit",
    "Cost Price", "Sale Price", "Total Value", "Stock Status", "Supplier",
]


def _active_products(db: Session) -> List[Product]:
    return db.query(Product).filter(Product.status == "active").order_by(Product.id.asc()).all()


def inventory_frame(db: Session) -> pd.DataFrame:
    rows = [
        [p.code, p.name, p.category, p.quantity, p.unit,
         p.cost_price, p.sale_price, p.total_value, p.stock_status, p.supplier or "-"]
        for p in _active_products(db)
    ]
    return pd.DataFrame(rows, columns=INVENTORY_COLUMNS)


def categories_frame(db: Session) -> pd.DataFrame:
    rows = [
        [c.category, c.total_products, c.total_value, c.avg_price, c.stock_health]
        for c in analytics.category_rollup(db)
    ]
    return pd.DataFrame(rows, columns=["Category", "Products", "Total Value", "Avg Price", "Stock Health %"])


def suppliers_frame(db: Session) -> pd.DataFrame:
    rows = [
        [s.supplier, s.total_products, s.total_value, ", ".join(s.categories)]
        for s in analytics.supplier_rollup(db)
    ]
    return pd.DataFrame(rows, columns=["Supplier", "Products", "Total Value", "Categories"])


def low_stock_frame(db: Session) -> pd.DataFrame:
    products = (
        db.query(Product)
        .filter(Product.status == "active", Product.stock_status.in_([LOW_STOCK, OUT_OF_STOCK]))
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )
    rows = []
    for p in products:
        out = p.stock_status == OUT_OF_STOCK
        rows.append([
            p.code, p.name, p.quantity, p.min_stock,
            OUT_OF_STOCK_LABEL if out else LOW_STOCK_LABEL,
            p.supplier or "-",
            p.sale_price * p.min_stock if out else 0.0,
        ])
    return pd.DataFrame(
        rows,
        columns=["Code", "Name", "Current Stock", "Min Stock", "Status", "Supplier", "Estimated Loss"],
    )


# sheet name, frame builder, currency columns
SHEETS: Dict[str, Tuple[str, Callable[[Session], pd.DataFrame], List[str]]] = {
    "inventory": ("Inventory", inventory_frame, ["Cost Price", "Sale Price", "Total Value"]),
    "categories": ("Categories", categories_frame, ["Total Value", "Avg Price"]),
    "suppliers": ("Suppliers", suppliers_frame, ["Total Value"]),
    "low-stock": ("Low Stock", low_stock_frame, ["Estimated Loss"]),
}
EXPORT_TYPES = tuple(SHEETS) + ("all",)


def sheets_for(report_type: str) -> List[str]:
    if report_type == "all":
        return list(SHEETS)
    if report_type not in SHEETS:
        raise ValidationError(
            "Unknown export type",
            [f"type: must be one of {', '.join(EXPORT_TYPES)}"],
        )
    return [report_type]


def _write_sheet(writer, sheet_name: str, df: pd.DataFrame, money_cols: List[str]):
    df.to_excel(writer, sheet_name=sheet_name, index=False)
    book = writer.book
    ws = writer.sheets[sheet_name]

    header_fmt = book.add_format({"bold": True, "bg_color": HEADER_FILL, "border": 1})
    money_fmt = book.add_format({"num_format": settings.CURRENCY_FORMAT})

    for col_idx, col in enumerate(df.columns):
        ws.write(0, col_idx, col, header_fmt)
        width = max(12, min(50, len(str(col)) + 6))
        ws.set_column(col_idx, col_idx, width, money_fmt if col in money_cols else None)

    if sheet_name == SHEETS["low-stock"][0] and len(df):
        status_col = chr(ord("A") + df.columns.get_loc("Status"))
        ws.conditional_format(1, 0, len(df), len(df.columns) - 1, {
            "type": "formula",
            "criteria": f'=${status_col}2="{OUT_OF_STOCK_LABEL}"',
            "format": book.add_format({"bg_color": OUT_OF_STOCK_FILL}),
        })


def export_excel(db: Session, report_type: str = "inventory") -> bytes:
    keys = sheets_for(report_type)
    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
            for key in keys:
                sheet_name, build, money_cols = SHEETS[key]
                _write_sheet(writer, sheet_name, build(db), money_cols)
    except Exception as e:
        logger.exception("Excel export failed")
        raise UnexpectedError("Failed to generate Excel report") from e
    logger.info("Excel export generated: %s", ", ".join(keys))
    return buffer.getvalue()


def export_csv(db: Session) -> bytes:
    try:
        return inventory_frame(db).to_csv(index=False).encode("utf-8-sig")
    except Exception as e:
        logger.exception("CSV export failed")
        raise UnexpectedError("Failed to generate CSV report") from e


def export_filename(extension: str, now=None) -> str:
    stamp = (now or datetime.utcnow()).strftime("%Y%m%d-%H%M%S")
    return f"inventory-report-{stamp}.{extension}"
