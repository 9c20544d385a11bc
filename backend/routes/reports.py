# routes/reports.py
from datetime import datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user
from utils.errors import ValidationError
from models.users import User
from services import analytics, export
from services.abc import abc_analysis

router = APIRouter(prefix="/reports", tags=["Reports"])


def _parse_date(name: str, s: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if not s:
        return None
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValidationError("Invalid date", [f"{name}: bad date format {s!r}, expected ISO 8601"])
    # A bare date as upper bound covers the whole day
    if end_of_day and len(s) <= 10:
        dt = datetime.combine(dt.date(), time.max)
    # Stored timestamps are naive UTC
    if dt.tzinfo:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# -----------------------------
# 1) Dashboard
# -----------------------------
@router.get("/dashboard")
def report_dashboard(
    period: str = Query("30days", pattern="^(7days|30days|90days|all)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"success": True, "data": analytics.dashboard(db, period)}


# -----------------------------
# 2) Rollups
# -----------------------------
@router.get("/category-analysis")
def report_category_analysis(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    return {"success": True, "data": analytics.category_analysis(db)}


@router.get("/supplier-analysis")
def report_supplier_analysis(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    return {"success": True, "data": analytics.supplier_analysis(db)}


@router.get("/abc-analysis")
def report_abc_analysis(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    return {"success": True, "data": abc_analysis(db)}


# -----------------------------
# 3) Movement window
# -----------------------------
@router.get("/inventory-movement")
def report_inventory_movement(
    start_date: Optional[str] = Query(None, alias="startDate", description="ISO date from"),
    end_date: Optional[str] = Query(None, alias="endDate", description="ISO date to"),
    category: Optional[str] = Query(None),
    supplier: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    start = _parse_date("startDate", start_date)
    end = _parse_date("endDate", end_date, end_of_day=True)
    if start and end and start > end:
        raise ValidationError("Invalid date range", ["startDate: must not be after endDate"])
    return {
        "success": True,
        "data": analytics.inventory_movement(db, start, end, category, supplier),
    }


# -----------------------------
# 4) Export
# -----------------------------
@router.get("/export/excel")
def report_export_excel(
    type: str = Query("inventory"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    content = export.export_excel(db, type)
    return _attachment(content, export.XLSX_MEDIA_TYPE, export.export_filename("xlsx"))


@router.get("/export/csv")
def report_export_csv(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    content = export.export_csv(db)
    return _attachment(content, export.CSV_MEDIA_TYPE, export.export_filename("csv"))
