# backend/routes/logs.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.log import Log
from models.users import User
from schemas.log import LogResponse
from services.pagination import page_meta
from utils.errors import ValidationError
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/logs", tags=["Logs"])


def _parse_day(name: str, value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None
    # A bare YYYY-MM-DD upper bound covers the whole day
    if end_of_day and len(value) == 10:
        value += " 23:59:59"
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError("Invalid date", [f"{name}: expected YYYY-MM-DD"])
    if moment.tzinfo:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


# Audit trail, newest first (Admin only)
@router.get("")
def get_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by user ID"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    status: Optional[str] = Query(None, pattern="^(SUCCESS|FAIL)$"),
    date_from: Optional[str] = Query(None, alias="dateFrom", description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, alias="dateTo", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(Log)

    if action:
        query = query.filter(Log.action == action.upper())
    if user_id is not None:
        query = query.filter(Log.user_id == user_id)
    if resource:
        query = query.filter(Log.resource == resource)
    if status:
        query = query.filter(Log.status == status)

    start = _parse_day("dateFrom", date_from)
    end = _parse_day("dateTo", date_to, end_of_day=True)
    if start:
        query = query.filter(Log.created_at >= start)
    if end:
        query = query.filter(Log.created_at <= end)

    total = query.count()
    logs = (
        query.order_by(Log.created_at.desc(), Log.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": [LogResponse.from_log(l) for l in logs],
        "pagination": page_meta(total, page, limit),
    }
