import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)

def client_ip(request: Optional[Request]) -> Optional[str]:
    return request.client.host if request is not None and request.client else None

# Persist an audit event and mirror it to the application log
def write_log(db: Session, *, user_id, action, resource, resource_id=None, status="SUCCESS", ip=None, meta=None):
    entry = Log(
        user_id=user_id, action=action, resource=resource, resource_id=resource_id,
        status=status, ip=ip, meta=meta or {},
    )
    db.add(entry)
    db.commit()
    level = logging.INFO if status == "SUCCESS" else logging.WARNING
    logger.log(level, "%s %s#%s %s user=%s", action, resource, resource_id or "-", status, user_id)
