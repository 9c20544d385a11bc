from datetime import datetime
from typing import Any, Optional

from schemas.product import APIModel

class LogResponse(APIModel):
    id: int
    created_at: datetime
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[int] = None
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None

    @classmethod
    def from_log(cls, log) -> "LogResponse":
        return cls(
            id=log.id, created_at=log.created_at, user_id=log.user_id,
            username=log.user.username if log.user else None,
            action=log.action, resource=log.resource, resource_id=log.resource_id,
            status=log.status, ip=log.ip, meta=log.meta,
        )
