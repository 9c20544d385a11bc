from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from database import Base

# One business event (login, product change, stock adjustment, image change).
# user_id is empty for anonymous attempts such as a failed registration.
class Log(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(30), nullable=False, index=True)
    resource = Column(String(30), nullable=False, index=True)
    resource_id = Column(Integer, nullable=True)
    # SUCCESS or FAIL
    status = Column(String(10), nullable=False, default="SUCCESS", index=True)
    ip = Column(String(64), nullable=True)

    meta = Column(JSON, nullable=False, default=dict)

    user = relationship("User", lazy="joined")
