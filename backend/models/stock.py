# backend/models/stock.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from database import Base

class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Requested operation: set, add or subtract
    operation = Column(String(10), nullable=False)
    # Signed change actually applied to the product quantity
    qty = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    product = relationship("Product")
    user = relationship("User")
