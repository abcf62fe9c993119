from sqlalchemy import Column, Integer, ForeignKey, String, Numeric
from sqlalchemy.orm import relationship

from marketplace.data.database import Base


class OrderItemModel(Base):
    """Line item snapshot. Never re-read from the catalog after checkout."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)

    product_name = Column(String, nullable=False)
    product_image = Column(String, nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    unit = Column(String(16), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    seller_id = Column(Integer, nullable=False, index=True)
    seller_name = Column(String, nullable=False)

    order = relationship("OrderModel", back_populates="items")
