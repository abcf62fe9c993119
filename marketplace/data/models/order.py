from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Date, Numeric, JSON, Text
from sqlalchemy.orm import relationship

from marketplace.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True)
    # users belong to the identity service, so no foreign key to users
    buyer_id = Column(Integer, nullable=False, index=True)

    # buyer snapshot taken at checkout
    buyer_name = Column(String, nullable=False)
    buyer_email = Column(String, nullable=False, default="")
    buyer_phone = Column(String, nullable=False, default="")

    subtotal = Column(Numeric(12, 2), nullable=False)
    delivery_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    status = Column(String(16), nullable=False, default="pending", index=True)
    payment_method = Column(String(16), nullable=False)
    payment_status = Column(String(16), nullable=False, default="pending")
    paid_at = Column(DateTime(timezone=True))

    delivery_address = Column(JSON, nullable=False)
    delivery_date = Column(Date)
    delivery_time_slot = Column(String(16), nullable=False, default="anytime")
    delivery_instructions = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    confirmed_at = Column(DateTime(timezone=True))
    processed_at = Column(DateTime(timezone=True))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    received_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(Text)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
