from sqlalchemy import Column, Integer, String, Boolean, Numeric, JSON

from marketplace.data.database import Base


class ProductModel(Base):
    """Local catalog row. Only price, stock and availability matter to orders."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    seller_id = Column(Integer, nullable=False, index=True)

    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    unit = Column(String(16), nullable=False, default="kg")
    stock = Column(Integer, nullable=False, default=0)
    total_sold = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String(16), nullable=False, default="active")  # active, inactive, out-of-stock, discontinued
    images = Column(JSON, nullable=False, default=list)
