# marketplace/services/catalog.py
from typing import Protocol

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from marketplace.data.models.product import ProductModel
from marketplace.domain.schemas import CatalogProduct, StockChange
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogStore(Protocol):
    """
    The three catalog operations the order core depends on.
    conditional_decrement_stock is the concurrency primitive: it must apply
    atomically and only when enough stock is left.
    """

    def get_product(self, product_id: int) -> CatalogProduct | None: ...

    def conditional_decrement_stock(self, product_id: int, quantity: int) -> StockChange: ...

    def increment_stock(self, product_id: int, quantity: int) -> bool: ...


class SqlCatalogStore:
    """Catalog store backed by the local products table."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> CatalogProduct | None:
        product = self.db.get(ProductModel, product_id, populate_existing=True)
        if product is None:
            return None
        return CatalogProduct.model_validate(product)

    def conditional_decrement_stock(self, product_id: int, quantity: int) -> StockChange:
        if quantity < 1:
            raise ValueError("quantity must be positive")

        #UPDATE products SET stock = stock - :q ... WHERE id = :id AND stock >= :q
        #the WHERE makes check and write a single statement, no gap for another buyer
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(
                stock=ProductModel.stock - quantity,
                total_sold=ProductModel.total_sold + quantity,
                status=case(
                    (ProductModel.stock == quantity, "out-of-stock"),
                    else_=ProductModel.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        applied = result.rowcount == 1
        current = self._current_stock(product_id)
        logger.info(
            f"Decrement stock product={product_id} qty={quantity} "
            f"applied={applied} current={current}"
        )
        return StockChange(applied=applied, current_stock=current or 0)

    def increment_stock(self, product_id: int, quantity: int) -> bool:
        if quantity < 1:
            raise ValueError("quantity must be positive")

        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock=ProductModel.stock + quantity,
                total_sold=case(
                    (ProductModel.total_sold >= quantity, ProductModel.total_sold - quantity),
                    else_=0,
                ),
                status=case(
                    (ProductModel.status == "out-of-stock", "active"),
                    else_=ProductModel.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        if result.rowcount == 0:
            logger.warning(f"Increment stock skipped, product {product_id} not found")
            return False

        logger.info(f"Increment stock product={product_id} qty={quantity}")
        return True

    def _current_stock(self, product_id: int) -> int | None:
        return self.db.execute(
            select(ProductModel.stock).where(ProductModel.id == product_id)
        ).scalar_one_or_none()
