# marketplace/repos/order_repo.py
from decimal import Decimal

from sqlalchemy import select, update, func, exists
from sqlalchemy.orm import Session, selectinload

from marketplace.data.models.order import OrderModel
from marketplace.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def delete_order(self, order: OrderModel) -> None:
        self.db.delete(order)
        self.db.commit()

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def order_number_exists(self, order_number: str) -> bool:
        return bool(
            self.db.execute(
                select(exists().where(OrderModel.order_number == order_number))
            ).scalar()
        )

    def update_order_version(self, order_id: int, old_version: int, new_data: dict) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _buyer_filter(self, user_id: int):
        return OrderModel.buyer_id == user_id

    def _seller_filter(self, user_id: int):
        return OrderModel.items.any(OrderItemModel.seller_id == user_id)

    def list_orders(
        self,
        user_id: int,
        as_seller: bool = False,
        status: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderModel], int]:
        cond = self._seller_filter(user_id) if as_seller else self._buyer_filter(user_id)
        filters = [cond]
        if status:
            filters.append(OrderModel.status == status)

        total = self.db.execute(
            select(func.count(OrderModel.id)).where(*filters)
        ).scalar_one()

        orders = (
            self.db.execute(
                select(OrderModel)
                .where(*filters)
                .options(selectinload(OrderModel.items))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
                .offset(offset)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(orders), total

    def count_orders(self, user_id: int, as_seller: bool = False, statuses=None) -> int:
        cond = self._seller_filter(user_id) if as_seller else self._buyer_filter(user_id)
        stmt = select(func.count(OrderModel.id)).where(cond)
        if statuses:
            stmt = stmt.where(OrderModel.status.in_(list(statuses)))
        return self.db.execute(stmt).scalar_one()

    def sum_totals(self, user_id: int, as_seller: bool = False, statuses=None) -> Decimal:
        cond = self._seller_filter(user_id) if as_seller else self._buyer_filter(user_id)
        stmt = select(func.coalesce(func.sum(OrderModel.total), 0)).where(cond)
        if statuses:
            stmt = stmt.where(OrderModel.status.in_(list(statuses)))
        return Decimal(str(self.db.execute(stmt).scalar_one()))

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
