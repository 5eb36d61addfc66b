from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from omega.orders.models import Order


class SQLAlchemyOrderRepository:
    """Lecture des commandes pour la génération de factures."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id_with_items(self, *, order_id: int) -> Optional[Order]:
        statement = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
        )
        result = await self.db.execute(statement)
        return result.scalars().one_or_none()
