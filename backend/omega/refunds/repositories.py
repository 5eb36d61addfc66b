import logging
from typing import Optional, List, Tuple

from fastcrud import FastCRUD
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from omega.core.exceptions import RemoteServiceException
from omega.core.utils import utcnow
from omega.invoices.models import Invoice, InvoiceStatus, PaymentRecord
from omega.orders.models import Order
from omega.refunds.models import Refund, RefundRead, RefundStatus

logger = logging.getLogger(__name__)


class SQLAlchemyRefundRepository:
    """Persistance des remboursements et de leurs écritures de journal."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud = FastCRUD(Refund)

    async def get_order_payment_intent(self, *, order_id: Optional[int]) -> Optional[str]:
        if order_id is None:
            return None
        result = await self.db.execute(select(Order.stripe_payment_intent_id).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def get_by_stripe_refund_id(self, *, stripe_refund_id: str) -> Optional[Refund]:
        result = await self.db.execute(select(Refund).where(Refund.stripe_refund_id == stripe_refund_id))
        return result.scalars().one_or_none()

    async def list_refunds(
        self,
        *,
        invoice_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[RefundRead], int]:
        filters = {"invoice_id": invoice_id} if invoice_id is not None else {}
        try:
            result = await self.crud.get_multi(
                db=self.db,
                offset=offset,
                limit=limit,
                schema_to_select=RefundRead,
                return_as_model=True,
                sort_columns=["created_at", "id"],
                sort_orders=["desc", "desc"],
                **filters,
            )
        except SQLAlchemyError as e:
            logger.error(f"[RefundRepo] Erreur DB listage remboursements: {e}", exc_info=True)
            raise RemoteServiceException("Erreur lors du listage des remboursements.", original_exception=e)
        return result.get("data", []), result.get("total_count", 0)

    async def save_processor_refund(
        self,
        *,
        refund: Refund,
        ledger_entry: Optional[PaymentRecord],
        mark_invoice_refunded: bool,
    ) -> Refund:
        """Enregistre le remboursement, son écriture de journal et le statut de la facture en un seul commit."""
        try:
            now = utcnow()
            refund.created_at = refund.created_at or now
            refund.updated_at = now
            self.db.add(refund)
            await self.db.flush()
            if ledger_entry is not None:
                ledger_entry.refund_id = refund.id
                ledger_entry.created_at = ledger_entry.created_at or now
                self.db.add(ledger_entry)
            if mark_invoice_refunded and refund.invoice_id is not None:
                await self.db.execute(
                    update(Invoice)
                    .where(Invoice.id == refund.invoice_id)
                    .values(status=InvoiceStatus.REFUNDED, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return refund

    async def update_status(
        self,
        *,
        refund: Refund,
        status: RefundStatus,
        ledger_entry: Optional[PaymentRecord] = None,
        mark_invoice_refunded: bool = False,
    ) -> Refund:
        """Aligne un remboursement local sur le statut relu chez le prestataire."""
        try:
            now = utcnow()
            refund.status = status
            refund.updated_at = now
            self.db.add(refund)
            if ledger_entry is not None:
                ledger_entry.refund_id = refund.id
                ledger_entry.created_at = ledger_entry.created_at or now
                self.db.add(ledger_entry)
            if mark_invoice_refunded and refund.invoice_id is not None:
                await self.db.execute(
                    update(Invoice)
                    .where(Invoice.id == refund.invoice_id)
                    .values(status=InvoiceStatus.REFUNDED, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[RefundRepo] Erreur DB MAJ remboursement {refund.id}: {e}", exc_info=True)
            raise RemoteServiceException("Erreur lors de la mise à jour du remboursement.", original_exception=e)
        return refund

    async def release(self) -> None:
        """Termine la transaction courante sans rien écrire (libère le verrou de la facture)."""
        await self.db.rollback()
