import logging
from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Iterable

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from omega.core.utils import day_bounds, to_money, utcnow
from omega.invoices.exceptions import (
    InvoiceConflictException,
    InvoiceNotFoundException,
    InvalidInvoiceStatusException,
    InvoicePersistenceException,
)
from omega.invoices.interfaces.repositories import AbstractInvoiceRepository
from omega.invoices.models import Invoice, InvoiceFilter, InvoiceItem, InvoiceStatus, PaymentRecord

logger = logging.getLogger(__name__)


def _full_load_options():
    return (
        selectinload(Invoice.items),
        selectinload(Invoice.payment_records),
        selectinload(Invoice.refunds),
    )


class SQLAlchemyInvoiceRepository(AbstractInvoiceRepository):
    """Implémentation SQLAlchemy du repository des factures."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id_full(self, *, invoice_id: int) -> Optional[Invoice]:
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(*_full_load_options())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(statement)
        return result.scalars().one_or_none()

    async def get_by_order_id(self, *, order_id: int) -> Optional[Invoice]:
        statement = (
            select(Invoice)
            .where(Invoice.order_id == order_id)
            .options(*_full_load_options())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(statement)
        return result.scalars().one_or_none()

    async def lock_for_update(self, *, invoice_id: int) -> Optional[Invoice]:
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .options(*_full_load_options())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(statement)
        return result.scalars().one_or_none()

    def _apply_filter(self, statement, invoice_filter: InvoiceFilter):
        if invoice_filter.search_text:
            pattern = f"%{invoice_filter.search_text.strip().lower()}%"
            statement = statement.where(
                or_(
                    func.lower(Invoice.invoice_number).like(pattern),
                    func.lower(Invoice.customer_name).like(pattern),
                )
            )
        if invoice_filter.status and invoice_filter.status != "all":
            statement = statement.where(Invoice.status == InvoiceStatus(invoice_filter.status))
        start, end = day_bounds(invoice_filter.date_from, invoice_filter.date_to)
        if start is not None:
            statement = statement.where(Invoice.created_at >= start)
        if end is not None:
            statement = statement.where(Invoice.created_at <= end)
        return statement

    async def list_filtered(
        self,
        *,
        invoice_filter: InvoiceFilter,
        offset: int = 0,
        limit: Optional[int] = 100,
    ) -> Tuple[List[Invoice], int]:
        count_statement = self._apply_filter(select(func.count(Invoice.id)), invoice_filter)
        total = (await self.db.execute(count_statement)).scalar_one()

        statement = (
            self._apply_filter(select(Invoice), invoice_filter)
            .options(*_full_load_options())
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .offset(offset)
        )
        if limit is not None:
            statement = statement.limit(limit)
        result = await self.db.execute(statement)
        return list(result.scalars().all()), total

    async def create_with_items(
        self,
        *,
        invoice: Invoice,
        items: List[InvoiceItem],
        payment_records: Iterable[PaymentRecord] = (),
    ) -> Invoice:
        try:
            now = utcnow()
            invoice.created_at = invoice.created_at or now
            invoice.updated_at = now
            self.db.add(invoice)
            await self.db.flush()

            for position, item in enumerate(items):
                item.invoice_id = invoice.id
                item.sort_order = position
                self.db.add(item)
            for record in payment_records:
                record.invoice_id = invoice.id
                record.created_at = record.created_at or now
                self.db.add(record)

            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"[InvoiceRepo] Contrainte violée à la création de facture: {e}", exc_info=True)
            raise InvoiceConflictException(detail=f"Contrainte d'intégrité: {e.orig}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[InvoiceRepo] Erreur DB à la création de facture: {e}", exc_info=True)
            raise InvoicePersistenceException(detail=str(e))

        loaded = await self.get_by_id_full(invoice_id=invoice.id)
        if loaded is None:
            raise InvoicePersistenceException(detail="Facture introuvable après création.")
        return loaded

    async def transition_status(
        self,
        *,
        invoice_id: int,
        from_statuses: Iterable[InvoiceStatus],
        to_status: InvoiceStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        statement = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=utcnow(), **(values or {}))
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[InvoiceRepo] Erreur DB transition facture {invoice_id} -> {to_status.value}: {e}", exc_info=True)
            raise InvoicePersistenceException(invoice_id=invoice_id, detail=str(e))
        return result.rowcount == 1

    async def _apply_payment_to_invoice(self, invoice_id: int, amount, payable_statuses: List[InvoiceStatus]) -> None:
        """Incrémente le cumul payé en SQL et solde la facture si le total est atteint."""
        now = utcnow()
        statement = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status.in_(payable_statuses))
            .values(amount_paid=Invoice.amount_paid + amount, updated_at=now)
            .returning(Invoice.amount_paid, Invoice.total_ttc)
            .execution_options(synchronize_session=False)
        )
        row = (await self.db.execute(statement)).first()
        if row is None:
            current = (await self.db.execute(select(Invoice.status).where(Invoice.id == invoice_id))).scalar_one_or_none()
            if current is None:
                raise InvoiceNotFoundException(invoice_id)
            raise InvalidInvoiceStatusException(invoice_id, InvoiceStatus(current).value, "paiement")

        amount_paid, total_ttc = row
        if to_money(amount_paid) >= to_money(total_ttc):
            await self.db.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(status=InvoiceStatus.PAID, paid_at=now)
                .execution_options(synchronize_session=False)
            )

    async def record_payment(self, *, payment: PaymentRecord, payable_statuses: Iterable[InvoiceStatus]) -> Invoice:
        invoice_id = payment.invoice_id
        try:
            payment.created_at = payment.created_at or utcnow()
            self.db.add(payment)
            await self.db.flush()
            await self._apply_payment_to_invoice(invoice_id, payment.amount, list(payable_statuses))
            await self.db.commit()
        except (InvoiceNotFoundException, InvalidInvoiceStatusException):
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[InvoiceRepo] Erreur DB enregistrement paiement facture {invoice_id}: {e}", exc_info=True)
            raise InvoicePersistenceException(invoice_id=invoice_id, detail=str(e))
        except Exception:
            # Aucune écriture partielle: le journal et le cumul sont annulés ensemble
            await self.db.rollback()
            raise

        loaded = await self.get_by_id_full(invoice_id=invoice_id)
        if loaded is None:
            raise InvoiceNotFoundException(invoice_id)
        return loaded

    async def mark_overdue(self, *, today: date) -> int:
        statement = (
            update(Invoice)
            .where(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < today)
            .values(status=InvoiceStatus.OVERDUE, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[InvoiceRepo] Erreur DB passage en retard: {e}", exc_info=True)
            raise InvoicePersistenceException(detail=str(e))
        return result.rowcount
