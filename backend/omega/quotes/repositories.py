import logging
from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Iterable

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from omega.core.utils import DocumentTotals, day_bounds, utcnow
from omega.invoices.models import Invoice, InvoiceItem
from omega.quotes.config import EDITABLE_STATUSES
from omega.quotes.exceptions import QuoteNotFoundException, InvalidQuoteStatusException, QuotePersistenceException
from omega.quotes.interfaces.repositories import AbstractQuoteRepository
from omega.quotes.models import Quote, QuoteFilter, QuoteItem, QuoteStatus

logger = logging.getLogger(__name__)


class SQLAlchemyQuoteRepository(AbstractQuoteRepository):
    """Implémentation SQLAlchemy du repository des devis."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id_with_items(self, *, quote_id: int) -> Optional[Quote]:
        statement = (
            select(Quote)
            .where(Quote.id == quote_id)
            .options(selectinload(Quote.items))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(statement)
        return result.scalars().one_or_none()

    async def _lock(self, quote_id: int) -> Quote:
        statement = (
            select(Quote)
            .where(Quote.id == quote_id)
            .with_for_update()
            .options(selectinload(Quote.items))
            .execution_options(populate_existing=True)
        )
        quote = (await self.db.execute(statement)).scalars().one_or_none()
        if quote is None:
            raise QuoteNotFoundException(quote_id)
        return quote

    def _apply_filter(self, statement, quote_filter: QuoteFilter):
        if quote_filter.search_text:
            pattern = f"%{quote_filter.search_text.strip().lower()}%"
            statement = statement.where(
                or_(
                    func.lower(Quote.quote_number).like(pattern),
                    func.lower(Quote.customer_name).like(pattern),
                )
            )
        if quote_filter.status and quote_filter.status != "all":
            statement = statement.where(Quote.status == QuoteStatus(quote_filter.status))
        start, end = day_bounds(quote_filter.date_from, quote_filter.date_to)
        if start is not None:
            statement = statement.where(Quote.created_at >= start)
        if end is not None:
            statement = statement.where(Quote.created_at <= end)
        return statement

    async def list_filtered(
        self,
        *,
        quote_filter: QuoteFilter,
        offset: int = 0,
        limit: Optional[int] = 100,
    ) -> Tuple[List[Quote], int]:
        total = (await self.db.execute(self._apply_filter(select(func.count(Quote.id)), quote_filter))).scalar_one()
        statement = (
            self._apply_filter(select(Quote), quote_filter)
            .options(selectinload(Quote.items))
            .order_by(Quote.created_at.desc(), Quote.id.desc())
            .offset(offset)
        )
        if limit is not None:
            statement = statement.limit(limit)
        result = await self.db.execute(statement)
        return list(result.scalars().all()), total

    async def create_with_items(self, *, quote: Quote, items: List[QuoteItem]) -> Quote:
        try:
            now = utcnow()
            quote.created_at = now
            quote.updated_at = now
            self.db.add(quote)
            await self.db.flush()
            for position, item in enumerate(items):
                item.quote_id = quote.id
                item.sort_order = position
                self.db.add(item)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Contrainte violée à la création du devis: {e}", exc_info=True)
            raise QuotePersistenceException(detail=f"Contrainte d'intégrité: {e.orig}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Erreur DB à la création du devis: {e}", exc_info=True)
            raise QuotePersistenceException(detail=str(e))
        return await self.get_by_id_with_items(quote_id=quote.id)

    async def replace_items(self, *, quote_id: int, items: List[QuoteItem], totals: DocumentTotals) -> Quote:
        try:
            quote = await self._lock(quote_id)
            if QuoteStatus(quote.status) not in EDITABLE_STATUSES:
                raise InvalidQuoteStatusException(quote_id, QuoteStatus(quote.status).value, "modification des lignes")
            await self.db.execute(delete(QuoteItem).where(QuoteItem.quote_id == quote_id))
            for position, item in enumerate(items):
                item.quote_id = quote_id
                item.sort_order = position
                self.db.add(item)
            await self.db.execute(
                update(Quote)
                .where(Quote.id == quote_id)
                .values(
                    subtotal_ht=totals.subtotal_ht,
                    tax_amount=totals.tax_amount,
                    total_ttc=totals.total_ttc,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except (QuoteNotFoundException, InvalidQuoteStatusException):
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Erreur DB remplacement lignes devis {quote_id}: {e}", exc_info=True)
            raise QuotePersistenceException(quote_id=quote_id, detail=str(e))
        return await self.get_by_id_with_items(quote_id=quote_id)

    async def transition_status(
        self,
        *,
        quote_id: int,
        from_statuses: Iterable[QuoteStatus],
        to_status: QuoteStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        statement = (
            update(Quote)
            .where(Quote.id == quote_id, Quote.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=utcnow(), **(values or {}))
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Erreur DB transition devis {quote_id} -> {to_status.value}: {e}", exc_info=True)
            raise QuotePersistenceException(quote_id=quote_id, detail=str(e))
        return result.rowcount == 1

    async def expire_outdated(self, *, today: date) -> int:
        statement = (
            update(Quote)
            .where(
                Quote.status.in_([QuoteStatus.DRAFT, QuoteStatus.SENT]),
                Quote.valid_until.is_not(None),
                Quote.valid_until < today,
            )
            .values(status=QuoteStatus.EXPIRED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(statement)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Erreur DB expiration des devis: {e}", exc_info=True)
            raise QuotePersistenceException(detail=str(e))
        return result.rowcount

    async def convert_to_invoice(self, *, quote_id: int, invoice: Invoice, items: List[InvoiceItem]) -> Invoice:
        try:
            quote = await self._lock(quote_id)
            if QuoteStatus(quote.status) is not QuoteStatus.ACCEPTED:
                raise InvalidQuoteStatusException(quote_id, QuoteStatus(quote.status).value, "conversion")

            now = utcnow()
            invoice.quote_id = quote_id
            invoice.created_at = now
            invoice.updated_at = now
            self.db.add(invoice)
            await self.db.flush()
            for position, item in enumerate(items):
                item.invoice_id = invoice.id
                item.sort_order = position
                self.db.add(item)

            converted = await self.db.execute(
                update(Quote)
                .where(Quote.id == quote_id, Quote.status == QuoteStatus.ACCEPTED)
                .values(status=QuoteStatus.CONVERTED, converted_invoice_id=invoice.id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if converted.rowcount != 1:
                raise InvalidQuoteStatusException(quote_id, QuoteStatus(quote.status).value, "conversion")
            await self.db.commit()
        except (QuoteNotFoundException, InvalidQuoteStatusException):
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[QuoteRepo] Erreur DB conversion devis {quote_id}: {e}", exc_info=True)
            raise QuotePersistenceException(quote_id=quote_id, detail=str(e))
        return invoice
