import logging
from datetime import date, timedelta
from typing import Optional

from omega.billing_settings.numbering import NumberingService
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.core.exceptions import ValidationException
from omega.core.utils import price_document_lines, utcnow, ZERO
from omega.events.bus import BillingEventBus
from omega.invoices.models import Invoice, InvoiceItem, InvoiceRead, InvoiceStatus
from omega.invoices.service import InvoiceService, validate_status_filter
from omega.quotes.config import QUOTE_TRANSITIONS, quote_status_label
from omega.quotes.exceptions import QuoteNotFoundException, InvalidQuoteStatusException
from omega.quotes.interfaces.repositories import AbstractQuoteRepository
from omega.quotes.models import (
    PaginatedQuoteRead,
    Quote,
    QuoteCreate,
    QuoteFilter,
    QuoteItem,
    QuoteItemRead,
    QuoteItemsUpdate,
    QuoteRead,
    QuoteStatus,
)

logger = logging.getLogger(__name__)


class QuoteService:
    """Service applicatif pour la gestion des devis."""

    def __init__(self,
                 quote_repo: AbstractQuoteRepository,
                 settings_repo: SQLAlchemyBillingSettingsRepository,
                 numbering: NumberingService,
                 invoice_service: InvoiceService,
                 event_bus: BillingEventBus):
        self.quote_repo = quote_repo
        self.settings_repo = settings_repo
        self.numbering = numbering
        self.invoice_service = invoice_service
        self.event_bus = event_bus

    def _map_quote_to_read(self, quote_db: Quote) -> QuoteRead:
        return QuoteRead.model_validate({
            **quote_db.model_dump(),
            "status_label": quote_status_label(quote_db.status),
            "items": [QuoteItemRead.model_validate(item) for item in quote_db.items],
        })

    async def _get_quote_entity(self, quote_id: int) -> Quote:
        quote_db = await self.quote_repo.get_by_id_with_items(quote_id=quote_id)
        if not quote_db:
            logger.warning(f"[QuoteService] Devis ID {quote_id} non trouvé.")
            raise QuoteNotFoundException(quote_id)
        return quote_db

    async def get_quote(self, quote_id: int) -> QuoteRead:
        return self._map_quote_to_read(await self._get_quote_entity(quote_id))

    async def list_quotes(self, quote_filter: QuoteFilter, limit: int, offset: int) -> PaginatedQuoteRead:
        quote_filter.status = validate_status_filter(quote_filter.status, QuoteStatus)
        quotes_db, total = await self.quote_repo.list_filtered(quote_filter=quote_filter, offset=offset, limit=limit)
        return PaginatedQuoteRead(items=[self._map_quote_to_read(q) for q in quotes_db], total=total)

    async def create_quote(self, quote_data: QuoteCreate, created_by: Optional[str] = None) -> QuoteRead:
        """Crée un devis brouillon avec un numéro alloué et une date de validité par défaut."""
        if not quote_data.items:
            raise ValidationException("Impossible de créer un devis sans lignes.")

        settings_row = await self.settings_repo.get_or_create()
        items, totals = price_document_lines(quote_data.items, QuoteItem)
        valid_until = quote_data.valid_until or (date.today() + timedelta(days=settings_row.quote_validity_days))

        quote_number = await self.numbering.next_quote_number()
        quote = Quote(
            **quote_data.model_dump(exclude={"items", "valid_until"}),
            quote_number=quote_number,
            status=QuoteStatus.DRAFT,
            subtotal_ht=totals.subtotal_ht,
            tax_amount=totals.tax_amount,
            total_ttc=totals.total_ttc,
            valid_until=valid_until,
            created_by=created_by,
        )
        created = await self.quote_repo.create_with_items(quote=quote, items=items)
        logger.info(f"[QuoteService] Devis {created.quote_number} (ID {created.id}) créé.")
        self.event_bus.publish("quotes", "insert", created.id)
        return self._map_quote_to_read(created)

    async def update_quote_items(self, quote_id: int, items_update: QuoteItemsUpdate) -> QuoteRead:
        if not items_update.items:
            raise ValidationException("Un devis doit comporter au moins une ligne.")
        items, totals = price_document_lines(items_update.items, QuoteItem)
        updated = await self.quote_repo.replace_items(quote_id=quote_id, items=items, totals=totals)
        logger.info(f"[QuoteService] Lignes du devis ID {quote_id} remplacées ({len(items)} ligne(s)).")
        self.event_bus.publish("quotes", "update", quote_id)
        return self._map_quote_to_read(updated)

    async def _transition(self, quote_id: int, action: str, values=None) -> QuoteRead:
        allowed, to_status = QUOTE_TRANSITIONS[action]
        quote_db = await self._get_quote_entity(quote_id)
        if QuoteStatus(quote_db.status) not in allowed:
            raise InvalidQuoteStatusException(quote_id, QuoteStatus(quote_db.status).value, action)
        changed = await self.quote_repo.transition_status(
            quote_id=quote_id, from_statuses=allowed, to_status=to_status, values=values
        )
        if not changed:
            current = await self._get_quote_entity(quote_id)
            raise InvalidQuoteStatusException(quote_id, QuoteStatus(current.status).value, action)
        logger.info(f"[QuoteService] Devis ID {quote_id}: {action} -> {to_status.value}")
        self.event_bus.publish("quotes", "update", quote_id)
        return await self.get_quote(quote_id)

    async def send_quote(self, quote_id: int) -> QuoteRead:
        return await self._transition(quote_id, "envoi", {"sent_at": utcnow()})

    async def accept_quote(self, quote_id: int) -> QuoteRead:
        return await self._transition(quote_id, "acceptation", {"accepted_at": utcnow()})

    async def reject_quote(self, quote_id: int) -> QuoteRead:
        return await self._transition(quote_id, "refus")

    async def expire_quote(self, quote_id: int) -> QuoteRead:
        return await self._transition(quote_id, "expiration")

    async def expire_outdated_quotes(self, today: Optional[date] = None) -> int:
        count = await self.quote_repo.expire_outdated(today=today or date.today())
        logger.info(f"[QuoteService] {count} devis expiré(s).")
        if count:
            self.event_bus.publish("quotes", "update", None)
        return count

    async def convert_to_invoice(self, quote_id: int, created_by: Optional[str] = None) -> InvoiceRead:
        """Transforme un devis accepté en facture envoyée.

        Le statut est vérifié avant d'allouer un numéro, puis de nouveau sous
        verrou dans la transaction de conversion: deux conversions
        simultanées ne peuvent pas produire deux factures.
        """
        quote_db = await self._get_quote_entity(quote_id)
        allowed, _ = QUOTE_TRANSITIONS["conversion"]
        if QuoteStatus(quote_db.status) not in allowed:
            raise InvalidQuoteStatusException(quote_id, QuoteStatus(quote_db.status).value, "conversion")

        settings_row = await self.settings_repo.get_or_create()
        items, totals = price_document_lines(quote_db.items, InvoiceItem)
        invoice_number = await self.numbering.next_invoice_number()
        now = utcnow()
        invoice = Invoice(
            invoice_number=invoice_number,
            customer_id=quote_db.customer_id,
            customer_name=quote_db.customer_name,
            customer_email=quote_db.customer_email,
            customer_phone=quote_db.customer_phone,
            customer_company=quote_db.customer_company,
            customer_siret=quote_db.customer_siret,
            customer_vat_number=quote_db.customer_vat_number,
            customer_address=quote_db.customer_address,
            billing_address=quote_db.customer_address,
            status=InvoiceStatus.SENT,
            subtotal_ht=totals.subtotal_ht,
            tax_amount=totals.tax_amount,
            total_ttc=totals.total_ttc,
            amount_paid=ZERO,
            payment_terms=settings_row.default_payment_terms,
            due_date=date.today() + timedelta(days=settings_row.default_payment_terms),
            notes=quote_db.notes,
            legal_mentions=settings_row.legal_mentions,
            created_by=created_by,
            sent_at=now,
        )
        created = await self.quote_repo.convert_to_invoice(quote_id=quote_id, invoice=invoice, items=items)
        logger.info(f"[QuoteService] Devis {quote_db.quote_number} converti en facture {created.invoice_number}.")
        self.event_bus.publish("invoices", "insert", created.id)
        self.event_bus.publish("quotes", "update", quote_id)
        return await self.invoice_service.get_invoice(created.id)
