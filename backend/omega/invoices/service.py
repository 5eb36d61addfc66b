import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from omega.billing_settings.numbering import NumberingService
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.core.exceptions import ValidationException
from omega.core.schemas import DocumentLineBase
from omega.core.utils import (
    price_document_lines,
    DocumentTotals,
    to_money,
    totals_are_consistent,
    utcnow,
    ZERO,
)
from omega.events.bus import BillingEventBus
from omega.invoices import config as invoice_config
from omega.invoices.csv_export import export_ledger_to_csv
from omega.invoices.exceptions import InvoiceConflictException, InvoiceNotFoundException, InvalidInvoiceStatusException
from omega.invoices.interfaces.repositories import AbstractInvoiceRepository
from omega.invoices.ledger import get_payment_status, is_processor_reference
from omega.invoices.models import (
    Invoice,
    InvoiceCreate,
    InvoiceFilter,
    InvoiceItem,
    InvoiceItemRead,
    InvoiceRead,
    InvoiceStatus,
    InvoiceSummaryRead,
    ManualPaymentCreate,
    PaginatedInvoiceRead,
    PaymentMethod,
    PaymentRecord,
    PaymentRecordRead,
    PaymentStatus,
    PaymentStatusRead,
)
from omega.orders.exceptions import OrderNotFoundException
from omega.orders.models import USER_TYPE_PRO
from omega.orders.repositories import SQLAlchemyOrderRepository
from omega.refunds.models import RefundRead

logger = logging.getLogger(__name__)

# Prix TTC particuliers -> HT
ORDER_VAT_DIVISOR = Decimal("1.2")


def build_invoice_items(lines: Sequence[DocumentLineBase]) -> Tuple[List[InvoiceItem], DocumentTotals]:
    """Calcule les totaux de chaque ligne et du document à partir des lignes saisies."""
    items, totals = price_document_lines(lines, InvoiceItem)
    for item, line in zip(items, lines):
        item.product_id = getattr(line, "product_id", None)
    return items, totals


def validate_status_filter(status: Optional[str], status_enum) -> str:
    if not status or status == "all":
        return "all"
    try:
        return status_enum(status).value
    except ValueError:
        allowed = ", ".join(["all"] + [s.value for s in status_enum])
        raise ValidationException(f"Le statut '{status}' est invalide. Statuts autorisés: {allowed}.")


class InvoiceService:
    """Service applicatif du registre des factures."""

    def __init__(self,
                 invoice_repo: AbstractInvoiceRepository,
                 order_repo: SQLAlchemyOrderRepository,
                 settings_repo: SQLAlchemyBillingSettingsRepository,
                 numbering: NumberingService,
                 event_bus: BillingEventBus):
        self.invoice_repo = invoice_repo
        self.order_repo = order_repo
        self.settings_repo = settings_repo
        self.numbering = numbering
        self.event_bus = event_bus

    # --- Mapping ---

    def _build_payment_status(self, invoice_db: Invoice) -> PaymentStatusRead:
        view = get_payment_status(invoice_db)
        return PaymentStatusRead(**view.__dict__)

    def _map_invoice_to_summary(self, invoice_db: Invoice) -> InvoiceSummaryRead:
        return InvoiceSummaryRead.model_validate({
            **invoice_db.model_dump(exclude={"customer_address", "billing_address"}),
            "status_label": invoice_config.invoice_status_label(invoice_db.status),
            "payment_status": self._build_payment_status(invoice_db),
        })

    def _map_invoice_to_read(self, invoice_db: Invoice) -> InvoiceRead:
        return InvoiceRead.model_validate({
            **invoice_db.model_dump(),
            "status_label": invoice_config.invoice_status_label(invoice_db.status),
            "payment_status": self._build_payment_status(invoice_db),
            "items": [InvoiceItemRead.model_validate(item) for item in invoice_db.items],
            "payment_records": [PaymentRecordRead.model_validate(p) for p in invoice_db.payment_records],
            "refunds": [RefundRead.model_validate(r) for r in invoice_db.refunds],
        })

    # --- Lecture ---

    async def get_invoice_entity(self, invoice_id: int) -> Invoice:
        invoice_db = await self.invoice_repo.get_by_id_full(invoice_id=invoice_id)
        if not invoice_db:
            logger.warning(f"[InvoiceService] Facture ID {invoice_id} non trouvée.")
            raise InvoiceNotFoundException(invoice_id)
        return invoice_db

    async def get_invoice(self, invoice_id: int) -> InvoiceRead:
        logger.debug(f"[InvoiceService] Récupération facture ID: {invoice_id}")
        return self._map_invoice_to_read(await self.get_invoice_entity(invoice_id))

    async def get_payment_status(self, invoice_id: int) -> PaymentStatusRead:
        return self._build_payment_status(await self.get_invoice_entity(invoice_id))

    async def list_invoices(self, invoice_filter: InvoiceFilter, limit: int, offset: int) -> PaginatedInvoiceRead:
        """Recherche texte (numéro ou client), statut exact ou 'all', période de création inclusive."""
        invoice_filter.status = validate_status_filter(invoice_filter.status, InvoiceStatus)
        logger.debug(f"[InvoiceService] Listage factures filtre={invoice_filter.model_dump()}, limit={limit}, offset={offset}")
        invoices_db, total = await self.invoice_repo.list_filtered(
            invoice_filter=invoice_filter, offset=offset, limit=limit
        )
        return PaginatedInvoiceRead(
            items=[self._map_invoice_to_summary(inv) for inv in invoices_db],
            total=total,
        )

    async def export_ledger_csv(self, invoice_filter: InvoiceFilter) -> str:
        """Export CSV des factures correspondant aux filtres courants (sans pagination)."""
        invoice_filter.status = validate_status_filter(invoice_filter.status, InvoiceStatus)
        invoices_db, total = await self.invoice_repo.list_filtered(
            invoice_filter=invoice_filter, offset=0, limit=None
        )
        logger.info(f"[InvoiceService] Export CSV de {total} facture(s).")
        return export_ledger_to_csv(invoices_db)

    # --- Création ---

    async def create_invoice(self, invoice_data: InvoiceCreate, created_by: Optional[str] = None) -> InvoiceRead:
        """Crée une facture brouillon; les totaux sont recalculés à partir des lignes."""
        if not invoice_data.items:
            raise ValidationException("Impossible de créer une facture sans lignes.")

        settings_row = await self.settings_repo.get_or_create()
        items, totals = build_invoice_items(invoice_data.items)
        payment_terms = invoice_data.payment_terms
        if payment_terms is None:
            payment_terms = settings_row.default_payment_terms
        due_date = invoice_data.due_date or (date.today() + timedelta(days=payment_terms))

        invoice_number = await self.numbering.next_invoice_number()
        invoice = Invoice(
            **invoice_data.model_dump(exclude={"items", "payment_terms", "due_date", "legal_mentions"}),
            invoice_number=invoice_number,
            status=InvoiceStatus.DRAFT,
            subtotal_ht=totals.subtotal_ht,
            tax_amount=totals.tax_amount,
            total_ttc=totals.total_ttc,
            amount_paid=ZERO,
            payment_terms=payment_terms,
            due_date=due_date,
            legal_mentions=invoice_data.legal_mentions or settings_row.legal_mentions,
            created_by=created_by,
        )
        created = await self.invoice_repo.create_with_items(invoice=invoice, items=items)
        logger.info(f"[InvoiceService] Facture {created.invoice_number} (ID {created.id}) créée en brouillon.")
        self.event_bus.publish("invoices", "insert", created.id)
        return self._map_invoice_to_read(created)

    async def create_invoice_from_order(self, order_id: int, created_by: Optional[str] = None) -> InvoiceRead:
        """Génère la facture d'une commande; retourne la facture existante si déjà générée."""
        existing = await self.invoice_repo.get_by_order_id(order_id=order_id)
        if existing:
            logger.info(f"[InvoiceService] Facture {existing.invoice_number} déjà existante pour la commande {order_id}.")
            return self._map_invoice_to_read(existing)

        order = await self.order_repo.get_by_id_with_items(order_id=order_id)
        if not order:
            raise OrderNotFoundException(order_id)

        lines = []
        for item in order.items:
            price = to_money(item.price)
            unit_price_ht = price if order.user_type == USER_TYPE_PRO else to_money(price / ORDER_VAT_DIVISOR)
            lines.append(DocumentLineBase(
                description=item.product_name or "Produit",
                quantity=item.quantity,
                unit_price_ht=unit_price_ht,
                tax_rate=Decimal(invoice_config.ORDER_DEFAULT_TAX_RATE),
            ))
        items, computed = build_invoice_items(lines)
        for item, order_item in zip(items, order.items):
            item.product_id = order_item.product_id

        # Les montants réellement encaissés font foi s'ils sont cohérents
        if totals_are_consistent(order.sub_total, order.tax, order.total) and to_money(order.total) > ZERO:
            subtotal_ht, tax_amount = to_money(order.sub_total), to_money(order.tax)
            total_ttc = subtotal_ht + tax_amount
        else:
            subtotal_ht, tax_amount, total_ttc = computed.subtotal_ht, computed.tax_amount, computed.total_ttc

        settings_row = await self.settings_repo.get_or_create()
        invoice_number = await self.numbering.next_invoice_number()
        now = utcnow()
        paid_online = is_processor_reference(order.stripe_payment_intent_id)

        invoice = Invoice(
            invoice_number=invoice_number,
            order_id=order.id,
            customer_id=order.user_id,
            customer_name=order.customer_name or "Client",
            customer_email=order.customer_email,
            customer_address=order.shipping_address,
            billing_address=order.shipping_address,
            status=InvoiceStatus.PAID if paid_online else InvoiceStatus.SENT,
            subtotal_ht=subtotal_ht,
            tax_amount=tax_amount,
            total_ttc=total_ttc,
            amount_paid=total_ttc if paid_online else ZERO,
            due_date=date.today() + timedelta(days=invoice_config.ORDER_PAYMENT_TERMS_DAYS),
            payment_terms=invoice_config.ORDER_PAYMENT_TERMS_DAYS,
            notes=f"Facture générée automatiquement depuis la commande #{order.id}",
            legal_mentions=settings_row.legal_mentions,
            created_by=created_by,
            sent_at=now,
            paid_at=(order.created_at or now) if paid_online else None,
        )
        payment_records = []
        if paid_online:
            payment_records.append(PaymentRecord(
                order_id=order.id,
                amount=total_ttc,
                payment_date=(order.created_at or now).date(),
                payment_method=PaymentMethod.CARTE,
                status=PaymentStatus.SUCCEEDED,
                reference=order.stripe_payment_intent_id,
                notes="Paiement par carte bancaire via Stripe",
                created_by=created_by,
            ))

        try:
            created = await self.invoice_repo.create_with_items(
                invoice=invoice, items=items, payment_records=payment_records
            )
        except InvoiceConflictException:
            # Génération concurrente pour la même commande: l'unicité de order_id a tranché
            existing = await self.invoice_repo.get_by_order_id(order_id=order_id)
            if existing is None:
                raise
            logger.warning(
                f"[InvoiceService] Commande {order_id} facturée en parallèle: facture {existing.invoice_number} "
                f"conservée, numéro {invoice_number} non utilisé."
            )
            return self._map_invoice_to_read(existing)
        logger.info(f"[InvoiceService] Facture {created.invoice_number} créée depuis la commande {order_id} (payée: {paid_online}).")
        self.event_bus.publish("invoices", "insert", created.id)
        if payment_records:
            self.event_bus.publish("payment_records", "insert", payment_records[0].id)
        return self._map_invoice_to_read(created)

    # --- Transitions ---

    async def _transition(self, invoice_id: int, action: str, allowed, to_status: InvoiceStatus, values=None) -> InvoiceRead:
        invoice_db = await self.get_invoice_entity(invoice_id)
        if InvoiceStatus(invoice_db.status) not in allowed:
            raise InvalidInvoiceStatusException(invoice_id, InvoiceStatus(invoice_db.status).value, action)
        changed = await self.invoice_repo.transition_status(
            invoice_id=invoice_id, from_statuses=allowed, to_status=to_status, values=values
        )
        if not changed:
            # Modifiée entre la lecture et l'écriture
            current = await self.get_invoice_entity(invoice_id)
            raise InvalidInvoiceStatusException(invoice_id, InvoiceStatus(current.status).value, action)
        logger.info(f"[InvoiceService] Facture ID {invoice_id}: {action} -> {to_status.value}")
        self.event_bus.publish("invoices", "update", invoice_id)
        return await self.get_invoice(invoice_id)

    async def send_invoice(self, invoice_id: int) -> InvoiceRead:
        return await self._transition(
            invoice_id, "envoi", invoice_config.SENDABLE_STATUSES, InvoiceStatus.SENT, {"sent_at": utcnow()}
        )

    async def mark_overdue(self, invoice_id: int) -> InvoiceRead:
        return await self._transition(
            invoice_id, "retard", invoice_config.OVERDUE_ELIGIBLE_STATUSES, InvoiceStatus.OVERDUE
        )

    async def cancel_invoice(self, invoice_id: int) -> InvoiceRead:
        return await self._transition(
            invoice_id, "annulation", invoice_config.CANCELLABLE_STATUSES, InvoiceStatus.CANCELLED
        )

    async def mark_overdue_invoices(self, today: Optional[date] = None) -> int:
        count = await self.invoice_repo.mark_overdue(today=today or date.today())
        logger.info(f"[InvoiceService] {count} facture(s) passée(s) en retard.")
        if count:
            self.event_bus.publish("invoices", "update", None)
        return count

    # --- Paiements ---

    async def record_manual_payment(
        self,
        invoice_id: int,
        payment_data: ManualPaymentCreate,
        created_by: Optional[str] = None,
    ) -> InvoiceRead:
        """Enregistre un paiement reçu et met à jour le cumul payé en une seule opération atomique."""
        amount = payment_data.amount
        if amount is None or amount <= 0:
            raise ValidationException("Le montant du paiement doit être strictement positif.")
        if payment_data.payment_method is PaymentMethod.REFUND:
            raise ValidationException("Un remboursement ne peut pas être saisi comme paiement manuel.")

        invoice_db = await self.get_invoice_entity(invoice_id)
        if InvoiceStatus(invoice_db.status) not in invoice_config.PAYABLE_STATUSES:
            raise InvalidInvoiceStatusException(invoice_id, InvoiceStatus(invoice_db.status).value, "paiement")

        payment = PaymentRecord(
            invoice_id=invoice_id,
            order_id=invoice_db.order_id,
            amount=to_money(amount),
            payment_date=payment_data.payment_date or date.today(),
            payment_method=payment_data.payment_method,
            status=PaymentStatus.SUCCEEDED,
            reference=payment_data.reference,
            notes=payment_data.notes,
            created_by=created_by,
        )
        logger.info(f"[InvoiceService] Paiement {payment.payment_method.value} de {payment.amount}€ sur facture ID {invoice_id}")
        updated = await self.invoice_repo.record_payment(
            payment=payment, payable_statuses=invoice_config.PAYABLE_STATUSES
        )
        self.event_bus.publish("payment_records", "insert", payment.id)
        self.event_bus.publish("invoices", "update", invoice_id)
        return self._map_invoice_to_read(updated)
