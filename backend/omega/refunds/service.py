import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from omega.core.exceptions import NoChargeReferenceException, NotRefundableException, ValidationException
from omega.core.utils import ZERO, from_cents, to_cents, to_money
from omega.events.bus import BillingEventBus
from omega.invoices.config import REFUNDABLE_STATUSES
from omega.invoices.exceptions import InvoiceNotFoundException, InvalidInvoiceStatusException
from omega.invoices.interfaces.repositories import AbstractInvoiceRepository
from omega.invoices.ledger import (
    ChargeReference,
    find_charge_reference,
    get_refundable_amount,
    sum_pending_refunds,
    sum_refunded,
)
from omega.invoices.models import Invoice, InvoiceStatus, PaymentMethod, PaymentRecord, PaymentStatus
from omega.refunds.domain.processor import AbstractPaymentProcessor, ProcessorCharge, ProcessorRefund
from omega.refunds.exceptions import RefundAmountTooHighException, RefundPersistenceException
from omega.refunds.models import (
    Refund,
    RefundProposal,
    RefundRead,
    RefundReconciliation,
    RefundRequest,
    RefundResult,
    RefundStatus,
)
from omega.refunds.repositories import SQLAlchemyRefundRepository

logger = logging.getLogger(__name__)


def build_idempotency_key(invoice_id: int, already_refunded: Decimal, amount_cents: int, previous_attempts: int) -> str:
    """Clé Stripe d'une demande de remboursement.

    Une nouvelle tentative après un délai dépassé (rien d'enregistré
    localement) reprend la même clé: Stripe renvoie le remboursement déjà créé.
    Dès qu'une ligne ``refunds`` existe pour une tentative précédente, quel
    que soit son statut, la clé change.
    """
    return f"omega-refund-{invoice_id}-{to_cents(already_refunded)}-{amount_cents}-{previous_attempts}"


def refund_message(amount: Decimal, status: RefundStatus) -> str:
    if status is RefundStatus.SUCCEEDED:
        return f"Remboursement de {amount:.2f}€ traité avec succès."
    if status is RefundStatus.PENDING:
        return f"Remboursement de {amount:.2f}€ soumis à Stripe, en attente de confirmation."
    return f"Remboursement de {amount:.2f}€ refusé par Stripe (statut : {status.value})."


class RefundService:
    """Workflow de remboursement: proposition, soumission au prestataire, réconciliation."""

    def __init__(self,
                 invoice_repo: AbstractInvoiceRepository,
                 refund_repo: SQLAlchemyRefundRepository,
                 processor: AbstractPaymentProcessor,
                 event_bus: BillingEventBus):
        self.invoice_repo = invoice_repo
        self.refund_repo = refund_repo
        self.processor = processor
        self.event_bus = event_bus

    async def _find_reference(self, invoice: Invoice) -> ChargeReference:
        order_intent = await self.refund_repo.get_order_payment_intent(order_id=invoice.order_id)
        reference = find_charge_reference(invoice.payment_records, order_intent)
        if reference is None:
            logger.warning(f"[RefundService] Aucune transaction Stripe pour la facture {invoice.id}")
            raise NoChargeReferenceException(invoice.id)
        return reference

    async def _resolve_charge(self, reference: ChargeReference) -> ProcessorCharge:
        if reference.is_charge:
            return await self.processor.retrieve_charge(reference.value)
        return await self.processor.retrieve_payment_intent_charge(reference.value)

    def _check_refundable(self, invoice: Invoice) -> Tuple[Decimal, Decimal]:
        """Retourne (solde remboursable, montant encore disponible hors remboursements en attente)."""
        refundable = get_refundable_amount(invoice)
        if refundable <= ZERO:
            raise NotRefundableException()
        if InvoiceStatus(invoice.status) not in REFUNDABLE_STATUSES:
            raise InvalidInvoiceStatusException(invoice.id, InvoiceStatus(invoice.status).value, "remboursement")
        available = max(ZERO, to_money(refundable - sum_pending_refunds(invoice.refunds)))
        return refundable, available

    async def initiate_refund(self, invoice_id: int) -> RefundProposal:
        """Prépare le formulaire: solde remboursable, transaction ciblée et motifs proposés."""
        invoice = await self.invoice_repo.get_by_id_full(invoice_id=invoice_id)
        if invoice is None:
            raise InvoiceNotFoundException(invoice_id)
        _, available = self._check_refundable(invoice)
        if available <= ZERO:
            raise NotRefundableException("Un remboursement en attente de confirmation Stripe couvre déjà le solde de cette facture.")
        reference = await self._find_reference(invoice)
        logger.info(f"[RefundService] Proposition de remboursement facture {invoice.invoice_number}: {available}€ sur {reference.value}")
        return RefundProposal(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            refundable_amount=available,
            charge_reference=reference.value,
        )

    async def _submit_to_processor(
        self, request: RefundRequest, processed_by: str
    ) -> Tuple[Invoice, Decimal, Decimal, ProcessorCharge, ProcessorRefund]:
        """Sous verrou de la facture: revalide le solde puis appelle le prestataire."""
        amount = to_money(request.amount)
        invoice = await self.invoice_repo.lock_for_update(invoice_id=request.invoice_id)
        if invoice is None:
            raise InvoiceNotFoundException(request.invoice_id)

        refundable, available_locally = self._check_refundable(invoice)
        if amount > available_locally:
            raise RefundAmountTooHighException(available_locally)

        reference = await self._find_reference(invoice)
        if request.charge_id and request.charge_id != reference.value:
            logger.warning(
                f"[RefundService] Transaction demandée {request.charge_id} différente de {reference.value} "
                f"pour la facture {invoice.id}: la transaction enregistrée est utilisée."
            )
        charge = await self._resolve_charge(reference)
        available = from_cents(charge.available_cents)
        if amount > available:
            raise RefundAmountTooHighException(available)

        amount_cents = to_cents(amount)
        already_refunded = sum_refunded(invoice.payment_records, invoice.refunds)
        processor_refund = await self.processor.create_refund(
            charge_id=charge.id,
            amount_cents=amount_cents,
            metadata={
                "invoice_id": str(invoice.id),
                "reason_from_user": request.reason,
                "processed_by": processed_by,
                "admin_notes": request.admin_notes or "N/A",
            },
            idempotency_key=build_idempotency_key(invoice.id, already_refunded, amount_cents, len(invoice.refunds)),
        )
        return invoice, refundable, available_locally, charge, processor_refund

    async def submit_refund(self, request: RefundRequest, processed_by: str) -> RefundResult:
        """Rembourse tout ou partie d'une facture payée par carte.

        Aucune écriture locale si le prestataire refuse ou ne répond pas. Le
        verrou sur la facture empêche deux demandes simultanées de dépasser
        ensemble le solde remboursable.
        """
        if request.amount is None or request.amount <= 0:
            raise ValidationException("Le montant du remboursement doit être strictement positif.")
        if not request.reason or not request.reason.strip():
            raise ValidationException("Le motif du remboursement est requis.")
        request.reason = request.reason.strip()

        logger.info(f"[RefundService] Demande de remboursement {request.amount}€ facture {request.invoice_id} par {processed_by}")
        try:
            invoice, refundable, available, charge, processor_refund = await self._submit_to_processor(request, processed_by)
        except Exception:
            await self.refund_repo.release()
            raise

        amount = to_money(request.amount)
        status = RefundStatus.from_processor(processor_refund.status)
        refund = Refund(
            invoice_id=invoice.id,
            order_id=invoice.order_id,
            stripe_refund_id=processor_refund.id,
            stripe_payment_intent_id=charge.payment_intent,
            stripe_charge_id=charge.id,
            amount=amount,
            reason=request.reason,
            status=status,
            admin_notes=request.admin_notes,
            processed_by=processed_by,
        )
        ledger_entry = None
        remaining = refundable
        if status is RefundStatus.SUCCEEDED:
            ledger_entry = self._build_ledger_entry(invoice, refund, processed_by)
            remaining = to_money(refundable - amount)
        if status in (RefundStatus.SUCCEEDED, RefundStatus.PENDING):
            available = to_money(available - amount)

        try:
            await self.refund_repo.save_processor_refund(
                refund=refund,
                ledger_entry=ledger_entry,
                mark_invoice_refunded=remaining <= ZERO,
            )
        except SQLAlchemyError as e:
            logger.critical(
                f"[RefundService] Remboursement Stripe {processor_refund.id} créé mais non enregistré: {e}",
                exc_info=True,
            )
            raise RefundPersistenceException(processor_refund.id, original_exception=e)

        logger.info(f"[RefundService] Remboursement {processor_refund.id} ({status.value}) enregistré, reste {remaining}€")
        self.event_bus.publish("refunds", "insert", refund.id)
        if ledger_entry is not None:
            self.event_bus.publish("payment_records", "insert", ledger_entry.id)
        self.event_bus.publish("invoices", "update", invoice.id)

        invoice_status = InvoiceStatus.REFUNDED if remaining <= ZERO else InvoiceStatus(invoice.status)
        return RefundResult(
            refund=RefundRead.model_validate(refund),
            refundable_amount=max(ZERO, available),
            invoice_status=invoice_status.value,
            message=refund_message(amount, status),
        )

    def _build_ledger_entry(self, invoice: Invoice, refund: Refund, processed_by: Optional[str]) -> PaymentRecord:
        return PaymentRecord(
            invoice_id=invoice.id,
            order_id=invoice.order_id,
            amount=refund.amount,
            payment_date=date.today(),
            payment_method=PaymentMethod.REFUND,
            status=PaymentStatus.SUCCEEDED,
            reference=refund.stripe_refund_id,
            stripe_charge_id=refund.stripe_charge_id,
            notes=f"Remboursement: {refund.reason}",
            created_by=processed_by,
        )

    async def reconcile_refunds(self, invoice_id: int, processed_by: Optional[str] = None) -> RefundReconciliation:
        """Relit les remboursements Stripe de la facture et complète le registre local.

        À lancer après un délai dépassé, avant toute nouvelle tentative.
        """
        invoice = await self.invoice_repo.get_by_id_full(invoice_id=invoice_id)
        if invoice is None:
            raise InvoiceNotFoundException(invoice_id)
        reference = await self._find_reference(invoice)
        charge = await self._resolve_charge(reference)
        processor_refunds = await self.processor.list_refunds(charge_id=charge.id)

        created: List[RefundRead] = []
        updated: List[RefundRead] = []
        refunded_total = sum_refunded(invoice.payment_records, invoice.refunds)
        total_ttc = to_money(invoice.total_ttc)

        for processor_refund in sorted(processor_refunds, key=lambda r: r.id):
            status = RefundStatus.from_processor(processor_refund.status)
            local = await self.refund_repo.get_by_stripe_refund_id(stripe_refund_id=processor_refund.id)
            if local is not None and RefundStatus(local.status) is status:
                continue

            amount = from_cents(processor_refund.amount)
            becomes_succeeded = status is RefundStatus.SUCCEEDED and (
                local is None or RefundStatus(local.status) is not RefundStatus.SUCCEEDED
            )
            if becomes_succeeded:
                refunded_total = to_money(refunded_total + amount)
            fully_refunded = becomes_succeeded and refunded_total >= total_ttc

            if local is None:
                refund = Refund(
                    invoice_id=invoice.id,
                    order_id=invoice.order_id,
                    stripe_refund_id=processor_refund.id,
                    stripe_payment_intent_id=charge.payment_intent,
                    stripe_charge_id=charge.id,
                    amount=amount,
                    reason=processor_refund.metadata.get("reason_from_user") or "Réconciliation Stripe",
                    status=status,
                    admin_notes=processor_refund.metadata.get("admin_notes"),
                    processed_by=processor_refund.metadata.get("processed_by") or processed_by,
                )
                ledger_entry = self._build_ledger_entry(invoice, refund, processed_by) if becomes_succeeded else None
                try:
                    await self.refund_repo.save_processor_refund(
                        refund=refund, ledger_entry=ledger_entry, mark_invoice_refunded=fully_refunded
                    )
                except SQLAlchemyError as e:
                    logger.error(f"[RefundService] Échec enregistrement réconciliation {processor_refund.id}: {e}", exc_info=True)
                    raise RefundPersistenceException(processor_refund.id, original_exception=e)
                created.append(RefundRead.model_validate(refund))
                self.event_bus.publish("refunds", "insert", refund.id)
            else:
                ledger_entry = self._build_ledger_entry(invoice, local, processed_by) if becomes_succeeded else None
                await self.refund_repo.update_status(
                    refund=local, status=status, ledger_entry=ledger_entry, mark_invoice_refunded=fully_refunded
                )
                updated.append(RefundRead.model_validate(local))
                self.event_bus.publish("refunds", "update", local.id)

        if created or updated:
            logger.info(f"[RefundService] Réconciliation facture {invoice_id}: {len(created)} créé(s), {len(updated)} mis à jour")
            self.event_bus.publish("invoices", "update", invoice_id)
        return RefundReconciliation(invoice_id=invoice_id, created=created, updated=updated)

    async def list_refunds(self, invoice_id: Optional[int], limit: int, offset: int) -> Tuple[List[RefundRead], int]:
        return await self.refund_repo.list_refunds(invoice_id=invoice_id, offset=offset, limit=limit)
