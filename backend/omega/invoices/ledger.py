"""
Calculs dérivés de l'état de paiement d'une facture.

Implémentation unique utilisée par la liste des factures, le détail, l'export
CSV, le PDF et le workflow de remboursement: aucun autre module ne refait ces
sommes.

Les remboursements existent sous deux formes: les lignes ``refunds`` (flux
Stripe) et, historiquement, des enregistrements de paiement de type
``refund``. Le total remboursé les réconcilie: chaque remboursement réussi
compte une seule fois, qu'il ait ou non une écriture de journal associée.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from omega.core.utils import ZERO, to_money
from omega.invoices.models import Invoice, InvoiceStatus, PaymentMethod, PaymentRecord, PaymentStatus
from omega.refunds.models import Refund, RefundStatus

CHARGE_PREFIX = "ch_"
PAYMENT_INTENT_PREFIX = "pi_"


@dataclass(frozen=True)
class PaymentStatusView:
    amount_paid: Decimal
    total_refunded: Decimal
    net_to_pay: Decimal
    refundable_amount: Decimal
    is_fully_paid: bool
    is_refunded: bool
    has_partial_refund: bool


@dataclass(frozen=True)
class ChargeReference:
    """Identifiant Stripe ciblé par un remboursement ('ch_...' ou 'pi_...')."""
    value: str
    payment_record_id: Optional[int] = None

    @property
    def is_charge(self) -> bool:
        return self.value.startswith(CHARGE_PREFIX)

    @property
    def is_payment_intent(self) -> bool:
        return self.value.startswith(PAYMENT_INTENT_PREFIX)


def is_processor_reference(value: Optional[str]) -> bool:
    return bool(value) and value.startswith((CHARGE_PREFIX, PAYMENT_INTENT_PREFIX))


def sum_amount_paid(payment_records: Iterable[PaymentRecord]) -> Decimal:
    """Somme des paiements encaissés (hors écritures de remboursement)."""
    total = ZERO
    for record in payment_records:
        if PaymentMethod(record.payment_method) is PaymentMethod.REFUND:
            continue
        if PaymentStatus(record.status) is PaymentStatus.SUCCEEDED:
            total += to_money(record.amount)
    return to_money(total)


def sum_refunded(payment_records: Iterable[PaymentRecord], refunds: Iterable[Refund]) -> Decimal:
    """Total remboursé: remboursements réussis + écritures 'refund' sans remboursement lié."""
    total = ZERO
    for refund in refunds:
        if RefundStatus(refund.status) is RefundStatus.SUCCEEDED:
            total += to_money(refund.amount)
    for record in payment_records:
        if PaymentMethod(record.payment_method) is not PaymentMethod.REFUND:
            continue
        if record.refund_id is not None:
            # Déjà compté via la ligne refunds correspondante
            continue
        if PaymentStatus(record.status) is PaymentStatus.SUCCEEDED:
            # Les anciennes écritures peuvent être signées négativement
            total += abs(to_money(record.amount))
    return to_money(total)


def sum_pending_refunds(refunds: Iterable[Refund]) -> Decimal:
    """Remboursements soumis dont Stripe n'a pas encore confirmé le résultat."""
    total = ZERO
    for refund in refunds:
        if RefundStatus(refund.status) is RefundStatus.PENDING:
            total += to_money(refund.amount)
    return to_money(total)


def get_refundable_amount(
    invoice: Invoice,
    payment_records: Optional[Sequence[PaymentRecord]] = None,
    refunds: Optional[Sequence[Refund]] = None,
) -> Decimal:
    records = invoice.payment_records if payment_records is None else payment_records
    refund_rows = invoice.refunds if refunds is None else refunds
    refundable = to_money(invoice.total_ttc) - sum_refunded(records, refund_rows)
    return max(ZERO, refundable)


def get_payment_status(
    invoice: Invoice,
    payment_records: Optional[Sequence[PaymentRecord]] = None,
    refunds: Optional[Sequence[Refund]] = None,
) -> PaymentStatusView:
    """Vue de l'état de paiement d'une facture. Fonction pure.

    Les relations de l'objet sont utilisées sauf si des listes sont fournies
    explicitement (cas des appels avant chargement des relations).
    """
    records = invoice.payment_records if payment_records is None else payment_records
    refund_rows = invoice.refunds if refunds is None else refunds

    total_ttc = to_money(invoice.total_ttc)
    amount_paid = sum_amount_paid(records)
    total_refunded = sum_refunded(records, refund_rows)
    net_to_pay = max(ZERO, total_ttc - amount_paid + total_refunded)
    is_refunded = InvoiceStatus(invoice.status) is InvoiceStatus.REFUNDED

    return PaymentStatusView(
        amount_paid=amount_paid,
        total_refunded=total_refunded,
        net_to_pay=net_to_pay,
        refundable_amount=max(ZERO, total_ttc - total_refunded),
        is_fully_paid=net_to_pay <= ZERO,
        is_refunded=is_refunded,
        has_partial_refund=total_refunded > ZERO and not is_refunded,
    )


def find_charge_reference(
    payment_records: Sequence[PaymentRecord],
    order_payment_intent_id: Optional[str] = None,
) -> Optional[ChargeReference]:
    """Cherche la transaction Stripe à rembourser, du plus fiable au moins fiable.

    1. paiement carte réussi le plus récent portant un 'ch_' ;
    2. paiement carte réussi le plus récent dont la référence est un 'pi_' ;
    3. payment intent de la commande d'origine.
    """
    card_payments = [
        record for record in payment_records
        if PaymentMethod(record.payment_method) is PaymentMethod.CARTE
        and PaymentStatus(record.status) is PaymentStatus.SUCCEEDED
    ]
    card_payments.sort(key=lambda r: (r.created_at is not None, r.created_at, r.id or 0), reverse=True)

    for record in card_payments:
        if record.stripe_charge_id and record.stripe_charge_id.startswith(CHARGE_PREFIX):
            return ChargeReference(value=record.stripe_charge_id, payment_record_id=record.id)
    for record in card_payments:
        if record.reference and record.reference.startswith(PAYMENT_INTENT_PREFIX):
            return ChargeReference(value=record.reference, payment_record_id=record.id)
    if order_payment_intent_id and order_payment_intent_id.startswith(PAYMENT_INTENT_PREFIX):
        return ChargeReference(value=order_payment_intent_id)
    return None
