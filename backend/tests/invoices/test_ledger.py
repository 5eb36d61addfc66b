"""
Tests des calculs d'état de paiement (fonctions pures, sans base).
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from omega.invoices.ledger import (
    find_charge_reference,
    get_payment_status,
    get_refundable_amount,
    is_processor_reference,
    sum_amount_paid,
    sum_refunded,
)
from omega.invoices.models import Invoice, InvoiceStatus, PaymentMethod, PaymentRecord, PaymentStatus
from omega.refunds.models import Refund, RefundStatus


def make_invoice(total_ttc: str = "120.00", status: InvoiceStatus = InvoiceStatus.SENT) -> Invoice:
    total = Decimal(total_ttc)
    return Invoice(
        id=1,
        invoice_number="FAC-00001",
        customer_name="Client Test",
        status=status,
        subtotal_ht=(total / Decimal("1.2")).quantize(Decimal("0.01")),
        tax_amount=total - (total / Decimal("1.2")).quantize(Decimal("0.01")),
        total_ttc=total,
    )

def payment(amount: str, method=PaymentMethod.VIREMENT, status=PaymentStatus.SUCCEEDED, **kwargs) -> PaymentRecord:
    return PaymentRecord(
        invoice_id=1,
        amount=Decimal(amount),
        payment_date=date(2024, 3, 1),
        payment_method=method,
        status=status,
        **kwargs,
    )

def refund(amount: str, status=RefundStatus.SUCCEEDED, refund_id: int = 1) -> Refund:
    return Refund(id=refund_id, invoice_id=1, amount=Decimal(amount), reason="Retour produit", status=status)


def test_unpaid_invoice_status():
    status = get_payment_status(make_invoice(), [], [])
    assert status.amount_paid == Decimal("0.00")
    assert status.net_to_pay == Decimal("120.00")
    assert status.refundable_amount == Decimal("120.00")
    assert status.is_fully_paid is False
    assert status.has_partial_refund is False

def test_full_settlement_by_transfer():
    status = get_payment_status(make_invoice(), [payment("120.00")], [])
    assert status.amount_paid == Decimal("120.00")
    assert status.net_to_pay == Decimal("0.00")
    assert status.is_fully_paid is True

def test_failed_and_pending_payments_are_not_counted():
    records = [
        payment("50.00", status=PaymentStatus.FAILED),
        payment("30.00", status=PaymentStatus.PENDING),
        payment("20.00"),
    ]
    assert sum_amount_paid(records) == Decimal("20.00")

def test_refund_ledger_entries_are_not_payments():
    records = [payment("120.00", method=PaymentMethod.CARTE), payment("20.00", method=PaymentMethod.REFUND)]
    assert sum_amount_paid(records) == Decimal("120.00")

def test_partial_refund_scenario():
    invoice = make_invoice("100.00", status=InvoiceStatus.PAID)
    records = [payment("100.00", method=PaymentMethod.CARTE, reference="pi_abc")]
    refunds = [refund("30.00")]

    assert get_refundable_amount(invoice, records, refunds) == Decimal("70.00")
    status = get_payment_status(invoice, records, refunds)
    assert status.total_refunded == Decimal("30.00")
    assert status.has_partial_refund is True
    assert status.is_refunded is False

def test_refunded_status_is_not_partial():
    invoice = make_invoice("100.00", status=InvoiceStatus.REFUNDED)
    status = get_payment_status(invoice, [payment("100.00", method=PaymentMethod.CARTE)], [refund("100.00")])
    assert status.is_refunded is True
    assert status.has_partial_refund is False
    assert status.refundable_amount == Decimal("0.00")

def test_refund_counted_once_when_linked_to_ledger_entry():
    linked = payment("30.00", method=PaymentMethod.REFUND, refund_id=1)
    assert sum_refunded([linked], [refund("30.00")]) == Decimal("30.00")

def test_legacy_negative_refund_entry_is_counted_in_absolute_value():
    legacy = payment("-25.00", method=PaymentMethod.REFUND)
    assert sum_refunded([legacy], []) == Decimal("25.00")

def test_pending_refund_is_not_counted():
    assert sum_refunded([], [refund("40.00", status=RefundStatus.PENDING)]) == Decimal("0.00")

@pytest.mark.parametrize("records,refunds", [
    ([], []),
    (["120.00"], []),
    (["80.00", "80.00"], []),
    (["120.00"], ["120.00"]),
    (["50.00"], ["50.00", "30.00"]),
])
def test_net_to_pay_is_never_negative(records, refunds):
    invoice = make_invoice()
    status = get_payment_status(
        invoice,
        [payment(a) for a in records],
        [refund(a, refund_id=i + 1) for i, a in enumerate(refunds)],
    )
    assert status.net_to_pay >= Decimal("0.00")

def test_charge_reference_prefers_charge_id():
    older = payment("60.00", method=PaymentMethod.CARTE, reference="pi_old", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer = payment("60.00", method=PaymentMethod.CARTE, reference="pi_new", stripe_charge_id="ch_new",
                    created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
    reference = find_charge_reference([older, newer])
    assert reference.value == "ch_new"
    assert reference.is_charge

def test_charge_reference_falls_back_to_order_payment_intent():
    manual = payment("120.00", reference="VIR-2024-001")
    reference = find_charge_reference([manual], "pi_order")
    assert reference.value == "pi_order"
    assert reference.is_payment_intent

def test_no_charge_reference_for_manual_payments():
    assert find_charge_reference([payment("120.00", method=PaymentMethod.CHEQUE, reference="CHQ-12")]) is None

def test_processor_reference_prefixes():
    assert is_processor_reference("pi_123")
    assert is_processor_reference("ch_123")
    assert not is_processor_reference("VIR-123")
    assert not is_processor_reference(None)
