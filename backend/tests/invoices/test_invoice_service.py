"""
Tests du service de factures directement sur la base de test.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.future import select

from omega.core.columns import UTCDateTime
from omega.core.exceptions import ValidationException
from omega.core.utils import utcnow
from omega.invoices.exceptions import InvalidInvoiceStatusException, InvoiceNotFoundException
from omega.invoices.models import Invoice, InvoiceCreate, InvoiceStatus, ManualPaymentCreate, PaymentMethod, PaymentRecord
from omega.invoices.repositories import SQLAlchemyInvoiceRepository


@pytest.mark.asyncio
async def test_payment_failure_leaves_no_partial_write(invoice_service, invoice_payload, session_factory, mocker):
    created = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    mocker.patch.object(
        SQLAlchemyInvoiceRepository,
        "_apply_payment_to_invoice",
        side_effect=RuntimeError("coupure pendant la mise à jour du cumul"),
    )

    with pytest.raises(RuntimeError):
        await invoice_service.record_manual_payment(created.id, ManualPaymentCreate(amount=Decimal("120.00")))

    async with session_factory() as session:
        invoice = (await session.execute(select(Invoice).where(Invoice.id == created.id))).scalar_one()
        records = (await session.execute(select(PaymentRecord).where(PaymentRecord.invoice_id == created.id))).scalars().all()
    assert Decimal(invoice.amount_paid) == Decimal("0.00")
    assert records == []
    assert InvoiceStatus(invoice.status) is InvoiceStatus.DRAFT

@pytest.mark.asyncio
async def test_refund_cannot_be_entered_as_manual_payment(invoice_service, invoice_payload):
    created = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    with pytest.raises(ValidationException):
        await invoice_service.record_manual_payment(
            created.id, ManualPaymentCreate(amount=Decimal("10.00"), payment_method=PaymentMethod.REFUND)
        )

@pytest.mark.asyncio
async def test_payment_on_unknown_invoice(invoice_service):
    with pytest.raises(InvoiceNotFoundException):
        await invoice_service.record_manual_payment(999, ManualPaymentCreate(amount=Decimal("10.00")))

@pytest.mark.asyncio
async def test_overpayment_settles_invoice(invoice_service, invoice_payload):
    created = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    paid = await invoice_service.record_manual_payment(created.id, ManualPaymentCreate(amount=Decimal("130.00")))
    assert paid.status is InvoiceStatus.PAID
    assert paid.payment_status.net_to_pay == Decimal("0.00")

    with pytest.raises(InvalidInvoiceStatusException):
        await invoice_service.record_manual_payment(created.id, ManualPaymentCreate(amount=Decimal("1.00")))

@pytest.mark.asyncio
async def test_invoice_numbers_follow_settings_prefix(invoice_service, invoice_payload):
    first = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    second = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    assert (first.invoice_number, second.invoice_number) == ("FAC-00001", "FAC-00002")

@pytest.mark.asyncio
async def test_order_without_online_payment_is_sent_not_paid(invoice_service, order_factory):
    order = await order_factory(payment_intent=None)
    invoice = await invoice_service.create_invoice_from_order(order.id)
    assert invoice.status is InvoiceStatus.SENT
    assert invoice.payment_records == []
    assert invoice.payment_status.net_to_pay == Decimal("120.00")

@pytest.mark.asyncio
async def test_pro_order_prices_are_taken_as_net(invoice_service, order_factory):
    order = await order_factory(price="50.00", quantity=2, user_type="pro")
    invoice = await invoice_service.create_invoice_from_order(order.id)
    assert invoice.items[0].unit_price_ht == Decimal("50.00")
    assert invoice.subtotal_ht == Decimal("100.00")
    assert invoice.tax_amount == Decimal("20.00")
    assert invoice.total_ttc == Decimal("120.00")
    assert invoice.status is InvoiceStatus.PAID
    assert invoice.paid_at is not None

@pytest.mark.asyncio
async def test_timestamps_are_stored_in_utc(invoice_service, invoice_payload, session_factory):
    created = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    await invoice_service.record_manual_payment(created.id, ManualPaymentCreate(amount=Decimal("20.00")))

    async with session_factory() as session:
        invoice = (await session.execute(select(Invoice).where(Invoice.id == created.id))).scalar_one()
        record = (await session.execute(select(PaymentRecord).where(PaymentRecord.invoice_id == created.id))).scalar_one()
    assert invoice.created_at.utcoffset() == timedelta(0)
    assert invoice.updated_at.utcoffset() == timedelta(0)
    assert record.created_at.utcoffset() == timedelta(0)

def test_utc_column_normalizes_values():
    column_type = UTCDateTime()
    naive = datetime(2026, 3, 2, 9, 30)
    paris = datetime(2026, 3, 2, 10, 30, tzinfo=timezone(timedelta(hours=1)))

    assert column_type.process_bind_param(naive, None) == naive.replace(tzinfo=timezone.utc)
    assert column_type.process_bind_param(paris, None).hour == 9
    assert column_type.process_result_value(naive, None).tzinfo is timezone.utc
    assert column_type.process_bind_param(None, None) is None
    assert utcnow().tzinfo is timezone.utc

@pytest.mark.asyncio
async def test_concurrent_order_invoicing_returns_existing_invoice(invoice_service, card_order, session_factory, mocker):
    order_id = card_order.id
    first = await invoice_service.create_invoice_from_order(order_id)
    original_lookup = invoice_service.invoice_repo.get_by_order_id
    lookups = []

    async def lookup_before_other_commit(*, order_id):
        # La première lecture précède le commit de la requête concurrente
        lookups.append(order_id)
        if len(lookups) == 1:
            return None
        return await original_lookup(order_id=order_id)

    mocker.patch.object(invoice_service.invoice_repo, "get_by_order_id", side_effect=lookup_before_other_commit)

    second = await invoice_service.create_invoice_from_order(order_id)

    assert second.id == first.id
    assert second.invoice_number == first.invoice_number
    assert len(lookups) == 2
    async with session_factory() as session:
        invoices = (await session.execute(select(Invoice).where(Invoice.order_id == order_id))).scalars().all()
    assert len(invoices) == 1
