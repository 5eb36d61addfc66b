import asyncio

import pytest

from omega.billing_settings.numbering import NumberingService, format_document_number
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.invoices.exceptions import InvoicePersistenceException
from omega.invoices.models import InvoiceCreate

N_PER_CALLER = 10


def test_format_document_number():
    assert format_document_number("FAC", 42) == "FAC-00042"
    assert format_document_number("DEV", 1) == "DEV-00001"

@pytest.mark.asyncio
async def test_first_allocation_creates_settings_row(session_factory):
    numbering = NumberingService(session_factory=session_factory)
    assert await numbering.next_quote_number() == "DEV-00001"
    assert await numbering.next_quote_number() == "DEV-00002"
    assert await numbering.next_invoice_number() == "FAC-00001"

@pytest.mark.asyncio
async def test_concurrent_callers_never_share_a_number(session_factory, db_session):
    await SQLAlchemyBillingSettingsRepository(db_session=db_session).get_or_create()
    numbering = NumberingService(session_factory=session_factory)

    async def caller():
        return [await numbering.next_invoice_number() for _ in range(N_PER_CALLER)]

    first, second = await asyncio.gather(caller(), caller())

    for numbers in (first, second):
        assert numbers == sorted(numbers)
        assert len(set(numbers)) == N_PER_CALLER
    allocated = first + second
    assert len(set(allocated)) == 2 * N_PER_CALLER
    assert sorted(allocated) == [format_document_number("FAC", n) for n in range(1, 2 * N_PER_CALLER + 1)]

@pytest.mark.asyncio
async def test_number_is_not_reused_after_failed_creation(invoice_service, invoice_payload, mocker):
    mocker.patch.object(
        invoice_service.invoice_repo,
        "create_with_items",
        side_effect=InvoicePersistenceException(detail="panne base"),
    )
    with pytest.raises(InvoicePersistenceException):
        await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    mocker.stopall()

    created = await invoice_service.create_invoice(InvoiceCreate(**invoice_payload()))
    # FAC-00001 a été consommé par la tentative échouée: trou accepté, jamais de doublon
    assert created.invoice_number == "FAC-00002"
