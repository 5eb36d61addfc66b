import csv
import io
from datetime import date, datetime, timezone
from decimal import Decimal

from omega.invoices.csv_export import CSV_HEADERS, export_filename, export_ledger_to_csv
from omega.invoices.models import Invoice, InvoiceStatus, PaymentMethod, PaymentRecord, PaymentStatus


def _invoice(number: str, status: InvoiceStatus, total: str, records=None) -> Invoice:
    invoice = Invoice(
        invoice_number=number,
        customer_name="Menuiserie Roux",
        customer_email="compta@roux.fr",
        status=status,
        subtotal_ht=Decimal(total) / Decimal("1.2"),
        tax_amount=Decimal(total) - Decimal(total) / Decimal("1.2"),
        total_ttc=Decimal(total),
        created_at=datetime(2024, 5, 14, 9, 30, tzinfo=timezone.utc),
    )
    invoice.payment_records = records or []
    return invoice


def test_export_two_invoices():
    paid = _invoice("FAC-00001", InvoiceStatus.PAID, "120", records=[
        PaymentRecord(amount=Decimal("120"), payment_date=date(2024, 5, 15),
                      payment_method=PaymentMethod.VIREMENT, status=PaymentStatus.SUCCEEDED),
    ])
    sent = _invoice("FAC-00002", InvoiceStatus.SENT, "60")

    rows = list(csv.reader(io.StringIO(export_ledger_to_csv([paid, sent]))))

    assert rows[0] == CSV_HEADERS
    assert len(rows) == 3
    assert rows[1] == [
        "FAC-00001", "2024-05-14", "Menuiserie Roux", "compta@roux.fr",
        "100.00", "20.00", "120.00", "120.00", "Payée",
    ]
    assert rows[2][6] == "60.00"
    assert rows[2][7] == "0.00"
    assert rows[2][8] == "Envoyée"

def test_export_without_invoices_has_only_header():
    rows = list(csv.reader(io.StringIO(export_ledger_to_csv([]))))
    assert rows == [CSV_HEADERS]

def test_export_filename():
    assert export_filename(date(2024, 5, 14)) == "export-factures-2024-05-14.csv"
