"""Export du registre des factures au format CSV (reporting hors ligne)."""
import csv
import io
from datetime import date
from typing import Iterable, List

from omega.core.utils import to_money
from omega.invoices.config import invoice_status_label
from omega.invoices.ledger import get_payment_status
from omega.invoices.models import Invoice

CSV_HEADERS: List[str] = [
    "Numéro Facture",
    "Date",
    "Client",
    "Email Client",
    "Total HT",
    "Total TVA",
    "Total TTC",
    "Montant Payé",
    "Statut",
]

# Préfixe BOM pour qu'Excel détecte l'UTF-8
UTF8_BOM = "\ufeff"


def _format_amount(value) -> str:
    return f"{to_money(value):.2f}"


def invoice_to_row(invoice: Invoice) -> List[str]:
    payment_status = get_payment_status(invoice)
    return [
        invoice.invoice_number or "",
        invoice.created_at.strftime("%Y-%m-%d") if invoice.created_at else "",
        invoice.customer_name or "",
        invoice.customer_email or "",
        _format_amount(invoice.subtotal_ht),
        _format_amount(invoice.tax_amount),
        _format_amount(invoice.total_ttc),
        _format_amount(payment_status.amount_paid),
        invoice_status_label(invoice.status),
    ]


def export_ledger_to_csv(invoices: Iterable[Invoice]) -> str:
    """Une ligne d'en-tête puis une ligne par facture. Aucun effet de bord."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for invoice in invoices:
        writer.writerow(invoice_to_row(invoice))
    return buffer.getvalue()


def export_filename(today: date) -> str:
    return f"export-factures-{today.isoformat()}.csv"
