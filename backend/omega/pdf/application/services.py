import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.core.exceptions import ElementNotFoundException, ValidationException
from omega.invoices.config import invoice_status_label
from omega.invoices.ledger import get_payment_status
from omega.invoices.models import Invoice
from omega.invoices.service import InvoiceService
from omega.pdf.domain.generator import AbstractPDFGenerator, DocumentSnapshot
from omega.quotes.config import quote_status_label
from omega.quotes.interfaces.repositories import AbstractQuoteRepository
from omega.quotes.models import Quote

logger = logging.getLogger(__name__)

PLANNING_TITLE = "Planning OMEGA - Export"
LINE_COLUMNS = ["Description", "Qté", "P.U. HT", "TVA", "Total HT", "Total TTC"]


@dataclass
class ExportedDocument:
    file_name: str
    content: bytes


def generated_at_line(now: datetime) -> str:
    return f"Généré le {now.strftime('%d/%m/%Y')} à {now.strftime('%H:%M:%S')}"


def pdf_file_name(file_name: Optional[str], default: str = "export") -> str:
    name = (file_name or default).strip() or default
    return name if name.lower().endswith(".pdf") else f"{name}.pdf"


def _line_rows(items) -> List[List[str]]:
    return [
        [
            item.description,
            str(item.quantity),
            f"{item.unit_price_ht:.2f} €",
            f"{item.tax_rate:.0f} %",
            f"{item.total_ht:.2f} €",
            f"{item.total_ttc:.2f} €",
        ]
        for item in items
    ]


class DocumentExportService:
    """Export PDF des documents de facturation (rendu côté serveur)."""

    def __init__(self,
                 pdf_generator: AbstractPDFGenerator,
                 invoice_service: InvoiceService,
                 quote_repo: AbstractQuoteRepository,
                 settings_repo: SQLAlchemyBillingSettingsRepository):
        self.pdf_generator = pdf_generator
        self.invoice_service = invoice_service
        self.quote_repo = quote_repo
        self.settings_repo = settings_repo

    # --- Résolution de la source ---

    async def _resolve_source(self, source_id: str):
        """'invoice:<id>' ou 'quote:<id>' -> document; sinon ElementNotFound."""
        kind, _, raw_id = (source_id or "").partition(":")
        if not raw_id.isdigit():
            raise ElementNotFoundException(source_id)
        document_id = int(raw_id)
        if kind == "invoice":
            document = await self.invoice_service.invoice_repo.get_by_id_full(invoice_id=document_id)
        elif kind == "quote":
            document = await self.quote_repo.get_by_id_with_items(quote_id=document_id)
        else:
            document = None
        if document is None:
            logger.warning(f"[DocumentExport] Source introuvable: {source_id}")
            raise ElementNotFoundException(source_id)
        return document

    def _invoice_snapshot(self, invoice: Invoice) -> DocumentSnapshot:
        status = get_payment_status(invoice)
        return DocumentSnapshot(
            title=f"Facture {invoice.invoice_number}",
            subtitle_lines=[
                f"Client : {invoice.customer_name}",
                f"Statut : {invoice_status_label(invoice.status)}",
            ],
            columns=LINE_COLUMNS,
            rows=_line_rows(invoice.items),
            summary_lines=[
                f"Total TTC : {invoice.total_ttc:.2f} €",
                f"Montant payé : {status.amount_paid:.2f} €",
                f"Net à payer : {status.net_to_pay:.2f} €",
            ],
        )

    def _quote_snapshot(self, quote: Quote) -> DocumentSnapshot:
        return DocumentSnapshot(
            title=f"Devis {quote.quote_number}",
            subtitle_lines=[
                f"Client : {quote.customer_name}",
                f"Statut : {quote_status_label(quote.status)}",
            ],
            columns=LINE_COLUMNS,
            rows=_line_rows(quote.items),
            summary_lines=[f"Total TTC : {quote.total_ttc:.2f} €"],
        )

    # --- Opérations ---

    async def export_element_as_pdf(self, source_id: str, file_name: Optional[str] = None) -> ExportedDocument:
        """Exporte une facture ou un devis, mis en page à largeur fixe et ajusté sur A4 paysage."""
        document = await self._resolve_source(source_id)
        if isinstance(document, Invoice):
            snapshot = self._invoice_snapshot(document)
        else:
            snapshot = self._quote_snapshot(document)
        content = await self.pdf_generator.render_snapshot_pdf(snapshot)
        return ExportedDocument(file_name=pdf_file_name(file_name), content=content)

    async def export_planning_as_pdf(
        self,
        columns: List[str],
        rows: List[List[str]],
        file_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExportedDocument:
        if not columns:
            raise ValidationException("Le planning à exporter doit comporter au moins une colonne.")
        snapshot = DocumentSnapshot(
            title=PLANNING_TITLE,
            subtitle_lines=[generated_at_line(now or datetime.now())],
            columns=columns,
            rows=[[str(cell) for cell in row] for row in rows],
        )
        content = await self.pdf_generator.render_snapshot_pdf(snapshot)
        return ExportedDocument(file_name=pdf_file_name(file_name, default="planning"), content=content)

    async def generate_invoice_pdf(self, invoice_id: int) -> ExportedDocument:
        """Facture imprimable A4 avec bloc vendeur, état de paiement et mentions légales."""
        invoice_read = await self.invoice_service.get_invoice(invoice_id)
        settings_row = await self.settings_repo.get_or_create()
        invoice_data: Dict[str, Any] = {
            "invoice": invoice_read.model_dump(),
            "payment_status": invoice_read.payment_status.model_dump(),
            "seller": settings_row.model_dump(),
        }
        content = await self.pdf_generator.generate_invoice_pdf(invoice_data)
        return ExportedDocument(file_name=pdf_file_name(f"facture-{invoice_read.invoice_number}"), content=content)
