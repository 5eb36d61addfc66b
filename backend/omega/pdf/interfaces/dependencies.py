from typing import Annotated
from fastapi import Depends

# Domain
from omega.pdf.domain.generator import AbstractPDFGenerator

# Infrastructure
from omega.pdf.infrastructure.reportlab_generator import ReportLabPDFGenerator

# Application
from omega.pdf.application.services import DocumentExportService

from omega.billing_settings.dependencies import BillingSettingsRepositoryDep
from omega.invoices.dependencies import InvoiceServiceDep
from omega.quotes.dependencies import QuoteRepositoryDep

# --- PDF Generator Dependency ---

def get_pdf_generator() -> AbstractPDFGenerator:
    """Fournit une instance de l'implémentation concrète du PDF Generator.

    Actuellement, utilise ReportLabPDFGenerator.
    """
    return ReportLabPDFGenerator()

PDFGeneratorDep = Annotated[AbstractPDFGenerator, Depends(get_pdf_generator)]

# --- Export Service Dependency ---

def get_document_export_service(
    pdf_generator: PDFGeneratorDep,
    invoice_service: InvoiceServiceDep,
    quote_repo: QuoteRepositoryDep,
    settings_repo: BillingSettingsRepositoryDep,
) -> DocumentExportService:
    return DocumentExportService(
        pdf_generator=pdf_generator,
        invoice_service=invoice_service,
        quote_repo=quote_repo,
        settings_repo=settings_repo,
    )

DocumentExportServiceDep = Annotated[DocumentExportService, Depends(get_document_export_service)]
