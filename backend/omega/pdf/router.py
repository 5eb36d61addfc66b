"""
Routes FastAPI pour l'export PDF.
"""
import logging

from fastapi import APIRouter, Path, Response

from omega.auth.dependencies import AdminUserDep
from omega.core.exceptions import BillingDomainException
from omega.core.http_errors import http_exception_from_domain
from omega.pdf.application.services import ExportedDocument
from omega.pdf.interfaces.dependencies import DocumentExportServiceDep
from omega.pdf.models import ElementExportRequest, PlanningExportRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["PDF Export"],
    responses={404: {"description": "Not found"}},
)


def _pdf_response(document: ExportedDocument, inline: bool = False) -> Response:
    disposition = "inline" if inline else "attachment"
    return Response(
        content=document.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{document.file_name}"'},
    )


@router.post("/exports/element")
async def export_element(
    export_request: ElementExportRequest,
    export_service: DocumentExportServiceDep,
    current_admin: AdminUserDep,
):
    """Exporte une facture ou un devis sur une page A4 paysage."""
    logger.info(f"[PDFExport] Export de {export_request.source_id} demandé par {current_admin.id}")
    try:
        document = await export_service.export_element_as_pdf(export_request.source_id, export_request.file_name)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "export PDF")
    return _pdf_response(document)


@router.post("/exports/planning")
async def export_planning(
    export_request: PlanningExportRequest,
    export_service: DocumentExportServiceDep,
    current_admin: AdminUserDep,
):
    try:
        document = await export_service.export_planning_as_pdf(
            export_request.columns, export_request.rows, export_request.file_name
        )
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "export planning")
    return _pdf_response(document)


@router.get("/invoices/{invoice_id}/pdf")
async def download_invoice_pdf(
    export_service: DocumentExportServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., title="ID de la facture"),
):
    """Facture imprimable (A4 portrait)."""
    try:
        document = await export_service.generate_invoice_pdf(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "génération facture PDF")
    return _pdf_response(document, inline=True)
