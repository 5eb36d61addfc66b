import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, status, Query, Path, Body, Response

from omega.auth.dependencies import AdminUserDep
from omega.config import settings
from omega.core.exceptions import BillingDomainException
from omega.core.http_errors import http_exception_from_domain
from omega.invoices.csv_export import UTF8_BOM, export_filename
from omega.invoices.dependencies import InvoiceServiceDep
from omega.invoices.models import (
    InvoiceCreate,
    InvoiceFilter,
    InvoiceRead,
    ManualPaymentCreate,
    PaginatedInvoiceRead,
    PaymentStatusRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"]
)

# --- Registre ---

@router.get("/", response_model=PaginatedInvoiceRead)
async def list_invoices(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    response: Response,
    search: Optional[str] = Query(None, description="Recherche sur le numéro ou le nom du client"),
    status_filter: str = Query("all", alias="status", description="'all' ou un statut exact"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    """Liste les factures, les plus récentes d'abord, avec leur état de paiement dérivé."""
    invoice_filter = InvoiceFilter(search_text=search, status=status_filter, date_from=date_from, date_to=date_to)
    try:
        page = await invoice_service.list_invoices(invoice_filter, limit=limit, offset=offset)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "listage factures")
    end_range = offset + len(page.items) - 1 if page.items else offset
    response.headers["Content-Range"] = f"invoices {offset}-{end_range}/{page.total}"
    return page

@router.get("/export.csv")
async def export_invoices_csv(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    search: Optional[str] = Query(None),
    status_filter: str = Query("all", alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Export CSV (UTF-8 avec BOM) des factures correspondant aux filtres."""
    invoice_filter = InvoiceFilter(search_text=search, status=status_filter, date_from=date_from, date_to=date_to)
    try:
        content = await invoice_service.export_ledger_csv(invoice_filter)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "export factures")
    filename = export_filename(date.today())
    return Response(
        content=(UTF8_BOM + content).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.post("/mark-overdue")
async def mark_overdue_invoices(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
):
    """Passe en retard toutes les factures envoyées dont l'échéance est dépassée."""
    logger.info(f"API mark_overdue_invoices par admin {current_admin.id}")
    try:
        count = await invoice_service.mark_overdue_invoices()
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "passage en retard")
    return {"updated": count}

@router.post("/from-order/{order_id}", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def create_invoice_from_order(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    order_id: int = Path(..., ge=1),
):
    """Génère (ou retourne) la facture d'une commande boutique."""
    logger.info(f"API create_invoice_from_order: commande {order_id} par admin {current_admin.id}")
    try:
        return await invoice_service.create_invoice_from_order(order_id, created_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "génération facture")

# --- Factures ---

@router.post("/", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_data: InvoiceCreate = Body(...),
):
    """Crée une facture brouillon."""
    logger.info(f"API create_invoice pour client '{invoice_data.customer_name}' par admin {current_admin.id}")
    try:
        return await invoice_service.create_invoice(invoice_data, created_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "création facture")

@router.get("/{invoice_id}", response_model=InvoiceRead)
async def read_invoice(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., title="ID de la facture", ge=1),
):
    try:
        return await invoice_service.get_invoice(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "récupération facture")

@router.get("/{invoice_id}/payment-status", response_model=PaymentStatusRead)
async def read_invoice_payment_status(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    """Montant payé, remboursé, net à payer et solde remboursable."""
    try:
        return await invoice_service.get_payment_status(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "état de paiement")

@router.post("/{invoice_id}/send", response_model=InvoiceRead)
async def send_invoice(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    try:
        return await invoice_service.send_invoice(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "envoi facture")

@router.post("/{invoice_id}/overdue", response_model=InvoiceRead)
async def mark_invoice_overdue(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    try:
        return await invoice_service.mark_overdue(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "passage en retard")

@router.post("/{invoice_id}/cancel", response_model=InvoiceRead)
async def cancel_invoice(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    logger.info(f"API cancel_invoice: ID={invoice_id} par admin {current_admin.id}")
    try:
        return await invoice_service.cancel_invoice(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "annulation facture")

@router.post("/{invoice_id}/payments", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def record_manual_payment(
    invoice_service: InvoiceServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
    payment_data: ManualPaymentCreate = Body(...),
):
    """Enregistre un paiement reçu hors ligne (virement, chèque, espèces...)."""
    logger.info(f"API record_manual_payment: facture {invoice_id}, {payment_data.amount}€ par admin {current_admin.id}")
    try:
        return await invoice_service.record_manual_payment(invoice_id, payment_data, created_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "enregistrement paiement")
