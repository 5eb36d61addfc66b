import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Path, Body, Response

from omega.auth.dependencies import AdminUserDep
from omega.config import settings
from omega.core.exceptions import BillingDomainException
from omega.core.http_errors import http_exception_from_domain
from omega.refunds.dependencies import RefundServiceDep
from omega.refunds.models import RefundProposal, RefundRead, RefundReconciliation, RefundRequest, RefundResult

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/refunds",
    tags=["Refunds"]
)

@router.get("/", response_model=List[RefundRead])
async def list_refunds(
    refund_service: RefundServiceDep,
    current_admin: AdminUserDep,
    response: Response,
    invoice_id: Optional[int] = Query(None, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    try:
        refunds, total_count = await refund_service.list_refunds(invoice_id=invoice_id, limit=limit, offset=offset)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "listage remboursements")
    end_range = offset + len(refunds) - 1 if refunds else offset
    response.headers["Content-Range"] = f"refunds {offset}-{end_range}/{total_count}"
    return refunds

@router.get("/initiate/{invoice_id}", response_model=RefundProposal)
async def initiate_refund(
    refund_service: RefundServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    """Solde remboursable et transaction Stripe ciblée pour pré-remplir le formulaire."""
    try:
        return await refund_service.initiate_refund(invoice_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "préparation remboursement")

@router.post("/", response_model=RefundResult)
async def submit_refund(
    refund_service: RefundServiceDep,
    current_admin: AdminUserDep,
    refund_request: RefundRequest = Body(...),
):
    """Relais serveur vers Stripe: la clé secrète ne quitte jamais le backend."""
    logger.info(f"API submit_refund: facture {refund_request.invoice_id}, {refund_request.amount}€ par admin {current_admin.id}")
    try:
        return await refund_service.submit_refund(refund_request, processed_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "remboursement")

@router.post("/reconcile/{invoice_id}", response_model=RefundReconciliation)
async def reconcile_refunds(
    refund_service: RefundServiceDep,
    current_admin: AdminUserDep,
    invoice_id: int = Path(..., ge=1),
):
    """Relit l'état réel chez Stripe (à utiliser après un délai dépassé)."""
    logger.info(f"API reconcile_refunds: facture {invoice_id} par admin {current_admin.id}")
    try:
        return await refund_service.reconcile_refunds(invoice_id, processed_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "réconciliation remboursements")
