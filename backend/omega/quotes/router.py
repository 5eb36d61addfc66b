import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, status, Query, Path, Body, Response

from omega.auth.dependencies import AdminUserDep
from omega.config import settings
from omega.core.exceptions import BillingDomainException
from omega.core.http_errors import http_exception_from_domain
from omega.invoices.models import InvoiceRead
from omega.quotes.dependencies import QuoteServiceDep
from omega.quotes.models import QuoteRead, QuoteCreate, QuoteFilter, QuoteItemsUpdate, PaginatedQuoteRead

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"]
)

@router.get("/", response_model=PaginatedQuoteRead)
async def list_quotes(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
    response: Response,
    search: Optional[str] = Query(None, description="Recherche sur le numéro ou le nom du client"),
    status_filter: str = Query("all", alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    quote_filter = QuoteFilter(search_text=search, status=status_filter, date_from=date_from, date_to=date_to)
    try:
        page = await quote_service.list_quotes(quote_filter, limit=limit, offset=offset)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "listage devis")
    # Ajouter le header Content-Range
    end_range = offset + len(page.items) - 1 if page.items else offset
    response.headers["Content-Range"] = f"quotes {offset}-{end_range}/{page.total}"
    return page

@router.post("/expire-outdated")
async def expire_outdated_quotes(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
):
    """Expire les devis brouillons ou envoyés dont la date de validité est dépassée."""
    try:
        count = await quote_service.expire_outdated_quotes()
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "expiration devis")
    return {"updated": count}

@router.post("/", response_model=QuoteRead, status_code=status.HTTP_201_CREATED)
async def create_quote(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
    quote_data: QuoteCreate = Body(...),
):
    """Crée un devis brouillon."""
    logger.info(f"API create_quote pour client '{quote_data.customer_name}' par admin {current_admin.id}")
    try:
        return await quote_service.create_quote(quote_data, created_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "création devis")

@router.get("/{quote_id}", response_model=QuoteRead)
async def read_quote(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
    quote_id: int = Path(..., title="ID du devis", ge=1),
):
    try:
        return await quote_service.get_quote(quote_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "récupération devis")

@router.put("/{quote_id}/items", response_model=QuoteRead)
async def update_quote_items(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
    quote_id: int = Path(..., ge=1),
    items_update: QuoteItemsUpdate = Body(...),
):
    """Remplace les lignes d'un devis (brouillon uniquement)."""
    try:
        return await quote_service.update_quote_items(quote_id, items_update)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "modification devis")

@router.post("/{quote_id}/send", response_model=QuoteRead)
async def send_quote(quote_service: QuoteServiceDep, current_admin: AdminUserDep, quote_id: int = Path(..., ge=1)):
    try:
        return await quote_service.send_quote(quote_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "envoi devis")

@router.post("/{quote_id}/accept", response_model=QuoteRead)
async def accept_quote(quote_service: QuoteServiceDep, current_admin: AdminUserDep, quote_id: int = Path(..., ge=1)):
    try:
        return await quote_service.accept_quote(quote_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "acceptation devis")

@router.post("/{quote_id}/reject", response_model=QuoteRead)
async def reject_quote(quote_service: QuoteServiceDep, current_admin: AdminUserDep, quote_id: int = Path(..., ge=1)):
    try:
        return await quote_service.reject_quote(quote_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "refus devis")

@router.post("/{quote_id}/expire", response_model=QuoteRead)
async def expire_quote(quote_service: QuoteServiceDep, current_admin: AdminUserDep, quote_id: int = Path(..., ge=1)):
    try:
        return await quote_service.expire_quote(quote_id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "expiration devis")

@router.post("/{quote_id}/convert", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def convert_quote_to_invoice(
    quote_service: QuoteServiceDep,
    current_admin: AdminUserDep,
    quote_id: int = Path(..., ge=1),
):
    """Convertit un devis accepté en facture."""
    logger.info(f"API convert_quote_to_invoice: devis {quote_id} par admin {current_admin.id}")
    try:
        return await quote_service.convert_to_invoice(quote_id, created_by=current_admin.id)
    except BillingDomainException as e:
        raise http_exception_from_domain(e, "conversion devis")
