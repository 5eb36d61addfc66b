import logging
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from omega.database import get_db_session
from omega.billing_settings.dependencies import BillingSettingsRepositoryDep, EventBusDep, NumberingServiceDep
from omega.invoices.interfaces.repositories import AbstractInvoiceRepository
from omega.invoices.repositories import SQLAlchemyInvoiceRepository
from omega.invoices.service import InvoiceService
from omega.orders.repositories import SQLAlchemyOrderRepository

logger = logging.getLogger(__name__)

# --- Dépendances Repository ---

def get_invoice_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> AbstractInvoiceRepository:
    return SQLAlchemyInvoiceRepository(db_session=session)

InvoiceRepositoryDep = Annotated[AbstractInvoiceRepository, Depends(get_invoice_repository)]

def get_order_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> SQLAlchemyOrderRepository:
    return SQLAlchemyOrderRepository(db_session=session)

OrderRepositoryDep = Annotated[SQLAlchemyOrderRepository, Depends(get_order_repository)]

# --- Dépendances Service ---

def get_invoice_service(
    invoice_repo: InvoiceRepositoryDep,
    order_repo: OrderRepositoryDep,
    settings_repo: BillingSettingsRepositoryDep,
    numbering: NumberingServiceDep,
    event_bus: EventBusDep,
) -> InvoiceService:
    """Fournit une instance du service de factures avec ses dépendances."""
    logger.debug("Fourniture de InvoiceService")
    return InvoiceService(
        invoice_repo=invoice_repo,
        order_repo=order_repo,
        settings_repo=settings_repo,
        numbering=numbering,
        event_bus=event_bus,
    )

InvoiceServiceDep = Annotated[InvoiceService, Depends(get_invoice_service)]
