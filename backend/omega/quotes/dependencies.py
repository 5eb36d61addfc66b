import logging
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from omega.database import get_db_session
from omega.billing_settings.dependencies import BillingSettingsRepositoryDep, EventBusDep, NumberingServiceDep
from omega.invoices.dependencies import InvoiceServiceDep
from omega.quotes.interfaces.repositories import AbstractQuoteRepository
from omega.quotes.repositories import SQLAlchemyQuoteRepository
from omega.quotes.service import QuoteService

logger = logging.getLogger(__name__)

# --- Dépendances Repository ---

def get_quote_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> AbstractQuoteRepository:
    """Fournit une instance du repository de devis (implémentation SQLAlchemy)."""
    logger.debug("Fourniture de SQLAlchemyQuoteRepository")
    return SQLAlchemyQuoteRepository(db_session=session)

QuoteRepositoryDep = Annotated[AbstractQuoteRepository, Depends(get_quote_repository)]

# --- Dépendances Service ---

def get_quote_service(
    quote_repo: QuoteRepositoryDep,
    settings_repo: BillingSettingsRepositoryDep,
    numbering: NumberingServiceDep,
    invoice_service: InvoiceServiceDep,
    event_bus: EventBusDep,
) -> QuoteService:
    logger.debug("Fourniture de QuoteService")
    return QuoteService(
        quote_repo=quote_repo,
        settings_repo=settings_repo,
        numbering=numbering,
        invoice_service=invoice_service,
        event_bus=event_bus,
    )

QuoteServiceDep = Annotated[QuoteService, Depends(get_quote_service)]
