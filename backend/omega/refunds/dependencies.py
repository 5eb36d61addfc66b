import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from omega.database import get_db_session
from omega.billing_settings.dependencies import EventBusDep
from omega.invoices.dependencies import InvoiceRepositoryDep
from omega.refunds.domain.processor import AbstractPaymentProcessor
from omega.refunds.infrastructure.stripe_processor import StripePaymentProcessor
from omega.refunds.repositories import SQLAlchemyRefundRepository
from omega.refunds.service import RefundService

logger = logging.getLogger(__name__)

def get_refund_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> SQLAlchemyRefundRepository:
    return SQLAlchemyRefundRepository(db_session=session)

RefundRepositoryDep = Annotated[SQLAlchemyRefundRepository, Depends(get_refund_repository)]

@lru_cache
def get_payment_processor() -> AbstractPaymentProcessor:
    """Client Stripe configuré depuis les settings, partagé entre les requêtes (remplacé dans les tests)."""
    return StripePaymentProcessor()

PaymentProcessorDep = Annotated[AbstractPaymentProcessor, Depends(get_payment_processor)]

def get_refund_service(
    invoice_repo: InvoiceRepositoryDep,
    refund_repo: RefundRepositoryDep,
    processor: PaymentProcessorDep,
    event_bus: EventBusDep,
) -> RefundService:
    logger.debug("Fourniture de RefundService")
    return RefundService(
        invoice_repo=invoice_repo,
        refund_repo=refund_repo,
        processor=processor,
        event_bus=event_bus,
    )

RefundServiceDep = Annotated[RefundService, Depends(get_refund_service)]
