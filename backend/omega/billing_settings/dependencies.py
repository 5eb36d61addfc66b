import logging
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from omega.database import get_db_session, get_session_factory
from omega.events.bus import BillingEventBus, get_event_bus
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.billing_settings.numbering import NumberingService
from omega.billing_settings.service import BillingSettingsService

logger = logging.getLogger(__name__)

def get_billing_settings_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> SQLAlchemyBillingSettingsRepository:
    return SQLAlchemyBillingSettingsRepository(db_session=session)

BillingSettingsRepositoryDep = Annotated[SQLAlchemyBillingSettingsRepository, Depends(get_billing_settings_repository)]

def get_numbering_service(
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)]
) -> NumberingService:
    """Le service de numérotation ouvre ses propres sessions courtes."""
    return NumberingService(session_factory=session_factory)

NumberingServiceDep = Annotated[NumberingService, Depends(get_numbering_service)]

EventBusDep = Annotated[BillingEventBus, Depends(get_event_bus)]

def get_billing_settings_service(
    settings_repo: BillingSettingsRepositoryDep,
    event_bus: EventBusDep,
) -> BillingSettingsService:
    logger.debug("Fourniture de BillingSettingsService")
    return BillingSettingsService(settings_repo=settings_repo, event_bus=event_bus)

BillingSettingsServiceDep = Annotated[BillingSettingsService, Depends(get_billing_settings_service)]
