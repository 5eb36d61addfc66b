import logging

from omega.billing_settings.models import BillingSettingsRead, BillingSettingsUpdate
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.events.bus import BillingEventBus

logger = logging.getLogger(__name__)


class BillingSettingsService:
    """Service applicatif pour les paramètres de facturation."""

    def __init__(self, settings_repo: SQLAlchemyBillingSettingsRepository, event_bus: BillingEventBus):
        self.settings_repo = settings_repo
        self.event_bus = event_bus

    async def get_settings(self) -> BillingSettingsRead:
        return BillingSettingsRead.model_validate(await self.settings_repo.get_or_create())

    async def update_settings(self, settings_update: BillingSettingsUpdate) -> BillingSettingsRead:
        values = settings_update.model_dump(exclude_unset=True)
        if "bank_details" in values and settings_update.bank_details is not None:
            values["bank_details"] = settings_update.bank_details.model_dump()
        logger.info(f"[BillingSettingsService] MAJ paramètres: {sorted(values.keys())}")
        updated = await self.settings_repo.update(values=values)
        self.event_bus.publish("billing_settings", "update", updated.id)
        return BillingSettingsRead.model_validate(updated)
