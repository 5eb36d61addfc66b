import logging
from enum import Enum
from typing import Any, Dict, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from omega.billing_settings.models import BillingSettings, BILLING_SETTINGS_ID
from omega.billing_settings.exceptions import BillingSettingsUpdateException, NumberAllocationException
from omega.core.utils import utcnow

logger = logging.getLogger(__name__)


class SequenceCounter(str, Enum):
    INVOICE = "invoice"
    QUOTE = "quote"

# compteur -> (colonne du prochain numéro, colonne du préfixe)
COUNTER_COLUMNS = {
    SequenceCounter.INVOICE: (BillingSettings.next_invoice_number, BillingSettings.invoice_prefix),
    SequenceCounter.QUOTE: (BillingSettings.next_quote_number, BillingSettings.quote_prefix),
}


class SQLAlchemyBillingSettingsRepository:
    """Accès à la ligne unique des paramètres de facturation."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get(self) -> BillingSettings | None:
        result = await self.db.execute(
            select(BillingSettings).where(BillingSettings.id == BILLING_SETTINGS_ID)
        )
        return result.scalars().one_or_none()

    async def get_or_create(self) -> BillingSettings:
        """Retourne la ligne unique, en la créant avec les valeurs par défaut si besoin."""
        settings_row = await self.get()
        if settings_row is not None:
            return settings_row
        try:
            settings_row = BillingSettings(id=BILLING_SETTINGS_ID, updated_at=utcnow())
            self.db.add(settings_row)
            await self.db.commit()
            logger.info("[BillingSettingsRepo] Ligne de paramètres créée avec les valeurs par défaut.")
            return settings_row
        except IntegrityError:
            # Créée entre-temps par une autre requête
            await self.db.rollback()
            return await self.get()

    async def update(self, *, values: Dict[str, Any]) -> BillingSettings:
        settings_row = await self.get_or_create()
        try:
            for key, value in values.items():
                setattr(settings_row, key, value)
            settings_row.updated_at = utcnow()
            self.db.add(settings_row)
            await self.db.commit()
            await self.db.refresh(settings_row)
            return settings_row
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[BillingSettingsRepo] Erreur MAJ paramètres: {e}", exc_info=True)
            raise BillingSettingsUpdateException(detail=str(e))

    async def increment_counter(self, counter: SequenceCounter) -> Tuple[int, str]:
        """Incrémente atomiquement le compteur et retourne (numéro alloué, préfixe).

        Une seule instruction UPDATE ... RETURNING: la base sérialise les appels
        concurrents, deux appelants ne peuvent jamais obtenir le même numéro.
        """
        next_column, prefix_column = COUNTER_COLUMNS[counter]
        statement = (
            update(BillingSettings)
            .where(BillingSettings.id == BILLING_SETTINGS_ID)
            .values({next_column.key: next_column + 1})
            .returning(next_column, prefix_column)
            .execution_options(synchronize_session=False)
        )
        try:
            row = (await self.db.execute(statement)).first()
            if row is None:
                await self.db.rollback()
                await self.get_or_create()
                row = (await self.db.execute(statement)).first()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[BillingSettingsRepo] Échec incrément compteur {counter.value}: {e}", exc_info=True)
            raise NumberAllocationException(counter.value, original_exception=e)
        new_next, prefix = row
        return new_next - 1, prefix
