import logging

from sqlalchemy.orm import sessionmaker

from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository, SequenceCounter

logger = logging.getLogger(__name__)


def format_document_number(prefix: str, number: int) -> str:
    """'FAC', 42 -> 'FAC-00042' (l'ordre lexical suit l'ordre numérique)."""
    return f"{prefix}-{number:05d}"


class NumberingService:
    """Allocation des numéros de factures et de devis.

    Chaque allocation s'exécute dans sa propre session et est validée
    immédiatement: un numéro consommé n'est jamais réattribué, même si la
    création du document qui l'a demandé échoue ensuite (trous acceptés,
    doublons impossibles).
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _allocate(self, counter: SequenceCounter) -> str:
        async with self.session_factory() as session:
            repo = SQLAlchemyBillingSettingsRepository(db_session=session)
            number, prefix = await repo.increment_counter(counter)
        document_number = format_document_number(prefix, number)
        logger.info(f"[NumberingService] Numéro {counter.value} alloué: {document_number}")
        return document_number

    async def next_invoice_number(self) -> str:
        return await self._allocate(SequenceCounter.INVOICE)

    async def next_quote_number(self) -> str:
        return await self._allocate(SequenceCounter.QUOTE)
