from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Iterable

from omega.core.utils import DocumentTotals
from omega.invoices.models import Invoice, InvoiceItem
from omega.quotes.models import Quote, QuoteFilter, QuoteItem, QuoteStatus


class AbstractQuoteRepository(ABC):
    """Interface abstraite pour le repository des devis."""

    @abstractmethod
    async def get_by_id_with_items(self, *, quote_id: int) -> Optional[Quote]:
        """Récupère un devis par son ID, incluant ses lignes."""
        pass

    @abstractmethod
    async def list_filtered(self, *, quote_filter: QuoteFilter, offset: int = 0, limit: Optional[int] = 100) -> Tuple[List[Quote], int]:
        pass

    @abstractmethod
    async def create_with_items(self, *, quote: Quote, items: List[QuoteItem]) -> Quote:
        """Crée un devis et ses lignes dans une seule transaction."""
        pass

    @abstractmethod
    async def replace_items(self, *, quote_id: int, items: List[QuoteItem], totals: DocumentTotals) -> Quote:
        """Remplace les lignes d'un devis brouillon et ses totaux."""
        pass

    @abstractmethod
    async def transition_status(
        self,
        *,
        quote_id: int,
        from_statuses: Iterable[QuoteStatus],
        to_status: QuoteStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Change le statut seulement si le statut courant est autorisé. Retourne False sinon."""
        pass

    @abstractmethod
    async def expire_outdated(self, *, today: date) -> int:
        pass

    @abstractmethod
    async def convert_to_invoice(self, *, quote_id: int, invoice: Invoice, items: List[InvoiceItem]) -> Invoice:
        """Crée la facture et passe le devis en 'converted' dans une seule transaction."""
        pass
