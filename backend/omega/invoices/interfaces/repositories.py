from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Iterable

from omega.invoices.models import Invoice, InvoiceFilter, InvoiceItem, InvoiceStatus, PaymentRecord


class AbstractInvoiceRepository(ABC):
    """Interface abstraite pour le repository des factures."""

    @abstractmethod
    async def get_by_id_full(self, *, invoice_id: int) -> Optional[Invoice]:
        """Récupère une facture avec ses lignes, paiements et remboursements."""
        pass

    @abstractmethod
    async def get_by_order_id(self, *, order_id: int) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def lock_for_update(self, *, invoice_id: int) -> Optional[Invoice]:
        """Verrouille la ligne de la facture jusqu'à la fin de la transaction courante."""
        pass

    @abstractmethod
    async def list_filtered(self, *, invoice_filter: InvoiceFilter, offset: int = 0, limit: Optional[int] = 100) -> Tuple[List[Invoice], int]:
        """Liste les factures filtrées, les plus récentes d'abord."""
        pass

    @abstractmethod
    async def create_with_items(
        self,
        *,
        invoice: Invoice,
        items: List[InvoiceItem],
        payment_records: Iterable[PaymentRecord] = (),
    ) -> Invoice:
        """Crée la facture, ses lignes et ses éventuels paiements dans une seule transaction."""
        pass

    @abstractmethod
    async def transition_status(
        self,
        *,
        invoice_id: int,
        from_statuses: Iterable[InvoiceStatus],
        to_status: InvoiceStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Change le statut seulement si le statut courant est autorisé. Retourne False sinon."""
        pass

    @abstractmethod
    async def record_payment(self, *, payment: PaymentRecord, payable_statuses: Iterable[InvoiceStatus]) -> Invoice:
        """Ajoute le paiement au journal et met à jour le cumul payé de façon atomique."""
        pass

    @abstractmethod
    async def mark_overdue(self, *, today: date) -> int:
        """Passe en retard les factures envoyées dont l'échéance est dépassée."""
        pass
