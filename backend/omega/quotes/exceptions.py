"""Exceptions spécifiques au module Quote."""
from typing import Optional

from omega.core.exceptions import BillingDomainException, InvalidStateException, NotFoundException


class QuoteNotFoundException(NotFoundException):
    """Levée lorsqu'un devis spécifique n'est pas trouvé."""
    def __init__(self, quote_id: int):
        super().__init__(f"Devis avec ID {quote_id} non trouvé.")
        self.quote_id = quote_id

class InvalidQuoteStatusException(InvalidStateException):
    """Levée lorsqu'une action n'est pas permise dans le statut courant du devis."""
    def __init__(self, quote_id: int, status: str, action: str):
        super().__init__(
            f"Action '{action}' impossible sur le devis {quote_id} au statut '{status}'.",
            current_status=status,
        )
        self.quote_id = quote_id
        self.action = action

class QuotePersistenceException(BillingDomainException):
    """Levée en cas d'erreur base de données lors d'une écriture sur un devis."""
    def __init__(self, quote_id: Optional[int] = None, detail: str = "Erreur lors de l'enregistrement du devis."):
        message = f"Erreur devis{f' ID {quote_id}' if quote_id else ''}: {detail}"
        super().__init__(message)
        self.quote_id = quote_id
        self.detail = detail
