"""Exceptions spécifiques au module Invoice."""
from typing import Optional

from omega.core.exceptions import BillingDomainException, InvalidStateException, NotFoundException


class InvoiceNotFoundException(NotFoundException):
    """Levée lorsqu'une facture spécifique n'est pas trouvée."""
    def __init__(self, invoice_id: int):
        super().__init__(f"Facture avec ID {invoice_id} non trouvée.")
        self.invoice_id = invoice_id

class InvalidInvoiceStatusException(InvalidStateException):
    """Levée lorsqu'une action n'est pas permise dans le statut courant de la facture."""
    def __init__(self, invoice_id: int, status: str, action: str):
        super().__init__(
            f"Action '{action}' impossible sur la facture {invoice_id} au statut '{status}'.",
            current_status=status,
        )
        self.invoice_id = invoice_id
        self.action = action

class InvoicePersistenceException(BillingDomainException):
    """Levée en cas d'erreur base de données lors d'une écriture sur une facture."""
    def __init__(self, invoice_id: Optional[int] = None, detail: str = "Erreur lors de l'enregistrement de la facture."):
        message = f"Erreur facture{f' ID {invoice_id}' if invoice_id else ''}: {detail}"
        super().__init__(message)
        self.invoice_id = invoice_id
        self.detail = detail

class InvoiceConflictException(InvoicePersistenceException):
    """Levée quand une contrainte d'unicité refuse la facture (numéro ou commande déjà facturée)."""
    pass
