"""Exceptions spécifiques au module des paramètres de facturation."""
from typing import Optional

from omega.core.exceptions import BillingDomainException, RemoteServiceException


class BillingSettingsUpdateException(BillingDomainException):
    """Levée en cas d'erreur lors de la mise à jour des paramètres."""
    def __init__(self, detail: str = "Erreur lors de la mise à jour des paramètres de facturation."):
        super().__init__(detail)
        self.detail = detail

class NumberAllocationException(RemoteServiceException):
    """Levée si le compteur de numérotation n'a pas pu être incrémenté."""
    def __init__(self, counter: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Impossible d'allouer un numéro ({counter}).", original_exception=original_exception)
        self.counter = counter
