"""Taxonomie des erreurs communes au domaine facturation."""
from typing import Optional


class BillingDomainException(Exception):
    """Classe de base pour les exceptions du domaine facturation."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class ValidationException(BillingDomainException):
    """Levée pour une entrée invalide (montant non positif, champ requis manquant...)."""
    pass

class InvalidStateException(BillingDomainException):
    """Levée lorsqu'une opération est tentée sur un document dans un statut incompatible."""
    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

class NotRefundableException(BillingDomainException):
    """Levée lorsque le solde remboursable est nul ou insuffisant."""
    def __init__(self, message: str = "Cette facture a déjà été entièrement remboursée."):
        super().__init__(message)

class NoChargeReferenceException(BillingDomainException):
    """Levée lorsqu'aucune transaction du prestataire n'est associée au paiement."""
    def __init__(self, invoice_id: int):
        super().__init__(
            f"Impossible de trouver la transaction Stripe associée à la facture {invoice_id}. "
            "Les paiements manuels ne sont pas remboursables par ce biais."
        )
        self.invoice_id = invoice_id

class RemoteServiceException(BillingDomainException):
    """Levée lorsque la base ou le prestataire de paiement renvoie une erreur."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception

class NotFoundException(ValidationException):
    """Base des documents introuvables (facture, devis, commande, élément exporté)."""
    pass

class ElementNotFoundException(NotFoundException):
    """Levée lorsque la source d'un export ne correspond à aucun document."""
    def __init__(self, source_id: str):
        super().__init__(f'Élément non trouvé (id="{source_id}")')
        self.source_id = source_id
