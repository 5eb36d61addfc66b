"""Exceptions spécifiques au module Refunds."""
from decimal import Decimal
from typing import Optional

from omega.core.exceptions import NotRefundableException, RemoteServiceException


class RefundAmountTooHighException(NotRefundableException):
    """Levée lorsque le montant demandé dépasse le solde remboursable."""
    def __init__(self, available: Decimal):
        super().__init__(f"Montant de remboursement trop élevé. Maximum disponible : {available:.2f}€")
        self.available = available

class RefundOutcomeUnknownException(RemoteServiceException):
    """Levée lorsque le prestataire n'a pas répondu à temps: le remboursement a pu être créé.

    Aucune écriture locale n'est faite. L'administrateur doit réconcilier
    (relecture des remboursements côté prestataire) avant toute nouvelle tentative.
    """
    def __init__(self, charge_id: str, original_exception: Optional[Exception] = None):
        super().__init__(
            f"Délai dépassé en attendant Stripe pour la transaction {charge_id}. "
            "Le résultat du remboursement est inconnu: lancez une réconciliation avant de réessayer.",
            original_exception=original_exception,
        )
        self.charge_id = charge_id

class RefundPersistenceException(RemoteServiceException):
    """Levée quand le remboursement Stripe a réussi mais que son enregistrement local a échoué."""
    def __init__(self, stripe_refund_id: str, original_exception: Optional[Exception] = None):
        super().__init__(
            f"Remboursement Stripe {stripe_refund_id} effectué, mais erreur lors de la sauvegarde locale. "
            "Lancez une réconciliation.",
            original_exception=original_exception,
        )
        self.stripe_refund_id = stripe_refund_id
