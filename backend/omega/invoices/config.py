"""
Configuration spécifique au module Invoices.
Libellés d'affichage et transitions de statut autorisées.
"""
from typing import Dict, FrozenSet

from omega.core.utils import require_labels
from omega.invoices.models import InvoiceStatus, PaymentMethod

# Mapping des statuts pour l'affichage en français
INVOICE_STATUS_DISPLAY: Dict[InvoiceStatus, str] = {
    InvoiceStatus.DRAFT: "Brouillon",
    InvoiceStatus.SENT: "Envoyée",
    InvoiceStatus.PAID: "Payée",
    InvoiceStatus.OVERDUE: "En retard",
    InvoiceStatus.CANCELLED: "Annulée",
    InvoiceStatus.REFUNDED: "Remboursée",
}

PAYMENT_METHOD_DISPLAY: Dict[PaymentMethod, str] = {
    PaymentMethod.VIREMENT: "Virement",
    PaymentMethod.CHEQUE: "Chèque",
    PaymentMethod.ESPECES: "Espèces",
    PaymentMethod.CARTE: "Carte bancaire",
    PaymentMethod.PRELEVEMENT: "Prélèvement",
    PaymentMethod.REFUND: "Remboursement",
}

# Statuts de départ autorisés pour chaque action
SENDABLE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({InvoiceStatus.DRAFT})
OVERDUE_ELIGIBLE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({InvoiceStatus.SENT})
PAYABLE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE})
CANCELLABLE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE})
REFUNDABLE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({InvoiceStatus.PAID})

# Factures générées depuis une commande payée en ligne
ORDER_DEFAULT_TAX_RATE = 20
ORDER_PAYMENT_TERMS_DAYS = 30

# Tout statut doit avoir un libellé: un statut inconnu ne tombe jamais dans un cas par défaut
require_labels(INVOICE_STATUS_DISPLAY, InvoiceStatus, "statut de facture")
require_labels(PAYMENT_METHOD_DISPLAY, PaymentMethod, "moyen de paiement")


def invoice_status_label(status) -> str:
    return INVOICE_STATUS_DISPLAY[InvoiceStatus(status)]
