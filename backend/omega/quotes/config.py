"""
Configuration spécifique au module Quotes.
Libellés d'affichage et transitions de statut autorisées.
"""
from typing import Dict, FrozenSet

from omega.core.utils import require_labels
from omega.quotes.models import QuoteStatus

QUOTE_STATUS_DISPLAY: Dict[QuoteStatus, str] = {
    QuoteStatus.DRAFT: "Brouillon",
    QuoteStatus.SENT: "Envoyé",
    QuoteStatus.ACCEPTED: "Accepté",
    QuoteStatus.REJECTED: "Refusé",
    QuoteStatus.EXPIRED: "Expiré",
    QuoteStatus.CONVERTED: "Converti",
}

# action -> (statuts de départ autorisés, statut d'arrivée)
QUOTE_TRANSITIONS: Dict[str, tuple] = {
    "envoi": (frozenset({QuoteStatus.DRAFT}), QuoteStatus.SENT),
    "acceptation": (frozenset({QuoteStatus.SENT}), QuoteStatus.ACCEPTED),
    "refus": (frozenset({QuoteStatus.SENT}), QuoteStatus.REJECTED),
    "expiration": (frozenset({QuoteStatus.DRAFT, QuoteStatus.SENT}), QuoteStatus.EXPIRED),
    "conversion": (frozenset({QuoteStatus.ACCEPTED}), QuoteStatus.CONVERTED),
}

EDITABLE_STATUSES: FrozenSet[QuoteStatus] = frozenset({QuoteStatus.DRAFT})
TERMINAL_STATUSES: FrozenSet[QuoteStatus] = frozenset({QuoteStatus.REJECTED, QuoteStatus.EXPIRED, QuoteStatus.CONVERTED})

require_labels(QUOTE_STATUS_DISPLAY, QuoteStatus, "statut de devis")
if any(origin & TERMINAL_STATUSES for origin, _ in QUOTE_TRANSITIONS.values()):
    raise RuntimeError("Un statut terminal de devis ne peut pas avoir de transition sortante.")


def quote_status_label(status) -> str:
    return QUOTE_STATUS_DISPLAY[QuoteStatus(status)]
