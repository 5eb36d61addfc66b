"""Interface du prestataire de paiement utilisée par le workflow de remboursement."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ProcessorCharge:
    """Transaction débitée côté prestataire (montants en centimes)."""
    id: str
    amount: int
    amount_refunded: int
    payment_intent: Optional[str] = None

    @property
    def available_cents(self) -> int:
        return max(0, self.amount - self.amount_refunded)


@dataclass(frozen=True)
class ProcessorRefund:
    id: str
    amount: int
    status: str
    charge_id: Optional[str] = None
    payment_intent: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class AbstractPaymentProcessor(ABC):
    """Port vers le prestataire de paiement (Stripe en production, simulé en test)."""

    @abstractmethod
    async def retrieve_charge(self, charge_id: str) -> ProcessorCharge:
        pass

    @abstractmethod
    async def retrieve_payment_intent_charge(self, payment_intent_id: str) -> ProcessorCharge:
        """Dernière transaction ('latest_charge') d'un payment intent."""
        pass

    @abstractmethod
    async def create_refund(
        self,
        *,
        charge_id: str,
        amount_cents: int,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> ProcessorRefund:
        pass

    @abstractmethod
    async def list_refunds(self, *, charge_id: str) -> List[ProcessorRefund]:
        pass
