from enum import Enum
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from omega.core.columns import datetime_column, enum_column


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def from_processor(cls, value: Optional[str]) -> "RefundStatus":
        """Statut Stripe -> statut local ('requires_action' reste en attente)."""
        mapping = {
            "pending": cls.PENDING,
            "requires_action": cls.PENDING,
            "succeeded": cls.SUCCEEDED,
            "failed": cls.FAILED,
            "canceled": cls.CANCELLED,
            "cancelled": cls.CANCELLED,
        }
        if value not in mapping:
            raise ValueError(f"Statut de remboursement inconnu: {value}")
        return mapping[value]

# Motifs proposés dans le formulaire de remboursement (texte libre accepté)
REFUND_REASONS: Dict[str, str] = {
    "defaut_produit": "Défaut produit",
    "annulation_client": "Annulation client",
    "erreur_commande": "Erreur de commande",
    "retour_produit": "Retour produit",
    "geste_commercial": "Geste commercial",
    "autre": "Autre",
}

class RefundBase(SQLModel):
    invoice_id: Optional[int] = Field(default=None, foreign_key="invoices.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id", index=True)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(..., max_length=255)
    admin_notes: Optional[str] = Field(default=None)

    model_config = ConfigDict(from_attributes=True)

class Refund(RefundBase, table=True):
    """Remboursement émis auprès du prestataire de paiement."""
    id: Optional[int] = Field(default=None, primary_key=True)
    stripe_refund_id: Optional[str] = Field(default=None, max_length=255, unique=True, index=True)
    stripe_payment_intent_id: Optional[str] = Field(default=None, max_length=255)
    stripe_charge_id: Optional[str] = Field(default=None, max_length=255)
    status: RefundStatus = Field(default=RefundStatus.PENDING, sa_column=enum_column(RefundStatus))
    processed_by: Optional[str] = Field(default=None, max_length=64)
    created_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())
    updated_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    __tablename__ = "refunds"

class RefundRead(RefundBase):
    id: int
    stripe_refund_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_charge_id: Optional[str] = None
    status: RefundStatus
    processed_by: Optional[str] = None
    created_at: Optional[datetime] = None

class RefundRequest(SQLModel):
    """Demande de remboursement envoyée au relais serveur par l'administrateur."""
    invoice_id: int = Field(..., ge=1)
    charge_id: Optional[str] = Field(default=None, max_length=255)
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    reason: str = Field(default="", max_length=255)
    admin_notes: Optional[str] = None

class RefundProposal(SQLModel):
    """Pré-remplissage du formulaire de remboursement."""
    invoice_id: int
    invoice_number: str
    refundable_amount: Decimal
    charge_reference: str
    reasons: Dict[str, str] = REFUND_REASONS

class RefundResult(SQLModel):
    refund: RefundRead
    refundable_amount: Decimal
    invoice_status: str
    message: str

class RefundReconciliation(SQLModel):
    invoice_id: int
    created: List[RefundRead] = []
    updated: List[RefundRead] = []
