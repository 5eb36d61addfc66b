"""Champs communs aux devis et aux factures."""
from typing import Optional, Dict, Any
from decimal import Decimal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class CustomerSnapshotBase(SQLModel):
    """Coordonnées client figées sur le document (découplées de la fiche client)."""
    customer_id: Optional[str] = Field(default=None, max_length=64, index=True)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    customer_company: Optional[str] = Field(default=None, max_length=255)
    customer_siret: Optional[str] = Field(default=None, max_length=14)
    customer_vat_number: Optional[str] = Field(default=None, max_length=20)

    model_config = ConfigDict(from_attributes=True)

class CustomerSnapshotCreate(CustomerSnapshotBase):
    customer_address: Optional[Dict[str, Any]] = None

class DocumentLineBase(SQLModel):
    """Ligne de devis ou de facture: description, quantité, prix HT et taux de TVA."""
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(..., gt=0)
    unit_price_ht: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    tax_rate: Decimal = Field(default=Decimal("20.00"), ge=0, le=100, max_digits=5, decimal_places=2)

    model_config = ConfigDict(from_attributes=True)

class DocumentLineCreate(DocumentLineBase):
    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("La description de la ligne est requise.")
        return value

class DocumentLineRead(DocumentLineBase):
    id: int
    total_ht: Decimal
    total_ttc: Decimal
    sort_order: int
