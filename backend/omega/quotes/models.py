from enum import Enum
from typing import Optional, List, Dict, Any
from decimal import Decimal
from datetime import datetime, date

from sqlmodel import SQLModel, Field, Relationship

from omega.core.columns import datetime_column, enum_column, json_column
from omega.core.schemas import CustomerSnapshotBase, CustomerSnapshotCreate, DocumentLineBase, DocumentLineCreate, DocumentLineRead


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"

# --- Modèles pour QuoteItem ---

class QuoteItem(DocumentLineBase, table=True):
    """Modèle de table pour une ligne de devis."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_id: int = Field(foreign_key="quotes.id", index=True)
    total_ht: Decimal = Field(..., max_digits=12, decimal_places=2)
    total_ttc: Decimal = Field(..., max_digits=12, decimal_places=2)
    sort_order: int = Field(default=0)

    quote: "Quote" = Relationship(back_populates="items")

    __tablename__ = "quote_items"

class QuoteItemCreate(DocumentLineCreate):
    pass

class QuoteItemRead(DocumentLineRead):
    quote_id: int

# --- Modèles pour Quote ---

class QuoteBase(CustomerSnapshotBase):
    valid_until: Optional[date] = Field(default=None)
    notes: Optional[str] = Field(default=None)

class Quote(QuoteBase, table=True):
    """Modèle de table pour un devis."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_number: str = Field(..., max_length=50, unique=True, index=True)
    customer_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=json_column())
    status: QuoteStatus = Field(default=QuoteStatus.DRAFT, sa_column=enum_column(QuoteStatus))
    subtotal_ht: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_ttc: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    # Pas de clé étrangère: les factures référencent déjà les devis
    converted_invoice_id: Optional[int] = Field(default=None, index=True)
    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: Optional[datetime] = Field(default=None, sa_column=datetime_column(index=True))
    updated_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())
    sent_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())
    accepted_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    # Relations
    items: List["QuoteItem"] = Relationship(
        back_populates="quote",
        sa_relationship_kwargs={"order_by": "QuoteItem.sort_order", "cascade": "all, delete-orphan"}
    )

    __tablename__ = "quotes"

class QuoteCreate(CustomerSnapshotCreate):
    """Schéma de création d'un devis brouillon."""
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    items: List[QuoteItemCreate]

class QuoteItemsUpdate(SQLModel):
    """Remplacement complet des lignes d'un devis brouillon."""
    items: List[QuoteItemCreate]

class QuoteRead(QuoteBase):
    """Schéma pour lire un devis depuis l'API."""
    id: int
    quote_number: str
    customer_address: Optional[Dict[str, Any]] = None
    status: QuoteStatus
    status_label: str
    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal
    converted_invoice_id: Optional[int] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    items: List[QuoteItemRead] = []

class PaginatedQuoteRead(SQLModel):
    """Schéma pour une réponse paginée de devis."""
    items: List[QuoteRead]
    total: int

class QuoteFilter(SQLModel):
    """Filtres de la liste des devis; status vaut 'all' ou un statut exact."""
    search_text: Optional[str] = None
    status: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
