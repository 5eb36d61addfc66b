from enum import Enum
from typing import Optional, List, Dict, Any
from decimal import Decimal
from datetime import datetime, date

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field, Relationship

from omega.core.columns import datetime_column, enum_column, json_column
from omega.core.schemas import CustomerSnapshotBase, CustomerSnapshotCreate, DocumentLineBase, DocumentLineCreate, DocumentLineRead
from omega.refunds.models import Refund, RefundRead


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

class PaymentMethod(str, Enum):
    VIREMENT = "virement"
    CHEQUE = "cheque"
    ESPECES = "especes"
    CARTE = "carte"
    PRELEVEMENT = "prelevement"
    REFUND = "refund"

class PaymentStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"

# --- Lignes de facture ---

class InvoiceItem(DocumentLineBase, table=True):
    """Modèle de table pour une ligne de facture."""
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", index=True)
    product_id: Optional[int] = Field(default=None)
    total_ht: Decimal = Field(..., max_digits=12, decimal_places=2)
    total_ttc: Decimal = Field(..., max_digits=12, decimal_places=2)
    sort_order: int = Field(default=0)

    invoice: "Invoice" = Relationship(back_populates="items")

    __tablename__ = "invoice_items"

class InvoiceItemCreate(DocumentLineCreate):
    product_id: Optional[int] = None

class InvoiceItemRead(DocumentLineRead):
    invoice_id: int
    product_id: Optional[int] = None

# --- Enregistrements de paiement (journal en ajout seul) ---

class PaymentRecord(SQLModel, table=True):
    """Mouvement d'argent rattaché à une facture et/ou une commande. Jamais modifié."""
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: Optional[int] = Field(default=None, foreign_key="invoices.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id", index=True)
    refund_id: Optional[int] = Field(default=None, foreign_key="refunds.id", index=True)
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod = Field(sa_column=enum_column(PaymentMethod))
    status: PaymentStatus = Field(default=PaymentStatus.SUCCEEDED, sa_column=enum_column(PaymentStatus))
    reference: Optional[str] = Field(default=None, max_length=255)
    stripe_charge_id: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None)
    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    invoice: Optional["Invoice"] = Relationship(back_populates="payment_records")

    __tablename__ = "payment_records"

class PaymentRecordRead(SQLModel):
    id: int
    invoice_id: Optional[int] = None
    order_id: Optional[int] = None
    refund_id: Optional[int] = None
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    status: PaymentStatus
    reference: Optional[str] = None
    stripe_charge_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ManualPaymentCreate(SQLModel):
    """Paiement reçu hors ligne (virement, chèque, espèces...)."""
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.VIREMENT
    reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None

# --- Factures ---

class InvoiceBase(CustomerSnapshotBase):
    due_date: Optional[date] = Field(default=None)
    payment_terms: int = Field(default=30, ge=0)
    notes: Optional[str] = Field(default=None)
    legal_mentions: Optional[str] = Field(default=None)

class Invoice(InvoiceBase, table=True):
    """Modèle de table pour une facture."""
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(..., max_length=50, unique=True, index=True)
    quote_id: Optional[int] = Field(default=None, foreign_key="quotes.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id", unique=True, index=True)
    customer_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=json_column())
    billing_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=json_column())
    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, sa_column=enum_column(InvoiceStatus))
    subtotal_ht: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_ttc: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    amount_paid: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: Optional[datetime] = Field(default=None, sa_column=datetime_column(index=True))
    updated_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())
    sent_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())
    paid_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    # Relations
    items: List["InvoiceItem"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"order_by": "InvoiceItem.sort_order", "cascade": "all, delete-orphan"}
    )
    payment_records: List["PaymentRecord"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"order_by": "PaymentRecord.id"}
    )
    refunds: List[Refund] = Relationship(
        sa_relationship_kwargs={"order_by": "Refund.id", "viewonly": True}
    )

    __tablename__ = "invoices"

class InvoiceCreate(CustomerSnapshotCreate):
    """Schéma de création manuelle d'une facture (brouillon)."""
    billing_address: Optional[Dict[str, Any]] = None
    due_date: Optional[date] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    legal_mentions: Optional[str] = None
    items: List[InvoiceItemCreate]

class PaymentStatusRead(SQLModel):
    """Vue dérivée de l'état de paiement (voir invoices.ledger)."""
    amount_paid: Decimal
    total_refunded: Decimal
    net_to_pay: Decimal
    refundable_amount: Decimal
    is_fully_paid: bool
    is_refunded: bool
    has_partial_refund: bool

class InvoiceSummaryRead(InvoiceBase):
    """Ligne de la liste des factures."""
    id: int
    invoice_number: str
    quote_id: Optional[int] = None
    order_id: Optional[int] = None
    status: InvoiceStatus
    status_label: str
    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal
    amount_paid: Decimal
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_status: PaymentStatusRead

class InvoiceRead(InvoiceSummaryRead):
    customer_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    items: List[InvoiceItemRead] = []
    payment_records: List[PaymentRecordRead] = []
    refunds: List[RefundRead] = []

class PaginatedInvoiceRead(SQLModel):
    """Schéma pour une réponse paginée de factures."""
    items: List[InvoiceSummaryRead]
    total: int

class InvoiceFilter(SQLModel):
    """Filtres de la liste des factures; status vaut 'all' ou un statut exact."""
    search_text: Optional[str] = None
    status: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
