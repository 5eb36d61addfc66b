"""Commandes de la boutique, lues par la facturation (jamais modifiées ici)."""
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal

from sqlmodel import SQLModel, Field, Relationship

from omega.core.columns import datetime_column, json_column

# Clients professionnels: prix saisis HT; particuliers: prix TTC
USER_TYPE_PRO = "pro"

class OrderItem(SQLModel, table=True):
    """Ligne de commande, prix figé au moment de l'achat."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: Optional[int] = Field(default=None, index=True)
    product_name: str = Field(default="Produit", max_length=255)
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)

    order: "Order" = Relationship(back_populates="items")

    __tablename__ = "order_items"

class Order(SQLModel, table=True):
    """Commande payée en ligne (paiement par carte via Stripe)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, max_length=64, index=True)
    user_type: str = Field(default="particulier", max_length=20)
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    shipping_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=json_column())
    status: str = Field(default="pending", max_length=50, index=True)
    sub_total: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    stripe_payment_intent_id: Optional[str] = Field(default=None, max_length=255, index=True)
    created_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"}
    )

    __tablename__ = "orders"
