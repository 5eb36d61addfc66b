from typing import Optional, Dict, Any
from decimal import Decimal
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from omega.core.columns import datetime_column, json_column

# La ligne de paramètres est unique: upsert sur cet identifiant fixe
BILLING_SETTINGS_ID = 1

DEFAULT_LEGAL_MENTIONS = (
    "En cas de retard de paiement, une pénalité égale à trois fois le taux d'intérêt légal "
    "sera exigible, ainsi qu'une indemnité forfaitaire de 40 € pour frais de recouvrement "
    "(article L441-10 du Code de commerce). Pas d'escompte pour paiement anticipé."
)

class BankDetails(SQLModel):
    iban: Optional[str] = Field(default=None, max_length=34)
    bic: Optional[str] = Field(default=None, max_length=11)
    bank_name: Optional[str] = Field(default=None, max_length=255)

class BillingSettingsBase(SQLModel):
    """Informations de la société émettrice et préférences de facturation."""
    company_name: str = Field(default="OMEGA", max_length=255)
    company_legal_form: Optional[str] = Field(default="SARL", max_length=50)
    company_address: str = Field(default="LOT ARTISANAL COMMUNAL", max_length=255)
    company_postal_code: str = Field(default="34290", max_length=20)
    company_city: str = Field(default="MONTBLANC", max_length=100)
    company_country: str = Field(default="France", max_length=100)
    company_phone: Optional[str] = Field(default=None, max_length=50)
    company_email: Optional[str] = Field(default=None, max_length=255)
    company_website: Optional[str] = Field(default=None, max_length=255)
    siret: Optional[str] = Field(default=None, max_length=14)
    vat_number: Optional[str] = Field(default=None, max_length=20)
    invoice_prefix: str = Field(default="FAC", max_length=10)
    quote_prefix: str = Field(default="DEV", max_length=10)
    default_payment_terms: int = Field(default=30, ge=0)
    default_tax_rate: Decimal = Field(default=Decimal("20.00"), ge=0, le=100, max_digits=5, decimal_places=2)
    quote_validity_days: int = Field(default=30, ge=1)
    legal_mentions: Optional[str] = Field(default=DEFAULT_LEGAL_MENTIONS)

    model_config = ConfigDict(from_attributes=True)

class BillingSettings(BillingSettingsBase, table=True):
    """Modèle de table des paramètres de facturation (une seule ligne)."""
    id: int = Field(default=BILLING_SETTINGS_ID, primary_key=True)
    next_invoice_number: int = Field(default=1, ge=1)
    next_quote_number: int = Field(default=1, ge=1)
    bank_details: Optional[Dict[str, Any]] = Field(default=None, sa_column=json_column())
    updated_at: Optional[datetime] = Field(default=None, sa_column=datetime_column())

    __tablename__ = "billing_settings"

class BillingSettingsRead(BillingSettingsBase):
    id: int
    next_invoice_number: int
    next_quote_number: int
    bank_details: Optional[BankDetails] = None
    updated_at: Optional[datetime] = None

class BillingSettingsUpdate(SQLModel):
    """Schéma du formulaire de paramètres. Les compteurs n'y figurent pas."""
    company_name: Optional[str] = Field(default=None, max_length=255)
    company_legal_form: Optional[str] = Field(default=None, max_length=50)
    company_address: Optional[str] = Field(default=None, max_length=255)
    company_postal_code: Optional[str] = Field(default=None, max_length=20)
    company_city: Optional[str] = Field(default=None, max_length=100)
    company_country: Optional[str] = Field(default=None, max_length=100)
    company_phone: Optional[str] = Field(default=None, max_length=50)
    company_email: Optional[str] = Field(default=None, max_length=255)
    company_website: Optional[str] = Field(default=None, max_length=255)
    siret: Optional[str] = Field(default=None, max_length=14)
    vat_number: Optional[str] = Field(default=None, max_length=20)
    invoice_prefix: Optional[str] = Field(default=None, min_length=1, max_length=10)
    quote_prefix: Optional[str] = Field(default=None, min_length=1, max_length=10)
    default_payment_terms: Optional[int] = Field(default=None, ge=0)
    default_tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)
    quote_validity_days: Optional[int] = Field(default=None, ge=1)
    bank_details: Optional[BankDetails] = None
    legal_mentions: Optional[str] = None
