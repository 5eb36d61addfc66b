"""Point d'import unique des tables SQLModel (création des tables, tests)."""
from omega.billing_settings.models import BillingSettings
from omega.invoices.models import Invoice, InvoiceItem, PaymentRecord
from omega.orders.models import Order, OrderItem
from omega.quotes.models import Quote, QuoteItem
from omega.refunds.models import Refund

__all__ = [
    "BillingSettings",
    "Invoice",
    "InvoiceItem",
    "PaymentRecord",
    "Order",
    "OrderItem",
    "Quote",
    "QuoteItem",
    "Refund",
]
