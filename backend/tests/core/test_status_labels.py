import pytest

from omega.core.utils import require_labels
from omega.invoices.config import PAYMENT_METHOD_DISPLAY, invoice_status_label
from omega.invoices.models import InvoiceStatus, PaymentMethod
from omega.quotes.config import quote_status_label
from omega.quotes.models import QuoteStatus


def test_every_status_has_a_label():
    assert all(invoice_status_label(s) for s in InvoiceStatus)
    assert all(quote_status_label(s) for s in QuoteStatus)
    assert set(PAYMENT_METHOD_DISPLAY) == set(PaymentMethod)

def test_missing_label_is_an_error():
    labels = {QuoteStatus.DRAFT: "Brouillon"}
    with pytest.raises(RuntimeError) as exc_info:
        require_labels(labels, QuoteStatus, "statut de devis")
    assert "sent" in str(exc_info.value)
    assert "draft" not in str(exc_info.value)

def test_complete_labels_pass():
    require_labels({status: status.value for status in InvoiceStatus}, InvoiceStatus, "statut de facture")
