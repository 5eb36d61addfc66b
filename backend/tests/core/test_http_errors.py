import pytest
from fastapi import status

from omega.core.exceptions import (
    BillingDomainException,
    ElementNotFoundException,
    NoChargeReferenceException,
    NotFoundException,
    RemoteServiceException,
    ValidationException,
)
from omega.core.http_errors import http_exception_from_domain
from omega.invoices.exceptions import InvalidInvoiceStatusException, InvoiceNotFoundException
from omega.orders.exceptions import OrderNotFoundException
from omega.quotes.exceptions import QuoteNotFoundException
from omega.refunds.exceptions import RefundAmountTooHighException, RefundOutcomeUnknownException


class MissingAttachment(NotFoundException):
    pass


@pytest.mark.parametrize("exc, expected", [
    (InvoiceNotFoundException(4), status.HTTP_404_NOT_FOUND),
    (QuoteNotFoundException(4), status.HTTP_404_NOT_FOUND),
    (OrderNotFoundException(4), status.HTTP_404_NOT_FOUND),
    (ElementNotFoundException("invoice:4"), status.HTTP_404_NOT_FOUND),
    (MissingAttachment("Pièce jointe absente"), status.HTTP_404_NOT_FOUND),
    (InvalidInvoiceStatusException(4, "paid", "annulation"), status.HTTP_409_CONFLICT),
    (ValidationException("Montant invalide"), status.HTTP_400_BAD_REQUEST),
    (RefundAmountTooHighException(10), status.HTTP_400_BAD_REQUEST),
    (NoChargeReferenceException(4), status.HTTP_400_BAD_REQUEST),
    (RefundOutcomeUnknownException("ch_abc"), status.HTTP_502_BAD_GATEWAY),
    (RemoteServiceException("Your card was declined."), status.HTTP_502_BAD_GATEWAY),
    (BillingDomainException("panne"), status.HTTP_500_INTERNAL_SERVER_ERROR),
])
def test_domain_errors_map_to_status(exc, expected):
    assert http_exception_from_domain(exc, "test").status_code == expected

def test_not_found_name_alone_is_not_enough():
    class LegacyNotFoundException(BillingDomainException):
        pass

    response = http_exception_from_domain(LegacyNotFoundException("ancien"), "test")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
