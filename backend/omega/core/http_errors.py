"""Traduction des exceptions du domaine facturation en réponses HTTP."""
import logging

from fastapi import HTTPException, status

from omega.core.exceptions import (
    BillingDomainException,
    InvalidStateException,
    NoChargeReferenceException,
    NotFoundException,
    NotRefundableException,
    RemoteServiceException,
    ValidationException,
)

logger = logging.getLogger(__name__)


def http_exception_from_domain(exc: BillingDomainException, context: str) -> HTTPException:
    if isinstance(exc, NotFoundException):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, InvalidStateException):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    if isinstance(exc, (ValidationException, NotRefundableException, NoChargeReferenceException)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, RemoteServiceException):
        logger.error(f"Erreur distante ({context}): {exc}", exc_info=True)
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
    logger.error(f"Erreur domaine ({context}): {exc}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Erreur interne {context}.")
