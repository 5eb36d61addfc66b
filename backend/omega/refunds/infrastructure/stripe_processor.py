import logging
from typing import Any, Dict, List, Optional

import stripe

from omega.config import settings
from omega.core.exceptions import RemoteServiceException
from omega.refunds.domain.processor import AbstractPaymentProcessor, ProcessorCharge, ProcessorRefund
from omega.refunds.exceptions import RefundOutcomeUnknownException

logger = logging.getLogger(__name__)

# Motif standard transmis à Stripe, le motif saisi part dans les métadonnées
STRIPE_REFUND_REASON = "requested_by_customer"
REFUND_LIST_LIMIT = 100


def _metadata(value: Any) -> Dict[str, str]:
    if not value:
        return {}
    return {str(key): str(item) for key, item in value.items()}


def _charge_from_stripe(charge: Any) -> ProcessorCharge:
    return ProcessorCharge(
        id=charge.id,
        amount=int(getattr(charge, "amount", 0) or 0),
        amount_refunded=int(getattr(charge, "amount_refunded", 0) or 0),
        payment_intent=getattr(charge, "payment_intent", None),
    )


def _refund_from_stripe(refund: Any) -> ProcessorRefund:
    return ProcessorRefund(
        id=refund.id,
        amount=int(getattr(refund, "amount", 0) or 0),
        status=getattr(refund, "status", None) or "pending",
        charge_id=getattr(refund, "charge", None),
        payment_intent=getattr(refund, "payment_intent", None),
        metadata=_metadata(getattr(refund, "metadata", None)),
    )


def _remote_error(e: stripe.StripeError, context: str) -> RemoteServiceException:
    """Message Stripe transmis tel quel ('Your card was declined.', ...)."""
    message = e.user_message or str(e)
    logger.error(f"[Stripe] {context}: {message}")
    return RemoteServiceException(message, original_exception=e)


def build_stripe_client(secret_key: str, api_base: str, timeout: float) -> stripe.StripeClient:
    """Client Stripe asynchrone (httpx), sans nouvel essai automatique."""
    return stripe.StripeClient(
        secret_key,
        http_client=stripe.HTTPXClient(timeout=timeout),
        max_network_retries=0,
        base_addresses={"api": api_base},
    )


class StripePaymentProcessor(AbstractPaymentProcessor):
    """Appels à l'API Stripe avec une clé secrète côté serveur uniquement."""

    def __init__(self,
                 secret_key: str = settings.STRIPE_SECRET_KEY,
                 api_base: str = settings.STRIPE_API_BASE,
                 timeout: float = settings.STRIPE_TIMEOUT_SECONDS,
                 client: Optional[stripe.StripeClient] = None):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            if not self.secret_key:
                raise RemoteServiceException("Clé Stripe non configurée: remboursement impossible.")
            self._client = build_stripe_client(self.secret_key, self.api_base, self.timeout)
        return self._client

    async def retrieve_charge(self, charge_id: str) -> ProcessorCharge:
        try:
            charge = await self.client.charges.retrieve_async(charge_id)
        except stripe.APIConnectionError as e:
            logger.error(f"[Stripe] Transaction {charge_id} injoignable: {e}", exc_info=True)
            raise RemoteServiceException(f"Stripe est injoignable (transaction {charge_id}).", original_exception=e)
        except stripe.StripeError as e:
            raise _remote_error(e, f"Lecture de la transaction {charge_id}")
        return _charge_from_stripe(charge)

    async def retrieve_payment_intent_charge(self, payment_intent_id: str) -> ProcessorCharge:
        try:
            intent = await self.client.payment_intents.retrieve_async(
                payment_intent_id, params={"expand": ["latest_charge"]}
            )
        except stripe.APIConnectionError as e:
            logger.error(f"[Stripe] Paiement {payment_intent_id} injoignable: {e}", exc_info=True)
            raise RemoteServiceException(f"Stripe est injoignable (paiement {payment_intent_id}).", original_exception=e)
        except stripe.StripeError as e:
            raise _remote_error(e, f"Lecture du paiement {payment_intent_id}")
        latest_charge = getattr(intent, "latest_charge", None)
        if not latest_charge:
            raise RemoteServiceException(f"Aucune transaction associée au paiement {payment_intent_id}.")
        if isinstance(latest_charge, str):
            return await self.retrieve_charge(latest_charge)
        return _charge_from_stripe(latest_charge)

    async def create_refund(
        self,
        *,
        charge_id: str,
        amount_cents: int,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> ProcessorRefund:
        logger.info(f"[Stripe] Création remboursement {amount_cents} centimes sur {charge_id} (clé {idempotency_key})")
        try:
            refund = await self.client.refunds.create_async(
                params={
                    "charge": charge_id,
                    "amount": amount_cents,
                    "reason": STRIPE_REFUND_REASON,
                    "metadata": metadata,
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.APIConnectionError as e:
            # Délai dépassé ou connexion coupée: Stripe a pu créer le remboursement
            logger.error(f"[Stripe] Pas de réponse pour le remboursement sur {charge_id}", exc_info=True)
            raise RefundOutcomeUnknownException(charge_id, original_exception=e)
        except stripe.StripeError as e:
            raise _remote_error(e, f"Remboursement sur {charge_id}")
        return _refund_from_stripe(refund)

    async def list_refunds(self, *, charge_id: str) -> List[ProcessorRefund]:
        try:
            page = await self.client.refunds.list_async(params={"charge": charge_id, "limit": REFUND_LIST_LIMIT})
        except stripe.APIConnectionError as e:
            logger.error(f"[Stripe] Remboursements de {charge_id} injoignables: {e}", exc_info=True)
            raise RemoteServiceException(f"Stripe est injoignable (remboursements de {charge_id}).", original_exception=e)
        except stripe.StripeError as e:
            raise _remote_error(e, f"Liste des remboursements de {charge_id}")
        return [_refund_from_stripe(refund) for refund in page.data]
