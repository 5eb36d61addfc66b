"""
Canal de notification des changements sur les tables de facturation.

Les événements servent uniquement à rafraîchir les écrans d'administration:
aucune opération ne doit s'appuyer dessus pour décider si elle est sûre.
"""
import asyncio
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Set

from omega.core.utils import utcnow

logger = logging.getLogger(__name__)

BILLING_TABLES = ("quotes", "invoices", "payment_records", "refunds", "billing_settings")


@dataclass
class ChangeEvent:
    table: str
    action: str  # insert | update
    record_id: Optional[int]
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


class BillingEventBus:
    """Publish/subscribe en mémoire, une file bornée par abonné."""

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        logger.debug(f"[EventBus] Nouvel abonné ({len(self._subscribers)} au total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, table: str, action: str, record_id: Optional[int] = None) -> ChangeEvent:
        if table not in BILLING_TABLES:
            raise ValueError(f"Table inconnue pour la notification: {table}")
        event = ChangeEvent(table=table, action=action, record_id=record_id)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Abonné trop lent: l'événement est perdu, le prochain rafraîchissement rattrapera
                logger.warning(f"[EventBus] File pleine, événement {table}/{action} ignoré pour un abonné")
        return event


event_bus = BillingEventBus()

def get_event_bus() -> BillingEventBus:
    return event_bus
