import asyncio
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from omega.auth.security import decode_access_token, is_admin_payload
from omega.events.bus import event_bus

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/events",
    tags=["Events"]
)

# Navigateurs: new WebSocket(url, ["bearer", jeton])
BEARER_SUBPROTOCOL = "bearer"


def websocket_token(websocket: WebSocket) -> Tuple[Optional[str], Optional[str]]:
    """Jeton de session du client: paramètre ``token`` ou sous-protocole ``bearer, <jeton>``.

    Retourne aussi le sous-protocole à renvoyer lors de l'acceptation.
    """
    token = websocket.query_params.get("token")
    if token:
        return token, None
    header = websocket.headers.get("sec-websocket-protocol", "")
    protocols = [p.strip() for p in header.split(",") if p.strip()]
    if len(protocols) == 2 and protocols[0].lower() == BEARER_SUBPROTOCOL:
        return protocols[1], protocols[0]
    return None, None


@router.websocket("/")
async def billing_events(websocket: WebSocket):
    """Diffuse les changements de facturation aux administrateurs (indicatif uniquement).

    L'authentification a lieu avant l'acceptation: jeton absent, invalide ou
    sans rôle admin -> fermeture 1008.
    """
    token, subprotocol = websocket_token(websocket)
    payload = decode_access_token(token) if token else None
    if payload is None or not is_admin_payload(payload):
        logger.warning("[EventBus] Connexion WebSocket refusée: jeton absent, invalide ou non admin")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    queue = event_bus.subscribe()
    forwarder = None
    try:
        await websocket.accept(subprotocol=subprotocol)
        logger.debug(f"[EventBus] Client WebSocket connecté ({payload['sub']})")
        forwarder = asyncio.create_task(forward_events(websocket, queue))
        # Les messages du client sont ignorés; la lecture détecte la déconnexion
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("[EventBus] Client WebSocket déconnecté")
    finally:
        if forwarder is not None:
            forwarder.cancel()
        event_bus.unsubscribe(queue)


async def forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())
