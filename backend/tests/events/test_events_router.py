"""
Tests du flux WebSocket des événements de facturation (authentification avant acceptation).
"""
import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from omega.auth.security import create_access_token
from omega.events.bus import event_bus
from omega.events.router import router as events_router

EVENTS_URL = "/api/v1/events/"


@pytest.fixture
def events_client():
    app = FastAPI()
    app.include_router(events_router, prefix="/api/v1")
    with TestClient(app) as client:
        yield client

@pytest.fixture
def admin_token() -> str:
    return create_access_token(data={"sub": "admin-1", "email": "admin@omega-fx.fr", "role": "admin"})

@pytest.fixture
def user_token() -> str:
    return create_access_token(data={"sub": "user-1", "email": "client@example.com", "role": "authenticated"})


@pytest.mark.parametrize("url", [EVENTS_URL, EVENTS_URL + "?token=pas-un-jwt"])
def test_missing_or_invalid_token_is_refused(events_client, url):
    subscribers = event_bus.subscriber_count
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with events_client.websocket_connect(url):
            pass
    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION
    assert event_bus.subscriber_count == subscribers

def test_non_admin_is_refused(events_client, user_token):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with events_client.websocket_connect(f"{EVENTS_URL}?token={user_token}"):
            pass
    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

def test_admin_receives_events(events_client, admin_token):
    with events_client.websocket_connect(f"{EVENTS_URL}?token={admin_token}") as websocket:
        events_client.portal.call(event_bus.publish, "invoices", "update", 7)
        data = websocket.receive_json()
    assert (data["table"], data["action"], data["record_id"]) == ("invoices", "update", 7)

def test_admin_token_in_subprotocol(events_client, admin_token):
    with events_client.websocket_connect(EVENTS_URL, subprotocols=["bearer", admin_token]) as websocket:
        assert websocket.accepted_subprotocol == "bearer"
        events_client.portal.call(event_bus.publish, "refunds", "insert", 3)
        assert websocket.receive_json()["table"] == "refunds"
