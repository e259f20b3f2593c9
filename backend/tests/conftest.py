"""Shared test fixtures and configuration for backend tests."""
import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from signaling.config import AppSettings
from signaling.main import create_app
from signaling.relay.manager import RelayManager


ROOM_ID = "6f1c2a3e-9b7d-4c5e-8a1f-2b3c4d5e6f70"
OTHER_ROOM_ID = "0a9b8c7d-6e5f-4a3b-9c2d-1e0f9a8b7c6d"


class FakeWebSocket:
    """Records frames sent by the relay; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[dict] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(data))


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings()


@pytest.fixture
def relay(settings) -> RelayManager:
    """A fresh RelayManager with no peers."""
    return RelayManager(settings)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """TestClient sharing one event loop across all WebSocket sessions."""
    with TestClient(app) as test_client:
        yield test_client


def connect(client: TestClient, uid: Optional[str] = None):
    """Open a relay WebSocket, optionally presenting a ``uid`` cookie."""
    headers = {"cookie": f"uid={uid}"} if uid else {}
    return client.websocket_connect("/", headers=headers)


def receive_init(ws) -> str:
    """Helper to receive the init frame and return the assigned peer id."""
    init = ws.receive_json()
    assert init["type"] == "init"
    return init["yourPeerId"]
