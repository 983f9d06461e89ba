"""Shared fixtures for the chat relay tests."""

import json
from typing import Any, Dict, List, Optional

import anyio
import pytest

from chatrelay import ConnectionHub, SessionCoordinator


class FakeWebSocket:
    """Records frames written by the hub."""

    def __init__(self) -> None:
        self.frames: List[Dict[str, Any]] = []
        self.close_code: Optional[int] = None

    async def send_text(self, text: str) -> None:
        if self.close_code is not None:
            raise RuntimeError("socket closed")
        self.frames.append(json.loads(text))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code

    def events(self, name: str) -> List[Any]:
        return [frame["data"] for frame in self.frames if frame["event"] == name]

    def names(self) -> List[str]:
        return [frame["event"] for frame in self.frames]

    def last(self, name: str) -> Any:
        matching = self.events(name)
        assert matching, f"no {name} event in {self.names()}"
        return matching[-1]

    def clear(self) -> None:
        self.frames.clear()


async def resolve_stub(address: str, fallback: str) -> str:
    return f"host-{address}"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def hub() -> ConnectionHub:
    return ConnectionHub()


@pytest.fixture
def coordinator(hub: ConnectionHub) -> SessionCoordinator:
    return SessionCoordinator(transport=hub, resolver=resolve_stub, hostname_lookup=True)


@pytest.fixture
def connect(coordinator: SessionCoordinator):
    """Open a session for an identity and return (session, socket)."""

    async def _connect(identity: str):
        websocket = FakeWebSocket()
        session = await coordinator.connect(websocket, identity, identity)
        # Let the detached host lookup deliver before the test inspects frames
        await anyio.sleep(0.01)
        return session, websocket

    return _connect
