import asyncio
import json

from backend.websocket_manager import WebSocketManager


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(text)

    async def close(self):
        self.closed = True


def test_broadcast_drops_failed_clients():
    manager = WebSocketManager()
    good, bad = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        await manager.connect(good)
        await manager.connect(bad)
        await manager.notify_topology_updated("diagram-1")

    asyncio.run(scenario())

    assert good.accepted
    assert json.loads(good.sent[0]) == {"type": "topology_updated", "topology_id": "diagram-1"}
    assert manager.connection_count == 1


def test_ping_and_unknown_messages():
    manager = WebSocketManager()
    socket = FakeSocket()

    async def scenario():
        await manager.handle_message(socket, "ping")
        await manager.handle_message(socket, "hello")

    asyncio.run(scenario())
    assert socket.sent == ['{"type": "pong"}']


def test_close_all_empties_the_client_set():
    manager = WebSocketManager()
    socket = FakeSocket()

    async def scenario():
        await manager.connect(socket)
        await manager.close_all()

    asyncio.run(scenario())
    assert socket.closed
    assert manager.connection_count == 0
