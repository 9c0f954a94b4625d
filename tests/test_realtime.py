import asyncio

from lostlink.services.realtime import ConnectionManager


class FakeSocket:
    def __init__(self, broken: bool = False):
        self.broken = broken
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("connection reset")
        self.sent.append(data)


def test_publish_reaches_every_socket_in_room() -> None:
    manager = ConnectionManager()
    phone, laptop, other = FakeSocket(), FakeSocket(), FakeSocket()

    async def scenario():
        await manager.connect("alice", phone)
        await manager.connect("alice", laptop)
        await manager.connect("bob", other)
        await manager.publish("alice", "match_notification", {"id": "n1"})

    asyncio.run(scenario())

    assert phone.accepted and laptop.accepted
    assert phone.sent == laptop.sent == [{"event": "match_notification", "data": {"id": "n1"}}]
    assert other.sent == []


def test_broken_socket_is_dropped() -> None:
    manager = ConnectionManager()
    healthy, broken = FakeSocket(), FakeSocket(broken=True)

    async def scenario():
        await manager.connect("alice", healthy)
        await manager.connect("alice", broken)
        await manager.publish("alice", "new_message", {"content": "hi"})

    asyncio.run(scenario())

    assert healthy.sent == [{"event": "new_message", "data": {"content": "hi"}}]
    assert manager.rooms["alice"] == {healthy}


def test_disconnect_empties_room() -> None:
    manager = ConnectionManager()
    socket = FakeSocket()

    asyncio.run(manager.connect("alice", socket))
    assert manager.is_online("alice")

    manager.disconnect("alice", socket)
    assert not manager.is_online("alice")
    assert "alice" not in manager.rooms

    # publishing to an empty room is a no-op
    asyncio.run(manager.publish("alice", "new_message", {}))
