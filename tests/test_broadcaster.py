from __future__ import annotations

import asyncio
import json

from murder_game.models.game import GameSession, KillEvent
from murder_game.models.player import Player
from murder_game.services.serializer import HOST_VIEWER, PUBLIC_VIEWER
from murder_game.services.ws_manager import GameBroadcaster, GameEvent


class FakeSocket:
    def __init__(self, delay: float = 0.0, fail: bool = False) -> None:
        self.delay = delay
        self.fail = fail
        self.sent = []
        self.accepted = False
        self.closed = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        if self.delay:
            await asyncio.sleep(self.delay)
        self.sent.append(json.loads(text))

    async def close(self):
        self.closed = True


def _session():
    return GameSession(
        game_code="G1",
        status="active",
        sequence=2,
        players=[
            Player(player_code="P_A", name="Alice", is_alive=False),
            Player(player_code="P_B", name="Bob", role="murderer"),
            Player(player_code="P_C", name="Carol"),
        ],
        kill_events=[
            KillEvent(event_id="K1", murderer_code="P_B", murderer_name="Bob", victim_code="P_A", victim_name="Alice")
        ],
    )


def _event():
    return GameEvent(
        type="player-killed",
        game_code="G1",
        sequence=2,
        payload={"victim": "Alice"},
        host_payload={"murderer": "Bob"},
        session=_session(),
    )


def test_fan_out_redacts_per_viewer():
    b = GameBroadcaster()
    host, carol, screen = FakeSocket(), FakeSocket(), FakeSocket()
    b.subscribe("G1", host, HOST_VIEWER)
    b.subscribe("G1", carol, "P_C")
    b.subscribe("G1", screen, PUBLIC_VIEWER)

    delivered = asyncio.run(b.fan_out(_event()))

    assert delivered == 3
    host_msg, carol_msg, screen_msg = host.sent[0], carol.sent[0], screen.sent[0]
    assert host_msg["type"] == "player-killed"
    assert host_msg["sequence"] == 2
    assert host_msg["payload"] == {"victim": "Alice", "murderer": "Bob"}
    assert carol_msg["payload"] == {"victim": "Alice"}
    assert screen_msg["payload"] == {"victim": "Alice"}

    assert {p["id"]: p.get("role") for p in host_msg["state"]["players"]}["P_B"] == "murderer"
    carol_roles = {p["id"]: p.get("role") for p in carol_msg["state"]["players"]}
    assert carol_roles == {"P_A": None, "P_B": None, "P_C": "civilian"}
    assert all("role" not in p for p in screen_msg["state"]["players"])


def test_other_games_are_not_notified():
    b = GameBroadcaster()
    other = FakeSocket()
    b.subscribe("G2", other, PUBLIC_VIEWER)

    assert asyncio.run(b.fan_out(_event())) == 0
    assert other.sent == []


def test_slow_or_broken_subscribers_are_dropped():
    b = GameBroadcaster(send_timeout=0.05)
    fast, slow, broken = FakeSocket(), FakeSocket(delay=1.0), FakeSocket(fail=True)
    for ws in (fast, slow, broken):
        b.subscribe("G1", ws, PUBLIC_VIEWER)

    delivered = asyncio.run(b.fan_out(_event()))

    assert delivered == 1
    assert len(fast.sent) == 1
    assert b.stats() == {"games": {"G1": 1}, "subscribers_total": 1}


def test_subscribe_moves_socket_between_games():
    b = GameBroadcaster()
    ws = FakeSocket()
    b.subscribe("G1", ws, PUBLIC_VIEWER)
    b.subscribe("G2", ws, "P_C")

    assert b.stats() == {"games": {"G2": 1}, "subscribers_total": 1}
    b.unsubscribe(ws)
    assert b.stats() == {"games": {}, "subscribers_total": 0}


def test_publish_outside_event_loop_delivers():
    b = GameBroadcaster()
    ws = FakeSocket()
    b.subscribe("G1", ws, PUBLIC_VIEWER)

    b.publish("G1", _event())

    assert [m["type"] for m in ws.sent] == ["player-killed"]


def test_publish_inside_event_loop_does_not_block():
    b = GameBroadcaster()
    ws = FakeSocket(delay=0.01)
    b.subscribe("G1", ws, PUBLIC_VIEWER)

    async def scenario():
        b.publish("G1", _event())
        assert ws.sent == []
        await asyncio.sleep(0.1)
        return ws.sent

    sent = asyncio.run(scenario())
    assert [m["type"] for m in sent] == ["player-killed"]


def test_close_all_disconnects_everyone():
    b = GameBroadcaster()
    sockets = [FakeSocket(), FakeSocket()]
    b.subscribe("G1", sockets[0], PUBLIC_VIEWER)
    b.subscribe("G2", sockets[1], HOST_VIEWER)

    stats = asyncio.run(b.close_all())

    assert stats["subscribers_total"] == 0
    assert all(ws.closed for ws in sockets)
