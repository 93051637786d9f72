"""Règles de kill : ordre de validation, cooldown, fin de partie, événements publiés."""
from __future__ import annotations

import threading

import pytest

from conftest import start_game
from murder_game.models.requests import StartGameRequest
from murder_game.services.errors import ConflictError, ValidationError


def test_start_game_assigns_exactly_one_murderer(engine, broadcaster):
    session, codes = start_game(engine, ["Alice", "Bob", "Carol"], murdererCount=1)

    roles = {p.name: p.role for p in session.players}
    assert list(roles.values()).count("murderer") == 1
    assert roles["Bob"] == "murderer"
    assert session.status == "active"
    assert [e.type for e in broadcaster.events] == ["game-started"]


def test_start_game_returns_host_view_and_links(engine):
    created = engine.start_game(
        StartGameRequest.model_validate(
            {
                "players": [{"name": "Alice"}, {"name": "Bob", "username": "bobby"}, {"name": "Carol"}],
                "hostDisplayName": "Santa",
                "gameCode": "XMAS",
            }
        )
    )

    game = created["game"]
    assert game["viewer"] == "host"
    assert game["hostDisplayName"] == "Santa"
    assert all("role" in p for p in game["players"])
    for player in game["players"]:
        assert created["playerLinks"][player["id"]] == f"http://party.test/game/play/{player['id']}"


def test_start_game_default_code(engine, settings):
    engine.start_game(StartGameRequest.model_validate({"playerNames": ["A", "B", "C"]}))
    assert engine.store.peek(settings.DEFAULT_GAME_CODE) is not None


def test_start_game_validation_errors(engine):
    with pytest.raises(ValidationError):
        start_game(engine, ["Alice", "Bob"])
    with pytest.raises(ValidationError):
        engine.start_game(StartGameRequest.model_validate({"gameCode": "X"}))
    with pytest.raises(ValidationError):
        engine.start_game(StartGameRequest.model_validate({"players": [{"name": " "}, {"name": "B"}, {"name": "C"}]}))


def test_start_game_conflict_on_active_code(engine):
    start_game(engine, ["Alice", "Bob", "Carol"])
    with pytest.raises(ConflictError):
        start_game(engine, ["Dan", "Eve", "Fay"])


def test_scenario_murderer_reaches_parity_and_wins(engine, broadcaster):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])

    result = engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"])

    assert result.success is True
    session = engine.store.snapshot("TEST")
    assert session.player(codes["Alice"]).is_alive is False
    assert session.player(codes["Alice"]).eliminated_by == "kill"
    assert session.player(codes["Bob"]).kills == 1
    assert session.status == "ended"
    assert session.winner == "murderers"
    assert session.ended_at is not None
    assert result.state_delta["winner"] == "murderers"
    assert result.state_delta["sequence"] == session.sequence

    event = broadcaster.events[-1]
    assert event.type == "game-ended"
    assert event.payload["winner"] == "murderers"
    assert "murderer" not in event.payload
    assert event.host_payload["murderer"] == "Bob"

    later = engine.record_kill_attempt("TEST", codes["Bob"], codes["Carol"])
    assert later.success is False
    assert later.reason == "InvalidState"


def test_scenario_civilian_cannot_kill(engine, broadcaster):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])
    before = engine.store.snapshot("TEST")

    result = engine.record_kill_attempt("TEST", codes["Alice"], codes["Bob"])

    assert result.success is False
    assert result.reason == "Unauthorized"
    after = engine.store.snapshot("TEST")
    assert after.sequence == before.sequence
    assert all(p.is_alive for p in after.players)
    assert [e.type for e in broadcaster.events] == ["game-started"]


def test_self_kill_is_invalid_target(engine):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])
    result = engine.record_kill_attempt("TEST", codes["Bob"], codes["Bob"])
    assert result.reason == "InvalidTarget"


def test_unknown_victim_is_invalid_target(engine):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])
    result = engine.record_kill_attempt("TEST", codes["Bob"], "PLAYER_NOBODY")
    assert result.reason == "InvalidTarget"


def test_unknown_game_is_invalid_state(engine):
    result = engine.record_kill_attempt("MISSING", "A", "B")
    assert result.success is False
    assert result.reason == "InvalidState"


def test_dead_murderer_is_unauthorized(engine):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol", "Dan", "Eve"], murdererCount=2)
    # Bob et Dan sont meurtriers ; Bob est éliminé par vote
    engine.eliminate_by_vote("TEST", codes["Bob"])

    result = engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"])
    assert result.reason == "Unauthorized"


def test_dead_victim_is_invalid_target(engine, clock):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol", "Dan", "Eve"], cooldownMinutes=0)
    assert engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"]).success

    result = engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"])
    assert result.reason == "InvalidTarget"


def test_cooldown_blocks_then_allows(engine, clock):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol", "Dan", "Eve"], cooldownMinutes=10)
    assert engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"]).success

    clock.advance(120)
    blocked = engine.record_kill_attempt("TEST", codes["Bob"], codes["Carol"])
    assert blocked.success is False
    assert blocked.reason == "Cooldown"
    assert blocked.cooldown_remaining == 480

    status = engine.kill_status("TEST", codes["Bob"])
    assert status["canKill"] is False
    assert {t["name"] for t in status["availableTargets"]} == {"Carol", "Dan", "Eve"}

    clock.advance(480)
    allowed = engine.record_kill_attempt("TEST", codes["Bob"], codes["Carol"])
    assert allowed.success is True
    assert engine.store.snapshot("TEST").status == "active"


def test_rejections_publish_nothing(engine, broadcaster):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])
    engine.record_kill_attempt("TEST", codes["Alice"], codes["Bob"])
    engine.record_kill_attempt("TEST", codes["Bob"], codes["Bob"])
    engine.record_kill_attempt("TEST", codes["Bob"], "NOPE")

    assert len(broadcaster.events) == 1


def test_murderer_count_never_changes(engine, clock):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol", "Dan", "Eve", "Fay"], murdererCount=2, cooldownMinutes=0)
    engine.record_kill_attempt("TEST", codes["Bob"], codes["Alice"])
    engine.record_kill_attempt("TEST", codes["Dan"], codes["Carol"])

    session = engine.store.snapshot("TEST")
    assert sum(1 for p in session.players if p.role == "murderer") == 2


def test_reset_game_publishes_and_forgets(engine, broadcaster):
    start_game(engine, ["Alice", "Bob", "Carol"])
    engine.reset_game("TEST")
    engine.reset_game("TEST")

    assert engine.store.peek("TEST") is None
    assert [e.type for e in broadcaster.events] == ["game-started", "game-reset"]


def test_get_state_views(engine):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol"])

    host = engine.get_state("TEST", is_host=True)
    assert host["viewer"] == "host"

    player = engine.get_state(None, codes["Carol"])
    assert player["viewer"] == "player"
    assert player["gameCode"] == "TEST"

    public = engine.get_state("TEST")
    assert public["viewer"] == "public"

    host_with_player = engine.get_state("TEST", codes["Bob"], is_host=True)
    assert host_with_player["viewer"] == "host"
    assert host_with_player["playerData"]["player"]["id"] == codes["Bob"]


def test_start_game_rejects_a_roster_already_at_parity(engine):
    with pytest.raises(ValidationError, match="end immediately"):
        start_game(engine, ["Alice", "Bob", "Carol", "Dan"], murdererCount=2)


def test_concurrent_kills_on_one_victim_commit_once(engine, broadcaster):
    _, codes = start_game(engine, ["Alice", "Bob", "Carol", "Dan", "Eve", "Fay"], murdererCount=2, cooldownMinutes=0)
    murderers = [codes["Bob"], codes["Dan"]]
    barrier = threading.Barrier(8)
    results = []

    def attempt(murderer):
        barrier.wait()
        results.append(engine.record_kill_attempt("TEST", murderer, codes["Alice"]))

    threads = [threading.Thread(target=attempt, args=(murderers[i % 2],)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == 8
    assert sum(1 for r in results if r.success) == 1
    assert {r.reason for r in results if not r.success} == {"InvalidTarget"}
    session = engine.store.snapshot("TEST")
    assert len(session.kill_events) == 1
    assert session.player(codes["Alice"]).is_alive is False
    assert [e.type for e in broadcaster.events] == ["game-started", "player-killed"]
