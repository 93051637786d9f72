import random

import pytest

from murder_game.models.game import GameSettings
from murder_game.models.requests import RosterEntry
from murder_game.services.errors import ValidationError
from murder_game.services.roles_engine import (
    CODE_ALPHABET,
    assign_roles,
    build_players,
    generate_code,
    validate_roster,
)


def _roster(*names):
    return [RosterEntry(name=n) for n in names]


@pytest.mark.parametrize("seed", range(10))
def test_assign_roles_picks_exactly_the_configured_murderers(seed):
    players = build_players(_roster("A", "B", "C", "D", "E", "F"))

    assign_roles(players, 2, random.Random(seed))

    roles = [p.role for p in players]
    assert roles.count("murderer") == 2
    assert roles.count("civilian") == 4
    assert [p.name for p in players] == ["A", "B", "C", "D", "E", "F"]


def test_assign_roles_rejects_more_murderers_than_players():
    players = build_players(_roster("A", "B"))
    with pytest.raises(ValidationError):
        assign_roles(players, 3)


def test_build_players_gives_unique_codes():
    players = build_players(_roster(*[f"P{i}" for i in range(20)]))

    codes = {p.player_code for p in players}
    assert len(codes) == 20
    assert all(p.is_alive and p.kills == 0 for p in players)


def test_generate_code_uses_unambiguous_alphabet():
    code = generate_code("PLAYER", 8)
    prefix, token = code.split("_")
    assert prefix == "PLAYER"
    assert len(token) == 8
    assert set(token) <= set(CODE_ALPHABET)


def test_validate_roster_min_players():
    with pytest.raises(ValidationError, match="At least 3 players"):
        validate_roster(_roster("A", "B"), GameSettings())


def test_validate_roster_max_players():
    with pytest.raises(ValidationError, match="Maximum 3"):
        validate_roster(_roster("A", "B", "C", "D"), GameSettings(max_players=3))


def test_validate_roster_duplicate_names_case_insensitive():
    with pytest.raises(ValidationError, match="unique"):
        validate_roster(_roster("Alice", "Bob", "alice"), GameSettings())


def test_validate_roster_needs_a_civilian():
    with pytest.raises(ValidationError, match="At least one civilian"):
        validate_roster(_roster("A", "B", "C"), GameSettings(murderer_count=3))
