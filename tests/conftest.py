from __future__ import annotations

import random
from typing import List

import pytest

from murder_game.config.settings import Settings
from murder_game.models.requests import StartGameRequest
from murder_game.services.game_engine import GameEngine
from murder_game.services.session_store import SessionStore
from murder_game.services.ws_manager import GameBroadcaster

HOST_TOKEN = "test-host-token"


class FakeClock:
    """Horloge manuelle injectée dans le moteur (cooldowns déterministes)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedDraw(random.Random):
    """Tirage des meurtriers imposé : les indices donnés, dans l'ordre."""

    def __init__(self, *indices: int) -> None:
        super().__init__(0)
        self.indices = list(indices)

    def sample(self, population, k, **kwargs):
        return self.indices[:k]


class RecordingBroadcaster(GameBroadcaster):
    """Garde les événements publiés au lieu de les diffuser."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List = []

    def publish(self, game_code, event) -> None:
        self.events.append(event)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATA_DIR=str(tmp_path / "data"),
        DEBUG=True,
        HOST_TOKEN=HOST_TOKEN,
        HOST_USER="host",
        HOST_PASSWORD="secret",
        BASE_URL="http://party.test/",
        DEFAULT_COOLDOWN_MINUTES=10,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def store(settings) -> SessionStore:
    return SessionStore(settings.DATA_DIR)


@pytest.fixture
def engine(store, broadcaster, settings, clock) -> GameEngine:
    # Bob (index 1) est le meurtrier quand un seul est tiré
    return GameEngine(store, broadcaster, settings, rng=FixedDraw(1, 3), clock=clock)


def start_game(engine: GameEngine, names, game_code: str = "TEST", **overrides):
    """Lance une partie et renvoie (session, {nom: player_code})."""
    body = {"playerNames": list(names), "gameCode": game_code}
    if overrides:
        body["settings"] = overrides
    engine.start_game(StartGameRequest.model_validate(body))
    session = engine.store.snapshot(game_code)
    return session, {p.name: p.player_code for p in session.players}


def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {HOST_TOKEN}"}
