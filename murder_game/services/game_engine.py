"""
Service: game_engine.py
Rôle:
- Orchestrer le cycle de vie d'une partie : création (rôles tirés au sort),
  enregistrement des kills, votes d'élimination, lecture caviardée, reset.
- Publier exactement UN événement temps réel par mutation validée
  (aucun événement sur un refus).

Un seul `GameEngine` par process, construit par `create_app()` et transmis aux
routes via `app.state.engine` (pas de singleton global).

API interne exposée aux routes:
- ENGINE.start_game(request, base_url)
- ENGINE.record_kill_attempt(game_code, murderer_code, victim_code)
- ENGINE.kill_status(game_code, player_code)
- ENGINE.get_state(game_code, player_code, is_host) / ENGINE.public_state(game_code)
- ENGINE.cast_vote(...), ENGINE.vote_results(...), ENGINE.eliminate_by_vote(...), ENGINE.reset_votes(...)
- ENGINE.reset_game(game_code)

Ordre de validation d'un kill (le premier échec gagne):
1. partie existante et active            -> InvalidState
2. meurtrier vivant avec le rôle murderer -> Unauthorized
3. cible vivante et différente du tueur   -> InvalidTarget
4. cooldown écoulé                        -> Cooldown
"""
from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, Optional, Tuple

from murder_game.config.settings import Settings
from murder_game.models.game import GameSession, GameSettings, KillEvent, STATUS_ENDED
from murder_game.models.player import Player
from murder_game.models.requests import StartGameRequest
from murder_game.models.results import (
    COOLDOWN,
    INVALID_STATE,
    INVALID_TARGET,
    NO_VOTES,
    UNAUTHORIZED,
    ActionResult,
    KillAttemptResult,
)
from murder_game.services import vote_service
from murder_game.services.errors import NotFoundError, ValidationError
from murder_game.services.game_rules import cooldown_status, evaluate_winner
from murder_game.services.roles_engine import assign_roles, build_players, generate_code, validate_roster
from murder_game.services.serializer import HOST_VIEWER, PUBLIC_VIEWER, player_data, serialize
from murder_game.services.session_store import SessionStore, build_player_links
from murder_game.services.ws_manager import GameBroadcaster, GameEvent

logger = logging.getLogger(__name__)


class GameEngine:
    def __init__(
        self,
        store: SessionStore,
        broadcaster: GameBroadcaster,
        settings: Settings,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.settings = settings
        self.rng = rng
        self.clock = clock

    # -----------------------------
    # Helpers
    # -----------------------------
    def default_game_settings(self) -> GameSettings:
        s = self.settings
        return GameSettings(
            murderer_count=s.DEFAULT_MURDERER_COUNT,
            cooldown_minutes=s.DEFAULT_COOLDOWN_MINUTES,
            max_players=s.DEFAULT_MAX_PLAYERS,
            min_players=s.DEFAULT_MIN_PLAYERS,
        )

    def _resolve_code(self, game_code: Optional[str]) -> str:
        return (game_code or "").strip() or self.settings.DEFAULT_GAME_CODE

    def _publish(
        self,
        session: GameSession,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        host_payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.broadcaster.publish(
            session.game_code,
            GameEvent(
                type=event_type,
                game_code=session.game_code,
                sequence=session.sequence,
                payload=payload or {},
                host_payload=host_payload or {},
                session=session,
            ),
        )

    def _conclude(self, session: GameSession, now: float) -> Optional[str]:
        """Recalcule la condition de victoire ; termine la partie si atteinte."""
        winner = evaluate_winner(session.players, session.settings)
        if winner is not None:
            session.status = STATUS_ENDED
            session.winner = winner
            session.ended_at = now
        return winner

    def _eliminate(self, session: GameSession, victim: Player, killer: Optional[Player], now: float) -> KillEvent:
        victim.is_alive = False
        if killer is not None:
            victim.eliminated_by = "kill"
            message = f"💀 {victim.name} was eliminated by {killer.name}"
        else:
            victim.eliminated_by = "vote"
            message = f"🗳️ {victim.name} was voted out"
        event = KillEvent(
            event_id=generate_code("KILL", 8),
            kind="kill" if killer is not None else "vote",
            murderer_code=killer.player_code if killer is not None else None,
            murderer_name=killer.name if killer is not None else None,
            victim_code=victim.player_code,
            victim_name=victim.name,
            timestamp=now,
            message=message,
        )
        session.kill_events.append(event)
        return event

    # -----------------------------
    # Création
    # -----------------------------
    def start_game(self, request: StartGameRequest, base_url: Optional[str] = None) -> Dict[str, Any]:
        """
        Crée une partie active : roster normalisé, règles fusionnées, rôles tirés.
        Lève `ValidationError` / `ConflictError` (HTTP 400) ou `StoreUnavailableError`.
        """
        game_settings = self.default_game_settings()
        if request.settings is not None:
            overrides = request.settings.model_dump(exclude_none=True)
            game_settings = game_settings.model_copy(update=overrides)

        roster = request.roster()
        validate_roster(roster, game_settings)
        players = assign_roles(build_players(roster), game_settings.murderer_count, self.rng)
        if evaluate_winner(players, game_settings) is not None:
            raise ValidationError("Too many murderers for this roster: the game would end immediately")

        session, links = self.store.create(
            self._resolve_code(request.game_code),
            players,
            game_settings,
            request.host_display_name,
            base_url or self.settings.BASE_URL,
        )
        logger.info(
            "Game started",
            extra={"game_code": session.game_code, "players": len(players), "murderers": game_settings.murderer_count},
        )
        self._publish(session, "game-started")
        return {"game": serialize(session, HOST_VIEWER), "playerLinks": links}

    # -----------------------------
    # Kills
    # -----------------------------
    def record_kill_attempt(self, game_code: str, murderer_code: str, victim_code: str) -> KillAttemptResult:
        now = self.clock()

        def _apply(session: GameSession) -> Tuple[KillAttemptResult, bool]:
            if not session.is_active:
                return KillAttemptResult.fail(INVALID_STATE, "Game is not active"), False

            murderer = session.player(murderer_code)
            if murderer is None or not murderer.is_murderer:
                return KillAttemptResult.fail(UNAUTHORIZED, "Only murderers can kill"), False
            if not murderer.is_alive:
                return KillAttemptResult.fail(UNAUTHORIZED, "You are dead and cannot act"), False

            victim = session.player(victim_code)
            if victim is None:
                return KillAttemptResult.fail(INVALID_TARGET, "Target player not found"), False
            if victim.player_code == murderer.player_code:
                return KillAttemptResult.fail(INVALID_TARGET, "You cannot kill yourself"), False
            if not victim.is_alive:
                return KillAttemptResult.fail(INVALID_TARGET, f"{victim.name} is already dead"), False

            cd = cooldown_status(murderer, session.settings, now)
            if not cd["canKill"]:
                return (
                    KillAttemptResult.fail(
                        COOLDOWN,
                        f"Wait {cd['remainingSeconds'] // 60}m {cd['remainingSeconds'] % 60}s before killing again",
                        cooldown_remaining=cd["remainingSeconds"],
                    ),
                    False,
                )

            event = self._eliminate(session, victim, murderer, now)
            murderer.last_kill_at = now
            murderer.kills += 1
            winner = self._conclude(session, now)

            return (
                KillAttemptResult(
                    success=True,
                    message=f"You successfully killed {victim.name}!",
                    kill_event={
                        "id": event.event_id,
                        "murderer": murderer.name,
                        "victim": victim.name,
                        "victimCode": victim.player_code,
                        "timestamp": int(now * 1000),
                        "successful": True,
                        "message": event.message,
                    },
                    state_delta={
                        "victimCode": victim.player_code,
                        "victimAlive": False,
                        "status": session.status,
                        "winner": winner,
                    },
                ),
                True,
            )

        try:
            result, session = self.store.mutate(game_code, _apply)
        except NotFoundError:
            return KillAttemptResult.fail(INVALID_STATE, "Game not found")

        if not result.success:
            logger.info(
                "Kill attempt rejected",
                extra={"game_code": game_code, "murderer": murderer_code, "reason": result.reason},
            )
            return result

        result.state_delta["sequence"] = session.sequence
        logger.info(
            "Kill recorded",
            extra={"game_code": game_code, "victim": victim_code, "winner": session.winner},
        )
        self._publish(
            session,
            "game-ended" if session.winner else "player-killed",
            payload={
                "victim": result.kill_event["victim"],
                "victimCode": victim_code,
                "gameEnded": session.status == STATUS_ENDED,
                "winner": session.winner,
            },
            host_payload={"murderer": result.kill_event["murderer"], "murdererCode": murderer_code},
        )
        return result

    def kill_status(self, game_code: str, player_code: str) -> Dict[str, Any]:
        """Cooldown + cibles disponibles d'un joueur (vue du téléphone meurtrier)."""
        session = self.store.snapshot(game_code)
        player = session.player(player_code)
        if player is None:
            raise NotFoundError("Player not found")
        data = player_data(session, player, self.clock())
        return {
            "cooldownStatus": data["cooldownStatus"],
            "availableTargets": data["availableTargets"],
            "canKill": bool(data["availableTargets"]) and data["cooldownStatus"]["canKill"],
        }

    # -----------------------------
    # Lecture
    # -----------------------------
    def get_state(
        self,
        game_code: Optional[str],
        player_code: Optional[str] = None,
        is_host: bool = False,
    ) -> Dict[str, Any]:
        """
        État sérialisé :
        - vue hôte si `is_host` (avec `playerData` du joueur demandé le cas échéant),
        - sinon vue joueur si `player_code` (la partie peut être retrouvée par ce code seul),
        - sinon vue publique.
        Lève `NotFoundError` si la partie ou le joueur est introuvable.
        """
        code = (game_code or "").strip()
        pid = (player_code or "").strip()
        if not code and not pid:
            raise ValidationError("Either gameCode or playerCode must be provided")
        if not code:
            code = self.store.find_by_player(pid) or ""
            if not code:
                raise NotFoundError("Player not found")

        now = self.clock()
        if not is_host and not pid:
            return self.store.get(code, PUBLIC_VIEWER, now)

        session = self.store.snapshot(code)
        player = session.player(pid) if pid else None
        if pid and player is None:
            raise NotFoundError("Player not found")
        if not is_host:
            return serialize(session, pid, now)

        state = serialize(session, HOST_VIEWER, now)
        if player is not None:
            state["playerData"] = player_data(session, player, now)
        return state

    def public_state(self, game_code: Optional[str]) -> Dict[str, Any]:
        """Vue publique ou état vide (exists=False) : jamais d'erreur pour une partie absente."""
        session = self.store.peek(self._resolve_code(game_code))
        return serialize(session, PUBLIC_VIEWER, self.clock())

    def host_dashboard(self, game_code: Optional[str]) -> Dict[str, Any]:
        code = self._resolve_code(game_code)
        session = self.store.peek(code)
        links = build_player_links(self.settings.BASE_URL, session.players) if session is not None else {}
        return {"gameState": serialize(session, HOST_VIEWER, self.clock()), "playerLinks": links}

    # -----------------------------
    # Votes
    # -----------------------------
    def cast_vote(self, game_code: Optional[str], voter_code: str, target_code: str) -> ActionResult:
        code = self._resolve_code(game_code)
        try:
            result, session = self.store.mutate(
                code, lambda s: vote_service.cast_vote(s, voter_code, target_code)
            )
        except NotFoundError:
            return ActionResult.fail(INVALID_STATE, "No active game session found")
        if result.success:
            logger.info("Vote recorded", extra={"game_code": code, "total_votes": len(session.votes)})
            self._publish(
                session,
                "vote-update",
                payload={"totalVotes": len(session.votes)},
                host_payload={"results": vote_service.tally(session)},
            )
        return result

    def vote_results(self, game_code: Optional[str]) -> Dict[str, Any]:
        session = self.store.snapshot(self._resolve_code(game_code))
        return vote_service.vote_results(session)

    def eliminate_by_vote(self, game_code: Optional[str], target_code: Optional[str] = None) -> ActionResult:
        """Élimine la cible désignée (ou la tête du vote), remet les votes à zéro, évalue la victoire."""
        code = self._resolve_code(game_code)
        now = self.clock()

        def _apply(session: GameSession) -> Tuple[ActionResult, bool]:
            if not session.is_active:
                return ActionResult.fail(INVALID_STATE, "Game is not active"), False
            resolved = vote_service.resolve_elimination_target(session, target_code)
            if resolved is None:
                return ActionResult.fail(NO_VOTES, "No clear vote leader to eliminate"), False
            target = session.player(resolved)
            if target is None or not target.is_alive:
                return ActionResult.fail(INVALID_TARGET, "Target not found in this game or not alive"), False

            self._eliminate(session, target, None, now)
            session.votes = {}
            winner = self._conclude(session, now)
            return (
                ActionResult(
                    success=True,
                    message=f"{target.name} has been eliminated by vote",
                    state_delta={
                        "victimCode": target.player_code,
                        "victimAlive": False,
                        "status": session.status,
                        "winner": winner,
                    },
                ),
                True,
            )

        try:
            result, session = self.store.mutate(code, _apply)
        except NotFoundError:
            return ActionResult.fail(INVALID_STATE, "No active game session found")
        if result.success:
            result.state_delta["sequence"] = session.sequence
            logger.info("Player voted out", extra={"game_code": code, "victim": result.state_delta["victimCode"]})
            victim = session.player(result.state_delta["victimCode"])
            self._publish(
                session,
                "game-ended" if session.winner else "player-eliminated",
                payload={
                    "victim": victim.name if victim else None,
                    "victimCode": result.state_delta["victimCode"],
                    "gameEnded": session.status == STATUS_ENDED,
                    "winner": session.winner,
                },
            )
        return result

    def reset_votes(self, game_code: Optional[str]) -> ActionResult:
        code = self._resolve_code(game_code)
        result, session = self.store.mutate(code, vote_service.reset_votes)
        if result.state_delta["cleared"]:
            self._publish(session, "vote-update", payload={"totalVotes": 0})
        return result

    # -----------------------------
    # Reset
    # -----------------------------
    def reset_game(self, game_code: str) -> None:
        """Supprime la partie ; prévient les abonnés s'il y en avait une. Idempotent."""
        code = (game_code or "").strip()
        previous = self.store.peek(code)
        self.store.reset(code)
        if previous is not None:
            self.broadcaster.publish(
                code,
                GameEvent(type="game-reset", game_code=code, sequence=previous.sequence + 1),
            )
