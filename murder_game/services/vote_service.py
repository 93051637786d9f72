"""
Service: vote_service.py
Rôle:
- Vote d'élimination collectif (un bulletin par joueur vivant, pas d'auto-vote).
- Dépouillement {target: count} et élimination décidée par l'hôte.

Toutes les fonctions de mutation travaillent sur une `GameSession` de travail
fournie par `SessionStore.mutate()` et renvoient (résultat, commit).

Données:
- session.votes : {voter_code: target_code} (remis à zéro après chaque élimination)
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from murder_game.models.game import GameSession
from murder_game.models.results import (
    ALREADY_VOTED,
    INVALID_STATE,
    INVALID_TARGET,
    UNAUTHORIZED,
    ActionResult,
)


def cast_vote(session: GameSession, voter_code: str, target_code: str) -> Tuple[ActionResult, bool]:
    """Enregistre le bulletin de `voter_code` contre `target_code`."""
    if not session.is_active:
        return ActionResult.fail(INVALID_STATE, "Game is not active"), False
    voter = session.player(voter_code)
    if voter is None or not voter.is_alive:
        return ActionResult.fail(UNAUTHORIZED, "Voter not found in this game or not alive"), False
    if voter_code in session.votes:
        return ActionResult.fail(ALREADY_VOTED, "Player has already voted. Only one vote per player allowed."), False
    target = session.player(target_code)
    if target is None or not target.is_alive:
        return ActionResult.fail(INVALID_TARGET, "Target not found in this game or not alive"), False
    if target.player_code == voter.player_code:
        return ActionResult.fail(INVALID_TARGET, "Players cannot vote for themselves"), False

    session.votes[voter_code] = target_code
    return (
        ActionResult(
            success=True,
            message=f"Vote recorded for {target.name}",
            state_delta={"totalVotes": len(session.votes)},
        ),
        True,
    )


def tally(session: GameSession) -> List[Dict[str, Any]]:
    """Décompte trié (voix décroissantes, puis ordre du roster)."""
    counts = Counter(session.votes.values())
    order = {p.player_code: idx for idx, p in enumerate(session.players)}
    rows = []
    for code, count in counts.items():
        target = session.player(code)
        rows.append({"targetCode": code, "name": target.name if target else code, "count": count})
    rows.sort(key=lambda r: (-r["count"], order.get(r["targetCode"], len(order))))
    return rows


def vote_results(session: GameSession) -> Dict[str, Any]:
    rows = tally(session)
    leader = rows[0] if rows else None
    tie = len(rows) > 1 and rows[0]["count"] == rows[1]["count"]
    alive = len(session.alive_players())
    return {
        "results": rows,
        "totalVotes": len(session.votes),
        "eligibleVoters": alive,
        "leader": None if tie else leader,
        "tie": tie,
    }


def resolve_elimination_target(session: GameSession, target_code: Optional[str]) -> Optional[str]:
    """Cible explicite, sinon le joueur en tête du vote (None si aucun vote ou égalité)."""
    if target_code:
        return target_code
    results = vote_results(session)
    leader = results["leader"]
    return leader["targetCode"] if leader else None


def reset_votes(session: GameSession) -> Tuple[ActionResult, bool]:
    had_votes = bool(session.votes)
    session.votes = {}
    return (
        ActionResult(success=True, message="Votes reset", state_delta={"totalVotes": 0, "cleared": had_votes}),
        had_votes,
    )


