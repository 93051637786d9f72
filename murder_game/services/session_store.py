"""
Session store registry
======================

Garde une `GameSession` par `game_code` (une seule partie vivante par code),
en mémoire et, si `data_dir` est fourni, persistée en JSON sous
`<data_dir>/sessions/<game_code>.json`. Les sessions absentes du cache sont
rechargées à la demande depuis le disque.

Concurrence:
- un verrou de registre protège les dictionnaires internes ;
- un verrou par `game_code` sérialise les mutations ET les lectures de snapshot,
  si bien qu'une lecture n'observe jamais un état à moitié muté ;
- aucune mutation ne verrouille deux parties à la fois ;
- un verrou n'est créé que pour une partie existante (ou à sa création) :
  lire un code inconnu n'enregistre rien.

`mutate()` travaille sur une copie profonde et ne la publie (cache + disque)
que si la fonction de mutation le demande : pas d'état intermédiaire observable.
"""
from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

import orjson
from pydantic import ValidationError as PydanticValidationError

from murder_game.models.game import GameSession, GameSettings, STATUS_ACTIVE
from murder_game.models.player import Player
from murder_game.services.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from murder_game.services.io_utils import read_json, remove_file, write_json
from murder_game.services.serializer import PUBLIC_VIEWER, serialize

logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSIONS_DIRNAME = "sessions"
GAME_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def normalize_game_code(game_code: Optional[str]) -> str:
    """Nettoie et valide un gameCode (sert aussi de nom de fichier)."""
    code = (game_code or "").strip()
    if not GAME_CODE_RE.match(code):
        raise ValidationError("gameCode must be 1-64 letters, digits, '_' or '-'")
    return code


def build_player_links(base_url: str, players: Iterable[Player]) -> Dict[str, str]:
    """{player_code: "<base_url>/game/play/<player_code>"} (slash final retiré)."""
    base = (base_url or "").rstrip("/")
    return {p.player_code: f"{base}/game/play/{p.player_code}" for p in players}


class SessionStore:
    def __init__(self, data_dir: Optional[Path | str] = None) -> None:
        self._lock = RLock()
        self._sessions: Dict[str, GameSession] = {}
        self._session_locks: Dict[str, RLock] = {}
        self.data_dir = Path(data_dir) if data_dir else None

    # -----------------------------
    # Verrous / chemins
    # -----------------------------
    def _session_lock(self, game_code: str, create: bool = True) -> Optional[RLock]:
        """
        Verrou de la partie. Avec `create=False`, aucun verrou n'est enregistré
        pour un code inconnu (ni en cache ni sur disque) : renvoie None.
        """
        with self._lock:
            lock = self._session_locks.get(game_code)
            if lock is None and (create or self._exists_nolock(game_code)):
                lock = RLock()
                self._session_locks[game_code] = lock
            return lock

    def _exists_nolock(self, game_code: str) -> bool:
        if game_code in self._sessions:
            return True
        path = self._path(game_code)
        return path is not None and path.exists()

    def _sessions_dir(self) -> Optional[Path]:
        if self.data_dir is None:
            return None
        return self.data_dir / SESSIONS_DIRNAME

    def _path(self, game_code: str) -> Optional[Path]:
        base = self._sessions_dir()
        if base is None or not GAME_CODE_RE.match(game_code):
            return None
        return base / f"{game_code}.json"

    # -----------------------------
    # Chargement / sauvegarde
    # -----------------------------
    def _load(self, game_code: str) -> Optional[GameSession]:
        path = self._path(game_code)
        if path is None:
            return None
        try:
            data = read_json(path)
            if data is None:
                return None
            return GameSession.model_validate(data)
        except (OSError, orjson.JSONDecodeError, PydanticValidationError) as exc:
            logger.error("Session load failed", exc_info=True, extra={"game_code": game_code})
            raise StoreUnavailableError(f"Unable to load game {game_code}") from exc

    def _persist(self, session: GameSession) -> None:
        path = self._path(session.game_code)
        if path is None:
            return
        try:
            write_json(path, session.model_dump(mode="json"))
        except OSError as exc:
            logger.error("Session save failed", exc_info=True, extra={"game_code": session.game_code})
            raise StoreUnavailableError(f"Unable to save game {session.game_code}") from exc

    def _current(self, game_code: str) -> Optional[GameSession]:
        """Session en cache, sinon chargée depuis le disque (appel sous verrou de session)."""
        with self._lock:
            session = self._sessions.get(game_code)
        if session is None:
            session = self._load(game_code)
            if session is not None:
                with self._lock:
                    self._sessions[game_code] = session
        return session

    def _commit(self, session: GameSession) -> None:
        self._persist(session)
        with self._lock:
            self._sessions[session.game_code] = session

    # -----------------------------
    # API
    # -----------------------------
    def create(
        self,
        game_code: str,
        players: List[Player],
        settings: GameSettings,
        host_display_name: Optional[str],
        base_url: str,
    ) -> Tuple[GameSession, Dict[str, str]]:
        """
        Crée la partie `game_code` (directement "active") avec des joueurs déjà
        dotés de leur rôle, et renvoie (session, liens joueurs).
        `ConflictError` si une partie active occupe déjà ce code.
        """
        code = normalize_game_code(game_code)
        with self._session_lock(code):
            existing = self._current(code)
            if existing is not None and existing.status == STATUS_ACTIVE:
                raise ConflictError(f"Game {code} is already active. Reset it first.")

            now = time.time()
            session = GameSession(
                game_code=code,
                players=[p.model_copy(deep=True) for p in players],
                settings=settings.model_copy(deep=True),
                status=STATUS_ACTIVE,
                host_display_name=(host_display_name or "").strip() or "Host",
                created_at=now,
                started_at=now,
                sequence=1,
            )
            self._commit(session)
            logger.info("Game created", extra={"game_code": code, "players": len(players)})
            return session.model_copy(deep=True), build_player_links(base_url, session.players)

    def peek(self, game_code: str) -> Optional[GameSession]:
        """Copie cohérente de la session, ou None si elle n'existe pas."""
        code = (game_code or "").strip()
        lock = self._session_lock(code, create=False) if code else None
        if lock is None:
            return None
        with lock:
            session = self._current(code)
            return session.model_copy(deep=True) if session is not None else None

    def snapshot(self, game_code: str) -> GameSession:
        session = self.peek(game_code)
        if session is None:
            raise NotFoundError("Game not found")
        return session

    def get(
        self,
        game_code: str,
        viewer: Optional[str] = PUBLIC_VIEWER,
        now: Optional[float] = None,
    ) -> Dict[str, Any]:
        """État sérialisé pour `viewer` ; `NotFoundError` si la partie n'existe pas."""
        return serialize(self.snapshot(game_code), viewer, now)

    def mutate(
        self,
        game_code: str,
        fn: Callable[[GameSession], Tuple[T, bool]],
    ) -> Tuple[T, GameSession]:
        """
        Applique `fn` à une copie de travail sous le verrou de la partie.
        `fn` renvoie (résultat, commit). Si commit: `sequence` +1, puis
        persistance et remplacement atomique dans le cache.
        Retourne (résultat, copie de la session courante après l'opération).
        """
        code = (game_code or "").strip()
        lock = self._session_lock(code, create=False) if code else None
        if lock is None:
            raise NotFoundError("Game not found")
        with lock:
            current = self._current(code)
            if current is None:
                raise NotFoundError("Game not found")
            work = current.model_copy(deep=True)
            result, commit = fn(work)
            if not commit:
                return result, current.model_copy(deep=True)
            work.sequence = current.sequence + 1
            self._commit(work)
            return result, work.model_copy(deep=True)

    def reset(self, game_code: str) -> None:
        """Supprime la partie (cache + disque). Idempotent."""
        code = (game_code or "").strip()
        lock = self._session_lock(code, create=False) if code else None
        if lock is None:
            return
        with lock:
            with self._lock:
                existed = self._sessions.pop(code, None) is not None
            path = self._path(code)
            if path is not None:
                try:
                    remove_file(path)
                except OSError as exc:
                    raise StoreUnavailableError(f"Unable to delete game {code}") from exc
        logger.info("Game reset", extra={"game_code": code, "was_loaded": existed})

    def list_codes(self) -> List[str]:
        """Codes connus (cache + disque)."""
        with self._lock:
            codes = set(self._sessions.keys())
        base = self._sessions_dir()
        if base is not None and base.exists():
            codes.update(p.stem for p in base.glob("*.json"))
        return sorted(codes)

    def find_by_player(self, player_code: Optional[str]) -> Optional[str]:
        """Retrouve le game_code de la partie contenant `player_code`."""
        pid = (player_code or "").strip()
        if not pid:
            return None
        for code in self.list_codes():
            session = self.peek(code)
            if session is not None and session.player(pid) is not None:
                return code
        return None
