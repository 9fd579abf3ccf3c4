"""In-memory game store. Implements the store contract; replace with a DB later if needed."""

import dataclasses
import itertools
import threading
import uuid
from collections.abc import Callable

from game.errors import CodeCollisionError, NotFoundError, StaleStateError
from game.protocols import ChangeListener
from game.state import (
    Action,
    ChangeEvent,
    ChangeKind,
    Game,
    GameSession,
    Phase,
    Player,
    utcnow,
)


class InMemoryStore:
    """
    Three "tables" (games, players, actions) behind one lock.

    Writes are atomic per call. Listeners run after the lock is released, so they may
    read the store again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._games: dict[str, Game] = {}
        self._codes: dict[str, str] = {}  # code -> game_id (unique constraint)
        self._players: dict[str, dict[str, Player]] = {}  # game_id -> player_id -> Player
        self._actions: dict[str, dict[tuple, Action]] = {}  # game_id -> action key -> Action
        self._listeners: dict[str, list[ChangeListener]] = {}
        self._seq = itertools.count(1)

    # Change feed

    def subscribe(self, game_id: str, listener: ChangeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(game_id, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(game_id, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def _notify(self, events: list[ChangeEvent]) -> None:
        for event in events:
            with self._lock:
                listeners = list(self._listeners.get(event.game_id, []))
            for listener in listeners:
                listener(event)

    # Games

    def create_game(self, game: Game, host: Player) -> None:
        with self._lock:
            if game.code in self._codes:
                raise CodeCollisionError(f"Game code {game.code} already exists")
            self._games[game.id] = game
            self._codes[game.code] = game.id
            self._players[game.id] = {host.id: host}
            self._actions[game.id] = {}
        self._notify([
            ChangeEvent("games", ChangeKind.INSERT, game.id, game.id),
            ChangeEvent("players", ChangeKind.INSERT, game.id, host.id),
        ])

    def get_game(self, game_id: str) -> Game:
        with self._lock:
            return self._get_game(game_id)

    def _get_game(self, game_id: str) -> Game:
        game = self._games.get(game_id)
        if game is None:
            raise NotFoundError("Game not found")
        return game

    def find_game_by_code(self, code: str) -> Game:
        with self._lock:
            game_id = self._codes.get(code)
            if game_id is None:
                raise NotFoundError(f"No game with code {code}")
            return self._games[game_id]

    def list_games(self) -> list[Game]:
        with self._lock:
            return sorted(self._games.values(), key=lambda g: g.created_at)

    def delete_game(self, game_id: str) -> None:
        with self._lock:
            game = self._get_game(game_id)
            del self._games[game_id]
            self._codes.pop(game.code, None)
            players = self._players.pop(game_id, {})
            self._actions.pop(game_id, None)
        events = [ChangeEvent("players", ChangeKind.DELETE, game_id, pid) for pid in players]
        events.append(ChangeEvent("games", ChangeKind.DELETE, game_id, game_id))
        self._notify(events)
        with self._lock:
            self._listeners.pop(game_id, None)

    # Players

    def add_player(self, player: Player, expected_phase: Phase) -> Player:
        with self._lock:
            self._check_phase(self._get_game(player.game_id), expected_phase)
            self._players[player.game_id][player.id] = player
        self._notify([ChangeEvent("players", ChangeKind.INSERT, player.game_id, player.id)])
        return player

    def remove_player(self, game_id: str, player_id: str, expected_phase: Phase) -> None:
        with self._lock:
            self._check_phase(self._get_game(game_id), expected_phase)
            if self._players[game_id].pop(player_id, None) is None:
                raise NotFoundError("Player not found")
        self._notify([ChangeEvent("players", ChangeKind.DELETE, game_id, player_id)])

    def list_players(self, game_id: str) -> list[Player]:
        with self._lock:
            self._get_game(game_id)
            return self._roster(game_id)

    def _roster(self, game_id: str) -> list[Player]:
        # dict keeps insertion order, which breaks joined_at ties
        return sorted(self._players[game_id].values(), key=lambda p: p.joined_at)

    # Actions

    def upsert_action(self, action: Action) -> Action:
        with self._lock:
            self._get_game(action.game_id)
            replaced = action.key in self._actions[action.game_id]
            stored = dataclasses.replace(
                action,
                id=str(uuid.uuid4()),
                seq=next(self._seq),
                submitted_at=utcnow(),
            )
            self._actions[action.game_id][action.key] = stored
        kind = ChangeKind.UPDATE if replaced else ChangeKind.INSERT
        self._notify([ChangeEvent("actions", kind, action.game_id, stored.id)])
        return stored

    def list_actions(self, game_id: str) -> list[Action]:
        with self._lock:
            self._get_game(game_id)
            return sorted(self._actions[game_id].values(), key=lambda a: a.seq)

    # Snapshot and commit

    def load_session(self, game_id: str) -> GameSession:
        with self._lock:
            game = self._get_game(game_id)
            return GameSession(
                game=game,
                players=self._roster(game_id),
                actions=sorted(self._actions[game_id].values(), key=lambda a: a.seq),
            )

    @staticmethod
    def _check_phase(current: Game, expected_phase: Phase) -> None:
        if current.phase != expected_phase:
            raise StaleStateError(
                f"Game {current.code} is in {current.phase}, expected {expected_phase}"
            )

    def commit(self, expected_phase: Phase, game: Game, players: list[Player]) -> None:
        with self._lock:
            current = self._get_game(game.id)
            self._check_phase(current, expected_phase)
            roster = self._players[game.id]
            if {p.id for p in players} != set(roster):
                raise StaleStateError(f"Roster of game {current.code} changed since the snapshot")
            changed = [p for p in players if p.id in roster and roster[p.id] != p]
            self._games[game.id] = game
            for p in changed:
                roster[p.id] = p
        events = [ChangeEvent("players", ChangeKind.UPDATE, game.id, p.id) for p in changed]
        events.append(ChangeEvent("games", ChangeKind.UPDATE, game.id, game.id))
        self._notify(events)


# Process-wide store used by the API
store = InMemoryStore()

