"""Protocol for the persistent store the core runs against."""

from collections.abc import Callable
from typing import Protocol

from game.state import Action, ChangeEvent, Game, GameSession, Phase, Player

ChangeListener = Callable[[ChangeEvent], None]


class GameStore(Protocol):
    """Contract of the external store holding games, players and actions.

    Every method either completes or raises a ``game.errors.GameError`` and leaves the
    touched rows in their prior committed state.
    """

    def create_game(self, game: Game, host: Player) -> None:
        """Insert a game with its host player. Raises CodeCollisionError on a taken code."""
        ...

    def get_game(self, game_id: str) -> Game:
        ...

    def find_game_by_code(self, code: str) -> Game:
        """Lookup by normalized (uppercase) code. Raises NotFoundError."""
        ...

    def list_games(self) -> list[Game]:
        ...

    def delete_game(self, game_id: str) -> None:
        """Delete a game with its players and actions."""
        ...

    def add_player(self, player: Player, expected_phase: Phase) -> Player:
        """Insert a player only if the game is still in expected_phase. Raises StaleStateError."""
        ...

    def remove_player(self, game_id: str, player_id: str, expected_phase: Phase) -> None:
        """Delete a player only if the game is still in expected_phase. Raises StaleStateError."""
        ...

    def list_players(self, game_id: str) -> list[Player]:
        """Roster in join order."""
        ...

    def upsert_action(self, action: Action) -> Action:
        """Atomically replace the action with the same key; assigns id, seq and timestamp."""
        ...

    def list_actions(self, game_id: str) -> list[Action]:
        ...

    def load_session(self, game_id: str) -> GameSession:
        """Consistent snapshot of game, roster and actions."""
        ...

    def commit(self, expected_phase: Phase, game: Game, players: list[Player]) -> None:
        """
        Write the game record and the given player rows in one batch, only if the stored
        game is still in expected_phase. Raises StaleStateError otherwise.
        """
        ...

    def subscribe(self, game_id: str, listener: ChangeListener) -> Callable[[], None]:
        """Register for change events on one game's rows. Returns an unsubscribe callable."""
        ...
