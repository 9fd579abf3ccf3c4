"""Client-side rehydration: re-fetch the whole session on any change event."""

import logging
from collections.abc import Callable
from typing import Optional

from game.errors import NotFoundError, StoreError
from game.protocols import GameStore
from game.state import ChangeEvent, GameSession

logger = logging.getLogger(__name__)

# Tables whose events trigger a re-fetch
WATCHED_TABLES = ("games", "players")


class SessionWatcher:
    """
    Keeps a local copy of one game's session.

    Event payloads are never merged into local state; every event only triggers a full
    reload, so stale or reordered notifications are corrected by the next fetch.
    """

    def __init__(
        self,
        store: GameStore,
        game_id: str,
        on_change: Optional[Callable[[GameSession], None]] = None,
    ):
        self._store = store
        self.game_id = game_id
        self._on_change = on_change
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.session: Optional[GameSession] = None
        self.deleted = False

    def start(self) -> GameSession:
        self._unsubscribe = self._store.subscribe(self.game_id, self._handle)
        return self.refresh()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def refresh(self) -> GameSession:
        self.session = self._store.load_session(self.game_id)
        if self._on_change is not None:
            self._on_change(self.session)
        return self.session

    def _handle(self, event: ChangeEvent) -> None:
        if event.table not in WATCHED_TABLES:
            return
        try:
            self.refresh()
        except NotFoundError:
            # game row gone: the host deleted it
            self.session = None
            self.deleted = True
            self.stop()
        except StoreError as e:
            logger.warning("Reload of game %s after %s on %s failed: %s", self.game_id, event.kind.value, event.table, e)
