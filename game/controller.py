"""Phase controller: runs engine transitions against a store and commits them."""

import logging
import random
import secrets
import uuid
from typing import Optional

from game import engine
from game.codes import generate_code, normalize_code
from game.errors import CodeCollisionError, PreconditionError, StaleStateError
from game.ledger import ActionLedger, PlayerActionStatus
from game.protocols import GameStore
from game.rules import ActionType, PhaseName
from game.state import (
    Action,
    DayOutcome,
    GameSession,
    InvestigationResult,
    NightOutcome,
    Player,
)

logger = logging.getLogger(__name__)

DEFAULT_CODE_ATTEMPTS = 5


def new_token() -> str:
    """Secret a player presents on every call made on their behalf."""
    return secrets.token_urlsafe(16)


class PhaseController:
    """
    Host commands and player submissions for every game in a store.

    Each transition is computed on a fresh snapshot and committed with a compare-and-set
    on the game's phase, so of two concurrent ResolveNight calls only the first applies.
    """

    def __init__(
        self,
        store: GameStore,
        rng: Optional[random.Random] = None,
        code_attempts: int = DEFAULT_CODE_ATTEMPTS,
    ):
        self.store = store
        self.ledger = ActionLedger(store)
        self._rng = rng or random.Random()
        self._code_attempts = max(1, code_attempts)

    # Lobby

    def create_game(self, host_name: str) -> GameSession:
        """New lobby with a fresh code. Retries when the code is already taken."""
        for attempt in range(1, self._code_attempts + 1):
            session = engine.new_game(
                game_id=str(uuid.uuid4()),
                code=generate_code(self._rng),
                host_id=str(uuid.uuid4()),
                host_name=host_name,
                host_token=new_token(),
            )
            try:
                self.store.create_game(session.game, session.players[0])
            except CodeCollisionError:
                logger.warning(
                    "Code %s already taken (attempt %d/%d)",
                    session.game.code, attempt, self._code_attempts,
                )
                continue
            logger.info("Created game %s", session.game.code)
            return session
        raise CodeCollisionError(f"No free game code after {self._code_attempts} attempts")

    def session(self, code: str) -> GameSession:
        game = self.store.find_game_by_code(normalize_code(code))
        return self.store.load_session(game.id)

    def player_id_for_token(self, code: str, token: Optional[str]) -> Optional[str]:
        """Public id of the player holding token in this game, or None."""
        player = self.session(code).get_player_by_token(token)
        return player.id if player else None

    def join_game(self, code: str, name: str) -> Player:
        """Add a player to the lobby. Fails with StaleStateError if the game started meanwhile."""
        session = self.session(code)
        cleaned = engine.check_join(session, name)
        player = Player(id=str(uuid.uuid4()), game_id=session.game.id, name=cleaned, token=new_token())
        try:
            self.store.add_player(player, session.game.phase)
        except StaleStateError:
            logger.warning("Game %s left the lobby before %r could join", session.game.code, cleaned)
            raise
        logger.info("Player joined game %s (%d in lobby)", session.game.code, len(session.players) + 1)
        return player

    def leave_game(self, code: str, player_id: str, caller_id: Optional[str]) -> None:
        session = self.session(code)
        engine.check_leave(session, player_id, caller_id)
        try:
            self.store.remove_player(session.game.id, player_id, session.game.phase)
        except StaleStateError:
            logger.warning("Game %s left the lobby before player could leave", session.game.code)
            raise
        logger.info("Player left game %s", session.game.code)

    def delete_game(self, code: str, caller_id: Optional[str]) -> None:
        """Host-only: drop the game and its whole history."""
        session = self.session(code)
        engine.require_host(session, caller_id)
        self.store.delete_game(session.game.id)
        logger.info("Deleted game %s", session.game.code)

    # Host transitions

    def _commit(self, before: GameSession, after: GameSession) -> None:
        try:
            self.store.commit(before.game.phase, after.game, after.players)
        except StaleStateError:
            logger.warning(
                "Game %s moved past %s before commit; transition dropped",
                before.game.code, before.game.phase,
            )
            raise
        logger.info("Game %s: %s -> %s", after.game.code, before.game.phase, after.game.phase)

    def start_game(self, code: str, caller_id: Optional[str]) -> GameSession:
        session = self.session(code)
        started = engine.start_game(session, caller_id, self._rng)
        self._commit(session, started)
        return started

    def resolve_night(self, code: str, caller_id: Optional[str]) -> tuple[GameSession, NightOutcome]:
        session = self.session(code)
        resolved, outcome = engine.resolve_night(session, caller_id)
        self._commit(session, resolved)
        if outcome.saved:
            logger.info("Game %s night %d: doctor saved the target", session.game.code, outcome.round)
        return resolved, outcome

    def resolve_day(self, code: str, caller_id: Optional[str]) -> tuple[GameSession, DayOutcome]:
        session = self.session(code)
        resolved, outcome = engine.resolve_day(session, caller_id)
        self._commit(session, resolved)
        if outcome.lynched_id is None:
            logger.info("Game %s day %d: no lynch", session.game.code, outcome.round)
        return resolved, outcome

    def end_game(self, code: str, caller_id: Optional[str]) -> GameSession:
        session = self.session(code)
        ended = engine.end_game(session, caller_id)
        self._commit(session, ended)
        return ended

    # Player submissions

    def submit_action(
        self,
        code: str,
        player_id: str,
        action_type: ActionType,
        target_player_id: Optional[str],
    ) -> tuple[Action, Optional[InvestigationResult]]:
        """
        Record an intent for the current round. Detectives get their answer back
        immediately; the stored record only serves the host's audit view.
        """
        session = self.session(code)
        round_number, phase = engine.check_action(session, player_id, action_type, target_player_id)
        action = self.ledger.submit(
            session.game.id, player_id, round_number, phase, action_type, target_player_id
        )
        result = None
        if action_type == ActionType.DETECTIVE_INVESTIGATE:
            result = engine.investigate(session, target_player_id)
        return action, result

    # Host dashboard

    def action_status(self, code: str, caller_id: Optional[str]) -> tuple[GameSession, list[PlayerActionStatus]]:
        session = self.session(code)
        engine.require_host(session, caller_id)
        phase = session.game.phase
        if phase.name not in (PhaseName.NIGHT, PhaseName.DAY):
            raise PreconditionError("No round in progress")
        return session, self.ledger.status_for_round(session.game.id, phase.round, phase.name)

    def audit_actions(
        self,
        code: str,
        caller_id: Optional[str],
        round: Optional[int] = None,
        phase: Optional[PhaseName] = None,
    ) -> list[Action]:
        """Stored actions for the host, optionally filtered, in submission order."""
        session = self.session(code)
        engine.require_host(session, caller_id)
        actions = [
            a
            for a in session.actions
            if (round is None or a.round == round) and (phase is None or a.phase == phase)
        ]
        return sorted(actions, key=lambda a: (a.submitted_at, a.seq))
