"""Action ledger: per-player, per-round intents with replace-by-key semantics."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from game.protocols import GameStore
from game.rules import ACTION_PHASE, NIGHT_ACTION_BY_ROLE, ActionType, PhaseName
from game.state import Action, Player


@dataclass
class PlayerActionStatus:
    """What one living eligible player has (and should have) submitted this round."""

    player_id: str
    name: str
    submitted: list[ActionType] = field(default_factory=list)
    expected: list[ActionType] = field(default_factory=list)

    @property
    def pending(self) -> list[ActionType]:
        return [a for a in self.expected if a not in self.submitted]


def select_actions(
    actions: Iterable[Action],
    round: int,
    phase: PhaseName,
    action_type: Optional[ActionType] = None,
) -> list[Action]:
    """Matching actions in submission order."""
    selected = [
        a
        for a in actions
        if a.round == round
        and a.phase == phase
        and (action_type is None or a.action_type == action_type)
    ]
    return sorted(selected, key=lambda a: (a.submitted_at, a.seq))


def latest_per_player(actions: Iterable[Action]) -> dict[str, Action]:
    """Each actor's final submission. Tolerates duplicate rows for the same key."""
    latest: dict[str, Action] = {}
    for a in sorted(actions, key=lambda a: (a.submitted_at, a.seq)):
        latest[a.player_id] = a
    return latest


def expected_actions(player: Player, phase: PhaseName) -> list[ActionType]:
    """Action kinds a living eligible player is expected to submit in this phase."""
    if phase == PhaseName.DAY:
        return [ActionType.DAY_VOTE]
    if phase == PhaseName.NIGHT and player.role in NIGHT_ACTION_BY_ROLE:
        return [NIGHT_ACTION_BY_ROLE[player.role]]
    return []


class ActionLedger:
    """Reads and writes actions through the store."""

    def __init__(self, store: GameStore):
        self._store = store

    def submit(
        self,
        game_id: str,
        player_id: str,
        round: int,
        phase: PhaseName,
        action_type: ActionType,
        target_player_id: Optional[str],
    ) -> Action:
        """Replace any action with the same (game, player, round, phase, type) key."""
        if ACTION_PHASE[action_type] != phase:
            raise ValueError(f"{action_type.value} does not belong to the {phase.value} phase")
        action = Action(
            game_id=game_id,
            player_id=player_id,
            round=round,
            phase=phase,
            action_type=action_type,
            target_player_id=target_player_id,
        )
        return self._store.upsert_action(action)

    def actions_for_round(
        self,
        game_id: str,
        round: int,
        phase: PhaseName,
        action_type: Optional[ActionType] = None,
    ) -> list[Action]:
        return select_actions(self._store.list_actions(game_id), round, phase, action_type)

    def status_for_round(self, game_id: str, round: int, phase: PhaseName) -> list[PlayerActionStatus]:
        """Per living eligible player, the kinds already submitted. Read-only."""
        players = self._store.list_players(game_id)
        actions = self.actions_for_round(game_id, round, phase)
        statuses = []
        for p in players:
            if p.is_host or not p.alive:
                continue
            submitted = []
            for a in actions:
                if a.player_id == p.id and a.action_type not in submitted:
                    submitted.append(a.action_type)
            statuses.append(
                PlayerActionStatus(
                    player_id=p.id,
                    name=p.name,
                    submitted=submitted,
                    expected=expected_actions(p, phase),
                )
            )
        return statuses
