"""Tests for the phase controller, action ledger, store and watcher."""

import random
from unittest.mock import patch

import pytest
from api.game_store import InMemoryStore
from game import engine
from game.controller import PhaseController
from game.errors import (
    CodeCollisionError,
    NotFoundError,
    NotHostError,
    PreconditionError,
    StaleStateError,
)
from game.rules import ActionType, GameStatus, PhaseName, Role, Winner
from game.state import ChangeKind, Game, Phase, Player
from game.watcher import SessionWatcher


def _controller(seed: int = 1) -> PhaseController:
    return PhaseController(InMemoryStore(), rng=random.Random(seed))


def _started(controller: PhaseController, num_eligible: int = 4):
    """Create, fill and start a game. Returns (code, host_id, {role: [player, ...]})."""
    session = controller.create_game("Host")
    code = session.game.code
    host_id = session.game.host_id
    for i in range(num_eligible):
        controller.join_game(code, f"P{i}")
    started = controller.start_game(code, host_id)
    by_role: dict[Role, list[Player]] = {}
    for p in started.eligible_players():
        by_role.setdefault(p.role, []).append(p)
    return code, host_id, by_role


# Lobby


def test_create_game_makes_lobby_with_host():
    controller = _controller()
    session = controller.create_game("  Alice ")
    assert session.game.status == GameStatus.LOBBY
    assert session.game.phase == Phase.lobby()
    assert session.game.round == 0
    assert session.game.host_name == "Alice"
    assert [p.is_host for p in session.players] == [True]
    loaded = controller.session(session.game.code.lower())
    assert loaded.game.id == session.game.id


def test_create_game_retries_taken_code():
    store = InMemoryStore()
    rng_seed = 99
    first = PhaseController(store, rng=random.Random(rng_seed)).create_game("A")
    # same seed -> same first code; the second controller must move on to a new one
    second = PhaseController(store, rng=random.Random(rng_seed), code_attempts=5).create_game("B")
    assert second.game.code != first.game.code


def test_create_game_gives_up_after_attempts():
    store = InMemoryStore()
    PhaseController(store, rng=random.Random(3)).create_game("A")
    with pytest.raises(CodeCollisionError):
        PhaseController(store, rng=random.Random(3), code_attempts=1).create_game("B")


def test_join_validates_name_and_phase():
    controller = _controller()
    code = controller.create_game("Host").game.code
    player = controller.join_game(code, " Bob ")
    assert player.name == "Bob"
    with pytest.raises(PreconditionError):
        controller.join_game(code, "bob")
    with pytest.raises(PreconditionError):
        controller.join_game(code, "   ")
    with pytest.raises(PreconditionError):
        controller.join_game(code, "x" * 21)
    with pytest.raises(NotFoundError):
        controller.join_game("NOPE", "Carol")


def test_tokens_identify_players():
    controller = _controller()
    session = controller.create_game("Host")
    code = session.game.code
    host = session.get_host()
    bob = controller.join_game(code, "Bob")
    assert host.token and bob.token and host.token != bob.token
    assert controller.player_id_for_token(code, host.token) == host.id
    assert controller.player_id_for_token(code, bob.token) == bob.id
    assert controller.player_id_for_token(code, host.id) is None
    assert controller.player_id_for_token(code, None) is None
    assert bob.token not in repr(bob)


def test_leave_and_remove_in_lobby():
    controller = _controller()
    session = controller.create_game("Host")
    code, host_id = session.game.code, session.game.host_id
    a = controller.join_game(code, "A")
    b = controller.join_game(code, "B")
    c = controller.join_game(code, "C")
    controller.leave_game(code, a.id, a.id)
    with pytest.raises(NotHostError):
        controller.leave_game(code, b.id, c.id)
    controller.leave_game(code, b.id, host_id)
    with pytest.raises(PreconditionError):
        controller.leave_game(code, host_id, host_id)
    names = [p.name for p in controller.session(code).players]
    assert names == ["Host", "C"]


def test_delete_game_is_host_only():
    controller = _controller()
    session = controller.create_game("Host")
    code = session.game.code
    p = controller.join_game(code, "A")
    with pytest.raises(NotHostError):
        controller.delete_game(code, p.id)
    controller.delete_game(code, session.game.host_id)
    with pytest.raises(NotFoundError):
        controller.session(code)


# Start


def test_start_game_needs_enough_players():
    controller = _controller()
    session = controller.create_game("Host")
    code = session.game.code
    controller.join_game(code, "A")
    controller.join_game(code, "B")
    with pytest.raises(PreconditionError):
        controller.start_game(code, session.game.host_id)
    assert controller.session(code).game.phase == Phase.lobby()
    assert all(p.role is None for p in controller.session(code).players)


def test_start_game_commits_roles_and_phase_together():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    session = controller.session(code)
    assert session.game.phase == Phase.night(1)
    assert session.game.status == GameStatus.ONGOING
    assert {r: len(ps) for r, ps in by_role.items()} == {
        Role.MAFIA: 1, Role.DETECTIVE: 1, Role.DOCTOR: 1, Role.CITIZEN: 1,
    }
    assert session.get_host().role is None
    with pytest.raises(PreconditionError):
        controller.start_game(code, host_id)


def test_non_host_cannot_drive_phases():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    citizen = by_role[Role.CITIZEN][0]
    for command in (controller.resolve_night, controller.end_game):
        with pytest.raises(NotHostError):
            command(code, citizen.id)
    assert controller.session(code).game.phase == Phase.night(1)


# Ledger


def test_resubmission_replaces_by_key():
    controller = _controller()
    code, host_id, by_role = _started(controller, 5)
    mafia = by_role[Role.MAFIA][0]
    citizens = by_role[Role.CITIZEN]
    first, _ = controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizens[0].id)
    second, _ = controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizens[1].id)
    game_id = controller.session(code).game.id
    kills = controller.ledger.actions_for_round(game_id, 1, PhaseName.NIGHT, ActionType.MAFIA_KILL)
    assert len(kills) == 1
    assert kills[0].target_player_id == citizens[1].id
    assert second.seq > first.seq


def test_status_for_round_lists_submitted_and_pending():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    mafia = by_role[Role.MAFIA][0]
    doctor = by_role[Role.DOCTOR][0]
    citizen = by_role[Role.CITIZEN][0]
    controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizen.id)
    session, statuses = controller.action_status(code, host_id)
    by_player = {s.player_id: s for s in statuses}
    assert host_id not in by_player
    assert len(by_player) == 4
    assert by_player[mafia.id].submitted == [ActionType.MAFIA_KILL]
    assert by_player[mafia.id].pending == []
    assert by_player[doctor.id].pending == [ActionType.DOCTOR_PROTECT]
    assert by_player[citizen.id].expected == []
    with pytest.raises(NotHostError):
        controller.action_status(code, mafia.id)


def test_detective_gets_answer_back():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    detective = by_role[Role.DETECTIVE][0]
    mafia = by_role[Role.MAFIA][0]
    action, result = controller.submit_action(code, detective.id, ActionType.DETECTIVE_INVESTIGATE, mafia.id)
    assert result is not None
    assert result.suspicious is True
    assert action.action_type == ActionType.DETECTIVE_INVESTIGATE
    _, no_result = controller.submit_action(
        code, by_role[Role.DOCTOR][0].id, ActionType.DOCTOR_PROTECT, detective.id
    )
    assert no_result is None


# Resolution through the store


def test_five_player_game_end_to_end():
    controller = _controller(seed=8)
    code, host_id, by_role = _started(controller, 4)
    mafia = by_role[Role.MAFIA][0]
    detective = by_role[Role.DETECTIVE][0]
    doctor = by_role[Role.DOCTOR][0]
    citizen = by_role[Role.CITIZEN][0]

    controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizen.id)
    session, outcome = controller.resolve_night(code, host_id)
    assert outcome.killed_id == citizen.id
    assert outcome.winner is None
    assert session.game.phase == Phase.day(1)
    stored = controller.session(code)
    assert {p.id for p in stored.alive_eligible_players()} == {mafia.id, detective.id, doctor.id}

    controller.submit_action(code, detective.id, ActionType.DAY_VOTE, mafia.id)
    controller.submit_action(code, doctor.id, ActionType.DAY_VOTE, mafia.id)
    controller.submit_action(code, mafia.id, ActionType.DAY_VOTE, doctor.id)
    session, outcome = controller.resolve_day(code, host_id)
    assert outcome.lynched_id == mafia.id
    assert outcome.winner == Winner.VILLAGERS
    stored = controller.session(code)
    assert stored.game.phase == Phase.ended()
    assert stored.game.status == GameStatus.ENDED
    assert stored.game.winner == Winner.VILLAGERS
    # actions survive resolution for the audit view
    assert len(controller.audit_actions(code, host_id)) == 4
    assert len(controller.audit_actions(code, host_id, round=1, phase=PhaseName.DAY)) == 3
    with pytest.raises(PreconditionError):
        controller.end_game(code, host_id)


def test_tied_day_moves_to_next_night():
    controller = _controller(seed=4)
    code, host_id, by_role = _started(controller, 5)
    controller.resolve_night(code, host_id)
    players = controller.session(code).alive_eligible_players()
    a, b, c, d = players[0], players[1], players[2], players[3]
    controller.submit_action(code, a.id, ActionType.DAY_VOTE, b.id)
    controller.submit_action(code, b.id, ActionType.DAY_VOTE, a.id)
    controller.submit_action(code, c.id, ActionType.DAY_VOTE, b.id)
    controller.submit_action(code, d.id, ActionType.DAY_VOTE, a.id)
    session, outcome = controller.resolve_day(code, host_id)
    assert outcome.lynched_id is None
    assert session.game.phase == Phase.night(2)
    assert controller.session(code).game.round == 2
    assert len(controller.session(code).alive_eligible_players()) == 5


def test_actions_rejected_outside_their_phase():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    citizen = by_role[Role.CITIZEN][0]
    mafia = by_role[Role.MAFIA][0]
    with pytest.raises(PreconditionError):
        controller.submit_action(code, citizen.id, ActionType.DAY_VOTE, mafia.id)
    controller.resolve_night(code, host_id)
    with pytest.raises(PreconditionError):
        controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizen.id)


# Concurrency guard


def test_commit_rejects_stale_phase():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    store = controller.store
    before = controller.session(code)
    controller.resolve_night(code, host_id)
    with pytest.raises(StaleStateError):
        store.commit(before.game.phase, before.game, before.players)
    assert controller.session(code).game.phase == Phase.day(1)


def test_duplicate_resolution_applies_once():
    """Two resolve calls computed on the same snapshot: only the first commits."""
    controller = _controller(seed=12)
    code, host_id, by_role = _started(controller, 4)
    mafia = by_role[Role.MAFIA][0]
    citizen = by_role[Role.CITIZEN][0]
    controller.submit_action(code, mafia.id, ActionType.MAFIA_KILL, citizen.id)

    snapshot = controller.session(code)
    first, _ = engine.resolve_night(snapshot, host_id)
    second, _ = engine.resolve_night(snapshot, host_id)
    controller.store.commit(snapshot.game.phase, first.game, first.players)
    with pytest.raises(StaleStateError):
        controller.store.commit(snapshot.game.phase, second.game, second.players)
    assert controller.session(code).game.phase == Phase.day(1)
    with pytest.raises(PreconditionError):
        controller.resolve_night(code, host_id)


def test_commit_rejects_changed_roster():
    controller = _controller()
    session = controller.create_game("Host")
    code = session.game.code
    for name in ("A", "B", "C"):
        controller.join_game(code, name)
    snapshot = controller.session(code)
    controller.join_game(code, "D")
    started = engine.start_game(snapshot, session.game.host_id, random.Random(1))
    with pytest.raises(StaleStateError):
        controller.store.commit(snapshot.game.phase, started.game, started.players)


def test_join_validated_in_lobby_fails_once_game_started():
    controller = _controller()
    session = controller.create_game("Host")
    code, host_id = session.game.code, session.game.host_id
    for name in ("A", "B", "C", "D"):
        controller.join_game(code, name)
    lobby = controller.session(code)
    controller.start_game(code, host_id)
    with patch.object(controller, "session", return_value=lobby):
        with pytest.raises(StaleStateError):
            controller.join_game(code, "Late")
    players = controller.session(code).players
    assert "Late" not in [p.name for p in players]
    assert all(p.role is not None for p in players if not p.is_host)


def test_leave_validated_in_lobby_fails_once_game_started():
    controller = _controller()
    session = controller.create_game("Host")
    code, host_id = session.game.code, session.game.host_id
    joined = [controller.join_game(code, name) for name in ("A", "B", "C", "D")]
    lobby = controller.session(code)
    controller.start_game(code, host_id)
    with patch.object(controller, "session", return_value=lobby):
        with pytest.raises(StaleStateError):
            controller.leave_game(code, joined[0].id, joined[0].id)
    assert len(controller.session(code).eligible_players()) == 4


def test_store_roster_writes_check_phase():
    controller = _controller()
    code, host_id, by_role = _started(controller, 4)
    store = controller.store
    game_id = controller.session(code).game.id
    citizen = by_role[Role.CITIZEN][0]
    with pytest.raises(StaleStateError):
        store.add_player(Player(id="late", game_id=game_id, name="Late"), Phase.lobby())
    with pytest.raises(StaleStateError):
        store.remove_player(game_id, citizen.id, Phase.lobby())
    assert len(store.list_players(game_id)) == 5


def test_store_code_is_unique():
    store = InMemoryStore()
    host = Player(id="h1", game_id="g1", name="H", is_host=True)
    store.create_game(Game(id="g1", code="ABC-123", host_id="h1", host_name="H"), host)
    with pytest.raises(CodeCollisionError):
        store.create_game(
            Game(id="g2", code="ABC-123", host_id="h2", host_name="H"),
            Player(id="h2", game_id="g2", name="H", is_host=True),
        )


# Watcher


def test_watcher_refetches_on_every_change():
    controller = _controller()
    session = controller.create_game("Host")
    code, host_id = session.game.code, session.game.host_id
    seen = []
    watcher = SessionWatcher(controller.store, session.game.id, on_change=seen.append)
    watcher.start()
    assert len(watcher.session.players) == 1

    for name in ("A", "B", "C"):
        controller.join_game(code, name)
    assert [p.name for p in watcher.session.players] == ["Host", "A", "B", "C"]

    controller.start_game(code, host_id)
    assert watcher.session.game.phase == Phase.night(1)
    assert all(p.role is not None for p in watcher.session.eligible_players())

    count = len(seen)
    controller.submit_action(
        code,
        next(p.id for p in watcher.session.players if p.role == Role.MAFIA),
        ActionType.MAFIA_KILL,
        next(p.id for p in watcher.session.players if p.role == Role.DOCTOR),
    )
    assert len(seen) == count  # action rows are not watched

    watcher.stop()
    controller.end_game(code, host_id)
    assert watcher.session.game.phase == Phase.night(1)


def test_watcher_notices_deletion():
    controller = _controller()
    session = controller.create_game("Host")
    watcher = SessionWatcher(controller.store, session.game.id)
    watcher.start()
    controller.delete_game(session.game.code, session.game.host_id)
    assert watcher.deleted
    assert watcher.session is None


def test_store_emits_row_events():
    store = InMemoryStore()
    controller = PhaseController(store, rng=random.Random(2))
    session = controller.create_game("Host")
    events = []
    store.subscribe(session.game.id, events.append)
    player = controller.join_game(session.game.code, "A")
    assert [(e.table, e.kind, e.row_id) for e in events] == [("players", ChangeKind.INSERT, player.id)]
