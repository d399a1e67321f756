"""Reconciliation: next-round materialization, idempotent passes, and the poller."""

import threading

import pytest
from sqlmodel import Session

from matchplay.services import bracket_service
from matchplay.services.bracket_errors import TournamentNotFound
from matchplay.services.match_store import MatchStore
from matchplay.services.reconciliation_service import (
    ReconciliationPoller,
    reconcile,
    reconcile_all_tournaments,
)


def by_key(store, tournament_id):
    return {(m.round_number, m.match_number): m for m in store.list_matches(tournament_id)}


@pytest.fixture
def incremental_four(session: Session, make_tournament):
    tid, entrants = make_tournament(4, [1.0, 2.0, 3.0, 4.0], bracket_mode="incremental")
    store = MatchStore(session)
    result = bracket_service.build_bracket(store, tid)
    assert result.rounds_built == 1
    return store, tid, entrants


def test_incremental_build_creates_round_one_only(incremental_four):
    store, tid, _ = incremental_four
    matches = store.list_matches(tid)
    assert [(m.round_number, m.match_number) for m in matches] == [(1, 1), (1, 2)]
    assert all(m.feeds_to_match_id is None for m in matches)


def test_no_round_created_until_round_complete(incremental_four):
    store, tid, e = incremental_four
    assert reconcile(store, tid).rounds_created == []

    bracket_service.complete_match(store, tid, by_key(store, tid)[(1, 1)].id, e[0])
    assert reconcile(store, tid).rounds_created == []
    assert len(store.list_matches(tid)) == 2


def test_completed_round_materializes_next(incremental_four):
    store, tid, e = incremental_four
    matches = by_key(store, tid)
    bracket_service.complete_match(store, tid, matches[(1, 1)].id, e[0])
    bracket_service.complete_match(store, tid, matches[(1, 2)].id, e[1])

    result = reconcile(store, tid)
    assert result.rounds_created == [2]

    matches = by_key(store, tid)
    final = matches[(2, 1)]
    assert (final.slot1_entrant_id, final.slot2_entrant_id) == (e[0], e[1])
    assert final.placeholder_slot1 is None and final.placeholder_slot2 is None
    assert final.status == "scheduled"
    assert (final.previous_match_1_id, final.previous_match_2_id) == (matches[(1, 1)].id, matches[(1, 2)].id)
    assert (matches[(1, 1)].feeds_to_match_id, matches[(1, 1)].feeds_to_position) == (final.id, 1)
    assert (matches[(1, 2)].feeds_to_match_id, matches[(1, 2)].feeds_to_position) == (final.id, 2)


def test_reconcile_is_idempotent(incremental_four):
    store, tid, e = incremental_four
    matches = by_key(store, tid)
    bracket_service.complete_match(store, tid, matches[(1, 1)].id, e[0])
    bracket_service.complete_match(store, tid, matches[(1, 2)].id, e[1])

    assert reconcile(store, tid).rounds_created == [2]
    second = reconcile(store, tid)
    assert second.rounds_created == []
    assert second.slots_advanced == 0
    assert len(store.list_matches(tid)) == 3


def test_incremental_with_byes_runs_to_a_final(session: Session, make_tournament):
    tid, e = make_tournament(8, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0], bracket_mode="incremental")
    store = MatchStore(session)
    bracket_service.build_bracket(store, tid)

    r1 = by_key(store, tid)
    bracket_service.complete_match(store, tid, r1[(1, 2)].id, e[2])
    bracket_service.complete_match(store, tid, r1[(1, 3)].id, e[3])
    assert reconcile(store, tid).rounds_created == [2]

    r2 = by_key(store, tid)
    assert (r2[(2, 1)].slot1_entrant_id, r2[(2, 1)].slot2_entrant_id) == (e[0], e[2])
    assert (r2[(2, 2)].slot1_entrant_id, r2[(2, 2)].slot2_entrant_id) == (e[3], e[1])

    bracket_service.complete_match(store, tid, r2[(2, 1)].id, e[0])
    bracket_service.complete_match(store, tid, r2[(2, 2)].id, e[1])
    assert reconcile(store, tid).rounds_created == [3]

    final = by_key(store, tid)[(3, 1)]
    assert (final.slot1_entrant_id, final.slot2_entrant_id) == (e[0], e[1])


def test_full_bracket_needs_no_new_rounds(session: Session, make_tournament):
    tid, e = make_tournament(4, [1.0, 2.0, 3.0, 4.0])
    store = MatchStore(session)
    bracket_service.build_bracket(store, tid)
    for m in store.list_matches(tid)[:2]:
        bracket_service.complete_match(store, tid, m.id, m.slot1_entrant_id)

    result = reconcile(store, tid)
    assert result.rounds_created == []
    assert len(store.list_matches(tid)) == 3


def test_unbuilt_tournament_is_a_no_op(session: Session, make_tournament):
    tid, _ = make_tournament(4, [1.0, 2.0])
    assert reconcile(MatchStore(session), tid).to_dict() == {
        "tournament_id": tid,
        "rounds_created": [],
        "slots_advanced": 0,
        "conflicts": [],
    }


def test_unknown_tournament(session: Session):
    with pytest.raises(TournamentNotFound):
        reconcile(MatchStore(session), 424242)


def test_reconcile_all_tournaments_covers_built_brackets(session: Session, make_tournament):
    tid, e = make_tournament(4, [1.0, 2.0, 3.0, 4.0], bracket_mode="incremental")
    make_tournament(4, [1.0, 2.0], name="Not Built Yet")
    store = MatchStore(session)
    bracket_service.build_bracket(store, tid)
    matches = by_key(store, tid)
    bracket_service.complete_match(store, tid, matches[(1, 1)].id, e[0])
    bracket_service.complete_match(store, tid, matches[(1, 2)].id, e[1])

    engine = session.get_bind()
    session.close()

    results = reconcile_all_tournaments(lambda: Session(engine))
    assert [r.tournament_id for r in results] == [tid]
    assert results[0].rounds_created == [2]
    assert len(MatchStore(session).list_matches(tid)) == 3


class TestReconciliationPoller:

    def test_ticks_until_stopped(self):
        calls = []
        ticked_twice = threading.Event()

        def fake_reconcile():
            calls.append(1)
            if len(calls) >= 2:
                ticked_twice.set()
            return len(calls)

        poller = ReconciliationPoller(fake_reconcile, interval_seconds=0.01)
        poller.start()
        assert ticked_twice.wait(timeout=5)
        poller.stop(timeout=5)

        assert not poller.is_running
        stopped_at = len(calls)
        assert poller.ticks == stopped_at
        assert stopped_at >= 2

    def test_failing_tick_is_logged_not_raised(self, caplog):
        def broken():
            raise RuntimeError("database unavailable")

        poller = ReconciliationPoller(broken, interval_seconds=1.0)
        assert poller.tick() is None
        assert poller.ticks == 1
        assert "Reconciliation tick failed" in caplog.text

    def test_start_is_idempotent(self):
        started = threading.Event()
        poller = ReconciliationPoller(started.set, interval_seconds=60)
        poller.start()
        first_thread = poller._thread
        poller.start()
        assert poller._thread is first_thread
        assert started.wait(timeout=5)
        poller.stop(timeout=5)
        assert not poller.is_running

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            ReconciliationPoller(lambda: None, interval_seconds=0)
