"""
Reconciliation: level-triggered, idempotent repair of a tournament's bracket.

Each pass:
1. Re-applies advancement for every completed match (heals interrupted writes)
2. For incremental brackets, materializes round r+1 once every match of round r
   is completed, placing the known winners and wiring round r's forward edges

Round creation is a conditional insert keyed by (tournament, round), so
concurrent passes never create a round twice.

ReconciliationPoller owns its own cancellable ticker; callers start and stop it.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlmodel import Session

from matchplay.models.match import Match, MatchStatus
from matchplay.services.advancement_service import resolve_all_dependencies
from matchplay.services.bracket_errors import BracketError, TournamentNotFound
from matchplay.services.bracket_structure import (
    build_round,
    feed_target,
    matches_in_round,
    source_match_numbers,
    total_rounds,
)
from matchplay.services.match_store import MatchStore

logger = logging.getLogger(__name__)

RECONCILE_INTERVAL_SECONDS = float(os.getenv("RECONCILE_INTERVAL_SECONDS", "2.0"))

COMPLETED = MatchStatus.completed.value


@dataclass
class ReconcileResult:
    tournament_id: int
    rounds_created: List[int] = field(default_factory=list)
    slots_advanced: int = 0
    conflicts: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "rounds_created": self.rounds_created,
            "slots_advanced": self.slots_advanced,
            "conflicts": self.conflicts,
        }


def _group_by_round(matches: List[Match]) -> Dict[int, List[Match]]:
    by_round: Dict[int, List[Match]] = {}
    for m in matches:
        by_round.setdefault(m.round_number, []).append(m)
    return by_round


def _round_complete(matches: List[Match], expected_count: int) -> bool:
    return len(matches) == expected_count and all(
        m.status == COMPLETED and m.winner_entrant_id is not None for m in matches
    )


def materialize_next_round(store: MatchStore, tournament, round_matches: List[Match]) -> Optional[List[int]]:
    """
    Create round r+1 from a fully completed round r.

    Returns new match ids, or None if the round already exists. Does not commit.
    """
    current_round = round_matches[0].round_number
    next_round = current_round + 1
    by_number = {m.match_number: m for m in round_matches}

    nodes = build_round(tournament.capacity, next_round)
    for node in nodes:
        s1, s2 = source_match_numbers(node.match_number)
        node.slot1_entrant_id = by_number[s1].winner_entrant_id
        node.slot2_entrant_id = by_number[s2].winner_entrant_id
        if node.slot1_entrant_id is not None:
            node.placeholder_slot1 = None
        if node.slot2_entrant_id is not None:
            node.placeholder_slot2 = None
        if node.slot1_entrant_id is not None and node.slot2_entrant_id is not None:
            node.status = MatchStatus.scheduled.value

    new_ids = store.insert_round_if_absent(tournament.id, next_round, nodes)
    if new_ids is None:
        return None

    id_by_number = {node.match_number: new_id for node, new_id in zip(nodes, new_ids)}
    for source in round_matches:
        target_number, position = feed_target(source.match_number)
        store.update_match(
            source.id,
            {"feeds_to_match_id": id_by_number[target_number], "feeds_to_position": position},
            expected={"feeds_to_match_id": None},
        )
    return new_ids


def reconcile(store: MatchStore, tournament_id: int) -> ReconcileResult:
    """
    Run one reconciliation pass for a tournament. Commits each created round.

    Raises:
        TournamentNotFound: unknown tournament
    """
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise TournamentNotFound(f"Tournament {tournament_id} not found", {"tournament_id": tournament_id})

    result = ReconcileResult(tournament_id=tournament_id)
    if tournament.bracket_built_at is None:
        return result

    repair = resolve_all_dependencies(store, tournament_id)
    result.slots_advanced = repair["slots_advanced"]
    result.conflicts = repair["conflicts"]
    store.commit()

    rounds = total_rounds(tournament.capacity)
    by_round = _group_by_round(store.list_matches(tournament_id))

    for r in range(1, rounds):
        current = by_round.get(r, [])
        if not _round_complete(current, matches_in_round(tournament.capacity, r)):
            break
        if r + 1 in by_round:
            continue
        created = materialize_next_round(store, tournament, current)
        if created is None:
            # Another pass created it; re-read and keep walking
            by_round = _group_by_round(store.list_matches(tournament_id))
            continue
        store.commit()
        result.rounds_created.append(r + 1)
        logger.info("Created round %d (%d matches) for tournament %d", r + 1, len(created), tournament_id)
        by_round = _group_by_round(store.list_matches(tournament_id))

    return result


def reconcile_all_tournaments(session_factory: Callable[[], Session]) -> List[ReconcileResult]:
    """One pass over every tournament with a built bracket, each in its own transaction."""
    results: List[ReconcileResult] = []
    with session_factory() as session:
        store = MatchStore(session)
        for tournament in store.list_built_tournaments():
            try:
                results.append(reconcile(store, tournament.id))
            except BracketError as exc:
                store.rollback()
                logger.warning("Reconciliation failed for tournament %d: %s", tournament.id, exc.message)
    return results


class ReconciliationPoller:
    """
    Periodic reconciliation on a background thread.

    stop() halts future ticks; a tick already running finishes first.
    Ticks never overlap within one poller.
    """

    def __init__(
        self,
        reconcile_fn: Callable[[], Any],
        interval_seconds: float = RECONCILE_INTERVAL_SECONDS,
        name: str = "bracket-reconciler",
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.reconcile_fn = reconcile_fn
        self.interval_seconds = interval_seconds
        self.name = name
        self.ticks = 0
        self._stop = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Reconciliation poller started (every %.1fs)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reconciliation poller stopped after %d tick(s)", self.ticks)

    def tick(self) -> Any:
        with self._tick_lock:
            self.ticks += 1
            try:
                return self.reconcile_fn()
            except Exception as exc:
                logger.exception("Reconciliation tick failed: %s", exc)
                return None

    def _run(self) -> None:
        if self._stop.is_set():
            return
        self.tick()
        while not self._stop.wait(self.interval_seconds):
            self.tick()
