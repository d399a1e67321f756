"""
Bracket Service - caller entry points

- build_bracket: topology from capacity, round-1 seeding, bye advancement
- complete_match: guarded completion + winner advancement
- reconcile: level-triggered repair / next-round materialization

Each entry point is one logical operation: it commits once on success and
rolls back everything on any failure, so a retry starts from a clean state.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from matchplay.models.match import Match
from matchplay.models.tournament import BracketMode, EntrantKind
from matchplay.services import advancement_service, reconciliation_service
from matchplay.services.bracket_errors import BracketError, StructureError, TournamentNotFound, ValidationError
from matchplay.services.bracket_structure import (
    build_bracket_structure,
    round_display_name,
    total_rounds,
    validate_capacity,
)
from matchplay.services.match_store import MatchStore
from matchplay.services.reconciliation_service import ReconcileResult
from matchplay.services.seeding import (
    Competitor,
    SeedingPolicy,
    apply_seeding,
    assign_first_round,
    competitor_from_entrant,
    order_registrations,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    tournament_id: int
    capacity: int
    entrant_kind: str
    bracket_mode: str
    policy: str
    total_rounds: int
    rounds_built: int
    matches_created: int
    bye_count: int
    bye_match_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "capacity": self.capacity,
            "entrant_kind": self.entrant_kind,
            "bracket_mode": self.bracket_mode,
            "policy": self.policy,
            "total_rounds": self.total_rounds,
            "rounds_built": self.rounds_built,
            "matches_created": self.matches_created,
            "bye_count": self.bye_count,
            "bye_match_ids": self.bye_match_ids,
        }


def _load_tournament(store: MatchStore, tournament_id: int):
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise TournamentNotFound(f"Tournament {tournament_id} not found", {"tournament_id": tournament_id})
    return tournament


def load_competitors(store: MatchStore, tournament_id: int, entrant_kind: str) -> List[Competitor]:
    """Registrations in seeding order, read as Individual/Pair variants of the tournament's kind."""
    competitors: List[Competitor] = []
    for registration in order_registrations(store.list_registrations(tournament_id)):
        entrant = registration.entrant
        if entrant.kind != entrant_kind:
            raise ValidationError(
                f"Entrant {entrant.id} is a {entrant.kind} entrant; tournament expects {entrant_kind}",
                {"entrant_id": entrant.id, "expected": entrant_kind, "actual": entrant.kind},
            )
        competitors.append(competitor_from_entrant(entrant, position=registration.position))
    return competitors


def build_bracket(
    store: MatchStore,
    tournament_id: int,
    capacity: Optional[int] = None,
    entrant_kind: Optional[str] = None,
    policy: Optional[SeedingPolicy] = None,
    mode: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> BuildResult:
    """
    Build and seed a tournament's bracket in one transaction.

    capacity / entrant_kind / mode default to the tournament's own values and
    may only differ from them before the bracket exists.

    Raises:
        StructureError: invalid capacity, or the bracket already exists
        ValidationError: roster problems (too few/many entrants, kind mismatch)
        PersistenceError: store failure (nothing is kept)
    """
    tournament = _load_tournament(store, tournament_id)

    if tournament.bracket_built_at is not None or store.list_matches(tournament_id):
        raise StructureError(
            f"Bracket for tournament {tournament_id} already exists",
            {"tournament_id": tournament_id, "bracket_built_at": str(tournament.bracket_built_at)},
        )

    capacity = tournament.capacity if capacity is None else capacity
    entrant_kind = EntrantKind(entrant_kind or tournament.entrant_kind).value
    mode = BracketMode(mode or tournament.bracket_mode).value
    validate_capacity(capacity)

    try:
        competitors = load_competitors(store, tournament_id, entrant_kind)
        up_to_round = 1 if mode == BracketMode.incremental.value else None
        arena = build_bracket_structure(capacity, up_to_round=up_to_round)
        seeding = assign_first_round(competitors, capacity, policy=policy, rng=rng)
        bye_keys = apply_seeding(arena, seeding)

        nodes = sorted(arena.values(), key=lambda n: n.key)
        new_ids = store.insert_matches(tournament_id, nodes)
        id_by_key = {node.key: new_id for node, new_id in zip(nodes, new_ids)}

        bye_match_ids = [id_by_key[key] for key in bye_keys]
        for match_id in bye_match_ids:
            advancement_service.advance_winner(store, store.get_match(match_id))

        tournament.capacity = capacity
        tournament.entrant_kind = entrant_kind
        tournament.bracket_mode = mode
        tournament.bracket_built_at = datetime.utcnow()
        tournament.updated_at = datetime.utcnow()
        store.save(tournament)
        store.commit()
    except BracketError:
        store.rollback()
        raise

    result = BuildResult(
        tournament_id=tournament_id,
        capacity=capacity,
        entrant_kind=entrant_kind,
        bracket_mode=mode,
        policy=seeding.policy.value,
        total_rounds=total_rounds(capacity),
        rounds_built=max(n.round_number for n in nodes),
        matches_created=len(new_ids),
        bye_count=seeding.bye_count,
        bye_match_ids=bye_match_ids,
    )
    logger.info(
        "Built %s bracket for tournament %d: capacity=%d, %d matches, %d byes, policy=%s",
        mode,
        tournament_id,
        capacity,
        result.matches_created,
        result.bye_count,
        result.policy,
    )
    return result


def complete_match(
    store: MatchStore,
    tournament_id: int,
    match_id: int,
    winner_entrant_id: int,
    scores: Optional[Dict[str, Any]] = None,
) -> advancement_service.CompletionResult:
    """Complete a match and advance its winner; commits on success, rolls back on any error."""
    _load_tournament(store, tournament_id)
    try:
        result = advancement_service.complete_match(store, tournament_id, match_id, winner_entrant_id, scores)
        store.commit()
    except BracketError:
        store.rollback()
        raise
    store.refresh(result.match)
    return result


def reconcile(store: MatchStore, tournament_id: int) -> ReconcileResult:
    try:
        return reconciliation_service.reconcile(store, tournament_id)
    except BracketError:
        store.rollback()
        raise


def resolve_dependencies(store: MatchStore, tournament_id: int) -> Dict[str, Any]:
    _load_tournament(store, tournament_id)
    try:
        result = advancement_service.resolve_all_dependencies(store, tournament_id)
        store.commit()
    except BracketError:
        store.rollback()
        raise
    return result


def teardown_bracket(store: MatchStore, tournament_id: int) -> int:
    """Delete a tournament's matches and unfreeze it. Returns deleted match count."""
    tournament = _load_tournament(store, tournament_id)
    try:
        deleted = store.delete_bracket(tournament_id)
        tournament.bracket_built_at = None
        store.save(tournament)
        store.commit()
    except BracketError:
        store.rollback()
        raise
    logger.info("Tore down bracket of tournament %d (%d matches)", tournament_id, deleted)
    return deleted


def rounds_view(store: MatchStore, tournament_id: int) -> List[Dict[str, Any]]:
    """Matches grouped by round with display names, in bracket order."""
    tournament = _load_tournament(store, tournament_id)
    rounds = tournament.total_rounds
    grouped: Dict[int, List[Match]] = {}
    for m in store.list_matches(tournament_id):
        grouped.setdefault(m.round_number, []).append(m)

    return [
        {
            "round_number": r,
            "name": round_display_name(r, rounds),
            "matches": grouped[r],
        }
        for r in sorted(grouped)
    ]
