"""
Match Store: the engine's persistent-store collaborator.

Wraps a SQLModel session behind the operations the engine needs:
- list_matches / list_registrations
- insert_matches (arena nodes -> rows, edges resolved from (round, match) keys)
- insert_round_if_absent (conditional insert keyed by tournament + round)
- update_match (compare-and-set on the expected column values)

Every SQLAlchemy failure is rolled back and surfaced as PersistenceError.
The store never commits on its own; callers commit one logical operation.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from matchplay.models.match import Match
from matchplay.models.registration import Registration
from matchplay.models.tournament import Tournament
from matchplay.services.bracket_errors import PersistenceError
from matchplay.services.bracket_structure import MatchKey, MatchNode

logger = logging.getLogger(__name__)


class MatchStore:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _operation(self, name: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"{name} failed: {exc}", {"operation": name}) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_tournament(self, tournament_id: int) -> Optional[Tournament]:
        with self._operation("get_tournament"):
            return self.session.get(Tournament, tournament_id)

    def list_built_tournaments(self) -> List[Tournament]:
        with self._operation("list_built_tournaments"):
            return list(
                self.session.exec(
                    select(Tournament).where(Tournament.bracket_built_at.is_not(None)).order_by(Tournament.id)
                ).all()
            )

    def get_match(self, match_id: int) -> Optional[Match]:
        with self._operation("get_match"):
            return self.session.get(Match, match_id)

    def refresh(self, match: Match) -> Match:
        with self._operation("refresh"):
            self.session.refresh(match)
        return match

    def list_matches(self, tournament_id: int) -> List[Match]:
        with self._operation("list_matches"):
            return list(
                self.session.exec(
                    select(Match)
                    .where(Match.tournament_id == tournament_id)
                    .order_by(Match.round_number, Match.match_number)
                ).all()
            )

    def list_registrations(self, tournament_id: int) -> List[Registration]:
        with self._operation("list_registrations"):
            return list(
                self.session.exec(
                    select(Registration)
                    .where(Registration.tournament_id == tournament_id)
                    .order_by(Registration.created_at, Registration.id)
                ).all()
            )

    def round_exists(self, tournament_id: int, round_number: int) -> bool:
        with self._operation("round_exists"):
            found = self.session.exec(
                select(Match.id).where(
                    Match.tournament_id == tournament_id,
                    Match.round_number == round_number,
                )
            ).first()
        return found is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _add_nodes(self, tournament_id: int, nodes: Iterable[MatchNode]) -> List[Match]:
        rows = []
        for node in nodes:
            row = Match(
                tournament_id=tournament_id,
                round_number=node.round_number,
                match_number=node.match_number,
                slot1_entrant_id=node.slot1_entrant_id,
                slot2_entrant_id=node.slot2_entrant_id,
                placeholder_slot1=node.placeholder_slot1,
                placeholder_slot2=node.placeholder_slot2,
                status=node.status,
                winner_entrant_id=node.winner_entrant_id,
                is_bye=node.is_bye,
            )
            self.session.add(row)
            rows.append(row)
        return rows

    def _wire_edges(self, tournament_id: int, nodes: List[MatchNode], rows: List[Match]) -> None:
        lookup: Dict[MatchKey, int] = {
            (m.round_number, m.match_number): m.id for m in self.list_matches(tournament_id)
        }
        for node, row in zip(nodes, rows):
            row.feeds_to_match_id = lookup.get(node.feeds_to) if node.feeds_to else None
            row.feeds_to_position = node.feeds_to_position if row.feeds_to_match_id else None
            row.previous_match_1_id = lookup.get(node.previous_1) if node.previous_1 else None
            row.previous_match_2_id = lookup.get(node.previous_2) if node.previous_2 else None
            self.session.add(row)

    def insert_matches(self, tournament_id: int, nodes: Iterable[MatchNode]) -> List[int]:
        """Insert arena nodes as rows and resolve their edges to row ids."""
        nodes = list(nodes)
        with self._operation("insert_matches"):
            rows = self._add_nodes(tournament_id, nodes)
            self.session.flush()
            self._wire_edges(tournament_id, nodes, rows)
            self.session.flush()
            return [row.id for row in rows]

    def insert_round_if_absent(
        self, tournament_id: int, round_number: int, nodes: Iterable[MatchNode]
    ) -> Optional[List[int]]:
        """
        Create a round only if no match of (tournament, round) exists yet.

        Returns the new row ids, or None when the round already exists
        (including when a concurrent writer inserted it first and the unique
        (tournament, round, match) constraint rejected this insert).
        """
        nodes = list(nodes)
        if self.round_exists(tournament_id, round_number):
            return None
        try:
            rows = self._add_nodes(tournament_id, nodes)
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            logger.info(
                "Round %d of tournament %d was created concurrently; skipping insert",
                round_number,
                tournament_id,
            )
            return None
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(
                f"insert_round_if_absent failed: {exc}",
                {"operation": "insert_round_if_absent", "round_number": round_number},
            ) from exc

        with self._operation("insert_round_if_absent"):
            self._wire_edges(tournament_id, nodes, rows)
            self.session.flush()
            return [row.id for row in rows]

    def update_match(
        self,
        match_id: int,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Compare-and-set update of one match.

        The row is written only if every column in expected still holds the
        given value (None means IS NULL). Returns False on conflict.
        """
        stmt = update(Match).where(Match.id == match_id)
        for column_name, value in (expected or {}).items():
            column = getattr(Match, column_name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**fields).execution_options(synchronize_session=False)

        with self._operation("update_match"):
            result = self.session.execute(stmt)
            cached = self.session.identity_map.get(Session.identity_key(Match, match_id))
            if cached is not None:
                # Reload on next access instead of trusting in-memory values
                self.session.expire(cached)
        return result.rowcount == 1

    def save(self, obj: Any) -> None:
        with self._operation("save"):
            self.session.add(obj)
            self.session.flush()

    def delete_bracket(self, tournament_id: int) -> int:
        """Teardown: drop every match of the tournament."""
        with self._operation("delete_bracket"):
            result = self.session.execute(delete(Match).where(Match.tournament_id == tournament_id))
        return result.rowcount

    def commit(self) -> None:
        with self._operation("commit"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
