"""Bracket topology: round/match counts, forward and back edges, capacity validation."""

import pytest

from matchplay.services.bracket_errors import StructureError
from matchplay.services.bracket_structure import (
    build_bracket_structure,
    build_round,
    feed_target,
    matches_in_round,
    placeholder_for,
    round_display_name,
    source_match_numbers,
    total_rounds,
    validate_capacity,
)


class TestCapacity:

    @pytest.mark.parametrize("capacity,rounds", [(2, 1), (4, 2), (8, 3), (16, 4), (64, 6)])
    def test_total_rounds(self, capacity, rounds):
        assert total_rounds(capacity) == rounds

    @pytest.mark.parametrize("capacity", [0, 1, 3, 6, 12, -4])
    def test_invalid_capacity_rejected(self, capacity):
        with pytest.raises(StructureError) as exc_info:
            validate_capacity(capacity)
        assert exc_info.value.context["capacity"] == capacity

    def test_non_integer_capacity_rejected(self):
        with pytest.raises(StructureError):
            validate_capacity("8")
        with pytest.raises(StructureError):
            validate_capacity(True)

    def test_matches_in_round_halves(self):
        assert [matches_in_round(16, r) for r in range(1, 5)] == [8, 4, 2, 1]

    def test_matches_in_round_out_of_range(self):
        with pytest.raises(StructureError):
            matches_in_round(8, 4)


class TestEdges:

    def test_feed_target(self):
        assert feed_target(1) == (1, 1)
        assert feed_target(2) == (1, 2)
        assert feed_target(3) == (2, 1)
        assert feed_target(4) == (2, 2)

    def test_source_match_numbers_inverts_feed_target(self):
        for n in range(1, 9):
            target, position = feed_target(n)
            assert source_match_numbers(target)[position - 1] == n

    def test_placeholders_name_source_match(self):
        nodes = build_round(8, 2)
        assert nodes[1].placeholder_slot1 == "Winner R1-M3"
        assert nodes[1].placeholder_slot2 == "Winner R1-M4"
        assert placeholder_for((2, 1)) == "Winner R2-M1"

    def test_first_round_has_no_back_edges(self):
        for node in build_round(8, 1):
            assert node.previous_1 is None and node.previous_2 is None
            assert node.placeholder_slot1 is None and node.placeholder_slot2 is None


class TestBuildBracketStructure:

    def test_capacity_8_shape(self):
        arena = build_bracket_structure(8)
        assert len(arena) == 7
        assert sorted(k for k in arena if k[0] == 1) == [(1, 1), (1, 2), (1, 3), (1, 4)]
        assert arena[(1, 3)].feeds_to == (2, 2)
        assert arena[(1, 3)].feeds_to_position == 1
        assert arena[(2, 2)].previous_1 == (1, 3)
        assert arena[(2, 2)].previous_2 == (1, 4)
        assert arena[(3, 1)].feeds_to is None

    def test_back_edges_are_inverse_of_forward_edges(self):
        arena = build_bracket_structure(32)
        for node in arena.values():
            if node.feeds_to is None:
                continue
            target = arena[node.feeds_to]
            back = target.previous_1 if node.feeds_to_position == 1 else target.previous_2
            assert back == node.key

    def test_all_matches_start_pending_and_empty(self):
        for node in build_bracket_structure(16).values():
            assert node.status == "pending"
            assert node.slot1_entrant_id is None and node.slot2_entrant_id is None
            assert node.winner_entrant_id is None

    @pytest.mark.parametrize("capacity", [2, 4, 8, 16, 32, 64])
    def test_total_matches_is_capacity_minus_one(self, capacity):
        assert len(build_bracket_structure(capacity)) == capacity - 1

    def test_capacity_2_is_a_single_final(self):
        arena = build_bracket_structure(2)
        assert list(arena) == [(1, 1)]
        assert arena[(1, 1)].feeds_to is None

    def test_partial_build_leaves_forward_edges_unset(self):
        arena = build_bracket_structure(8, up_to_round=1)
        assert len(arena) == 4
        assert all(node.feeds_to is None and node.feeds_to_position is None for node in arena.values())

    def test_invalid_capacity_builds_nothing(self):
        with pytest.raises(StructureError):
            build_bracket_structure(6)


def test_round_display_names():
    assert round_display_name(3, 3) == "Final"
    assert round_display_name(2, 3) == "Semifinals"
    assert round_display_name(1, 3) == "Quarterfinals"
    assert round_display_name(1, 4) == "Round 1"
    assert round_display_name(1, 1) == "Final"
