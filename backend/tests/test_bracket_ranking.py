"""
Tests for backtracking ranking, the elimination-round fallback and tier seeding.
"""
import random

import pytest

from tiervote.services.bracket_advancer import advance_winner, resolve_byes
from tiervote.services.bracket_generator import MatchupSlot, generate_bracket
from tiervote.services.bracket_ranking import (
    distribute_into_tiers,
    elimination_round_ranking,
    rank_bracket,
)


def _m(round_number, position, a, b, winner=None) -> MatchupSlot:
    return MatchupSlot(round=round_number, position=position, item_a_id=a, item_b_id=b, winner_id=winner)


def _play_out(item_ids, seed):
    """Generate a bracket and decide every matchup at random, round by round."""
    rng = random.Random(seed)
    skeleton = generate_bracket(item_ids, rng)
    resolve_byes(skeleton.matchups, skeleton.rounds)
    for r in range(1, skeleton.rounds + 1):
        for m in [m for m in skeleton.matchups if m.round == r]:
            if m.winner_id is None and m.item_a_id is not None and m.item_b_id is not None:
                m.winner_id = rng.choice([m.item_a_id, m.item_b_id])
                advance_winner(skeleton.matchups, m, skeleton.rounds)
    return skeleton


class TestBacktracking:
    def test_four_item_bracket(self):
        matchups = [
            _m(1, 0, "A", "B", "A"),
            _m(1, 1, "C", "D", "C"),
            _m(2, 0, "A", "C", "A"),
        ]
        assert rank_bracket(matchups, 2, ["A", "B", "C", "D"]) == ["A", "C", "B", "D"]

    def test_two_item_bracket(self):
        matchups = [_m(1, 0, "X", "Y", "Y")]
        assert rank_bracket(matchups, 1, ["X", "Y"]) == ["Y", "X"]

    def test_eight_item_bracket_follows_conquerors(self):
        matchups = [
            _m(1, 0, 1, 2, 1),
            _m(1, 1, 3, 4, 3),
            _m(1, 2, 5, 6, 6),
            _m(1, 3, 7, 8, 8),
            _m(2, 0, 1, 3, 3),
            _m(2, 1, 6, 8, 6),
            _m(3, 0, 3, 6, 3),
        ]
        # 3's victims latest round first (1 then 4), then 6's (8 then 5), then 1's, then 8's
        assert rank_bracket(matchups, 3, list(range(1, 9))) == [3, 6, 1, 4, 8, 5, 2, 7]

    def test_early_loss_to_champion_beats_early_loss_to_finalist(self):
        matchups = [
            _m(1, 0, "A", "B", "B"),
            _m(1, 1, "C", "D", "D"),
            _m(2, 0, "B", "D", "D"),
        ]
        ranked = rank_bracket(matchups, 2, ["A", "B", "C", "D"])
        assert ranked.index("C") < ranked.index("A")

    def test_bye_item_ranked_behind_its_conqueror(self):
        matchups = [
            _m(1, 0, "X", "Y", "X"),
            _m(1, 1, "Z", None, "Z"),
            _m(2, 0, "X", "Z", "X"),
        ]
        assert rank_bracket(matchups, 2, ["X", "Y", "Z"]) == ["X", "Z", "Y"]

    def test_items_outside_bracket_go_last_in_input_order(self):
        matchups = [_m(1, 0, "A", "B", "A")]
        assert rank_bracket(matchups, 1, ["Q", "A", "P", "B"]) == ["A", "B", "Q", "P"]

    @pytest.mark.parametrize("n", range(2, 18))
    def test_complete_bracket_is_a_permutation(self, n):
        items = [f"item-{i}" for i in range(n)]
        skeleton = _play_out(items, seed=n)
        final = next(m for m in skeleton.matchups if m.round == skeleton.rounds)
        assert final.winner_id is not None

        ranked = rank_bracket(skeleton.matchups, skeleton.rounds, items)
        assert sorted(ranked) == sorted(items)
        assert len(ranked) == len(set(ranked))
        assert ranked[0] == final.winner_id
        finalist = final.item_b_id if final.winner_id == final.item_a_id else final.item_a_id
        assert ranked[1] == finalist


class TestEliminationFallback:
    def test_round_one_winners_precede_round_one_losers(self):
        matchups = [
            _m(1, 0, "A", "B", "A"),
            _m(1, 1, "C", "D", "C"),
            _m(2, 0, "A", "C"),
        ]
        ranked = rank_bracket(matchups, 2, ["A", "B", "C", "D"])
        assert set(ranked[:2]) == {"A", "C"}
        assert set(ranked[2:]) == {"B", "D"}

    def test_untouched_bracket_keeps_input_order(self):
        matchups = [_m(1, 0, "A", "B"), _m(1, 1, "C", "D"), _m(2, 0, None, None)]
        assert rank_bracket(matchups, 2, ["D", "C", "B", "A"]) == ["D", "C", "B", "A"]

    def test_later_elimination_ranks_higher(self):
        matchups = [
            _m(1, 0, 1, 2, 1),
            _m(1, 1, 3, 4, 3),
            _m(1, 2, 5, 6, 6),
            _m(1, 3, 7, 8, 8),
            _m(2, 0, 1, 3, 3),
            _m(2, 1, 6, 8),
            _m(3, 0, 3, None),
        ]
        ranked = elimination_round_ranking(matchups, 3, list(range(1, 9)))
        assert set(ranked[:3]) == {3, 6, 8}
        assert ranked[3] == 1
        assert set(ranked[4:]) == {2, 4, 5, 7}

    def test_items_never_placed_rank_last(self):
        matchups = [_m(1, 0, "A", "B", "B"), _m(2, 0, "B", None)]
        assert elimination_round_ranking(matchups, 2, ["ghost", "A", "B"]) == ["B", "A", "ghost"]

    def test_partial_bracket_is_a_permutation(self):
        items = [f"item-{i}" for i in range(11)]
        skeleton = generate_bracket(items, random.Random(4))
        resolve_byes(skeleton.matchups, skeleton.rounds)
        ranked = rank_bracket(skeleton.matchups, skeleton.rounds, items)
        assert sorted(ranked) == sorted(items)


class TestDistributeIntoTiers:
    def test_remainder_goes_to_earliest_tiers(self):
        seeded = distribute_into_tiers(list("abcdefg"), ["S", "A", "B"])
        assert seeded == {"S": ["a", "b", "c"], "A": ["d", "e"], "B": ["f", "g"]}

    def test_fewer_items_than_tiers(self):
        seeded = distribute_into_tiers(["x", "y"], ["S", "A", "B", "C"])
        assert seeded == {"S": ["x"], "A": ["y"], "B": [], "C": []}

    def test_even_split(self):
        seeded = distribute_into_tiers(list(range(6)), ["S", "A", "B"])
        assert [len(v) for v in seeded.values()] == [2, 2, 2]

    def test_no_tiers_raises(self):
        with pytest.raises(ValueError):
            distribute_into_tiers(["x"], [])
