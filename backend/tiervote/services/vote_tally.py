"""
Matchup vote tally: majority wins, exact ties are a coin flip.
"""

import random
from typing import Any, Dict, Iterable, Optional, Tuple

from tiervote.services.bracket_generator import ItemId


def count_votes(matchup: Any, votes: Iterable[Any]) -> Tuple[int, int]:
    """Return (votes for item A, votes for item B).

    One vote per participant: a later vote from the same participant replaces
    the earlier one. Votes for anything other than the two items are ignored.
    """
    latest: Dict[Any, Any] = {}
    for vote in votes:
        latest[vote.participant_id] = vote.chosen_item_id

    votes_a = sum(1 for chosen in latest.values() if chosen == matchup.item_a_id)
    votes_b = sum(1 for chosen in latest.values() if chosen == matchup.item_b_id)
    return votes_a, votes_b


def decide_winner(matchup: Any, votes: Iterable[Any], rng: Optional[random.Random] = None) -> ItemId:
    if matchup.item_a_id is None or matchup.item_b_id is None:
        raise ValueError(f"Matchup round {matchup.round} position {matchup.position} is missing an item")
    if matchup.winner_id is not None:
        raise ValueError(f"Matchup round {matchup.round} position {matchup.position} is already decided")

    votes_a, votes_b = count_votes(matchup, votes)
    if votes_a > votes_b:
        return matchup.item_a_id
    if votes_b > votes_a:
        return matchup.item_b_id
    rng = rng or random
    return matchup.item_a_id if rng.random() < 0.5 else matchup.item_b_id
