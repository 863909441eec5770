"""
Tier-list consensus across participants.

Each tier is worth max_sort_order - sort_order + 1 points (top tier highest).
A voter's within-tier ordering adds a bonus in [0, 1):
    (tier_count - 1 - rank_in_tier) / tier_count
so ordering inside a tier can never lift an item past a tier boundary.
Items land in the tier whose score is closest to their average; items
nobody voted on land in the lowest tier.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from tiervote.services.tier_config import TierConfig


@dataclass
class ConsensusItem:
    id: int
    label: str
    image_url: str
    average_score: float = 0.0
    vote_distribution: Dict[str, int] = field(default_factory=dict)
    total_votes: int = 0


@dataclass
class ConsensusTier:
    key: str
    label: str
    color: str
    sort_order: int
    items: List[ConsensusItem] = field(default_factory=list)


def compute_consensus(
    votes: Iterable[Any],
    tier_config: Sequence[TierConfig],
    items: Sequence[Any],
) -> List[ConsensusTier]:
    """*votes* expose participant_id, session_item_id, tier_key, rank_in_tier;
    *items* expose id, label, image_url."""
    if not tier_config:
        raise ValueError("Tier config must contain at least one tier")

    votes = list(votes)
    tiers = sorted(tier_config, key=lambda t: t.sort_order)
    max_sort = max(t.sort_order for t in tiers)
    tier_scores = {t.key: max_sort - t.sort_order + 1 for t in tiers}

    voter_tier_counts: Dict[Any, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for vote in votes:
        voter_tier_counts[vote.participant_id][vote.tier_key] += 1

    totals: Dict[Any, float] = defaultdict(float)
    counts: Dict[Any, int] = defaultdict(int)
    distributions: Dict[Any, Dict[str, int]] = defaultdict(dict)
    item_ids = {item.id for item in items}

    for vote in votes:
        if vote.session_item_id not in item_ids or vote.tier_key not in tier_scores:
            continue
        tier_count = voter_tier_counts[vote.participant_id][vote.tier_key]
        bonus = (tier_count - 1 - vote.rank_in_tier) / tier_count if tier_count > 1 else 0.0
        totals[vote.session_item_id] += tier_scores[vote.tier_key] + bonus
        counts[vote.session_item_id] += 1
        dist = distributions[vote.session_item_id]
        dist[vote.tier_key] = dist.get(vote.tier_key, 0) + 1

    result = [
        ConsensusTier(key=t.key, label=t.label, color=t.color, sort_order=t.sort_order) for t in tiers
    ]
    by_key = {t.key: t for t in result}
    lowest = result[-1]

    for item in items:
        count = counts.get(item.id, 0)
        enriched = ConsensusItem(
            id=item.id,
            label=item.label,
            image_url=item.image_url,
            average_score=totals[item.id] / count if count else 0.0,
            vote_distribution=dict(distributions.get(item.id, {})),
            total_votes=count,
        )
        if count == 0:
            lowest.items.append(enriched)
            continue

        closest = lowest.key
        closest_dist = float("inf")
        for t in tiers:
            dist = abs(enriched.average_score - tier_scores[t.key])
            if dist < closest_dist:
                closest_dist = dist
                closest = t.key
        by_key[closest].items.append(enriched)

    for tier in result:
        tier.items.sort(key=lambda i: i.average_score, reverse=True)
    return result
