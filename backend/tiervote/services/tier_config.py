"""
Tier configuration: the ordered list of tiers a session ranks into.

Stored as JSON on the voting session; sort_order 0 is the best tier.
"""

import re
from typing import Any, Dict, List

from pydantic import BaseModel

TIER_COLORS = [
    "#ff7f7f",
    "#ffbf7f",
    "#ffdf7f",
    "#ffff7f",
    "#bfff7f",
    "#7fff7f",
    "#7fffff",
    "#7fbfff",
    "#7f7fff",
    "#bf7fff",
    "#ff7fbf",
    "#ff7f9f",
]


class TierConfig(BaseModel):
    key: str
    label: str
    color: str
    sort_order: int


DEFAULT_TIER_CONFIG: List[TierConfig] = [
    TierConfig(key="S", label="S", color=TIER_COLORS[0], sort_order=0),
    TierConfig(key="A", label="A", color=TIER_COLORS[1], sort_order=1),
    TierConfig(key="B", label="B", color=TIER_COLORS[2], sort_order=2),
    TierConfig(key="C", label="C", color=TIER_COLORS[3], sort_order=3),
    TierConfig(key="D", label="D", color=TIER_COLORS[4], sort_order=4),
    TierConfig(key="F", label="F", color=TIER_COLORS[6], sort_order=5),
]


def derive_tier_keys(tiers: List[TierConfig]) -> List[TierConfig]:
    """Rebuild keys from labels (alphanumeric, max 10 chars) and renumber sort_order.

    Empty keys become T<index>; collisions get a numeric suffix. A blank color
    takes the palette color for its position.
    """
    result: List[TierConfig] = []
    seen = set()
    for i, tier in enumerate(tiers):
        base = re.sub(r"[^a-zA-Z0-9]", "", tier.label)[:10] or f"T{i}"
        key = base
        n = 1
        while key in seen:
            key = f"{base}{n}"
            n += 1
        seen.add(key)
        color = tier.color or TIER_COLORS[i % len(TIER_COLORS)]
        result.append(TierConfig(key=key, label=tier.label, color=color, sort_order=i))
    return result


def load_tier_config(raw: Any) -> List[TierConfig]:
    """Parse the stored JSON list, sorted best tier first. Falls back to the default when empty."""
    if not raw:
        return list(DEFAULT_TIER_CONFIG)
    tiers = [TierConfig.model_validate(t) for t in raw]
    return sorted(tiers, key=lambda t: t.sort_order)


def dump_tier_config(tiers: List[TierConfig]) -> List[Dict[str, Any]]:
    return [t.model_dump() for t in tiers]
