"""Card tiers earned through lifetime points.

A customer's card in a program climbs STANDARD -> SILVER -> GOLD -> PLATINUM
as lifetime points cross the thresholds below. Counter awards are scaled by
the tier's multiplier. Tiers never drop when points are spent or expire.
"""

from decimal import Decimal, ROUND_HALF_UP


STANDARD = "STANDARD"
SILVER = "SILVER"
GOLD = "GOLD"
PLATINUM = "PLATINUM"

# ordered lowest first
CARD_TIERS = [
    {"tier": STANDARD, "points_required": 0, "multiplier": Decimal("1.0")},
    {"tier": SILVER, "points_required": 1000, "multiplier": Decimal("1.25")},
    {"tier": GOLD, "points_required": 2500, "multiplier": Decimal("1.5")},
    {"tier": PLATINUM, "points_required": 5000, "multiplier": Decimal("2.0")},
]

TIER_RANK = {t["tier"]: rank for rank, t in enumerate(CARD_TIERS)}


def _tier_row(tier: str) -> dict:
    for row in CARD_TIERS:
        if row["tier"] == tier:
            return row
    return CARD_TIERS[0]


def tier_for_points(lifetime_points: int) -> str:
    current = STANDARD
    for row in CARD_TIERS:
        if lifetime_points >= row["points_required"]:
            current = row["tier"]
    return current


def multiplier_for(tier: str) -> Decimal:
    return _tier_row(tier)["multiplier"]


def apply_multiplier(points: int, tier: str) -> int:
    """Scale base points by the tier multiplier, rounding half up."""
    scaled = (Decimal(points) * multiplier_for(tier)).to_integral_value(rounding=ROUND_HALF_UP)
    return int(scaled)


def points_to_next_tier(tier: str, lifetime_points: int) -> int | None:
    rank = TIER_RANK.get(tier, 0)
    if rank + 1 >= len(CARD_TIERS):
        return None
    return max(0, CARD_TIERS[rank + 1]["points_required"] - lifetime_points)


def is_upgrade(old_tier: str | None, new_tier: str) -> bool:
    return TIER_RANK.get(new_tier, 0) > TIER_RANK.get(old_tier or STANDARD, 0)
