from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Sequence, Tuple

from .models import TIER_ORDER, CreativeMetrics, PersonaReaction, ReactionAction, Tier, TierScores


def _round_half_up(x: float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(repr(x)).quantize(quantum, rounding=ROUND_HALF_UP)


def pct(count: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        raise ValueError("percentage of an empty set")
    return int(_round_half_up(count / total * 100))


def pct1(count: int, total: int) -> float:
    """Percentage to one decimal place, halves rounded up."""
    if total <= 0:
        raise ValueError("percentage of an empty set")
    return float(_round_half_up(count / total * 100, 1))


def pct_split(counts: Sequence[int]) -> List[int]:
    """
    Whole-number shares of sum(counts) that add up to exactly 100.

    Largest-remainder rounding; ties go to the earlier position.
    """
    total = sum(counts)
    if total <= 0:
        raise ValueError("percentage of an empty set")
    floors = [c * 100 // total for c in counts]
    by_remainder = sorted(range(len(counts)), key=lambda i: (-(counts[i] * 100 % total), i))
    for i in by_remainder[:100 - sum(floors)]:
        floors[i] += 1
    return floors


def mean_score(scores: Sequence[int]) -> int:
    if not scores:
        raise ValueError("mean of an empty set")
    return int(_round_half_up(sum(scores) / len(scores)))


def tier_scores(reactions: Sequence[PersonaReaction]) -> TierScores:
    by_tier: Dict[Tier, List[int]] = {}
    for r in reactions:
        by_tier.setdefault(r.persona.tier, []).append(r.overall_score)
    # Empty tiers get no entry at all
    return {t: mean_score(by_tier[t]) for t in TIER_ORDER if by_tier.get(t)}


def reduce_metrics(reactions: Sequence[PersonaReaction]) -> Tuple[CreativeMetrics, TierScores]:
    """Fold one creative's reactions into rates over the whole panel plus per-tier means."""
    total = len(reactions)
    if total == 0:
        raise ValueError("Cannot reduce an empty reaction set.")

    stopped = sum(1 for r in reactions if r.stopped)
    held = sum(1 for r in reactions if r.kept_watching)
    clicked = sum(1 for r in reactions if r.action is ReactionAction.CLICKED)

    metrics = CreativeMetrics(
        hook_rate=pct(stopped, total),
        hold_rate=pct(held, total),
        ctr=pct1(clicked, total),
        overall_score=mean_score([r.overall_score for r in reactions]),
    )
    return metrics, tier_scores(reactions)
