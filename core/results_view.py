# core/results_view.py
# Read-only queries over a finished TestResultBundle. Presentation layers
# filter and paginate through these instead of re-deriving metrics.
from __future__ import annotations

from typing import List, Tuple

import pandas as pd

from .models import TIER_ORDER, CreativeResult, PersonaReaction, TestResultBundle

VISIBLE_PERSONAS_DEFAULT = 20
ALL_TIERS = "all"

_TIER_ROW_LABELS = {
    "bullseye": "Bullseye",
    "adjacent": "Adjacent",
    "skeptic": "Skeptics",
    "wildcard": "Wild Cards",
}


def creative_result(bundle: TestResultBundle, label: str) -> CreativeResult:
    for c in bundle.creatives:
        if c.label == label:
            return c
    raise KeyError(f"No creative labelled {label!r} in this result")


def filter_reactions(
    bundle: TestResultBundle,
    creative_index: int = 0,
    tier: str = ALL_TIERS,
    limit: int = VISIBLE_PERSONAS_DEFAULT,
) -> Tuple[List[PersonaReaction], int]:
    """Return (visible reactions, number still hidden) for one creative and tier filter."""
    reactions = bundle.creatives[creative_index].reactions
    if tier != ALL_TIERS:
        reactions = [r for r in reactions if r.persona.tier.value == tier]
    visible = list(reactions[:max(0, limit)])
    return visible, max(0, len(reactions) - len(visible))


def reactions_frame(bundle: TestResultBundle) -> pd.DataFrame:
    rows = []
    for c in bundle.creatives:
        for r in c.reactions:
            p = r.persona
            rows.append({
                "creative": c.label,
                "persona_id": p.id,
                "name": p.name,
                "age": p.age,
                "gender": p.gender,
                "tier": p.tier.value,
                "stopped": r.stopped,
                "kept_watching": r.kept_watching,
                "action": r.action.value,
                "overall_score": r.overall_score,
                "primary_objection": r.primary_objection,
                "degraded": r.degraded,
            })
    return pd.DataFrame(rows, columns=[
        "creative", "persona_id", "name", "age", "gender", "tier", "stopped",
        "kept_watching", "action", "overall_score", "primary_objection", "degraded",
    ])


def comparison_matrix(bundle: TestResultBundle) -> pd.DataFrame:
    """Tier scores, rates and verdict side by side; one column per creative."""
    data = {}
    for c in bundle.creatives:
        col = {_TIER_ROW_LABELS[t.value]: c.tier_scores.get(t) for t in TIER_ORDER}
        col.update({
            "Hook Rate": c.metrics.hook_rate,
            "Hold Rate": c.metrics.hold_rate,
            "CTR": c.metrics.ctr,
            "Verdict": c.recommendation.verdict.value,
        })
        data[c.label] = col
    index = list(_TIER_ROW_LABELS.values()) + ["Hook Rate", "Hold Rate", "CTR", "Verdict"]
    return pd.DataFrame(data, index=index)
