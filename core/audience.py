"""Who responds to a creative, and how broad that response is."""
from __future__ import annotations

import re
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from .models import TIER_ORDER, AgeBracket, AudienceSkew, FatigueProjection, PersonaReaction
from .recommendation import spread_for
from .scoring import pct_split, tier_scores

AGE_BANDS: Tuple[Tuple[str, int, int], ...] = (
    ("18-24", 18, 24),
    ("25-34", 25, 34),
    ("35-44", 35, 44),
    ("45-54", 45, 54),
    ("55-64", 55, 64),
)

MISMATCH_GENDER_SHARE = 60
ENGAGED_TIER_SCORE = 50

_MALE_WORDS = re.compile(r"\b(men|male|males|man|guys|dads|fathers)\b", re.I)
_FEMALE_WORDS = re.compile(r"\b(women|female|females|woman|ladies|moms|mums|mothers)\b", re.I)
_AGE_RANGE = re.compile(r"\b(\d{2})\s*(?:-|–|to)\s*(\d{2})\b")

_FATIGUE_DETAIL = {
    "broad": ("Positive responses distributed across {tiers} tiers and demographic segments. "
              "Expect sustained delivery without rapid frequency increases."),
    "moderate": ("Response concentrated in {tiers} tier(s). Will sustain for 2-3 weeks before "
                 "frequency rises. Plan a refresh."),
    "narrow": ("Response concentrated in {tiers} tier(s). Will fatigue within 1-2 weeks. Consider "
               "broadening the angle or testing with a different audience."),
}


def age_band(age: int) -> str:
    for label, lo, hi in AGE_BANDS:
        if lo <= age <= hi:
            return label
    return AGE_BANDS[0][0] if age < AGE_BANDS[0][1] else AGE_BANDS[-1][0]


def gender_key(gender: str) -> str:
    g = gender.strip().lower()
    if g in {"male", "m", "man"}:
        return "male"
    if g in {"female", "f", "woman"}:
        return "female"
    return "other"


def _mismatch(gender_split, brackets: List[AgeBracket], target: str) -> Optional[str]:
    if not target.strip():
        return None
    issues = []
    wants_male = bool(_MALE_WORDS.search(target))
    wants_female = bool(_FEMALE_WORDS.search(target))
    for gender, named in (("male", wants_male), ("female", wants_female)):
        share = gender_split[gender]
        if share >= MISMATCH_GENDER_SHARE and not named:
            issues.append(f"skews {share}% {gender}")

    m = _AGE_RANGE.search(target)
    top = max(brackets, key=lambda b: b.percentage)
    if m and top.percentage > 0:
        lo, hi = sorted((int(m.group(1)), int(m.group(2))))
        band_lo, band_hi = (int(x) for x in top.range.split("-"))
        if band_hi < lo or band_lo > hi:
            issues.append(f"peaks at {top.range}")

    if not issues:
        return None
    return (f"Responders {' and '.join(issues)}. This may not match your stated target of "
            f"'{target.strip()}'.")


def audience_skew(reactions: Sequence[PersonaReaction], target_audience: str = "") -> AudienceSkew:
    """Gender and age mix of personas who stopped; neutral when nobody did."""
    engaged = [r.persona for r in reactions if r.stopped]
    if not engaged:
        neutral = 100 // len(AGE_BANDS)
        return AudienceSkew(
            gender_split={"male": 50, "female": 50},
            age_brackets=[AgeBracket(range=label, percentage=neutral) for label, _, _ in AGE_BANDS],
        )

    genders = Counter(gender_key(p.gender) for p in engaged)
    male, female, _ = pct_split([genders["male"], genders["female"], genders["other"]])
    split = {"male": male, "female": female}

    bands = Counter(age_band(p.age) for p in engaged)
    shares = pct_split([bands[label] for label, _, _ in AGE_BANDS])
    brackets = [AgeBracket(range=label, percentage=share) for (label, _, _), share in zip(AGE_BANDS, shares)]

    return AudienceSkew(
        gender_split=split,
        age_brackets=brackets,
        mismatch_flag=_mismatch(split, brackets, target_audience),
    )


def fatigue_projection(reactions: Sequence[PersonaReaction], overall_score: int) -> FatigueProjection:
    spread = spread_for(overall_score)
    scores = tier_scores(reactions)
    engaged_tiers = sum(1 for t in TIER_ORDER if scores.get(t, 0) >= ENGAGED_TIER_SCORE)
    return FatigueProjection(
        appeal_spread=spread,
        detail=_FATIGUE_DETAIL[spread.value].format(tiers=engaged_tiers),
    )


def analyze_audience(
    reactions: Sequence[PersonaReaction],
    overall_score: int,
    target_audience: str = "",
) -> Tuple[AudienceSkew, FatigueProjection]:
    return audience_skew(reactions, target_audience), fatigue_projection(reactions, overall_score)
