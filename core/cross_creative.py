"""
Cross-creative analysis over every creative's reaction set.

Produces cannibalisation warnings for overlapping audiences, the aggregated
objection table, and up to four behavioural patterns. Pattern wording comes
from fixed templates filled with data, so identical reactions always yield
identical text.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from itertools import combinations
from statistics import mean
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .audience import age_band, gender_key
from .models import CannibalisationWarning, ObjectionFrequency, PersonaReaction, Tier
from .objections import ObjectionClassifier, classify_reactions, keyword_classifier, objection_table
from .scoring import pct

CANNIBALISATION_THRESHOLD = 60
MAX_PATTERNS = 4
MIN_SLICE_SIZE = 5
MIN_OBJECTION_SLICE = 10
POLARISATION_GAP = 25
DROP_OFF_GAP = 20

ReactionSets = Mapping[str, Sequence[PersonaReaction]]
Slice = Tuple[str, str]


def _slice_of(r: PersonaReaction) -> Optional[Slice]:
    gender = gender_key(r.persona.gender)
    if gender == "other":
        return None
    return gender, age_band(r.persona.age)


def _slice_name(s: Slice) -> str:
    gender, band = s
    return f"{gender}s aged {band}"


def _mean_score(reactions: Sequence[PersonaReaction]) -> float:
    return mean(r.overall_score for r in reactions) if reactions else 0.0


# ─────────────── cannibalisation ─────────────── #

def _stopped_ids(reactions: Sequence[PersonaReaction]) -> set:
    return {r.persona.id for r in reactions if r.stopped}


def _shared_profile(shared: Sequence[PersonaReaction]) -> str:
    tier = Counter(r.persona.tier for r in shared).most_common(1)[0][0]
    slices = Counter(s for s in (_slice_of(r) for r in shared) if s is not None)
    if slices:
        (gender, band), _ = slices.most_common(1)[0]
        return f"{band} {gender}s in the {tier.value.title()} tier"
    return f"the {tier.value.title()} tier"


def cannibalisation_warnings(
    reaction_sets: ReactionSets,
    threshold: int = CANNIBALISATION_THRESHOLD,
) -> List[CannibalisationWarning]:
    """Pairs whose hooked personas overlap by at least `threshold` % of the smaller set."""
    if len(reaction_sets) < 2:
        return []

    warnings: List[CannibalisationWarning] = []
    for a, b in combinations(reaction_sets, 2):
        ids_a, ids_b = _stopped_ids(reaction_sets[a]), _stopped_ids(reaction_sets[b])
        smaller = min(len(ids_a), len(ids_b))
        if smaller == 0:
            continue
        both = ids_a & ids_b
        # exact comparison; rounding is for display only
        if len(both) * 100 < threshold * smaller:
            continue
        overlap = pct(len(both), smaller)

        shared = [r for r in reaction_sets[a] if r.persona.id in both]
        if _mean_score(reaction_sets[b]) > _mean_score(reaction_sets[a]):
            stronger, weaker = b, a
        else:
            stronger, weaker = a, b
        warnings.append(CannibalisationWarning(
            creatives=(a, b),
            overlap=overlap,
            detail=(
                f"{len(both)} personas stopped for both creatives, led by {_shared_profile(shared)}. "
                "Running both in the same ad set will result in audience overlap and inflated frequency."
            ),
            recommendation=(
                f"Separate Creative {a} and Creative {b} into different ad sets, or keep Creative "
                f"{stronger} and test Creative {weaker} against a different angle."
            ),
        ))
    return warnings


# ─────────────── patterns ─────────────── #

def _slice_means(reactions: Sequence[PersonaReaction]) -> Dict[Slice, float]:
    groups: Dict[Slice, List[PersonaReaction]] = defaultdict(list)
    for r in reactions:
        s = _slice_of(r)
        if s is not None:
            groups[s].append(r)
    return {s: _mean_score(rs) for s, rs in groups.items() if len(rs) >= MIN_SLICE_SIZE}


def _slice_differential_pattern(reaction_sets: ReactionSets) -> Optional[str]:
    labels = list(reaction_sets)
    means = {label: _slice_means(reaction_sets[label]) for label in labels}

    if len(labels) == 1:
        label = labels[0]
        overall = _mean_score(reaction_sets[label])
        best: Optional[Tuple[float, Slice]] = None
        for s in sorted(means[label]):
            diff = means[label][s] - overall
            if best is None or abs(diff) > abs(best[0]):
                best = (diff, s)
        if best is None or round(abs(best[0])) == 0:
            return None
        direction = "higher" if best[0] > 0 else "lower"
        return (f"Creative {label} scores {round(abs(best[0]))} points {direction} with "
                f"{_slice_name(best[1])} than across the full panel.")

    top: Optional[Tuple[float, Slice, str, str]] = None
    shared_slices = sorted(set.intersection(*(set(m) for m in means.values())))
    for s in shared_slices:
        ranked = sorted(labels, key=lambda label: (-means[label][s], labels.index(label)))
        hi, lo = ranked[0], ranked[-1]
        gap = means[hi][s] - means[lo][s]
        if top is None or gap > top[0]:
            top = (gap, s, hi, lo)
    if top is None or round(top[0]) == 0:
        return None
    gap, s, hi, lo = top
    return (f"Creative {hi} scores {round(gap)} points higher than Creative {lo} with "
            f"{_slice_name(s)}. This may unlock a buyer persona the account hasn't reached before.")


def _objection_concentration_pattern(labelled: Sequence[Tuple[PersonaReaction, str]]) -> Optional[str]:
    groups: Dict[Slice, List[str]] = defaultdict(list)
    for r, label in labelled:
        s = _slice_of(r)
        if s is not None:
            groups[s].append(label)

    best: Optional[Tuple[int, Slice, str]] = None
    for s in sorted(groups):
        labels = groups[s]
        if len(labels) < MIN_OBJECTION_SLICE:
            continue
        label, count = Counter(labels).most_common(1)[0]
        share = pct(count, len(labels))
        if best is None or share > best[0]:
            best = (share, s, label)
    if best is None:
        return None
    share, s, label = best
    return f"{share}% of {_slice_name(s)} flagged \"{label}\" as their primary objection."


def _polarisation_pattern(reaction_sets: ReactionSets) -> Optional[str]:
    best: Optional[Tuple[float, str, float, float]] = None
    for label, reactions in reaction_sets.items():
        bull = [r for r in reactions if r.persona.tier is Tier.BULLSEYE]
        skep = [r for r in reactions if r.persona.tier is Tier.SKEPTIC]
        if not bull or not skep:
            continue
        b, s = _mean_score(bull), _mean_score(skep)
        if best is None or b - s > best[0]:
            best = (b - s, label, b, s)
    if best is None or best[0] < POLARISATION_GAP:
        return None
    _, label, b, s = best
    return (f"Creative {label} polarises sharply: Bullseye personas average {round(b)} while Skeptics "
            f"average {round(s)}. Strong for cold prospecting, weak for retargeting.")


def _drop_off_pattern(reaction_sets: ReactionSets) -> Optional[str]:
    best: Optional[Tuple[int, str, int, int]] = None
    for label, reactions in reaction_sets.items():
        if not reactions:
            continue
        hook = pct(sum(1 for r in reactions if r.stopped), len(reactions))
        hold = pct(sum(1 for r in reactions if r.kept_watching), len(reactions))
        if best is None or hook - hold > best[0]:
            best = (hook - hold, label, hook, hold)
    if best is None or best[0] < DROP_OFF_GAP:
        return None
    _, label, hook, hold = best
    return (f"Creative {label} stops {hook}% of the panel but only {hold}% keep engaging. The body "
            "is losing people the headline won.")


def behavioral_patterns(
    reaction_sets: ReactionSets,
    labelled: Sequence[Tuple[PersonaReaction, str]],
) -> List[str]:
    candidates = (
        _slice_differential_pattern(reaction_sets),
        _objection_concentration_pattern(labelled),
        _polarisation_pattern(reaction_sets),
        _drop_off_pattern(reaction_sets),
    )
    return [p for p in candidates if p][:MAX_PATTERNS]


def cross_analyze(
    reaction_sets: ReactionSets,
    classifier: ObjectionClassifier = keyword_classifier,
    threshold: int = CANNIBALISATION_THRESHOLD,
) -> Tuple[List[CannibalisationWarning], List[str], List[ObjectionFrequency]]:
    """reaction_sets maps creative label -> full reaction set, in creative order."""
    if not reaction_sets:
        return [], [], []
    pooled = [r for reactions in reaction_sets.values() for r in reactions]
    labelled = classify_reactions(pooled, classifier)
    return (
        cannibalisation_warnings(reaction_sets, threshold),
        behavioral_patterns(reaction_sets, labelled),
        objection_table(labelled),
    )
