"""Canonical objection taxonomy and the default keyword bucketing."""
from __future__ import annotations

import difflib
import re
from collections import Counter
from typing import Callable, Dict, List, Sequence, Tuple

from .models import ObjectionFrequency, PersonaReaction
from .scoring import pct

# texts -> canonical objection per text, same order
ObjectionClassifier = Callable[[Sequence[str]], List[str]]

PRICE = "Price seems high without proof it works"
SOCIAL_PROOF = "No social proof or reviews visible in the ad"
CLAIMS = "I've seen similar claims that didn't deliver"
RELEVANCE = "Not sure this is for my specific situation"
TONE = "The tone feels too salesy / aggressive"
NEXT_STEP = "CTA doesn't tell me what happens next"

CANONICAL_OBJECTIONS: Tuple[str, ...] = (PRICE, SOCIAL_PROOF, CLAIMS, RELEVANCE, TONE, NEXT_STEP)

KEYWORDS: Dict[str, Tuple[str, ...]] = {
    PRICE: ("price", "expensive", "cost", "afford", "pricey", "money", "budget", "$", "subscription",
            "worth it", "cheaper"),
    SOCIAL_PROOF: ("review", "social proof", "testimonial", "rating", "proof", "evidence", "before/after",
                   "results from", "nobody i know"),
    CLAIMS: ("claim", "seen similar", "didn't deliver", "didnt deliver", "too good", "hype", "scam",
             "skeptic", "gimmick", "doubt", "overpromise", "tried"),
    RELEVANCE: ("for me", "my situation", "relevant", "apply to me", "applies to me", "my age",
                "not my", "don't need", "dont need", "not sure this is"),
    TONE: ("salesy", "aggressive", "pushy", "tone", "fear", "manipulative", "clickbait", "preachy",
           "condescending"),
    NEXT_STEP: ("cta", "what happens next", "next step", "button", "sign up", "unclear", "vague",
                "what do i get", "landing"),
}


def _nearest_label(text: str) -> str:
    ratios = [difflib.SequenceMatcher(None, text, label.lower()).ratio() for label in CANONICAL_OBJECTIONS]
    return CANONICAL_OBJECTIONS[ratios.index(max(ratios))]


def classify_keyword(text: str) -> str:
    t = re.sub(r"\s+", " ", text.lower()).strip()
    scores = [sum(1 for kw in KEYWORDS[label] if kw in t) for label in CANONICAL_OBJECTIONS]
    best = max(scores)
    if best == 0:
        return _nearest_label(t)
    return CANONICAL_OBJECTIONS[scores.index(best)]


def keyword_classifier(texts: Sequence[str]) -> List[str]:
    return [classify_keyword(t) for t in texts]


def classify_reactions(
    reactions: Sequence[PersonaReaction],
    classifier: ObjectionClassifier = keyword_classifier,
) -> List[Tuple[PersonaReaction, str]]:
    """Canonical objection for every reaction that voiced one; degraded reactions are skipped."""
    voiced = [r for r in reactions if not r.degraded and r.primary_objection.strip()]
    if not voiced:
        return []
    labels = classifier([r.primary_objection for r in voiced])
    if len(labels) != len(voiced):
        raise ValueError(f"classifier returned {len(labels)} labels for {len(voiced)} objections")
    return [(r, label) for r, label in zip(voiced, labels) if label in CANONICAL_OBJECTIONS]


def objection_table(labelled: Sequence[Tuple[PersonaReaction, str]]) -> List[ObjectionFrequency]:
    counts = Counter(label for _, label in labelled)
    total = sum(counts.values())
    if not total:
        return []
    rows = [ObjectionFrequency(objection=label, frequency=pct(counts[label], total))
            for label in CANONICAL_OBJECTIONS]
    # stable sort keeps taxonomy order for ties
    return sorted(rows, key=lambda row: -row.frequency)
