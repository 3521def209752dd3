"""Verdict, confidence and refinement notes for a single creative."""
from __future__ import annotations

from typing import List, Optional

from .models import AppealSpread, AudienceSkew, CreativeMetrics, Recommendation, RefinementNote, Verdict

LAUNCH_THRESHOLD = 65
REFINE_THRESHOLD = 50

CONFIDENCE = {
    Verdict.LAUNCH: 78,
    Verdict.REFINE: 62,
    Verdict.DROP: 45,
}

SKEW_GENDER_SHARE = 60
SKEW_AGE_SHARE = 40

REFINEMENT_AREAS = ("Hook", "Body", "CTA")


def verdict_for(score: int) -> Verdict:
    if score > LAUNCH_THRESHOLD:
        return Verdict.LAUNCH
    if score > REFINE_THRESHOLD:
        return Verdict.REFINE
    return Verdict.DROP


def spread_for(score: int) -> AppealSpread:
    """Same bands as the verdict so a Launch creative is never 'narrow'."""
    return {
        Verdict.LAUNCH: AppealSpread.BROAD,
        Verdict.REFINE: AppealSpread.MODERATE,
        Verdict.DROP: AppealSpread.NARROW,
    }[verdict_for(score)]


def _retention(metrics: CreativeMetrics) -> float:
    # share of hooked personas who kept engaging
    return metrics.hold_rate / metrics.hook_rate if metrics.hook_rate else 0.0


def _conversion(metrics: CreativeMetrics) -> float:
    return metrics.ctr / metrics.hook_rate if metrics.hook_rate else 0.0


def refinement_notes(metrics: CreativeMetrics) -> List[RefinementNote]:
    if metrics.hook_rate >= 60:
        hook = "Hook is strong. Keep the headline as-is; the problem is downstream."
    elif metrics.hook_rate >= 40:
        hook = (f"Only {metrics.hook_rate}% stopped scrolling. Sharpen the headline around the single "
                "most specific benefit and lead with it.")
    else:
        hook = (f"Hook rate of {metrics.hook_rate}% is too low to build on. Test a different opening "
                "angle before touching the rest of the ad.")

    retention = _retention(metrics)
    if retention < 0.6:
        body = (f"Body copy loses momentum: {metrics.hold_rate}% held out of {metrics.hook_rate}% hooked. "
                "Get to the value proposition faster and cut the setup.")
    else:
        body = ("Body copy holds attention once people stop. Tighten it and add one concrete proof "
                "point to carry skeptical readers.")

    if _conversion(metrics) < 0.25:
        cta = (f"CTR of {metrics.ctr}% trails engagement. Lower the commitment in the CTA, for "
               "example 'See How It Works' or 'Learn More'.")
    else:
        cta = "CTA converts engaged viewers. Keep the wording and test it against a risk-reversal offer."

    return [RefinementNote(area=a, suggestion=s) for a, s in zip(REFINEMENT_AREAS, (hook, body, cta))]


def skew_caveat(skew: Optional[AudienceSkew]) -> Optional[str]:
    if skew is None:
        return None
    male = skew.gender_split.get("male", 0)
    female = skew.gender_split.get("female", 0)
    parts = []
    if male >= SKEW_GENDER_SHARE:
        parts.append(f"skews {male}% male")
    elif female >= SKEW_GENDER_SHARE:
        parts.append(f"skews {female}% female")
    top = max(skew.age_brackets, key=lambda b: b.percentage, default=None)
    if top is not None and top.percentage >= SKEW_AGE_SHARE:
        parts.append(f"{top.percentage}% of responders are {top.range}")
    if not parts:
        return None
    return ("Responders " + " and ".join(parts)
            + ". Consider a complementary variation for the under-represented segment.")


def recommend(metrics: CreativeMetrics, skew: Optional[AudienceSkew] = None) -> Recommendation:
    verdict = verdict_for(metrics.overall_score)

    if verdict is Verdict.LAUNCH:
        return Recommendation(
            verdict=verdict,
            confidence=CONFIDENCE[verdict],
            reasoning=(
                f"Strong response overall (score {metrics.overall_score}) with a {metrics.hook_rate}% hook "
                f"rate and {metrics.hold_rate}% hold rate. Expected to expand reach in cold prospecting."
            ),
            caveats=skew_caveat(skew),
        )

    if verdict is Verdict.REFINE:
        return Recommendation(
            verdict=verdict,
            confidence=CONFIDENCE[verdict],
            reasoning=(
                f"Promising but uneven (score {metrics.overall_score}). {metrics.hook_rate}% stopped, "
                f"{metrics.hold_rate}% kept engaging and {metrics.ctr}% clicked. Fix the weakest stage "
                "before scaling spend."
            ),
            refinement_notes=refinement_notes(metrics),
        )

    return Recommendation(
        verdict=verdict,
        confidence=CONFIDENCE[verdict],
        reasoning=(
            f"Weak across the panel (score {metrics.overall_score}, {metrics.hook_rate}% hook rate). "
            "The angle does not resonate with the target audience. Consider a fundamentally "
            "different approach."
        ),
    )
