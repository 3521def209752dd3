"""Reaction collection: one persona's normalised reaction to one creative."""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Mapping, Optional

from .models import BrandContext, Creative, Persona, PersonaReaction, ReactionAction

logger = logging.getLogger(__name__)

# (persona, creative, brand) -> raw reaction fields
ReactionEvaluator = Callable[[Persona, Creative, BrandContext], Mapping[str, Any]]

_ACTIONS = {a.value.lower(): a for a in ReactionAction}
_ACTIONS.update({
    "click": ReactionAction.CLICKED,
    "scrolled": ReactionAction.SCROLLED_PAST,
    "scroll past": ReactionAction.SCROLLED_PAST,
    "save": ReactionAction.SAVED,
    "share": ReactionAction.SHARED,
    "screenshotted": ReactionAction.SCREENSHOT,
})

_TRUE = {"true", "yes", "y", "1"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE


def _parse_score(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        score = float(value)
    else:
        m = re.search(r"[-+]?\d*\.?\d+", str(value or ""))
        if not m:
            return 0
        score = float(m.group(0))
    return int(round(max(0.0, min(100.0, score))))


def _parse_action(value: Any) -> ReactionAction:
    if isinstance(value, ReactionAction):
        return value
    return _ACTIONS.get(str(value or "").strip().lower(), ReactionAction.SCROLLED_PAST)


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _get(raw: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for n in names:
        if n in raw:
            return raw[n]
    return default


def normalise_reaction(persona: Persona, raw: Mapping[str, Any]) -> PersonaReaction:
    """
    Repair raw evaluator output into a PersonaReaction.

    keptWatching and Clicked both require stopped; the score is clamped to 0-100.
    """
    stopped = _parse_bool(_get(raw, "stopped", default=False))
    kept = _parse_bool(_get(raw, "keptWatching", "kept_watching", default=False))
    action = _parse_action(_get(raw, "action"))
    if not stopped:
        kept = False
        if action is ReactionAction.CLICKED:
            action = ReactionAction.SCROLLED_PAST

    click = _get(raw, "wouldMakeThemClick", "would_make_them_click")
    return PersonaReaction(
        persona=persona,
        stopped=stopped,
        kept_watching=kept,
        action=action,
        overall_score=_parse_score(_get(raw, "overallScore", "overall_score", default=0)),
        first_impression=_text(_get(raw, "firstImpression", "first_impression")),
        reasoning=_text(_get(raw, "reasoning")),
        primary_objection=_text(_get(raw, "primaryObjection", "primary_objection")),
        would_make_them_click=_text(click) or None,
    )


def degraded_reaction(persona: Persona) -> PersonaReaction:
    return PersonaReaction(
        persona=persona,
        stopped=False,
        kept_watching=False,
        action=ReactionAction.SCROLLED_PAST,
        overall_score=0,
        degraded=True,
    )


class ReactionCollector:
    def __init__(self, evaluator: ReactionEvaluator):
        self.evaluator = evaluator

    def collect(self, persona: Persona, creative: Creative, brand: BrandContext) -> PersonaReaction:
        """Never raises for evaluator failures; those come back as degraded reactions."""
        try:
            raw: Optional[Mapping[str, Any]] = self.evaluator(persona, creative, brand)
            if not isinstance(raw, Mapping):
                raise TypeError(f"evaluator returned {type(raw).__name__}, expected a mapping")
            return normalise_reaction(persona, raw)
        except Exception as exc:
            logger.warning(
                "Reaction failed for persona %s on creative %s: %s", persona.id, creative.label, exc
            )
            return degraded_reaction(persona)
