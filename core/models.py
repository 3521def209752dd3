from __future__ import annotations

import enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Tier(str, enum.Enum):
    BULLSEYE = "bullseye"
    ADJACENT = "adjacent"
    SKEPTIC = "skeptic"
    WILDCARD = "wildcard"


class ReactionAction(str, enum.Enum):
    CLICKED = "Clicked"
    SCROLLED_PAST = "Scrolled past"
    SAVED = "Saved"
    SHARED = "Shared"
    SCREENSHOT = "Screenshot"


class Verdict(str, enum.Enum):
    LAUNCH = "Launch"
    REFINE = "Refine"
    DROP = "Drop"


class AppealSpread(str, enum.Enum):
    BROAD = "broad"
    MODERATE = "moderate"
    NARROW = "narrow"


TIER_ORDER: Tuple[Tier, ...] = (Tier.BULLSEYE, Tier.ADJACENT, Tier.SKEPTIC, Tier.WILDCARD)


class BrandContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: str
    audience: str = ""
    price: str = ""
    market: str = "us"


class Persona(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    age: int = 35
    gender: str = "Unspecified"
    location: str = ""
    occupation: str = ""
    income: str = ""
    education: str = ""
    backstory: str = ""
    tier: Tier


class MediaDescriptor(BaseModel):
    """Opaque creative asset: one encoded image or an ordered list of video frames."""

    model_config = ConfigDict(frozen=True)

    type: str = "image"
    base64: Optional[str] = None
    frames: List[str] = Field(default_factory=list)

    def encoded_frames(self) -> List[str]:
        if self.type == "video" and self.frames:
            return list(self.frames)
        return [self.base64] if self.base64 else list(self.frames)


class Creative(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    headline: str = ""
    body: str = ""
    cta: str = ""
    media: Optional[MediaDescriptor] = None

    def is_empty(self) -> bool:
        return not self.headline.strip() and not self.body.strip() and self.media is None


class PersonaReaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    persona: Persona
    stopped: bool = False
    kept_watching: bool = False
    action: ReactionAction = ReactionAction.SCROLLED_PAST
    overall_score: int = Field(0, ge=0, le=100)
    first_impression: str = ""
    reasoning: str = ""
    primary_objection: str = ""
    would_make_them_click: Optional[str] = None
    degraded: bool = False


class CreativeMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    hook_rate: int
    hold_rate: int
    ctr: float
    overall_score: int


TierScores = Dict[Tier, int]


class RefinementNote(BaseModel):
    model_config = ConfigDict(frozen=True)

    area: str
    suggestion: str


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    confidence: int
    reasoning: str
    caveats: Optional[str] = None
    refinement_notes: Optional[List[RefinementNote]] = None


class AgeBracket(BaseModel):
    model_config = ConfigDict(frozen=True)

    range: str
    percentage: int


class AudienceSkew(BaseModel):
    model_config = ConfigDict(frozen=True)

    gender_split: Dict[str, int]
    age_brackets: List[AgeBracket]
    mismatch_flag: Optional[str] = None


class FatigueProjection(BaseModel):
    model_config = ConfigDict(frozen=True)

    appeal_spread: AppealSpread
    detail: str


class CannibalisationWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    creatives: Tuple[str, str]
    overlap: int
    detail: str
    recommendation: str


class ObjectionFrequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    objection: str
    frequency: int


class RunDiagnostics(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand_key: str
    panel_from_cache: bool = False
    panel_size: int = 0
    tier_counts: Dict[Tier, int] = Field(default_factory=dict)
    total_reactions: int = 0
    degraded_reactions: int = 0
    error_rate: float = 0.0
    degraded_by_creative: Dict[str, int] = Field(default_factory=dict)


class CreativeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    headline: str
    metrics: CreativeMetrics
    tier_scores: TierScores
    recommendation: Recommendation
    audience_skew: AudienceSkew
    fatigue: FatigueProjection
    refinement_notes: Optional[List[RefinementNote]] = None
    reactions: List[PersonaReaction] = Field(default_factory=list)


class TestResultBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    creatives: List[CreativeResult]
    cannibalisation: List[CannibalisationWarning] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    objections: List[ObjectionFrequency] = Field(default_factory=list)
    diagnostics: RunDiagnostics

    def to_payload(self) -> Dict[str, Any]:
        """Serialise to the camelCase shape consumed by renderers and storage."""

        def _notes(notes):
            return [{"area": n.area, "suggestion": n.suggestion} for n in notes] if notes else None

        creatives = []
        for c in self.creatives:
            rec = c.recommendation
            creatives.append({
                "label": c.label,
                "headline": c.headline,
                "metrics": {
                    "hookRate": c.metrics.hook_rate,
                    "holdRate": c.metrics.hold_rate,
                    "ctr": c.metrics.ctr,
                    "overallScore": c.metrics.overall_score,
                },
                "tierScores": {t.value: v for t, v in c.tier_scores.items()},
                "recommendation": {
                    "verdict": rec.verdict.value,
                    "confidence": rec.confidence,
                    "reasoning": rec.reasoning,
                    "caveats": rec.caveats,
                },
                "audienceSkew": {
                    "genderSplit": dict(c.audience_skew.gender_split),
                    "ageBrackets": [
                        {"range": b.range, "percentage": b.percentage}
                        for b in c.audience_skew.age_brackets
                    ],
                    "mismatchFlag": c.audience_skew.mismatch_flag,
                },
                "fatigue": {
                    "appealSpread": c.fatigue.appeal_spread.value,
                    "detail": c.fatigue.detail,
                },
                "refinementNotes": _notes(c.refinement_notes),
                "personaResults": [_reaction_payload(r) for r in c.reactions],
            })

        diag = self.diagnostics
        return {
            "creatives": creatives,
            "patterns": list(self.patterns),
            "objections": [
                {"objection": o.objection, "frequency": o.frequency} for o in self.objections
            ],
            "cannibalisation": [
                {
                    "creatives": [f"Creative {w.creatives[0]}", f"Creative {w.creatives[1]}"],
                    "overlap": w.overlap,
                    "detail": w.detail,
                    "recommendation": w.recommendation,
                }
                for w in self.cannibalisation
            ],
            "diagnostics": {
                "brandKey": diag.brand_key,
                "panelFromCache": diag.panel_from_cache,
                "panelSize": diag.panel_size,
                "tierCounts": {t.value: n for t, n in diag.tier_counts.items()},
                "totalReactions": diag.total_reactions,
                "degradedReactions": diag.degraded_reactions,
                "errorRate": diag.error_rate,
                "degradedByCreative": dict(diag.degraded_by_creative),
            },
        }


def _reaction_payload(r: PersonaReaction) -> Dict[str, Any]:
    p = r.persona
    return {
        "id": p.id,
        "name": p.name,
        "age": p.age,
        "gender": p.gender,
        "location": p.location,
        "occupation": p.occupation,
        "income": p.income,
        "education": p.education,
        "backstory": p.backstory,
        "tier": p.tier.value,
        "overallScore": r.overall_score,
        "stopped": r.stopped,
        "keptWatching": r.kept_watching,
        "action": r.action.value,
        "firstImpression": r.first_impression,
        "reasoning": r.reasoning,
        "primaryObjection": r.primary_objection,
        "wouldMakeThemClick": r.would_make_them_click,
        "degraded": r.degraded,
    }


class Panel(BaseModel):
    """Ordered persona panel for one brand; read-only once built."""

    model_config = ConfigDict(frozen=True)

    brand_key: str
    personas: Tuple[Persona, ...]
    from_cache: bool = False

    def tier_counts(self) -> Dict[Tier, int]:
        counts = {t: 0 for t in TIER_ORDER}
        for p in self.personas:
            counts[p.tier] += 1
        return {t: n for t, n in counts.items() if n}
