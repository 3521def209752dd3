"""
Test orchestration: panel → reactions → per-creative analysis → cross analysis.

The run moves through a fixed set of stages. Reaction collection is the only
step that waits on external calls; it is fanned out with bounded concurrency
and everything after it is a pure reduction over the collected reactions.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from adapters.evaluator_heuristic import evaluate_reaction_heuristic, generate_personas_heuristic
from adapters.evaluator_synthetic import evaluate_reaction_with_synthetic
from adapters.personas_llm_adapter import LLMPersonaGenerator
from utils.store import JsonBrandCache

from .audience import analyze_audience
from .config import EngineConfig
from .cross_creative import cross_analyze
from .errors import PanelGenerationError, RunCancelled, TestValidationError
from .models import (
    BrandContext,
    Creative,
    CreativeResult,
    MediaDescriptor,
    Panel,
    PersonaReaction,
    RunDiagnostics,
    TestResultBundle,
)
from .objections import ObjectionClassifier, keyword_classifier
from .persona_panel import PanelCache, PanelProvider
from .recommendation import recommend
from .scoring import pct1, reduce_metrics
from .synthetic_focus import ReactionCollector

logger = logging.getLogger(__name__)

Stage = str

IDLE: Stage = "idle"
PANEL_READY: Stage = "panel_ready"
COLLECTING: Stage = "collecting"
REDUCING: Stage = "reducing"
CROSS_ANALYZING: Stage = "cross_analyzing"
COMPLETE: Stage = "complete"
FAILED: Stage = "failed"
CANCELLED: Stage = "cancelled"

TRANSITIONS: Dict[Stage, set] = {
    IDLE: {PANEL_READY},
    PANEL_READY: {COLLECTING, FAILED},
    COLLECTING: {REDUCING, CANCELLED},
    REDUCING: {CROSS_ANALYZING},
    CROSS_ANALYZING: {COMPLETE},
    COMPLETE: set(),
    FAILED: set(),
    CANCELLED: set(),
}

CREATIVE_LABELS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

ProgressCallback = Callable[[int, int], None]


def creative_label(index: int) -> str:
    return CREATIVE_LABELS[index]


def build_creatives(rows: Sequence[Mapping[str, Any]], max_creatives: int = 5) -> List[Creative]:
    """Form rows -> Creatives labelled A, B, C... by position."""
    if len(rows) > max_creatives:
        raise TestValidationError(f"At most {max_creatives} creatives can be tested at once.")
    creatives = []
    for i, row in enumerate(rows):
        media = row.get("media")
        if isinstance(media, Mapping):
            media = MediaDescriptor(**media)
        creatives.append(Creative(
            label=creative_label(i),
            headline=str(row.get("headline") or "").strip(),
            body=str(row.get("body") or "").strip(),
            cta=str(row.get("cta") or "").strip(),
            media=media or None,
        ))
    return creatives


def validate_test_input(brand: BrandContext, creatives: Sequence[Creative], max_creatives: int = 5) -> None:
    if not brand.product.strip():
        raise TestValidationError("Product description is required.")
    if not creatives:
        raise TestValidationError("Add at least one creative to test.")
    if len(creatives) > max_creatives:
        raise TestValidationError(f"At most {max_creatives} creatives can be tested at once.")
    labels = [c.label for c in creatives]
    if len(set(labels)) != len(labels):
        raise TestValidationError("Creative labels must be unique.")
    for c in creatives:
        if c.is_empty():
            raise TestValidationError(
                f"Creative {c.label}: add a headline, body copy, or upload a creative asset."
            )


@dataclass
class TestRun:
    """Mutable run tracker; the bundle it produces is immutable."""

    __test__ = False

    stage: Stage = IDLE
    history: List[Stage] = field(default_factory=lambda: [IDLE])
    completed: int = 0
    total: int = 0
    error: Optional[str] = None

    def advance(self, stage: Stage) -> None:
        if stage not in TRANSITIONS[self.stage]:
            raise RuntimeError(f"Illegal run transition {self.stage} -> {stage}")
        logger.info("Run stage %s -> %s", self.stage, stage)
        self.stage = stage
        self.history.append(stage)


class TestOrchestrator:
    __test__ = False

    def __init__(
        self,
        provider: PanelProvider,
        collector: ReactionCollector,
        config: Optional[EngineConfig] = None,
        classifier: ObjectionClassifier = keyword_classifier,
    ):
        self.provider = provider
        self.collector = collector
        self.config = config or EngineConfig()
        self.classifier = classifier
        self.current: Optional[TestRun] = None

    # ─────────────── public API ─────────────── #

    def run(
        self,
        brand: BrandContext,
        creatives: Sequence[Creative],
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TestResultBundle:
        validate_test_input(brand, creatives, self.config.max_creatives)

        run = TestRun()
        self.current = run

        panel = self._acquire_panel(run, brand)
        run.total = len(panel.personas) * len(creatives)

        run.advance(COLLECTING)
        reaction_sets = self._collect(run, panel, creatives, brand, on_progress, cancel)
        if cancel is not None and cancel.is_set():
            run.advance(CANCELLED)
            raise RunCancelled(f"Run cancelled after {run.completed}/{run.total} reactions.")

        run.advance(REDUCING)
        results = [self._analyze_creative(c, reaction_sets[c.label], brand) for c in creatives]

        run.advance(CROSS_ANALYZING)
        warnings, patterns, objections = cross_analyze(
            reaction_sets, self.classifier, self.config.cannibalisation_threshold
        )

        bundle = TestResultBundle(
            creatives=results,
            cannibalisation=warnings,
            patterns=patterns,
            objections=objections,
            diagnostics=self._diagnostics(panel, reaction_sets),
        )
        run.advance(COMPLETE)
        logger.info(
            "Run complete: %d creatives, %d reactions, %.1f%% degraded",
            len(results), bundle.diagnostics.total_reactions, bundle.diagnostics.error_rate,
        )
        return bundle

    # ─────────────── stages ─────────────── #

    def _acquire_panel(self, run: TestRun, brand: BrandContext) -> Panel:
        try:
            panel = self.provider.get_panel(brand)
        except PanelGenerationError as exc:
            run.error = str(exc)
            # failure is reported from the panel stage
            run.advance(PANEL_READY)
            run.advance(FAILED)
            logger.error("Panel generation failed: %s", exc)
            raise
        run.advance(PANEL_READY)
        logger.info(
            "Panel ready for %s: %d personas (%s)",
            panel.brand_key, len(panel.personas), "cached" if panel.from_cache else "generated",
        )

        if len(panel.personas) != self.config.panel_size:
            run.error = f"Panel has {len(panel.personas)} personas, expected {self.config.panel_size}."
            run.advance(FAILED)
            raise PanelGenerationError(run.error)
        return panel

    def _collect(
        self,
        run: TestRun,
        panel: Panel,
        creatives: Sequence[Creative],
        brand: BrandContext,
        on_progress: Optional[ProgressCallback],
        cancel: Optional[threading.Event],
    ) -> Dict[str, List[PersonaReaction]]:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            sets = asyncio.run(self._collect_async(run, panel, creatives, brand, on_progress, cancel))
        else:
            # Already inside an event loop (e.g. a notebook); collect sequentially
            sets = self._collect_sequential(run, panel, creatives, brand, on_progress, cancel)

        # Completion order varies under concurrency; keep panel order for stable output
        position = {p.id: i for i, p in enumerate(panel.personas)}
        return {
            label: sorted(reactions, key=lambda r: position[r.persona.id])
            for label, reactions in sets.items()
        }

    async def _collect_async(self, run, panel, creatives, brand, on_progress, cancel):
        sem = asyncio.Semaphore(max(1, self.config.max_concurrency))
        lock = asyncio.Lock()
        sets: Dict[str, List[PersonaReaction]] = {c.label: [] for c in creatives}

        async def bound(persona, creative):
            async with sem:
                if cancel is not None and cancel.is_set():
                    return
                reaction = await asyncio.to_thread(self.collector.collect, persona, creative, brand)
            async with lock:
                sets[creative.label].append(reaction)
                run.completed += 1
                done = run.completed
            _report(on_progress, done, run.total)

        await asyncio.gather(*(bound(p, c) for c in creatives for p in panel.personas))
        return sets

    def _collect_sequential(self, run, panel, creatives, brand, on_progress, cancel):
        sets: Dict[str, List[PersonaReaction]] = {c.label: [] for c in creatives}
        for c in creatives:
            for p in panel.personas:
                if cancel is not None and cancel.is_set():
                    return sets
                sets[c.label].append(self.collector.collect(p, c, brand))
                run.completed += 1
                _report(on_progress, run.completed, run.total)
        return sets

    def _analyze_creative(
        self,
        creative: Creative,
        reactions: List[PersonaReaction],
        brand: BrandContext,
    ) -> CreativeResult:
        metrics, tiers = reduce_metrics(reactions)
        skew, fatigue = analyze_audience(reactions, metrics.overall_score, brand.audience)
        rec = recommend(metrics, skew)
        return CreativeResult(
            label=creative.label,
            headline=creative.headline or "(no headline)",
            metrics=metrics,
            tier_scores=tiers,
            recommendation=rec,
            audience_skew=skew,
            fatigue=fatigue,
            refinement_notes=rec.refinement_notes,
            reactions=reactions,
        )

    def _diagnostics(self, panel: Panel, reaction_sets: Mapping[str, List[PersonaReaction]]) -> RunDiagnostics:
        degraded = {label: sum(1 for r in rs if r.degraded) for label, rs in reaction_sets.items()}
        total = sum(len(rs) for rs in reaction_sets.values())
        n_degraded = sum(degraded.values())
        if n_degraded:
            logger.warning("%d of %d reactions degraded to defaults", n_degraded, total)
        return RunDiagnostics(
            brand_key=panel.brand_key,
            panel_from_cache=panel.from_cache,
            panel_size=len(panel.personas),
            tier_counts=panel.tier_counts(),
            total_reactions=total,
            degraded_reactions=n_degraded,
            error_rate=pct1(n_degraded, total) if total else 0.0,
            degraded_by_creative=degraded,
        )


def _report(on_progress: Optional[ProgressCallback], done: int, total: int) -> None:
    if on_progress is None:
        return
    try:
        on_progress(done, total)
    except Exception:
        logger.debug("Progress callback raised; ignoring", exc_info=True)


def build_orchestrator(
    config: Optional[EngineConfig] = None,
    *,
    cache: Optional[PanelCache] = None,
    offline: bool = False,
) -> TestOrchestrator:
    """
    Wire the engine from settings.

    Uses the OpenAI-backed generator and evaluator, or the deterministic
    heuristics when `offline` is set. Panels persist in the JSON brand cache
    unless another cache is passed in.
    """
    cfg = config or EngineConfig.from_env()
    if offline:
        generator: Any = generate_personas_heuristic
        evaluator: Any = evaluate_reaction_heuristic
    else:
        generator = LLMPersonaGenerator(model=cfg.model, batch_size=cfg.persona_batch_size)
        evaluator = partial(evaluate_reaction_with_synthetic, model=cfg.model, temperature=cfg.temperature)
    provider = PanelProvider(generator, cache if cache is not None else JsonBrandCache(), cfg.panel_size)
    return TestOrchestrator(provider, ReactionCollector(evaluator), cfg)
