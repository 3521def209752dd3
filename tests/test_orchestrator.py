from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import asyncio
import threading

import pytest

from core import orchestrator as orch
from core.config import EngineConfig
from core.errors import PanelGenerationError, RunCancelled, TestValidationError
from core.models import BrandContext, Creative, MediaDescriptor, Verdict
from adapters.personas_llm_adapter import LLMPersonaGenerator
from core.persona_panel import InMemoryPanelCache, PanelProvider
from core.synthetic_focus import ReactionCollector
from factories import PANEL_TIERS
from utils.store import JsonBrandCache

BRAND = BrandContext(product="Cold brew coffee concentrate", audience="adults 25-44", price="$24")
CREATIVE_A = Creative(label="A", headline="Cafe taste at home", body="Two minutes, no machine.", cta="Shop Now")
CREATIVE_B = Creative(label="B", headline="Stop paying $6 a cup", body="One bottle, twelve coffees.", cta="Learn More")


def panel_generator(calls=None):
    def generate(brand, count):
        if calls is not None:
            calls.append(count)
        return [
            {"name": f"Persona {i}", "age": 18 + (i * 7) % 47, "gender": "Male" if i % 2 else "Female",
             "tier": tier.value}
            for i, tier in enumerate(PANEL_TIERS[:count])
        ]
    return generate


def scenario_evaluator(persona, creative, brand):
    i = int(persona.id[1:]) - 1
    return {
        "stopped": i < 130,
        "keptWatching": i < 80,
        "action": "Clicked" if i < 50 else "Scrolled past",
        "overallScore": 70 if creative.label == "A" else 40,
        "primaryObjection": "Too expensive" if i % 2 else "Not sure this is for me",
    }


def make_orchestrator(evaluator=scenario_evaluator, generator=None, cache=None, **config):
    provider = PanelProvider(generator or panel_generator(), cache if cache is not None else InMemoryPanelCache())
    return orch.TestOrchestrator(provider, ReactionCollector(evaluator), EngineConfig(**config))


def test_single_creative_end_to_end():
    o = make_orchestrator()
    bundle = o.run(BRAND, [CREATIVE_A])

    result = bundle.creatives[0]
    assert (result.metrics.hook_rate, result.metrics.hold_rate, result.metrics.ctr) == (65, 40, 25.0)
    assert result.recommendation.verdict is Verdict.LAUNCH
    assert result.refinement_notes is None
    assert len(result.reactions) == 200
    assert [r.persona.id for r in result.reactions[:3]] == ["p001", "p002", "p003"]
    assert bundle.cannibalisation == []
    assert o.current.history == [
        orch.IDLE, orch.PANEL_READY, orch.COLLECTING, orch.REDUCING, orch.CROSS_ANALYZING, orch.COMPLETE,
    ]


def test_progress_is_monotonic_and_complete():
    seen = []
    bundle = make_orchestrator().run(BRAND, [CREATIVE_A, CREATIVE_B], on_progress=lambda d, t: seen.append((d, t)))

    assert len(seen) == 400
    assert {t for _, t in seen} == {400}
    done = [d for d, _ in seen]
    assert done == sorted(done)
    assert done[-1] == 400
    assert bundle.diagnostics.total_reactions == 400


def test_two_identical_audiences_warn_about_cannibalisation():
    bundle = make_orchestrator().run(BRAND, [CREATIVE_A, CREATIVE_B])
    assert len(bundle.cannibalisation) == 1
    assert bundle.cannibalisation[0].creatives == ("A", "B")
    assert bundle.cannibalisation[0].overlap == 100
    payload = bundle.to_payload()
    assert payload["cannibalisation"][0]["creatives"] == ["Creative A", "Creative B"]
    assert payload["creatives"][1]["recommendation"]["verdict"] == "Drop"


def test_validation_runs_before_generation():
    calls = []
    o = make_orchestrator(generator=panel_generator(calls))

    with pytest.raises(TestValidationError, match="Product description is required."):
        o.run(BrandContext(product="   "), [CREATIVE_A])
    with pytest.raises(TestValidationError, match="Creative B: add a headline, body copy, or upload a creative asset."):
        o.run(BRAND, [CREATIVE_A, Creative(label="B")])
    assert calls == []


def test_media_only_creative_is_valid():
    creative = Creative(label="A", media=MediaDescriptor(type="image", base64="aGVsbG8="))
    bundle = make_orchestrator().run(BRAND, [creative])
    assert bundle.creatives[0].headline == "(no headline)"


def test_panel_failure_fails_the_run():
    def broken(brand, count):
        raise RuntimeError("quota exceeded")

    o = make_orchestrator(generator=broken)
    with pytest.raises(PanelGenerationError):
        o.run(BRAND, [CREATIVE_A])
    assert o.current.history == [orch.IDLE, orch.PANEL_READY, orch.FAILED]
    assert "quota exceeded" in o.current.error


def test_short_panel_fails_after_panel_ready():
    cache = InMemoryPanelCache()
    PanelProvider(panel_generator(), cache, panel_size=20).get_panel(BRAND)

    o = make_orchestrator(cache=cache)
    with pytest.raises(PanelGenerationError):
        o.run(BRAND, [CREATIVE_A])
    assert o.current.history == [orch.IDLE, orch.PANEL_READY, orch.FAILED]


def test_cached_panel_is_reused():
    calls = []
    cache = InMemoryPanelCache()
    make_orchestrator(generator=panel_generator(calls), cache=cache).run(BRAND, [CREATIVE_A])
    bundle = make_orchestrator(generator=panel_generator(calls), cache=cache).run(BRAND, [CREATIVE_A])

    assert calls == [200]
    assert bundle.diagnostics.panel_from_cache is True
    assert bundle.diagnostics.brand_key == "cold-brew-coffee-concentrate"


def test_failed_reactions_are_tallied():
    def flaky(persona, creative, brand):
        if creative.label == "B" and persona.id.endswith("0"):
            raise TimeoutError("evaluator timed out")
        return scenario_evaluator(persona, creative, brand)

    bundle = make_orchestrator(evaluator=flaky).run(BRAND, [CREATIVE_A, CREATIVE_B])

    diag = bundle.diagnostics
    assert diag.degraded_reactions == 20
    assert diag.degraded_by_creative == {"A": 0, "B": 20}
    assert diag.error_rate == 5.0
    assert sum(r.degraded for r in bundle.creatives[1].reactions) == 20


def test_cancellation_stops_dispatch():
    cancel = threading.Event()

    def on_progress(done, total):
        if done >= 10:
            cancel.set()

    o = make_orchestrator(max_concurrency=2)
    with pytest.raises(RunCancelled):
        o.run(BRAND, [CREATIVE_A, CREATIVE_B], on_progress=on_progress, cancel=cancel)

    assert o.current.stage == orch.CANCELLED
    assert orch.FAILED not in o.current.history
    assert o.current.completed < o.current.total


def test_progress_callback_errors_are_ignored():
    def bad(done, total):
        raise RuntimeError("ui went away")

    bundle = make_orchestrator().run(BRAND, [CREATIVE_A], on_progress=bad)
    assert len(bundle.creatives) == 1


def test_runs_sequentially_inside_an_event_loop():
    async def main():
        return make_orchestrator().run(BRAND, [CREATIVE_A])

    bundle = asyncio.run(main())
    assert bundle.creatives[0].metrics.hook_rate == 65


def test_illegal_transition_rejected():
    run = orch.TestRun()
    with pytest.raises(RuntimeError):
        run.advance(orch.COMPLETE)


def test_build_creatives_labels_by_position():
    creatives = orch.build_creatives([
        {"headline": " First "},
        {"body": "Second body", "media": {"type": "video", "frames": ["f0", "f1"]}},
    ])
    assert [c.label for c in creatives] == ["A", "B"]
    assert creatives[0].headline == "First"
    assert creatives[1].media.encoded_frames() == ["f0", "f1"]

    with pytest.raises(TestValidationError):
        orch.build_creatives([{"headline": str(i)} for i in range(6)])


def test_build_orchestrator_wires_llm_capabilities_from_config():
    cfg = EngineConfig(model="gpt-4o", temperature=0.3, persona_batch_size=10, panel_size=100)
    o = orch.build_orchestrator(cfg, cache=InMemoryPanelCache())

    generator = o.provider.generator
    assert isinstance(generator, LLMPersonaGenerator)
    assert (generator.model, generator.batch_size) == ("gpt-4o", 10)
    assert o.collector.evaluator.keywords == {"model": "gpt-4o", "temperature": 0.3}
    assert o.provider.panel_size == 100
    assert o.config is cfg


def test_build_orchestrator_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("ADTESTER_MODEL", "gpt-4.1-mini")
    monkeypatch.setenv("ADTESTER_MAX_CONCURRENCY", "4")

    o = orch.build_orchestrator(cache=JsonBrandCache(tmp_path / "brands.json"))

    assert o.config.model == "gpt-4.1-mini"
    assert o.config.max_concurrency == 4
    assert o.provider.generator.model == "gpt-4.1-mini"


def test_offline_orchestrator_runs_and_reuses_cached_panel(tmp_path):
    path = tmp_path / "brands.json"
    first = orch.build_orchestrator(EngineConfig(), cache=JsonBrandCache(path), offline=True).run(BRAND, [CREATIVE_A])
    second = orch.build_orchestrator(EngineConfig(), cache=JsonBrandCache(path), offline=True).run(BRAND, [CREATIVE_A])

    assert len(first.creatives[0].reactions) == 200
    assert first.diagnostics.panel_from_cache is False
    assert second.diagnostics.panel_from_cache is True
    assert second.creatives[0].metrics == first.creatives[0].metrics
