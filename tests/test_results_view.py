from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from adapters.evaluator_heuristic import evaluate_reaction_heuristic, generate_personas_heuristic
from core.config import EngineConfig
from core.models import BrandContext, Creative
from core.orchestrator import TestOrchestrator as Orchestrator
from core.persona_panel import InMemoryPanelCache, PanelProvider
from core.results_view import comparison_matrix, creative_result, filter_reactions, reactions_frame
from core.synthetic_focus import ReactionCollector

BRAND = BrandContext(product="Noise cancelling earbuds for commuters", audience="commuters 25-44")


@pytest.fixture(scope="module")
def bundle():
    provider = PanelProvider(generate_personas_heuristic, InMemoryPanelCache())
    o = Orchestrator(provider, ReactionCollector(evaluate_reaction_heuristic), EngineConfig())
    return o.run(BRAND, [
        Creative(label="A", headline="Silence the train", body="Rated 4.8 by 12,000 commuters.", cta="See How"),
        Creative(label="B", headline="Secret to a quiet commute", body="Guaranteed calm.", cta="Buy Now"),
    ])


def test_filter_defaults_to_first_twenty(bundle):
    visible, remaining = filter_reactions(bundle)
    assert len(visible) == 20
    assert remaining == 180
    assert visible == bundle.creatives[0].reactions[:20]


def test_filter_by_tier_and_creative(bundle):
    visible, remaining = filter_reactions(bundle, creative_index=1, tier="skeptic", limit=30)
    assert len(visible) == 30
    assert remaining == 10
    assert {r.persona.tier.value for r in visible} == {"skeptic"}


def test_filter_limit_beyond_size(bundle):
    visible, remaining = filter_reactions(bundle, tier="wildcard", limit=100)
    assert len(visible) == 40
    assert remaining == 0


def test_creative_lookup(bundle):
    assert creative_result(bundle, "B").label == "B"
    with pytest.raises(KeyError):
        creative_result(bundle, "Z")


def test_reactions_frame_has_one_row_per_reaction(bundle):
    df = reactions_frame(bundle)
    assert len(df) == 400
    assert set(df["creative"]) == {"A", "B"}
    assert df.groupby("creative")["stopped"].mean().between(0, 1).all()


def test_comparison_matrix_matches_results(bundle):
    matrix = comparison_matrix(bundle)
    assert list(matrix.columns) == ["A", "B"]
    assert list(matrix.index) == [
        "Bullseye", "Adjacent", "Skeptics", "Wild Cards", "Hook Rate", "Hold Rate", "CTR", "Verdict",
    ]
    a = bundle.creatives[0]
    assert matrix.loc["Hook Rate", "A"] == a.metrics.hook_rate
    assert matrix.loc["Verdict", "A"] == a.recommendation.verdict.value
