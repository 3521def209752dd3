from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from core.models import Tier
from core.scoring import mean_score, pct, pct1, pct_split, reduce_metrics, tier_scores
from factories import make_panel, make_persona, make_reaction, scenario_reactions


def test_full_panel_rates():
    panel = make_panel()
    metrics, tiers = reduce_metrics(scenario_reactions(panel, score=57))

    assert metrics.hook_rate == 65
    assert metrics.hold_rate == 40
    assert metrics.ctr == 25.0
    assert metrics.overall_score == 57
    assert set(tiers) == {Tier.BULLSEYE, Tier.ADJACENT, Tier.SKEPTIC, Tier.WILDCARD}


def test_rate_ordering_holds():
    panel = make_panel()
    metrics, _ = reduce_metrics(scenario_reactions(panel))
    assert metrics.hook_rate >= metrics.hold_rate >= 0
    assert metrics.ctr <= metrics.hook_rate


def test_reducer_is_deterministic():
    reactions = [make_reaction(p, stopped=i % 3 == 0, score=(i * 37) % 101) for i, p in enumerate(make_panel())]
    first = reduce_metrics(reactions)
    second = reduce_metrics(list(reactions))
    assert first[0].model_dump_json() == second[0].model_dump_json()
    assert first[1] == second[1]


def test_reducer_ignores_collection_order():
    reactions = [make_reaction(p, stopped=i % 2 == 0, score=i % 100) for i, p in enumerate(make_panel())]
    assert reduce_metrics(reactions) == reduce_metrics(list(reversed(reactions)))


def test_missing_tier_has_no_entry():
    reactions = [make_reaction(make_persona(i, Tier.BULLSEYE), score=80) for i in range(3)]
    reactions += [make_reaction(make_persona(10 + i, Tier.SKEPTIC), score=21) for i in range(2)]

    scores = tier_scores(reactions)

    assert scores == {Tier.BULLSEYE: 80, Tier.SKEPTIC: 21}
    assert Tier.ADJACENT not in scores


def test_rounding_is_half_up():
    assert pct(1, 8) == 13
    assert pct1(1, 16) == 6.3
    assert mean_score([50, 51]) == 51


def test_empty_inputs_raise():
    with pytest.raises(ValueError):
        reduce_metrics([])
    with pytest.raises(ValueError):
        pct(0, 0)


def test_pct_split_uses_largest_remainder():
    assert pct_split([1, 7]) == [13, 87]
    assert pct_split([1, 1, 1]) == [34, 33, 33]
    assert pct_split([2, 0, 0]) == [100, 0, 0]
    assert sum(pct_split([3, 5, 7, 11, 13])) == 100
    with pytest.raises(ValueError):
        pct_split([0, 0])
