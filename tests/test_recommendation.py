from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from core.models import AgeBracket, AudienceSkew, CreativeMetrics, Verdict
from core.recommendation import CONFIDENCE, recommend, refinement_notes, verdict_for


def _metrics(score, hook=60, hold=35, ctr=8.0):
    return CreativeMetrics(hook_rate=hook, hold_rate=hold, ctr=ctr, overall_score=score)


@pytest.mark.parametrize("score,verdict", [
    (66, Verdict.LAUNCH),
    (90, Verdict.LAUNCH),
    (51, Verdict.REFINE),
    (65, Verdict.REFINE),
    (0, Verdict.DROP),
    (50, Verdict.DROP),
])
def test_verdict_bands(score, verdict):
    assert verdict_for(score) is verdict
    assert recommend(_metrics(score)).verdict is verdict


def test_confidence_is_constant_within_band():
    assert recommend(_metrics(52)).confidence == recommend(_metrics(64)).confidence == CONFIDENCE[Verdict.REFINE]
    assert CONFIDENCE[Verdict.LAUNCH] > CONFIDENCE[Verdict.REFINE] > CONFIDENCE[Verdict.DROP]


def test_launch_has_no_refinement_notes():
    rec = recommend(_metrics(70))
    assert rec.verdict is Verdict.LAUNCH
    assert rec.confidence == 78
    assert rec.refinement_notes is None
    assert rec.caveats is None


def test_refine_notes_cover_hook_body_cta_in_order():
    rec = recommend(_metrics(58, hook=45, hold=15, ctr=4.5))
    assert [n.area for n in rec.refinement_notes] == ["Hook", "Body", "CTA"]
    assert "45%" in rec.refinement_notes[0].suggestion
    assert all(n.suggestion for n in rec.refinement_notes)


def test_drop_has_reasoning_only():
    rec = recommend(_metrics(30))
    assert rec.verdict is Verdict.DROP
    assert rec.confidence == 45
    assert rec.refinement_notes is None
    assert rec.caveats is None
    assert "score 30" in rec.reasoning


def test_launch_caveat_names_skew():
    skew = AudienceSkew(
        gender_split={"male": 80, "female": 20},
        age_brackets=[AgeBracket(range="25-34", percentage=30), AgeBracket(range="35-44", percentage=30)],
    )
    rec = recommend(_metrics(72), skew)
    assert "80% male" in rec.caveats


def test_notes_change_with_the_data():
    strong = refinement_notes(_metrics(60, hook=70, hold=60, ctr=30.0))
    weak = refinement_notes(_metrics(60, hook=30, hold=5, ctr=1.0))
    assert [n.suggestion for n in strong] != [n.suggestion for n in weak]
