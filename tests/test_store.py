from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import json

from adapters.evaluator_heuristic import generate_personas_heuristic
from core.models import BrandContext
from core.persona_panel import PanelProvider, brand_key
from utils.store import JsonBrandCache

BRAND = BrandContext(product="Standing desk converter", audience="remote workers", price="$249", market="uk")


def test_missing_brand_is_absent(tmp_path):
    assert JsonBrandCache(tmp_path / "brands.json").get("nope") is None


def test_panel_persists_across_instances(tmp_path):
    path = tmp_path / "brands.json"
    panel = PanelProvider(generate_personas_heuristic, JsonBrandCache(path)).get_panel(BRAND)
    assert panel.from_cache is False

    again = PanelProvider(generate_personas_heuristic, JsonBrandCache(path)).get_panel(BRAND)
    assert again.from_cache is True
    assert again.personas == panel.personas


def test_brand_record_fields(tmp_path):
    path = tmp_path / "brands.json"
    cache = JsonBrandCache(path)
    PanelProvider(generate_personas_heuristic, cache).get_panel(BRAND)

    key = brand_key(BRAND.product)
    record = json.loads(path.read_text(encoding="utf-8"))[key]
    assert record["personaCount"] == 200
    assert record["price"] == "$249"
    assert record["cachedAt"]

    [summary] = cache.list_brands()
    assert summary["key"] == key
    assert "personas" not in summary
    assert cache.brand_context(key) == BRAND
