# adapters/personas_llm_adapter.py
from __future__ import annotations

import json
import logging
from textwrap import dedent
from typing import Any, Dict, List

from core.errors import PanelGenerationError
from core.models import BrandContext, Tier
from core.persona_panel import tier_quotas
from core.synth_utils import call_gpt_json, safe_json

logger = logging.getLogger(__name__)

TIER_BRIEFS = {
    Tier.BULLSEYE: "squarely inside the target audience; already feels the problem the product solves",
    Tier.ADJACENT: "near the target audience; shares some needs but is not the obvious buyer",
    Tier.SKEPTIC: "distrustful of this category; has been burned by similar products or claims",
    Tier.WILDCARD: "outside the stated audience entirely; any age, background or motivation",
}

SCHEMA_EXAMPLE = {
    "personas": [{
        "name": "Sarah Chen",
        "age": 28,
        "gender": "Female",
        "location": "Austin, TX",
        "occupation": "Product Manager",
        "income": "$95,000",
        "education": "Bachelor's",
        "backstory": "two sentences about habits, frustrations and past purchases",
    }]
}


def _batch_messages(brand: BrandContext, tier: Tier, count: int) -> List[Dict[str, str]]:
    system = dedent(f"""
    You create realistic, diverse synthetic consumer personas for advertising research.
    Output STRICT JSON only, matching this schema:
    {json.dumps(SCHEMA_EXAMPLE, ensure_ascii=False)}
    Every persona must be distinct. Use market-appropriate names and locations.
    """).strip()
    user = dedent(f"""
    PRODUCT: {brand.product}
    TARGET AUDIENCE: {brand.audience or '(not stated)'}
    PRICE: {brand.price or '(not stated)'}
    MARKET: {brand.market}

    Create exactly {count} personas who are {TIER_BRIEFS[tier]}.
    """).strip()
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


class LLMPersonaGenerator:
    """Panel generation capability backed by chat completions, one call per tier batch."""

    def __init__(self, *, model: str = "gpt-4o-mini", temperature: float = 0.9, batch_size: int = 20):
        self.model = model
        self.temperature = temperature
        self.batch_size = batch_size

    def __call__(self, brand: BrandContext, count: int) -> List[Dict[str, Any]]:
        personas: List[Dict[str, Any]] = []
        for tier, quota in tier_quotas(count).items():
            remaining = quota
            while remaining > 0:
                n = min(self.batch_size, remaining)
                batch = self._generate_batch(brand, tier, n)
                for p in batch:
                    p["tier"] = tier.value
                personas.extend(batch)
                remaining -= n
            logger.debug("Generated %d %s personas", quota, tier.value)
        return personas

    def _generate_batch(self, brand: BrandContext, tier: Tier, n: int) -> List[Dict[str, Any]]:
        raw = call_gpt_json(
            _batch_messages(brand, tier, n),
            model=self.model,
            temperature=self.temperature,
            max_tokens=300 * n,
        )
        data = safe_json(raw, default={})
        items = data.get("personas") if isinstance(data, dict) else data
        items = [p for p in (items or []) if isinstance(p, dict) and p.get("name")]
        if len(items) < n:
            raise PanelGenerationError(
                f"Model returned {len(items)} {tier.value} personas, expected {n}."
            )
        return [dict(p) for p in items[:n]]
