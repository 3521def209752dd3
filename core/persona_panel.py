"""Persona panel provider: fixed-size, tiered synthetic panels per brand."""
from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from .errors import PanelGenerationError
from .models import TIER_ORDER, BrandContext, Panel, Persona, Tier

logger = logging.getLogger(__name__)

PANEL_SIZE = 200
BRAND_KEY_SOURCE_CHARS = 40

# Share of the panel per tier. Identical for every brand so panels stay comparable.
TIER_RATIOS: Dict[Tier, float] = {
    Tier.BULLSEYE: 0.30,
    Tier.ADJACENT: 0.30,
    Tier.SKEPTIC: 0.20,
    Tier.WILDCARD: 0.20,
}

# (brand, count) -> raw persona descriptors
PersonaGenerator = Callable[[BrandContext, int], Sequence[Mapping[str, Any]]]


class PanelCache(Protocol):
    def get(self, key: str) -> Optional[List[Persona]]: ...

    def put(self, key: str, personas: List[Persona], brand: Optional[BrandContext] = None) -> None: ...


class InMemoryPanelCache:
    """Dict-backed cache; never evicts."""

    def __init__(self) -> None:
        self._panels: Dict[str, List[Persona]] = {}

    def get(self, key: str) -> Optional[List[Persona]]:
        return self._panels.get(key)

    def put(self, key: str, personas: List[Persona], brand: Optional[BrandContext] = None) -> None:
        self._panels[key] = list(personas)

    def __contains__(self, key: str) -> bool:
        return key in self._panels


def brand_key(product: str) -> str:
    """'Premium body composition supplement. Hel…' -> 'premium-body-composition-supplement-hel'"""
    name = product[:BRAND_KEY_SOURCE_CHARS].strip().lower()
    key = re.sub(r"[^a-z0-9]+", "-", name).strip("-")
    if key or not product.strip():
        return key
    # nothing alphanumeric survived; keep distinct brands apart
    return "brand-" + hashlib.sha256(product.strip().encode("utf-8")).hexdigest()[:12]


def tier_quotas(panel_size: int = PANEL_SIZE) -> Dict[Tier, int]:
    quotas = {t: int(panel_size * TIER_RATIOS[t]) for t in TIER_ORDER}
    quotas[Tier.BULLSEYE] += panel_size - sum(quotas.values())
    return quotas


def _coerce_tier(value: Any) -> Optional[Tier]:
    if isinstance(value, Tier):
        return value
    try:
        return Tier(str(value).strip().lower().replace(" ", "").replace("-", ""))
    except ValueError:
        return None


def assign_tiers(descriptors: Sequence[Mapping[str, Any]], panel_size: int = PANEL_SIZE) -> List[Tier]:
    """
    Tier for each descriptor, honouring the fixed quotas.

    Declared tiers are kept while their quota has room; anything untiered or
    over quota fills the remaining slots in tier order.
    """
    quotas = tier_quotas(panel_size)
    assigned: List[Optional[Tier]] = []
    for d in descriptors:
        t = _coerce_tier(d.get("tier"))
        if t is not None and quotas[t] > 0:
            quotas[t] -= 1
            assigned.append(t)
        else:
            assigned.append(None)

    open_slots = [t for t in TIER_ORDER for _ in range(quotas[t])]
    it = iter(open_slots)
    return [t if t is not None else next(it) for t in assigned]


def _persona_from_descriptor(d: Mapping[str, Any], idx: int, tier: Tier) -> Persona:
    try:
        age = int(d.get("age", 35))
    except (TypeError, ValueError):
        age = 35
    return Persona(
        id=str(d.get("id") or f"p{idx + 1:03d}"),
        name=str(d.get("name") or f"Persona {idx + 1}"),
        age=age,
        gender=str(d.get("gender") or "Unspecified"),
        location=str(d.get("location") or ""),
        occupation=str(d.get("occupation") or ""),
        income=str(d.get("income") or d.get("income_bracket") or ""),
        education=str(d.get("education") or d.get("education_level") or ""),
        backstory=str(d.get("backstory") or ""),
        tier=tier,
    )


def build_panel_personas(descriptors: Sequence[Mapping[str, Any]], panel_size: int = PANEL_SIZE) -> List[Persona]:
    if len(descriptors) != panel_size:
        raise PanelGenerationError(
            f"Persona generation returned {len(descriptors)} personas, expected {panel_size}."
        )
    tiers = assign_tiers(descriptors, panel_size)
    personas = [_persona_from_descriptor(d, i, t) for i, (d, t) in enumerate(zip(descriptors, tiers))]
    if len({p.id for p in personas}) != len(personas):
        raise PanelGenerationError("Persona generation returned duplicate persona ids.")
    return personas


class PanelProvider:
    def __init__(self, generator: PersonaGenerator, cache: PanelCache, panel_size: int = PANEL_SIZE):
        self.generator = generator
        self.cache = cache
        self.panel_size = panel_size

    def get_panel(self, brand: BrandContext) -> Panel:
        key = brand_key(brand.product)
        cached = self.cache.get(key)
        if cached:
            logger.debug("Panel cache hit for %s (%d personas)", key, len(cached))
            return Panel(brand_key=key, personas=tuple(cached), from_cache=True)

        logger.debug("Panel cache miss for %s; generating %d personas", key, self.panel_size)
        try:
            descriptors = list(self.generator(brand, self.panel_size))
        except PanelGenerationError:
            raise
        except Exception as exc:
            raise PanelGenerationError(f"Failed to generate personas: {exc}") from exc

        personas = build_panel_personas(descriptors, self.panel_size)
        self.cache.put(key, personas, brand)
        logger.info("Generated and cached %d personas for %s", len(personas), key)
        return Panel(brand_key=key, personas=tuple(personas), from_cache=False)
