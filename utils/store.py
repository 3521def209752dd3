import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.models import BrandContext, Persona

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
BRANDS_FILE = "ad-tester-brands.json"


def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def load_json(path: Path, default=None):
    if not path.exists():
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class JsonBrandCache:
    """Brand key -> persona panel, persisted as one JSON file. Never evicts."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DATA_DIR / BRANDS_FILE

    def _load(self) -> Dict[str, Any]:
        return load_json(self.path, default={}) or {}

    def get(self, key: str) -> Optional[List[Persona]]:
        entry = self._load().get(key)
        if not entry or not entry.get("personas"):
            return None
        return [Persona.model_validate(p) for p in entry["personas"]]

    def put(self, key: str, personas: List[Persona], brand: Optional[BrandContext] = None) -> None:
        brands = self._load()
        product = brand.product if brand else ""
        brands[key] = {
            "name": product[:40].strip() or key,
            "product": product,
            "audience": brand.audience if brand else "",
            "price": brand.price if brand else "",
            "market": brand.market if brand else "",
            "personas": [p.model_dump(mode="json") for p in personas],
            "personaCount": len(personas),
            "cachedAt": datetime.now(timezone.utc).isoformat(),
        }
        save_json(self.path, brands)
        logger.debug("Cached %d personas under %s in %s", len(personas), key, self.path)

    def list_brands(self) -> List[Dict[str, Any]]:
        """Summary rows (no personas) for every cached brand."""
        return [
            {k: v for k, v in entry.items() if k != "personas"} | {"key": key}
            for key, entry in self._load().items()
        ]

    def brand_context(self, key: str) -> Optional[BrandContext]:
        entry = self._load().get(key)
        if not entry:
            return None
        return BrandContext(
            product=entry.get("product", ""),
            audience=entry.get("audience", ""),
            price=entry.get("price", ""),
            market=entry.get("market") or "us",
        )
