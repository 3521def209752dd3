# core/config.py
# Engine settings. Lookup order for every value:
#   1) environment (ADTESTER_<NAME>)
#   2) Streamlit secrets ([ad_tester].<name>), when Streamlit is installed
#   3) dataclass default
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, List, Optional

# Streamlit is optional; used only to read secrets if available.
try:
    import streamlit as st  # type: ignore
except ImportError:
    st = None  # type: ignore

ENV_PREFIX = "ADTESTER_"
SECRETS_SECTION = "ad_tester"


def _nested_get(mapping: Any, keys: List[str]) -> Optional[Any]:
    cur = mapping
    for k in keys:
        try:
            cur = cur[k]  # type: ignore[index]
        # st.secrets raises its own error type when no secrets file exists
        except Exception:
            return None
        if cur is None:
            return None
    return cur


def secret_value(*path: str) -> Optional[Any]:
    """Read a value from Streamlit secrets, or None when unavailable."""
    if st is None:
        return None
    return _nested_get(st.secrets, list(path))


@dataclass(frozen=True)
class EngineConfig:
    panel_size: int = 200
    max_creatives: int = 5
    max_concurrency: int = 8
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    persona_batch_size: int = 20
    cannibalisation_threshold: int = 60

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        values = {}
        for f in fields(cls):
            if f.name in overrides:
                values[f.name] = overrides[f.name]
                continue
            raw = os.environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or not str(raw).strip():
                raw = secret_value(SECRETS_SECTION, f.name)
            if raw is None:
                continue
            caster = {"int": int, "float": float}.get(str(f.type), str)
            try:
                values[f.name] = caster(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value for {f.name}: {raw!r}") from exc
        return cls(**values)
