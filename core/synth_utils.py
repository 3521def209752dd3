# core/synth_utils.py
# OpenAI access for the LLM-backed capabilities (panel generation, reaction
# evaluation, objection embeddings) and a tolerant JSON loader for model output.
# The key comes from OPENAI_API_KEY, else Streamlit secrets [openai].api_key.

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Dict, Iterator, List, Optional

from openai import OpenAI

from .config import secret_value

logger = logging.getLogger(__name__)

_client_cache: Optional[OpenAI] = None

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _api_key() -> str:
    env_key = (os.environ.get("OPENAI_API_KEY") or "").strip()
    if env_key:
        return env_key
    for path in (("openai", "api_key"), ("OPENAI_API_KEY",)):
        found = secret_value(*path)
        if isinstance(found, str) and found.strip():
            return found.strip()
    raise RuntimeError("No OpenAI key: set OPENAI_API_KEY or [openai].api_key in Streamlit secrets.")


def _client() -> OpenAI:
    global _client_cache
    if _client_cache is None:
        _client_cache = OpenAI(api_key=_api_key())
    return _client_cache


def call_gpt_json(
    messages: List[Dict[str, Any]],
    *,
    model: str = "gpt-4o-mini",
    temperature: float = 0.2,
    max_tokens: int = 1200,
) -> str:
    """
    One chat completion in JSON mode; returns the raw content string.
    No retries here. Callers decide what a failure means for their unit of work.
    """
    resp = _client().chat.completions.create(
        model=model,
        messages=messages,  # type: ignore[arg-type]
        temperature=temperature,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    return (resp.choices[0].message.content or "{}").strip()


def embed_texts(texts: List[str], *, model: str = "text-embedding-3-small") -> List[List[float]]:
    if not texts:
        return []
    resp = _client().embeddings.create(model=model, input=texts)
    return [row.embedding for row in resp.data]


def _json_candidates(text: str) -> Iterator[str]:
    yield text
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            body = text[start:end + 1]
            yield body
            yield _TRAILING_COMMA.sub(r"\1", body)


def safe_json(raw: Any, default: Any = None) -> Any:
    """
    Parse model output that is mostly JSON.

    Handles code fences, prose around the payload and trailing commas.
    Already-parsed dicts/lists pass through; anything unparseable gives `default`.
    """
    fallback = {} if default is None else default
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, str):
        return fallback

    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw.strip()))
    for candidate in _json_candidates(text):
        try:
            return json.loads(candidate)
        except ValueError:
            continue

    logger.warning("Model output was not JSON (%d chars); using default", len(text))
    return fallback
