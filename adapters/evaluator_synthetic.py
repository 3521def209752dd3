# adapters/evaluator_synthetic.py
from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict, List

from core.models import BrandContext, Creative, Persona, ReactionAction
from core.synth_utils import call_gpt_json, safe_json

SYSTEM_MSG = dedent("""
You are simulating one real person scrolling a social feed and meeting an ad.
React candidly, in character. Do not reward hype or vague claims.
Output STRICT JSON only.
""").strip()

REACTION_SCHEMA = {
    "stopped": "true if the ad stopped your scroll",
    "keptWatching": "true if you kept reading/watching after stopping",
    "action": " | ".join(a.value for a in ReactionAction),
    "overallScore": "0-100 integer: how likely you are to act on this ad",
    "firstImpression": "one sentence",
    "reasoning": "two sentences",
    "primaryObjection": "your single biggest objection, one sentence",
    "wouldMakeThemClick": "what would change your mind, one sentence",
}

REACTION_TEMPLATE = """You are {name}, a {age}-year-old {gender} {occupation} from {location}.
Income: {income}. Education: {education}.
{backstory}

The advertiser sells: {product} (price: {price}).

AD
---------
Headline: {headline}
Body: {body}
CTA: {cta}
---------

Respond with JSON matching:
{schema}
"""


def build_messages(persona: Persona, creative: Creative, brand: BrandContext) -> List[Dict[str, Any]]:
    prompt = REACTION_TEMPLATE.format(
        name=persona.name,
        age=persona.age,
        gender=persona.gender.lower(),
        occupation=persona.occupation or "professional",
        location=persona.location or "the US",
        income=persona.income or "undisclosed",
        education=persona.education or "undisclosed",
        backstory=persona.backstory,
        product=brand.product,
        price=brand.price or "not stated",
        headline=creative.headline or "(none)",
        body=creative.body or "(none)",
        cta=creative.cta or "(none)",
        schema=json.dumps(REACTION_SCHEMA, indent=2),
    )
    frames = creative.media.encoded_frames() if creative.media else []
    if not frames:
        return [{"role": "system", "content": SYSTEM_MSG}, {"role": "user", "content": prompt}]

    if creative.media.type == "video":
        prompt += "\nThe attached images are frames from the ad's video, in order."
    content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
    content.extend(
        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{frame}"}}
        for frame in frames
    )
    return [{"role": "system", "content": SYSTEM_MSG}, {"role": "user", "content": content}]


def evaluate_reaction_with_synthetic(
    persona: Persona,
    creative: Creative,
    brand: BrandContext,
    *,
    model: str = "gpt-4o-mini",
    temperature: float = 0.7,
) -> Dict[str, Any]:
    """Raw reaction fields; the collector validates and repairs them."""
    raw = call_gpt_json(
        build_messages(persona, creative, brand),
        model=model,
        temperature=temperature,
        max_tokens=500,
    )
    data = safe_json(raw, default={})
    if not isinstance(data, dict) or not data:
        raise ValueError("Reaction evaluator returned no usable JSON")
    return data
