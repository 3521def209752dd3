# adapters/evaluator_heuristic.py
# Offline stand-ins for the generation and evaluation capabilities.
# Deterministic per brand / persona / creative so demos and tests are repeatable.
import hashlib
import random
import re
from typing import Any, Dict, List

from core.models import BrandContext, Creative, Persona, ReactionAction, Tier
from core.persona_panel import brand_key, tier_quotas

HYPE_PATTERNS = [
    r"\bget\s+rich\b",
    r"\bsecret\b",
    r"\bguarantee(?:d)?\b",
    r"\bno\s+risk\b",
    r"\bmiracle\b",
]
PROOF_WORDS = ["review", "customers", "study", "clinically", "rated", "trusted by", "%"]
SOFT_CTA_WORDS = ["see how", "learn more", "try", "free"]

FIRST_NAMES = ["Sarah", "Marcus", "Emma", "James", "Priya", "David", "Lisa", "Omar", "Rachel", "Michael",
               "Aisha", "Kevin", "Diane", "Carlos", "Nina", "Robert", "Michelle", "Anthony", "Samira", "Jake"]
LAST_NAMES = ["Chen", "Williams", "Rodriguez", "O'Brien", "Patel", "Kim", "Thompson", "Hassan", "Green",
              "Torres", "Johnson", "Zhao", "Foster", "Mendez", "Volkov", "Singh", "Park", "Brown"]
OCCUPATIONS = ["Product Manager", "Nurse", "Software Engineer", "Teacher", "Marketing Director",
               "Freelance Designer", "Accountant", "Personal Trainer", "Sales Executive",
               "Stay-at-home Parent", "Retired", "Student", "Small Business Owner", "HR Manager", "Lawyer"]
LOCATIONS = ["Austin, TX", "Chicago, IL", "Miami, FL", "Boston, MA", "San Francisco, CA", "Seattle, WA",
             "Denver, CO", "New York, NY", "Portland, OR", "Phoenix, AZ", "Atlanta, GA", "Nashville, TN"]
INCOMES = ["$35,000", "$55,000", "$75,000", "$95,000", "$120,000", "$150,000"]
EDUCATION = ["High school", "Associate's", "Bachelor's", "Master's", "PhD"]

IMPRESSIONS = [
    "This speaks directly to my frustration with my current routine.",
    "Interesting angle but I'm not sure it applies to me.",
    "Feels like every other ad I see on Instagram.",
    "The headline grabbed me but the body copy lost me.",
    "This is exactly what I've been looking for.",
    "Too aggressive. I don't trust brands that use fear.",
    "I'd want to see reviews before clicking.",
]
OBJECTIONS = [
    "Price seems high without proof it works",
    "No social proof or reviews visible",
    "I've seen similar claims that didn't deliver",
    "Not sure this is for my specific situation",
    "The tone feels too salesy",
    "The CTA doesn't tell me what happens next",
]

# (base, spread) of the score draw per tier
TIER_SCORE_RANGE = {
    Tier.BULLSEYE: (55, 40),
    Tier.ADJACENT: (40, 40),
    Tier.SKEPTIC: (15, 35),
    Tier.WILDCARD: (25, 50),
}


def _stable_rand(s: str) -> random.Random:
    h = int(hashlib.sha256(s.encode()).hexdigest(), 16) % (2**32 - 1)
    return random.Random(h)


def generate_personas_heuristic(brand: BrandContext, count: int) -> List[Dict[str, Any]]:
    rr = _stable_rand(brand_key(brand.product))
    out: List[Dict[str, Any]] = []
    for tier, quota in tier_quotas(count).items():
        for _ in range(quota):
            age = rr.randint(18, 64) if tier is Tier.WILDCARD else rr.randint(22, 56)
            out.append({
                "id": f"p{len(out) + 1:03d}",
                "name": f"{rr.choice(FIRST_NAMES)} {rr.choice(LAST_NAMES)}",
                "age": age,
                "gender": rr.choice(["Male", "Female"]),
                "location": rr.choice(LOCATIONS),
                "occupation": rr.choice(OCCUPATIONS),
                "income": rr.choice(INCOMES),
                "education": rr.choice(EDUCATION),
                "backstory": "Has tried similar products before with mixed results.",
                "tier": tier.value,
            })
    return out


def _copy_adjustment(creative: Creative) -> int:
    text = " ".join([creative.headline, creative.body, creative.cta]).lower()
    adj = 0
    if any(re.search(h, text) for h in HYPE_PATTERNS):
        adj -= 10
    if any(c.isdigit() for c in text):
        adj += 3
    if any(w in text for w in PROOF_WORDS):
        adj += 4
    if any(w in creative.cta.lower() for w in SOFT_CTA_WORDS):
        adj += 2
    if creative.media is not None:
        adj += 3
    body_len = len(creative.body)
    if body_len > 480:
        adj -= 4
    return adj


def evaluate_reaction_heuristic(persona: Persona, creative: Creative, brand: BrandContext) -> Dict[str, Any]:
    rr = _stable_rand(f"{persona.id}|{creative.label}|{creative.headline}|{creative.body}")
    base, spread = TIER_SCORE_RANGE[persona.tier]
    score = max(0, min(100, base + rr.randrange(spread) + _copy_adjustment(creative)))

    stopped = score > 40 or rr.random() > 0.4
    kept = stopped and (score > 55 or rr.random() > 0.5)
    if score > 70:
        action = ReactionAction.CLICKED
    elif score > 55:
        action = ReactionAction.SAVED if rr.random() > 0.5 else ReactionAction.SCROLLED_PAST
    else:
        action = ReactionAction.SCROLLED_PAST

    return {
        "stopped": stopped,
        "keptWatching": kept,
        "action": action.value,
        "overallScore": score,
        "firstImpression": rr.choice(IMPRESSIONS),
        "reasoning": "The headline creates curiosity but the body copy doesn't resolve the tension quickly enough.",
        "primaryObjection": rr.choice(OBJECTIONS),
        "wouldMakeThemClick": "A specific result from someone like me, or a free trial to reduce risk.",
    }
