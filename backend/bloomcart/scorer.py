# ==============================================================================
# Part 1: Configuration
# ==============================================================================

import logging
import math
import re

from bloomcart.grading import DEFAULT_SCALE, GradeScale
from bloomcart.models import FootprintResult, NormalizedProduct, ScoreBreakdown, SubScore

logger = logging.getLogger('scorer')

# Share of each factor in the overall score. Sums to 1.0.
WEIGHTS = {
    'carbon': 0.30,
    'water': 0.15,
    'energy': 0.15,
    'transport': 0.15,
    'end_of_life': 0.15,
    'packaging': 0.10,
}

# Liters of water per kg CO2e.
WATER_MULTIPLIERS = {
    'clothing': 150,
    'food': 100,
    'furniture': 80,
    'beauty': 60,
    'electronics': 50,
    'default': 75,
}

# kWh per kg CO2e.
ENERGY_FACTOR_ELECTRONICS = 0.8
ENERGY_FACTOR_DEFAULT = 0.5

CARBON_CEILING_KG = 100.0
WATER_CEILING_LITERS = 5000.0
ENERGY_CEILING_KWH = 50.0

MATERIAL_RECYCLABILITY = {
    'aluminum': 95,
    'steel': 90,
    'glass': 90,
    'metal': 85,
    'cardboard': 80,
    'paper': 75,
    'wood': 65,
    'electronic': 50,
    'ceramic': 45,
    'plastic': 40,
    'rubber': 35,
    'textile': 30,
    'leather': 25,
    'mixed': 20,
    'composite': 15,
}
UNKNOWN_MATERIAL_RECYCLABILITY = 30

TRANSPORT_BASELINE = 50
LOCAL_ORIGIN = re.compile(r"\b(?:local(?:ly)?|domestic|usa|united states)\b", re.IGNORECASE)
LONG_HAUL_ORIGIN = re.compile(r"\b(?:china|asia|overseas|imported|vietnam|bangladesh|india|taiwan)\b", re.IGNORECASE)
GROUND_SHIPPING = re.compile(r"\b(?:ground|sea|ocean|freight|rail)\b", re.IGNORECASE)
AIR_SHIPPING = re.compile(r"\b(?:air|express|overnight|next[- ]day|expedited)\b", re.IGNORECASE)

TRANSPORT_DISTANCES = (
    (re.compile(r"\blocal", re.IGNORECASE), '< 100 miles'),
    (re.compile(r"\b(?:usa|united states|domestic)\b", re.IGNORECASE), '500-1000 miles'),
    (re.compile(r"\b(?:china|asia|vietnam|bangladesh|india|taiwan)\b", re.IGNORECASE), '5000+ miles'),
    (re.compile(r"\beurope", re.IGNORECASE), '3000-5000 miles'),
)

PACKAGING_BASELINE = 50
PACKAGING_CATEGORY_ADJUSTMENTS = {'electronics': -10, 'books': 15, 'food': -5}
ECO_PACKAGING_KEYWORDS = ('recyclable', 'minimal packaging', 'plastic-free', 'biodegradable', 'compostable')
ADVERSE_PACKAGING_KEYWORDS = ('excessive packaging', 'single-use', 'non-recyclable')

RATING_BANDS = (
    (80, 'Excellent'),
    (60, 'Good'),
    (40, 'Fair'),
    (20, 'Poor'),
)


class InvalidProductError(ValueError):
    """A product reached the scorer with inputs the normalizer should never produce."""


# ==============================================================================
# Part 2: Factor scores
# ==============================================================================

def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def get_rating(score: float) -> str:
    for threshold, rating in RATING_BANDS:
        if score >= threshold:
            return rating
    return 'Very Poor'


def _sub_score(score: float, value, unit: str) -> SubScore:
    score = clamp(score)
    return SubScore(score=score, value=value, unit=unit, rating=get_rating(score))


def score_carbon(co2e_kg: float) -> SubScore:
    score = 100 - min(100.0, (co2e_kg / CARBON_CEILING_KG) * 100)
    return _sub_score(score, round(co2e_kg, 2), 'kg CO2e')


def water_liters(co2e_kg: float, category: str) -> float:
    return co2e_kg * WATER_MULTIPLIERS.get(category, WATER_MULTIPLIERS['default'])


def score_water(co2e_kg: float, category: str) -> SubScore:
    liters = water_liters(co2e_kg, category)
    score = 100 - min(100.0, (liters / WATER_CEILING_LITERS) * 100)
    return _sub_score(score, round(liters), 'liters')


def energy_kwh(co2e_kg: float, category: str) -> float:
    factor = ENERGY_FACTOR_ELECTRONICS if category == 'electronics' else ENERGY_FACTOR_DEFAULT
    return co2e_kg * factor


def score_energy(co2e_kg: float, category: str) -> SubScore:
    kwh = energy_kwh(co2e_kg, category)
    score = 100 - min(100.0, (kwh / ENERGY_CEILING_KWH) * 100)
    return _sub_score(score, round(kwh, 1), 'kWh')


def score_transport(origin: str, shipping: str) -> SubScore:
    score = TRANSPORT_BASELINE
    if LOCAL_ORIGIN.search(origin):
        score += 20
    elif LONG_HAUL_ORIGIN.search(origin):
        score -= 20

    if AIR_SHIPPING.search(shipping):
        score -= 15
    elif GROUND_SHIPPING.search(shipping):
        score += 10

    return _sub_score(score, origin or 'Unknown', 'origin')


def recyclability(materials) -> float:
    if not materials:
        return float(MATERIAL_RECYCLABILITY['mixed'])
    values = [MATERIAL_RECYCLABILITY.get(material, UNKNOWN_MATERIAL_RECYCLABILITY) for material in materials]
    return sum(values) / len(values)


def score_end_of_life(materials) -> SubScore:
    value = recyclability(materials)
    return _sub_score(value, round(value), '%')


def score_packaging(category: str, text: str) -> SubScore:
    text = text.lower()
    score = PACKAGING_BASELINE + PACKAGING_CATEGORY_ADJUSTMENTS.get(category, 0)
    score += 10 * sum(1 for keyword in ECO_PACKAGING_KEYWORDS if keyword in text)
    score -= 15 * sum(1 for keyword in ADVERSE_PACKAGING_KEYWORDS if keyword in text)
    score = clamp(score)
    label = 'Minimal' if score > 70 else 'Moderate' if score > 40 else 'Excessive'
    return _sub_score(score, label, 'rating')


def transport_distance(origin: str) -> str:
    for pattern, distance in TRANSPORT_DISTANCES:
        if pattern.search(origin):
            return distance
    return 'Unknown'


# ==============================================================================
# Part 3: Overall score
# ==============================================================================

def calculate_weighted_score(sub_scores: dict) -> float:
    """Weighted sum of the six factor scores (each already in [0, 100])."""
    return sum(WEIGHTS[name] * sub_scores[name].score for name in WEIGHTS)


def score(product: NormalizedProduct, footprint: FootprintResult, scale: GradeScale = DEFAULT_SCALE) -> ScoreBreakdown:
    """
    Expands a footprint estimate and the product attributes into the six
    weighted sub-scores, the overall score and its grade.

    Raises:
        InvalidProductError: weight is not finite and positive, or the
            footprint is negative/non-finite.
    """
    if not isinstance(product.weight_kg, (int, float)) or not math.isfinite(product.weight_kg) or product.weight_kg <= 0:
        raise InvalidProductError(f"Product weight must be finite and positive, got {product.weight_kg!r}")
    if not math.isfinite(footprint.co2e_kg) or footprint.co2e_kg < 0:
        raise InvalidProductError(f"Footprint must be finite and non-negative, got {footprint.co2e_kg!r}")

    co2e = footprint.co2e_kg
    category = product.category
    sub_scores = {
        'carbon': score_carbon(co2e),
        'water': score_water(co2e, category),
        'energy': score_energy(co2e, category),
        'transport': score_transport(product.origin, product.shipping),
        'end_of_life': score_end_of_life(product.materials),
        'packaging': score_packaging(category, f"{product.title} {product.description}"),
    }
    overall = clamp(calculate_weighted_score(sub_scores))
    grade = scale.grade_for(overall)

    metrics = {
        'carbon_kg': round(co2e, 2),
        'water_liters': round(water_liters(co2e, category)),
        'energy_kwh': round(energy_kwh(co2e, category), 1),
        'recyclability': round(recyclability(product.materials)),
        'transport_distance': transport_distance(product.origin),
        'packaging_type': sub_scores['packaging'].value,
    }

    rounded = {name: round(sub.score, 1) for name, sub in sub_scores.items()}
    logger.info(f"Scored '{product.title[:60]}': overall={overall:.1f}, grade={grade}, sub-scores={rounded}")
    return ScoreBreakdown(overall_score=overall, grade=grade, metrics=metrics, **sub_scores)
