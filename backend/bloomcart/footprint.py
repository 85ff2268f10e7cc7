# ==============================================================================
# Footprint Estimator: Climatiq -> Gemini -> local heuristic.
#
# estimate() always returns a FootprintResult. Each provider failure (or a
# Climatiq answer that fails the data quality gate) drops to the next tier.
# ==============================================================================

import logging
import math
import re

from bloomcart import config
from bloomcart.models import (
    SOURCE_HEURISTIC,
    SOURCE_PRIMARY,
    SOURCE_SECONDARY,
    FootprintResult,
    NormalizedProduct,
    ProviderOk,
    ProviderRejected,
)

logger = logging.getLogger('footprint')

# kg CO2e per kg of product, checked in priority order.
MATERIAL_CARBON_FACTORS = (
    ('plastic', 6.0),
    ('metal', 8.0),
    ('steel', 8.0),
    ('aluminum', 8.0),
    ('cotton', 4.0),
    ('textile', 4.0),
    ('wood', 1.5),
    ('glass', 2.0),
    ('paper', 1.0),
    ('cardboard', 1.0),
)
DEFAULT_CARBON_FACTOR = 3.0

ELECTRONICS_MULTIPLIER = 2.5
ECO_MULTIPLIER = 0.7
DISPOSABLE_MULTIPLIER = 1.8

BAD_QUALITY_MARKERS = {'bad', 'low', 'poor'}

_ELECTRONIC_TEXT = re.compile(r"\b(?:electronics?|phones?|computers?)\b", re.IGNORECASE)
_ECO_TEXT = re.compile(r"\b(?:organic|eco|sustainable)\b", re.IGNORECASE)
_DISPOSABLE_TEXT = re.compile(r"\b(?:fast fashion|disposable)\b", re.IGNORECASE)


def heuristic_estimate(product: NormalizedProduct) -> FootprintResult:
    """Fully local estimate from material and category multipliers. Deterministic."""
    multiplier = DEFAULT_CARBON_FACTOR
    for material, factor in MATERIAL_CARBON_FACTORS:
        if material in product.materials:
            multiplier = factor
            break

    text = f"{product.title} {product.description}"
    if product.category == 'electronics' or _ELECTRONIC_TEXT.search(text):
        multiplier *= ELECTRONICS_MULTIPLIER
    elif _ECO_TEXT.search(text):
        multiplier *= ECO_MULTIPLIER
    elif _DISPOSABLE_TEXT.search(text):
        multiplier *= DISPOSABLE_MULTIPLIER

    co2e = round(product.weight_kg * multiplier, 2)
    logger.info(f"Heuristic footprint: {product.weight_kg:.3f}kg x {multiplier:.2f} = {co2e} kg CO2e")
    return FootprintResult(co2e_kg=co2e, source=SOURCE_HEURISTIC, confidence='low')


def passes_quality_gate(data_quality, threshold: float) -> bool:
    """Climatiq rates 1 (best) to 3 (worst); categorical markers are also understood."""
    if data_quality is None:
        return True
    if isinstance(data_quality, str):
        return data_quality.strip().lower() not in BAD_QUALITY_MARKERS
    return data_quality <= threshold


class FootprintEstimator:
    """
    Chains the footprint providers.

    Args:
        primary: Climatiq-like collaborator with `suggest(text)` and
            `estimate(suggestion_id, weight_kg)` returning provider outcomes.
            None disables the tier.
        secondary: Gemini-like collaborator with
            `estimate_carbon_footprint(product)`. None disables the tier.
        quality_threshold: data quality values above this are rejected.
    """

    def __init__(self, primary=None, secondary=None, quality_threshold: float = config.DATA_QUALITY_THRESHOLD):
        self.primary = primary
        self.secondary = secondary
        self.quality_threshold = quality_threshold

    def _from_primary(self, product: NormalizedProduct):
        suggestion = self.primary.suggest(product.description or product.title)
        if not isinstance(suggestion, ProviderOk):
            return suggestion

        estimate = self.primary.estimate(suggestion.value.suggestion_id, product.weight_kg)
        if not isinstance(estimate, ProviderOk):
            return estimate

        quality = estimate.value.data_quality
        if not passes_quality_gate(quality, self.quality_threshold):
            logger.warning(f"Low data quality from Climatiq ({quality}); rejecting primary estimate.")
            return ProviderRejected(f"data quality {quality}")

        return ProviderOk(FootprintResult(
            co2e_kg=estimate.value.co2e,
            source=SOURCE_PRIMARY,
            data_quality=quality if isinstance(quality, float) else None,
            provider_ref=estimate.value.suggestion_id,
        ))

    def _from_secondary(self, product: NormalizedProduct):
        outcome = self.secondary.estimate_carbon_footprint(product)
        if not isinstance(outcome, ProviderOk):
            return outcome
        estimate = outcome.value
        if not math.isfinite(estimate.estimated_co2e) or estimate.estimated_co2e <= 0:
            return ProviderRejected(f"non-positive estimate {estimate.estimated_co2e}")
        return ProviderOk(FootprintResult(
            co2e_kg=float(estimate.estimated_co2e),
            source=SOURCE_SECONDARY,
            confidence=estimate.confidence,
        ))

    def estimate(self, product: NormalizedProduct) -> FootprintResult:
        for name, provider, attempt in (
            ('primary', self.primary, self._from_primary),
            ('secondary', self.secondary, self._from_secondary),
        ):
            if provider is None:
                logger.info(f"No {name} footprint provider configured; skipping.")
                continue
            try:
                outcome = attempt(product)
            except Exception as e:
                logger.warning(f"{name.capitalize()} footprint provider raised, falling back: {e}", exc_info=True)
                continue

            if isinstance(outcome, ProviderOk):
                logger.info(f"Footprint from {name} provider: {outcome.value.co2e_kg} kg CO2e")
                return outcome.value
            logger.warning(f"{name.capitalize()} footprint provider gave no usable result "
                           f"({type(outcome).__name__}: {outcome.reason}); falling back.")

        return heuristic_estimate(product)
