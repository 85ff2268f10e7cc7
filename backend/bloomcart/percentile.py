# bloomcart/percentile.py
"""
Percentile ranking against per-category benchmarks.

Each benchmark is a (mean, stddev) pair; a product's absolute metric is turned
into a z-score and then a cumulative probability with the Abramowitz-Stegun
normal CDF approximation (26.2.17, |error| < 7.5e-8).
"""

import logging
import math

from bloomcart.models import PercentileRanking

logger = logging.getLogger('percentile')

# (mean, stddev) for co2e (kg), water (liters) and energy (kWh).
CATEGORY_BENCHMARKS = {
    'electronics': {'co2e': (50, 30), 'water': (12000, 6000), 'energy': (70, 40)},
    'clothing': {'co2e': (15, 10), 'water': (2700, 1500), 'energy': (15, 10)},
    'furniture': {'co2e': (100, 50), 'water': (8000, 4000), 'energy': (40, 25)},
    'food': {'co2e': (5, 4), 'water': (1000, 800), 'energy': (3, 2.5)},
    'books': {'co2e': (2, 1.5), 'water': (400, 250), 'energy': (2, 1.5)},
    'toys': {'co2e': (10, 7), 'water': (3000, 2000), 'energy': (8, 5)},
    'beauty': {'co2e': (8, 5), 'water': (2000, 1200), 'energy': (5, 3)},
    'kitchen': {'co2e': (25, 15), 'water': (5000, 3000), 'energy': (20, 12)},
    'sports': {'co2e': (18, 12), 'water': (3500, 2000), 'energy': (12, 8)},
    'home': {'co2e': (20, 14), 'water': (4000, 2500), 'energy': (15, 10)},
    'office': {'co2e': (15, 10), 'water': (2500, 1500), 'energy': (10, 7)},
    'default': {'co2e': (20, 12), 'water': (3000, 2000), 'energy': (10, 7)},
}

OVERALL_WEIGHTS = {'carbon': 0.35, 'water': 0.25, 'energy': 0.25, 'recyclability': 0.15}

_INV_SQRT_2PI = 0.3989422804014327


def normal_cdf(z: float) -> float:
    t = 1 / (1 + 0.2316419 * abs(z))
    density = _INV_SQRT_2PI * math.exp(-z * z / 2)
    tail = density * t * (0.319381530 + t * (-0.356563782 + t * (1.781477937 + t * (-1.821255978 + t * 1.330274429))))
    return 1 - tail if z > 0 else tail


def raw_percentile(value: float, mean: float, stddev: float) -> int:
    """Share of the category (0-100) with a value at or below `value`."""
    if stddev == 0:
        return 50
    return round(normal_cdf((value - mean) / stddev) * 100)


def _clamp_percentile(value: float) -> int:
    return max(1, min(99, round(value)))


def lower_is_better_percentile(value: float, mean: float, stddev: float) -> int:
    """Inverted so that less CO2/water/energy ranks higher."""
    return _clamp_percentile(100 - raw_percentile(value, mean, stddev))


def benchmark_for(category: str) -> dict:
    return CATEGORY_BENCHMARKS.get(category, CATEGORY_BENCHMARKS['default'])


def rank(metrics: dict, category: str) -> PercentileRanking:
    """
    Args:
        metrics: absolute values with keys carbon_kg, water_liters,
            energy_kwh and recyclability (as produced by the scorer).
        category: the product's category tag; unknown tags use `default`.
    """
    bench = benchmark_for(category)
    carbon = lower_is_better_percentile(metrics['carbon_kg'], *bench['co2e'])
    water = lower_is_better_percentile(metrics['water_liters'], *bench['water'])
    energy = lower_is_better_percentile(metrics['energy_kwh'], *bench['energy'])
    recyclability = _clamp_percentile(metrics['recyclability'])

    blended = (carbon * OVERALL_WEIGHTS['carbon'] + water * OVERALL_WEIGHTS['water']
               + energy * OVERALL_WEIGHTS['energy'] + recyclability * OVERALL_WEIGHTS['recyclability'])
    ranking = PercentileRanking(
        overall=_clamp_percentile(blended),
        carbon=carbon,
        water=water,
        energy=energy,
        recyclability=recyclability,
    )
    logger.debug(f"Percentiles for category '{category}': {ranking}")
    return ranking
