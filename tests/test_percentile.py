import pytest

from bloomcart.percentile import (
    CATEGORY_BENCHMARKS,
    benchmark_for,
    lower_is_better_percentile,
    normal_cdf,
    rank,
    raw_percentile,
)


def metrics(carbon_kg=3.0, water_liters=150, energy_kwh=2.4, recyclability=20):
    return {
        'carbon_kg': carbon_kg,
        'water_liters': water_liters,
        'energy_kwh': energy_kwh,
        'recyclability': recyclability,
    }


class TestNormalCdf:

    @pytest.mark.parametrize("z, expected", [
        (0.0, 0.5),
        (1.0, 0.841345),
        (-1.0, 0.158655),
        (1.96, 0.975002),
        (-3.0, 0.001350),
    ])
    def test_known_values(self, z, expected):
        assert normal_cdf(z) == pytest.approx(expected, abs=1e-6)

    def test_symmetry(self):
        for z in (0.3, 0.9, 2.2, 4.0):
            assert normal_cdf(z) + normal_cdf(-z) == pytest.approx(1.0, abs=1e-7)


class TestPercentiles:

    def test_zero_stddev_is_median(self):
        assert raw_percentile(999, 10, 0) == 50
        assert lower_is_better_percentile(999, 10, 0) == 50

    def test_mean_is_fiftieth(self):
        assert lower_is_better_percentile(50, 50, 30) == 50

    def test_lower_value_ranks_higher(self):
        values = [0, 10, 25, 50, 75, 100, 200]
        ranked = [lower_is_better_percentile(v, 50, 30) for v in values]
        assert ranked == sorted(ranked, reverse=True)

    def test_extremes_are_clamped(self):
        assert lower_is_better_percentile(1e9, 50, 30) == 1
        assert lower_is_better_percentile(-1e9, 50, 30) == 99

    def test_unknown_category_uses_default_benchmark(self):
        assert benchmark_for('spaceships') is CATEGORY_BENCHMARKS['default']
        assert rank(metrics(), 'spaceships') == rank(metrics(), 'default')


class TestRank:

    def test_all_percentiles_in_range(self):
        for category in CATEGORY_BENCHMARKS:
            for sample in (metrics(), metrics(1e6, 1e8, 1e6, 0), metrics(0, 0, 0, 100)):
                ranking = rank(sample, category)
                for value in ranking.to_dict().values():
                    assert 1 <= value <= 99

    def test_low_impact_earbuds_rank_high_among_electronics(self):
        ranking = rank(metrics(), 'electronics')
        assert ranking.carbon >= 90
        assert ranking.water >= 95
        assert ranking.recyclability == 20

    def test_overall_blends_components(self):
        ranking = rank(metrics(), 'electronics')
        blended = (ranking.carbon * 0.35 + ranking.water * 0.25
                   + ranking.energy * 0.25 + ranking.recyclability * 0.15)
        assert ranking.overall == max(1, min(99, round(blended)))
