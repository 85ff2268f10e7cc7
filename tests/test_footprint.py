"""Footprint estimator: Climatiq -> Gemini -> heuristic fallback chain."""

import pytest

from bloomcart.analyzer import CarbonEstimate
from bloomcart.footprint import FootprintEstimator, heuristic_estimate, passes_quality_gate
from bloomcart.models import ProviderOk, ProviderUnavailable
from bloomcart.normalizer import normalize
from tests.conftest import FakeClimatiq, FakeGemini, RaisingProvider


class TestQualityGate:

    @pytest.mark.parametrize("quality, accepted", [
        (1.0, True),
        (2.5, True),
        (2.51, False),
        (3.0, False),
        (None, True),
        ('bad', False),
        ('Low', False),
        ('good', True),
    ])
    def test_threshold(self, quality, accepted):
        assert passes_quality_gate(quality, 2.5) is accepted


class TestChain:

    def test_primary_result_is_used_when_quality_is_good(self, make_product):
        primary = FakeClimatiq(co2e=4.2, data_quality=1.5)
        secondary = FakeGemini()
        result = FootprintEstimator(primary, secondary).estimate(make_product())

        assert result.source == 'primary'
        assert result.co2e_kg == 4.2
        assert result.data_quality == 1.5
        assert result.provider_ref == 'sugg-123'
        assert secondary.estimate_calls == 0
        assert primary.calls[1] == ('estimate', 'sugg-123', 0.4)

    def test_primary_uses_short_description_for_suggestion(self, make_product):
        primary = FakeClimatiq()
        FootprintEstimator(primary).estimate(make_product())
        assert primary.calls[0] == ('suggest', 'Insulated steel water bottle')

    def test_low_quality_primary_falls_back_to_secondary(self, make_product):
        secondary = FakeGemini()
        result = FootprintEstimator(FakeClimatiq(data_quality=2.8), secondary).estimate(make_product())

        assert result.source == 'secondary'
        assert result.co2e_kg == 7.5
        assert result.data_quality is None
        assert result.confidence == 'medium'
        assert secondary.estimate_calls == 1

    def test_categorical_bad_quality_is_rejected(self, make_product):
        result = FootprintEstimator(FakeClimatiq(data_quality='bad'), FakeGemini()).estimate(make_product())
        assert result.source == 'secondary'

    def test_unrecognized_product_falls_back(self, make_product, rejected):
        primary = FakeClimatiq(suggest_outcome=rejected)
        result = FootprintEstimator(primary, FakeGemini()).estimate(make_product())

        assert result.source == 'secondary'
        assert [call[0] for call in primary.calls] == ['suggest']

    def test_estimate_step_failure_falls_back(self, make_product):
        primary = FakeClimatiq(estimate_outcome=ProviderUnavailable('timeout'))
        result = FootprintEstimator(primary, FakeGemini()).estimate(make_product())
        assert result.source == 'secondary'

    def test_both_providers_down_uses_heuristic(self, make_product, heuristic_estimator):
        product = make_product()
        result = heuristic_estimator.estimate(product)

        assert result.source == 'heuristic'
        # steel 8.0 x 0.4 kg, no category adjustment for kitchen
        assert result.co2e_kg == pytest.approx(3.2)
        assert result.data_quality is None

    def test_raising_providers_never_escape(self, make_product):
        result = FootprintEstimator(RaisingProvider(), RaisingProvider()).estimate(make_product())
        assert result.source == 'heuristic'

    def test_no_providers_configured(self, make_product):
        assert FootprintEstimator().estimate(make_product()).source == 'heuristic'

    def test_secondary_zero_estimate_is_not_used(self, make_product):
        secondary = FakeGemini(outcome=ProviderOk(CarbonEstimate.model_construct(
            estimated_co2e=0.0, confidence='high', reasoning='')))
        result = FootprintEstimator(None, secondary).estimate(make_product())
        assert result.source == 'heuristic'


class TestHeuristic:

    def test_earbuds_scenario(self, earbuds_raw, heuristic_estimator):
        product = normalize(earbuds_raw)
        result = heuristic_estimator.estimate(product)
        # no material keyword: default 3.0, electronics x2.5, weight 0.4 kg
        assert result.co2e_kg == pytest.approx(3.0)

    def test_deterministic(self, earbuds_raw, heuristic_estimator):
        product = normalize(earbuds_raw)
        assert heuristic_estimator.estimate(product) == heuristic_estimator.estimate(product)

    @pytest.mark.parametrize("materials, expected", [
        ({'plastic', 'steel'}, 6.0),
        ({'metal'}, 8.0),
        ({'cotton'}, 4.0),
        ({'wood'}, 1.5),
        ({'glass'}, 2.0),
        ({'paper'}, 1.0),
        ({'mixed'}, 3.0),
    ])
    def test_material_multipliers(self, make_product, materials, expected):
        product = make_product(weight_kg=1.0, materials=frozenset(materials), category='home',
                               title='Thing', description='')
        assert heuristic_estimate(product).co2e_kg == pytest.approx(expected)

    @pytest.mark.parametrize("title, multiplier", [
        ('Organic cotton tote', 0.7),
        ('Eco friendly bag', 0.7),
        ('Disposable cups', 1.8),
        ('Phone stand', 2.5),
    ])
    def test_category_adjustments(self, make_product, title, multiplier):
        product = make_product(weight_kg=1.0, materials=frozenset({'paper'}), category='home',
                               title=title, description='')
        assert heuristic_estimate(product).co2e_kg == pytest.approx(round(1.0 * multiplier, 2))
