"""Shared fixtures and collaborator fakes for the BloomCart test-suite."""

import pytest

from bloomcart.analyzer import CarbonEstimate
from bloomcart.cache import ScoreCache
from bloomcart.climatiq import ClimatiqEstimate, ClimatiqSuggestion
from bloomcart.db import MemoryAccountStore, MemoryProductStore, StoreUnavailable
from bloomcart.footprint import FootprintEstimator
from bloomcart.models import (
    NormalizedProduct,
    ProviderOk,
    ProviderRejected,
    ProviderUnavailable,
)
from bloomcart.processor import EvaluationPipeline
from bloomcart.rewards import RewardAggregator


# ==================== FAKES ====================

class FakeClimatiq:
    """Scripted primary provider. Records every call."""

    def __init__(self, co2e=4.2, data_quality=1.5, suggest_outcome=None, estimate_outcome=None):
        self.co2e = co2e
        self.data_quality = data_quality
        self.suggest_outcome = suggest_outcome
        self.estimate_outcome = estimate_outcome
        self.calls = []

    def suggest(self, text):
        self.calls.append(('suggest', text))
        if self.suggest_outcome is not None:
            return self.suggest_outcome
        return ProviderOk(ClimatiqSuggestion(suggestion_id='sugg-123', name='consumer goods'))

    def estimate(self, suggestion_id, weight_kg):
        self.calls.append(('estimate', suggestion_id, weight_kg))
        if self.estimate_outcome is not None:
            return self.estimate_outcome
        return ProviderOk(ClimatiqEstimate(co2e=self.co2e, data_quality=self.data_quality,
                                           suggestion_id=suggestion_id))


class FakeGemini:
    """Scripted secondary estimator (and optional extractor)."""

    def __init__(self, outcome=None, cleaned=None, cleanup_error=None):
        self.outcome = outcome if outcome is not None else ProviderOk(
            CarbonEstimate(estimatedCO2e=7.5, confidence='medium', reasoning='typical plastic goods'))
        self.cleaned = cleaned
        self.cleanup_error = cleanup_error
        self.estimate_calls = 0

    def estimate_carbon_footprint(self, product):
        self.estimate_calls += 1
        return self.outcome

    def clean_product_data(self, raw):
        if self.cleanup_error is not None:
            raise self.cleanup_error
        return self.cleaned


class RaisingProvider:
    """A provider that blows up on every call, like a buggy SDK."""

    def suggest(self, text):
        raise RuntimeError("boom")

    def estimate(self, suggestion_id, weight_kg):
        raise RuntimeError("boom")

    def estimate_carbon_footprint(self, product):
        raise RuntimeError("boom")


class BrokenStore(MemoryProductStore):
    """A persistent store whose every operation reports the database as down."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def get(self, key):
        self.attempts += 1
        raise StoreUnavailable("connection refused")

    def upsert(self, key, document):
        self.attempts += 1
        raise StoreUnavailable("connection refused")

    def delete(self, key):
        self.attempts += 1
        raise StoreUnavailable("connection refused")

    def top_in_category(self, category, exclude_key, limit=3):
        self.attempts += 1
        raise StoreUnavailable("connection refused")


class OutageStore(MemoryProductStore):
    """A working store that can be taken down and brought back with `down`."""

    def __init__(self):
        super().__init__()
        self.down = False

    def _check(self):
        if self.down:
            raise StoreUnavailable("connection refused")

    def get(self, key):
        self._check()
        return super().get(key)

    def upsert(self, key, document):
        self._check()
        super().upsert(key, document)

    def delete(self, key):
        self._check()
        return super().delete(key)

    def top_in_category(self, category, exclude_key, limit=3):
        self._check()
        return super().top_in_category(category, exclude_key, limit)


# ==================== FIXTURES ====================

@pytest.fixture
def earbuds_raw():
    return {
        'asin': 'b0earbuds1',
        'title': 'wireless earbuds',
        'category': 'Electronics',
    }


@pytest.fixture
def make_product():
    def _make(**overrides):
        fields = {
            'title': 'Steel water bottle',
            'category': 'kitchen',
            'weight_kg': 0.4,
            'materials': frozenset({'steel'}),
            'description': 'Insulated steel water bottle',
        }
        fields.update(overrides)
        return NormalizedProduct(**fields)
    return _make


@pytest.fixture
def heuristic_estimator():
    """Both providers down: every estimate comes from the local heuristic."""
    return FootprintEstimator(
        primary=FakeClimatiq(suggest_outcome=ProviderUnavailable('timeout')),
        secondary=FakeGemini(outcome=ProviderUnavailable('quota exceeded')),
    )


@pytest.fixture
def pipeline(heuristic_estimator):
    return EvaluationPipeline(
        cache=ScoreCache(MemoryProductStore()),
        estimator=heuristic_estimator,
        rewards=RewardAggregator(MemoryAccountStore()),
    )


@pytest.fixture
def rejected():
    return ProviderRejected('not recognized')
