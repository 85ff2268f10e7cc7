# ==============================================================================
# This file is the central "brain" for evaluating products.
# It orchestrates the entire workflow from receiving a raw scraped record to
# returning a final, scored and cached product evaluation.
# ==============================================================================

import hashlib
import logging

from bloomcart import config, percentile, scorer
from bloomcart.analyzer import GeminiAnalyzer
from bloomcart.cache import ScoreCache
from bloomcart.climatiq import ClimatiqClient
from bloomcart.db import (
    MemoryAccountStore,
    MemoryProductStore,
    MongoAccountStore,
    MongoProductStore,
    StoreUnavailable,
    connect_to_db,
)
from bloomcart.footprint import FootprintEstimator
from bloomcart.grading import DEFAULT_SCALE
from bloomcart.models import ProductEvaluation
from bloomcart.normalizer import normalize
from bloomcart.rewards import RewardAggregator
from bloomcart.url_parser import parse_amazon_url
from bloomcart.utils import describe_equivalent

logger = logging.getLogger('processor')

RECOMMENDATION_LIMIT = 3


def product_key_for(raw: dict) -> str:
    """
    Stable cache key for a raw record: the ASIN when given, else the ASIN in
    the product URL, else a content hash of title and brand.
    """
    for field in ('asin', 'productKey', 'product_key'):
        value = raw.get(field)
        if value and str(value).strip():
            return str(value).strip().upper()

    parsed = parse_amazon_url(raw.get('url') or '')
    if parsed:
        return parsed['product_key']

    fingerprint = f"{str(raw.get('title') or '').strip().lower()}|{str(raw.get('brand') or '').strip().lower()}"
    key = 'ANON-' + hashlib.sha1(fingerprint.encode('utf-8')).hexdigest()[:16].upper()
    logger.warning(f"No product key in record; derived content key {key}")
    return key


class EvaluationPipeline:
    """
    Normalizer -> Footprint Estimator -> Scorer + Percentile Ranker, behind
    the single-flight ScoreCache.
    """

    def __init__(self, cache: ScoreCache, estimator: FootprintEstimator, extractor=None,
                 rewards: RewardAggregator | None = None, scale=DEFAULT_SCALE):
        self.cache = cache
        self.estimator = estimator
        self.extractor = extractor
        self.rewards = rewards
        self.scale = scale

    def compute(self, key: str, raw: dict) -> ProductEvaluation:
        """Runs the full analysis for one record, bypassing the cache."""
        logger.info(f"=== STEP 1: NORMALIZING '{key}' ===")
        product = normalize(raw, self.extractor)

        logger.info(f"=== STEP 2: ESTIMATING FOOTPRINT '{key}' ===")
        footprint = self.estimator.estimate(product)
        logger.info(f"Footprint: {footprint.co2e_kg} kg CO2e from {footprint.source}")

        logger.info(f"=== STEP 3: SCORING '{key}' ===")
        breakdown = scorer.score(product, footprint, self.scale)
        percentiles = percentile.rank(breakdown.metrics, product.category)

        return ProductEvaluation(
            product_key=key,
            product=product,
            footprint=footprint,
            breakdown=breakdown,
            percentiles=percentiles,
        )

    def _evaluate(self, raw: dict) -> tuple:
        raw = raw if isinstance(raw, dict) else {}
        key = product_key_for(raw)
        return self.cache.get_or_compute_with_hit(key, lambda product_key: self.compute(product_key, raw))

    def evaluate(self, raw: dict) -> ProductEvaluation:
        return self._evaluate(raw)[0]

    def evaluate_batch(self, raws: list) -> list:
        """Evaluations in the same order as `raws`; duplicate keys are computed once."""
        raws = [raw if isinstance(raw, dict) else {} for raw in raws]
        keys = [product_key_for(raw) for raw in raws]
        raw_by_key = {}
        for key, raw in zip(keys, raws):
            raw_by_key.setdefault(key, raw)
        logger.info(f"Evaluating batch of {len(keys)} records ({len(raw_by_key)} unique keys)")
        return self.cache.get_or_compute_batch(keys, lambda key: self.compute(key, raw_by_key[key]))

    def evaluate_and_apply(self, raw: dict, account_id: str) -> tuple:
        """Evaluates a purchased product and folds its grade into the buyer's account."""
        if self.rewards is None:
            raise RuntimeError("This pipeline has no reward aggregator configured.")
        evaluation = self.evaluate(raw)
        account = self.rewards.apply(account_id, evaluation.grade)
        return evaluation, account

    def get_recommendations(self, category: str, exclude_key: str) -> list:
        """
        Top cached products in the same category by overall score, excluding
        the product being viewed. Empty when the category is unknown.
        """
        if category == 'default' or not exclude_key:
            return []
        if self.cache.store is not None:
            try:
                return self.cache.store.top_in_category(category, exclude_key, RECOMMENDATION_LIMIT)
            except StoreUnavailable as e:
                logger.warning(f"Recommendations unavailable from persistent store, using local cache: {e}")
        return self.cache.fallback.top_in_category(category, exclude_key, RECOMMENDATION_LIMIT)

    def invalidate(self, key: str) -> bool:
        return self.cache.invalidate(key.strip().upper())

    def analyze(self, raw: dict) -> dict:
        """Evaluation plus everything the extension renders, as a JSON-ready dict."""
        evaluation, cached = self._evaluate(raw)
        response = evaluation.to_document()
        response['cached'] = cached
        response['grade_label'] = self.scale.label_for(evaluation.grade)
        metrics = evaluation.breakdown.metrics
        response['equivalents'] = {
            'carbon': describe_equivalent('carbon', metrics['carbon_kg']),
            'water': describe_equivalent('water', metrics['water_liters']),
            'energy': describe_equivalent('energy', metrics['energy_kwh']),
            'recyclability': describe_equivalent('recyclability', metrics['recyclability']),
        }
        response['recommendations'] = self.get_recommendations(evaluation.product.category, evaluation.product_key)
        logger.info(f"Analysis complete for '{evaluation.product_key}' "
                    f"({'CACHE HIT' if cached else 'CACHE MISS'}): grade {evaluation.grade}")
        return response


def build_default_pipeline() -> EvaluationPipeline:
    """Wires MongoDB, Climatiq and Gemini from config; missing pieces are left out."""
    db = connect_to_db()
    if db is not None:
        product_store = MongoProductStore(db[config.MONGO_PRODUCTS_COLLECTION])
        account_store = MongoAccountStore(db[config.MONGO_ACCOUNTS_COLLECTION])
    else:
        product_store = account_store = None

    primary = None
    if config.CLIMATIQ_API_KEY:
        primary = ClimatiqClient(config.CLIMATIQ_API_KEY, config.CLIMATIQ_BASE_URL, config.PROVIDER_TIMEOUT_SECONDS)
    else:
        logger.warning("CLIMATIQ_API_KEY not set; primary footprint provider disabled.")

    gemini = None
    if config.GOOGLE_API_KEY:
        try:
            gemini = GeminiAnalyzer(config.GOOGLE_API_KEY, config.GEMINI_MODEL, config.PROVIDER_TIMEOUT_SECONDS)
        except Exception as e:
            logger.error(f"Failed to configure Google AI, continuing without it: {e}")
    else:
        logger.warning("GOOGLE_API_KEY not set; AI extraction and secondary estimation disabled.")

    return EvaluationPipeline(
        cache=ScoreCache(product_store, MemoryProductStore()),
        estimator=FootprintEstimator(primary=primary, secondary=gemini),
        extractor=gemini,
        rewards=RewardAggregator(account_store, MemoryAccountStore()),
    )
