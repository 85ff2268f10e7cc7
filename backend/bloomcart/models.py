# models.py
# ==============================================================================
# Immutable records passed between the pipeline stages, plus the tagged
# outcomes returned by every external provider call.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

T = TypeVar('T')

FACTORS = ('carbon', 'water', 'energy', 'transport', 'end_of_life', 'packaging')

SOURCE_PRIMARY = 'primary'
SOURCE_SECONDARY = 'secondary'
SOURCE_HEURISTIC = 'heuristic'


# --- Provider outcomes ---

@dataclass(frozen=True)
class ProviderOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class ProviderRejected:
    """The provider answered, but the answer is not usable (no match, poor quality)."""
    reason: str


@dataclass(frozen=True)
class ProviderUnavailable:
    """Timeout, transport error, non-2xx status or a malformed payload."""
    reason: str


# --- Pipeline records ---

@dataclass(frozen=True)
class NormalizedProduct:
    title: str
    category: str
    weight_kg: float
    materials: frozenset
    description: str = ''
    brand: str = ''
    origin: str = ''
    shipping: str = ''

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'category': self.category,
            'weight_kg': self.weight_kg,
            'materials': sorted(self.materials),
            'description': self.description,
            'brand': self.brand,
            'origin': self.origin,
            'shipping': self.shipping,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'NormalizedProduct':
        return cls(
            title=data['title'],
            category=data['category'],
            weight_kg=float(data['weight_kg']),
            materials=frozenset(data.get('materials') or ['mixed']),
            description=data.get('description', ''),
            brand=data.get('brand', ''),
            origin=data.get('origin', ''),
            shipping=data.get('shipping', ''),
        )


@dataclass(frozen=True)
class FootprintResult:
    co2e_kg: float
    source: str
    data_quality: float | None = None
    provider_ref: str | None = None
    confidence: str | None = None

    def to_dict(self) -> dict:
        return {
            'co2e_kg': self.co2e_kg,
            'source': self.source,
            'data_quality': self.data_quality,
            'provider_ref': self.provider_ref,
            'confidence': self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'FootprintResult':
        return cls(
            co2e_kg=float(data['co2e_kg']),
            source=data['source'],
            data_quality=data.get('data_quality'),
            provider_ref=data.get('provider_ref'),
            confidence=data.get('confidence'),
        )


@dataclass(frozen=True)
class SubScore:
    score: float
    value: Any
    unit: str
    rating: str

    def to_dict(self) -> dict:
        return {'score': self.score, 'value': self.value, 'unit': self.unit, 'rating': self.rating}


@dataclass(frozen=True)
class ScoreBreakdown:
    carbon: SubScore
    water: SubScore
    energy: SubScore
    transport: SubScore
    end_of_life: SubScore
    packaging: SubScore
    overall_score: float
    grade: str
    metrics: dict = field(default_factory=dict)

    def factor(self, name: str) -> SubScore:
        return getattr(self, name)

    def to_dict(self) -> dict:
        data = {name: self.factor(name).to_dict() for name in FACTORS}
        data['overall_score'] = self.overall_score
        data['grade'] = self.grade
        data['metrics'] = dict(self.metrics)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ScoreBreakdown':
        factors = {name: SubScore(**data[name]) for name in FACTORS}
        return cls(
            overall_score=float(data['overall_score']),
            grade=data['grade'],
            metrics=dict(data.get('metrics') or {}),
            **factors,
        )


@dataclass(frozen=True)
class PercentileRanking:
    overall: int
    carbon: int
    water: int
    energy: int
    recyclability: int

    def to_dict(self) -> dict:
        return {
            'overall': self.overall,
            'carbon': self.carbon,
            'water': self.water,
            'energy': self.energy,
            'recyclability': self.recyclability,
        }


@dataclass(frozen=True)
class ProductEvaluation:
    """The record cached per product key."""
    product_key: str
    product: NormalizedProduct
    footprint: FootprintResult
    breakdown: ScoreBreakdown
    percentiles: PercentileRanking
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def overall_score(self) -> float:
        return self.breakdown.overall_score

    @property
    def grade(self) -> str:
        return self.breakdown.grade

    def to_document(self) -> dict:
        return {
            'product_key': self.product_key,
            'category': self.product.category,
            'overall_score': self.breakdown.overall_score,
            'grade': self.breakdown.grade,
            'product': self.product.to_dict(),
            'footprint': self.footprint.to_dict(),
            'breakdown': self.breakdown.to_dict(),
            'percentiles': self.percentiles.to_dict(),
            'evaluated_at': self.evaluated_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> 'ProductEvaluation':
        return cls(
            product_key=doc['product_key'],
            product=NormalizedProduct.from_dict(doc['product']),
            footprint=FootprintResult.from_dict(doc['footprint']),
            breakdown=ScoreBreakdown.from_dict(doc['breakdown']),
            percentiles=PercentileRanking(**doc['percentiles']),
            evaluated_at=datetime.fromisoformat(doc['evaluated_at']),
        )


@dataclass(frozen=True)
class HistoryEntry:
    grade: str
    delta: int
    timestamp: datetime

    def to_dict(self) -> dict:
        return {'grade': self.grade, 'delta': self.delta, 'timestamp': self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> 'HistoryEntry':
        return cls(
            grade=data['grade'],
            delta=int(data['delta']),
            timestamp=datetime.fromisoformat(data['timestamp']),
        )


@dataclass(frozen=True)
class RewardAccount:
    account_id: str
    value: int
    total_count: int = 0
    favorable_count: int = 0
    history: tuple = ()
    updated_at: datetime | None = None

    def to_document(self) -> dict:
        return {
            'account_id': self.account_id,
            'value': self.value,
            'total_count': self.total_count,
            'favorable_count': self.favorable_count,
            'history': [entry.to_dict() for entry in self.history],
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_document(cls, doc: dict) -> 'RewardAccount':
        updated_at = doc.get('updated_at')
        return cls(
            account_id=doc['account_id'],
            value=int(doc['value']),
            total_count=int(doc.get('total_count', 0)),
            favorable_count=int(doc.get('favorable_count', 0)),
            history=tuple(HistoryEntry.from_dict(entry) for entry in doc.get('history') or []),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
