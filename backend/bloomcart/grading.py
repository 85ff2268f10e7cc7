# bloomcart/grading.py
import logging
from dataclasses import dataclass

from bloomcart import config

logger = logging.getLogger('grading')


@dataclass(frozen=True)
class GradeBand:
    min_score: float
    grade: str
    delta: int
    label: str


class GradeScale:
    """
    Letter grades for overall scores and the reward delta each grade carries.

    Bands are given best-first with strictly decreasing minimum scores; the
    last band catches everything below the previous threshold.
    """

    def __init__(self, bands=config.GRADE_BANDS, favorable_count: int = config.FAVORABLE_BAND_COUNT):
        self.bands = tuple(band if isinstance(band, GradeBand) else GradeBand(*band) for band in bands)
        if not self.bands:
            raise ValueError("A grade scale needs at least one band.")
        thresholds = [band.min_score for band in self.bands]
        if any(upper <= lower for upper, lower in zip(thresholds, thresholds[1:])):
            raise ValueError(f"Grade band thresholds must strictly decrease: {thresholds}")
        self._by_grade = {band.grade: band for band in self.bands}
        self.favorable = frozenset(band.grade for band in self.bands[:favorable_count])

    @property
    def grades(self) -> tuple:
        return tuple(band.grade for band in self.bands)

    def band_for(self, score: float) -> GradeBand:
        for band in self.bands:
            if score >= band.min_score:
                return band
        return self.bands[-1]

    def grade_for(self, score: float) -> str:
        return self.band_for(score).grade

    def rank(self, grade: str) -> int:
        """0 for the best grade; larger is worse."""
        return self.grades.index(grade)

    def is_known(self, grade: str) -> bool:
        return grade in self._by_grade

    def delta_for(self, grade: str) -> int:
        band = self._by_grade.get(grade)
        if band is None:
            logger.warning(f"DATA INTEGRITY: unknown grade '{grade}', applying delta 0.")
            return 0
        return band.delta

    def label_for(self, grade: str) -> str:
        band = self._by_grade.get(grade)
        return band.label if band else 'Unknown grade'

    def is_favorable(self, grade: str) -> bool:
        return grade in self.favorable


DEFAULT_SCALE = GradeScale()
