"""
Trust Scoring Engine.

Combines weighted trust signals into a single score in [0, 1]:

  score = Σ(weight_i × normalize_i(measurement_i))

Each signal's `calculation` names a normalizer in a closed registry; it is
never evaluated as an expression. Weights sum to 1.0 (checked at load), and
every normalizer clamps into [0, 1], so the score is bounded.

A missing measurement contributes 0 rather than being skipped, so an
incomplete profile scores lower than a complete one.
"""

import math
from typing import Callable, Mapping, Optional

import structlog

from policyengine.schemas.decisions import SignalContribution, TrustScore
from policyengine.schemas.foundation import TrustSignal, VerificationLevel

logger = structlog.get_logger(__name__)


def clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def canonical_calculation(name: str) -> str:
    """Registry key for a calculation name (whitespace-insensitive)."""
    return "".join(name.split())


class TrustScorer:
    """
    Weighted trust scorer with a fixed normalizer registry.

    Registry:
      average_response_hours               → exp(-hours / scale)
      completed_bookings/total_bookings    → ratio, clamped
      sum_ratings/count_ratings            → rating / rating_scale, clamped
      verification_score                   → clamped
    """

    def __init__(self, response_time_scale_hours: float = 24.0, rating_scale: float = 5.0):
        self.response_time_scale_hours = response_time_scale_hours
        self.rating_scale = rating_scale
        self._registry: dict[str, Callable[[float], float]] = {
            "average_response_hours": self._response_hours,
            "completed_bookings/total_bookings": clamp,
            "sum_ratings/count_ratings": self._rating,
            "verification_score": clamp,
        }

    @property
    def calculations(self) -> frozenset[str]:
        return frozenset(self._registry)

    def supports(self, calculation: str) -> bool:
        return canonical_calculation(calculation) in self._registry

    def normalize(self, calculation: str, raw: float) -> float:
        """Map a raw measurement into [0, 1]. Unknown calculation → KeyError."""
        fn = self._registry[canonical_calculation(calculation)]
        return clamp(fn(raw))

    def score(
        self,
        signals: tuple[TrustSignal, ...] | list[TrustSignal],
        measurements: Mapping[str, float],
        levels: tuple[VerificationLevel, ...] | list[VerificationLevel] = (),
    ) -> TrustScore:
        contributions: list[SignalContribution] = []
        missing: list[str] = []
        total = 0.0

        for signal in signals:
            raw = measurements.get(signal.id)
            if raw is None or not math.isfinite(raw):
                missing.append(signal.id)
                normalized = 0.0
                raw = None
            else:
                normalized = self.normalize(signal.calculation, raw)
            weighted = signal.weight * normalized
            total += weighted
            contributions.append(SignalContribution(
                signal_id=signal.id,
                calculation=signal.calculation,
                raw_value=raw,
                normalized=round(normalized, 4),
                weight=signal.weight,
                weighted_contribution=round(weighted, 4),
            ))

        score = round(clamp(total), 4)
        level = self.recommend_level(score, levels)

        if missing:
            logger.info("trust_signals_missing", missing=missing, score=score)

        return TrustScore(
            score=score,
            level=level.level if level else None,
            contributions=contributions,
            missing_signals=tuple(missing),
            requirements=level.requirements if level else (),
        )

    @staticmethod
    def recommend_level(
        score: float,
        levels: tuple[VerificationLevel, ...] | list[VerificationLevel],
    ) -> Optional[VerificationLevel]:
        """Highest level whose threshold the score reaches."""
        reached = [lvl for lvl in levels if lvl.min_score <= score]
        if not reached:
            return None
        return max(reached, key=lambda lvl: lvl.min_score)

    # ── Normalizers ───────────────────────────────────────────────────

    def _response_hours(self, hours: float) -> float:
        return math.exp(-max(hours, 0.0) / self.response_time_scale_hours)

    def _rating(self, rating: float) -> float:
        return rating / self.rating_scale
