"""
Composite Score & Payment Adjustment Service

Combines the four category scores into the weighted composite and maps it onto
the two-sided payment adjustment scale, then upserts the Submission.

Architecture:
- ScoringService is a stateless object constructed with one year's
  configuration (weights, payment scale) and process settings. It holds no
  per-provider state, so one instance can be shared by concurrent requests
  and tests can build instances with any configuration.
- compute_composite fans out the four category fact loads with asyncio.gather
  and joins them before the Submission write.
- A category with no facts (DataUnavailableError) scores 0, is logged at
  WARNING and listed in Submission.unavailable_categories.

Payment Adjustment (threshold T, bounds +P / -N):
    composite >= T: (composite - T) / (100 - T) * P, capped at P
    composite <  T: -((T - composite) / T) * |N|, floored at -|N|
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import DataUnavailableError, validate_identifiers
from mips_engine.models.enums import Category
from mips_engine.models.schemas import (
    CategoryScore,
    CostPerformanceFact,
    IAAttestationFact,
    PIPerformanceFact,
    QualityPerformanceFact,
    Submission,
    YearConfiguration,
)
from mips_engine.services.category_scoring import (
    score_cost,
    score_ia,
    score_pi,
    score_quality,
)
from mips_engine.services.configuration import load_year_configuration
from mips_engine.services.performance_facts import (
    fetch_cost_facts,
    fetch_ia_facts,
    fetch_pi_facts,
    fetch_quality_facts,
)
from mips_engine.sql import UPSERT_SUBMISSION


logger = logging.getLogger(__name__)


class ScoringService:
    """
    Year-scoped scoring rules.

    Example:
        >>> service = ScoringService(config)
        >>> service.calculate_payment_adjustment(80.0)
        1.8
    """

    def __init__(self, config: YearConfiguration, settings: Optional[Settings] = None):
        self.config = config
        self.settings = settings or get_settings()

    @property
    def weights(self):
        return self.config.weights

    # -------------------------------------------------------------------------
    # Category scorers
    # -------------------------------------------------------------------------

    def score_quality(self, facts: Sequence[QualityPerformanceFact]) -> CategoryScore:
        return score_quality(facts, min_completeness=self.settings.quality_min_completeness)

    def score_pi(self, facts: Sequence[PIPerformanceFact]) -> CategoryScore:
        return score_pi(facts)

    def score_ia(self, facts: Sequence[IAAttestationFact]) -> CategoryScore:
        return score_ia(facts, required_points=self.settings.ia_required_points)

    def score_cost(self, facts: Sequence[CostPerformanceFact]) -> CategoryScore:
        return score_cost(facts)

    # -------------------------------------------------------------------------
    # Composite & payment
    # -------------------------------------------------------------------------

    def calculate_composite(self, category_scores: Dict[Category, float]) -> float:
        """
        Weighted sum of category scores, clamped to [0, 100] and rounded to 2 decimals.

        Categories missing from category_scores contribute 0.
        """
        composite = sum(
            category_scores.get(category, 0.0) * self.weights.for_category(category)
            for category in Category
        )
        return round(min(100.0, max(0.0, composite)), 2)

    def calculate_payment_adjustment(self, composite_score: float) -> float:
        """Piecewise-linear adjustment percentage for a composite score."""
        scale = self.config.payment_scale
        threshold = scale.performance_threshold

        if composite_score >= threshold:
            adjustment = (composite_score - threshold) / (100.0 - threshold) * scale.max_positive_adjustment
            adjustment = min(adjustment, scale.max_positive_adjustment)
        else:
            max_penalty = abs(scale.max_negative_adjustment)
            adjustment = -((threshold - composite_score) / threshold) * max_penalty
            adjustment = max(adjustment, -max_penalty)

        return round(adjustment, 2)

    def build_submission(
        self,
        provider_id: str,
        performance_year: int,
        category_scores: Dict[Category, CategoryScore],
        unavailable_categories: Optional[List[Category]] = None,
        calculated_at: Optional[datetime] = None,
    ) -> Submission:
        """Assemble the Submission from already computed category scores."""
        scores = {category: cs.score for category, cs in category_scores.items()}
        composite = self.calculate_composite(scores)

        return Submission(
            provider_id=provider_id,
            performance_year=performance_year,
            quality_score=scores.get(Category.QUALITY, 0.0),
            pi_score=scores.get(Category.PI, 0.0),
            ia_score=scores.get(Category.IA, 0.0),
            cost_score=scores.get(Category.COST, 0.0),
            weights=self.weights,
            composite_score=composite,
            payment_adjustment=self.calculate_payment_adjustment(composite),
            unavailable_categories=sorted(unavailable_categories or [], key=lambda c: c.value),
            defaults_applied=list(self.config.defaults_applied),
            calculated_at=calculated_at or datetime.now(timezone.utc),
        )

    # -------------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------------

    async def score_categories(
        self,
        provider_id: str,
        performance_year: int,
    ) -> Tuple[Dict[Category, CategoryScore], List[Category]]:
        """
        Load and score all four categories concurrently.

        Returns:
            Tuple of (scores by category, categories with no data).
        """
        loaders: List[Tuple[Category, Callable[..., Awaitable], Callable]] = [
            (Category.QUALITY, fetch_quality_facts, self.score_quality),
            (Category.PI, fetch_pi_facts, self.score_pi),
            (Category.IA, fetch_ia_facts, self.score_ia),
            (Category.COST, fetch_cost_facts, self.score_cost),
        ]

        results = await asyncio.gather(
            *(loader(provider_id, performance_year) for _, loader, _ in loaders),
            return_exceptions=True,
        )

        category_scores: Dict[Category, CategoryScore] = {}
        unavailable: List[Category] = []

        for (category, _, scorer), result in zip(loaders, results):
            if isinstance(result, DataUnavailableError):
                logger.warning(f"{result}; scoring {category.value} as 0")
                category_scores[category] = CategoryScore(
                    category=category, score=0.0, data_available=False
                )
                unavailable.append(category)
            elif isinstance(result, BaseException):
                raise result
            else:
                category_scores[category] = scorer(result)

        return category_scores, unavailable


# =============================================================================
# Persistence & Entry Point
# =============================================================================


async def persist_submission(submission: Submission) -> None:
    """Upsert the submission keyed by (provider_id, performance_year)."""
    pool = await get_db_pool()
    weights = submission.weights

    async with pool.acquire() as conn:
        await conn.execute(
            UPSERT_SUBMISSION,
            submission.provider_id,
            submission.performance_year,
            submission.quality_score,
            submission.pi_score,
            submission.ia_score,
            submission.cost_score,
            weights.quality,
            weights.pi,
            weights.ia,
            weights.cost,
            submission.composite_score,
            submission.payment_adjustment,
            [c.value for c in submission.unavailable_categories],
            submission.defaults_applied,
            submission.calculated_at,
        )


async def compute_composite(
    provider_id: str,
    performance_year: int,
    config: Optional[YearConfiguration] = None,
    settings: Optional[Settings] = None,
) -> Submission:
    """
    Compute and persist the composite score for a provider/year.

    Args:
        provider_id: Provider identifier.
        performance_year: Program year.
        config: Year configuration; loaded from the database when omitted.
        settings: Process settings (default: cached settings).

    Returns:
        The upserted Submission.

    Raises:
        InputError: If the provider id or year is malformed.
    """
    validate_identifiers(provider_id, performance_year)

    if config is None:
        config = await load_year_configuration(performance_year, settings)

    service = ScoringService(config, settings)
    category_scores, unavailable = await service.score_categories(provider_id, performance_year)
    submission = service.build_submission(provider_id, performance_year, category_scores, unavailable)

    await persist_submission(submission)

    logger.info(
        f"Submission provider={provider_id} year={performance_year}: "
        f"composite={submission.composite_score} adjustment={submission.payment_adjustment}%"
        + (f" unavailable={[c.value for c in unavailable]}" if unavailable else "")
    )
    return submission
