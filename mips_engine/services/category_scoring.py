"""
Category Scoring Service

Pure scorers for the four MIPS performance categories. Each scorer takes the
already-loaded facts for one (provider, year) and returns a CategoryScore on the
0-100 scale together with the intermediate values it was derived from.

Scoring Rules:
- Quality: only measures with case_minimum_met AND completeness >= 70% count.
  Each counted measure gets a 0-10 score bucketed from its performance rate;
  the category score is min(100, average * 10 + bonus), where bonus is +2 per
  outcome measure and +1 per high-priority measure scoring >= 7.
  No counted measure => 0 (gate).
- PI: earned points over max points across attested measures, capped at 100.
  Any required measure with zero points earned => 0 (gate).
- IA: min(100, completed points / 40 * 100).
- Cost: average of externally supplied per-measure scores.

The attestation point rules (PI threshold/bonus, IA 90-day continuity) also live
here so the attest endpoints and the scorers share one definition.

None is never coerced to zero silently: a missing rate or completeness excludes
the measure, and a missing points value on an attested row counts as zero
earned, which is what trips the PI gate.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from mips_engine.models.enums import ActivityWeight, AttestationStatus, Category
from mips_engine.models.schemas import (
    CategoryScore,
    CostPerformanceFact,
    IAAttestationFact,
    ImprovementActivity,
    PIMeasure,
    PIPerformanceFact,
    QualityPerformanceFact,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Scoring Constants
# =============================================================================

# (minimum performance rate, measure score), evaluated top-down
QUALITY_SCORE_BUCKETS = (
    (90.0, 10.0),
    (80.0, 8.0),
    (70.0, 6.0),
    (60.0, 4.0),
    (50.0, 2.0),
)
QUALITY_FLOOR_SCORE = 1.0
QUALITY_BONUS_MIN_SCORE = 7.0
OUTCOME_BONUS_POINTS = 2.0
HIGH_PRIORITY_BONUS_POINTS = 1.0

DEFAULT_MIN_COMPLETENESS = 70.0
DEFAULT_MINIMUM_CASES = 20

PI_BONUS_RATE = 90.0

IA_REQUIRED_POINTS = 40
IA_CONTINUOUS_DAYS = 90
IA_POINTS_BY_WEIGHT = {
    ActivityWeight.HIGH: 20.0,
    ActivityWeight.MEDIUM: 10.0,
}

MAX_CATEGORY_SCORE = 100.0


# =============================================================================
# Quality
# =============================================================================


def score_performance_rate(performance_rate: float) -> float:
    """
    Bucket a 0-100 performance rate into the 0-10 measure score.

    >=90 -> 10, >=80 -> 8, >=70 -> 6, >=60 -> 4, >=50 -> 2, otherwise 1.
    """
    for minimum_rate, score in QUALITY_SCORE_BUCKETS:
        if performance_rate >= minimum_rate:
            return score
    return QUALITY_FLOOR_SCORE


def derive_quality_performance(
    numerator: int,
    denominator: int,
    exclusions: int = 0,
    data_completeness: Optional[float] = None,
    minimum_cases: Optional[int] = None,
    min_completeness: float = DEFAULT_MIN_COMPLETENESS,
) -> Dict[str, Any]:
    """
    Derive rate, case-minimum flag and measure score from raw counts.

    Args:
        numerator: Patients meeting the measure.
        denominator: Eligible patients.
        exclusions: Patients excluded from the denominator.
        data_completeness: Reporting completeness percentage, if known.
        minimum_cases: Catalog case minimum (default 20).
        min_completeness: Completeness gate for a non-zero score.

    Returns:
        Dict with performance_rate (rounded to 2 decimals), case_minimum_met
        and performance_score (0 when either gate fails).
    """
    if minimum_cases is None:
        minimum_cases = DEFAULT_MINIMUM_CASES

    performance_denominator = denominator - exclusions
    if performance_denominator > 0:
        performance_rate = round(numerator / performance_denominator * 100, 2)
    else:
        performance_rate = 0.0

    case_minimum_met = denominator >= minimum_cases
    completeness_met = data_completeness is not None and data_completeness >= min_completeness

    if case_minimum_met and completeness_met:
        performance_score = score_performance_rate(performance_rate)
    else:
        performance_score = 0.0

    return {
        "performance_rate": performance_rate,
        "case_minimum_met": case_minimum_met,
        "performance_score": performance_score,
    }


def qualifies_for_scoring(
    fact: QualityPerformanceFact,
    min_completeness: float = DEFAULT_MIN_COMPLETENESS,
) -> bool:
    """True when the measure passes both the case-minimum and completeness gates."""
    return (
        fact.case_minimum_met
        and fact.performance_rate is not None
        and fact.data_completeness is not None
        and fact.data_completeness >= min_completeness
    )


def score_quality(
    facts: Sequence[QualityPerformanceFact],
    min_completeness: float = DEFAULT_MIN_COMPLETENESS,
) -> CategoryScore:
    """
    Score the Quality category.

    Measures failing either gate are excluded from the average entirely, so
    high raw rates on under-reported measures never contribute.
    """
    qualifying = [f for f in facts if qualifies_for_scoring(f, min_completeness)]

    if not qualifying:
        return CategoryScore(
            category=Category.QUALITY,
            score=0.0,
            gate_failed=True,
            raw_facts={
                "selected_measures": len(facts),
                "qualifying_measures": 0,
            },
        )

    measure_scores: Dict[str, float] = {}
    bonus_points = 0.0
    for fact in qualifying:
        measure_score = score_performance_rate(fact.performance_rate)
        measure_scores[fact.measure_id] = measure_score
        if measure_score >= QUALITY_BONUS_MIN_SCORE:
            if fact.outcome_measure:
                bonus_points += OUTCOME_BONUS_POINTS
            if fact.high_priority:
                bonus_points += HIGH_PRIORITY_BONUS_POINTS

    average_score = sum(measure_scores.values()) / len(measure_scores)
    score = min(MAX_CATEGORY_SCORE, average_score * 10 + bonus_points)

    return CategoryScore(
        category=Category.QUALITY,
        score=round(score, 2),
        raw_facts={
            "selected_measures": len(facts),
            "qualifying_measures": len(qualifying),
            "measure_scores": measure_scores,
            "average_measure_score": round(average_score, 4),
            "bonus_points": bonus_points,
        },
    )


# =============================================================================
# Promoting Interoperability
# =============================================================================


def calculate_pi_points(measure: PIMeasure, performance_rate: float) -> float:
    """Max points when the rate meets the measure threshold, plus bonus at >= 90%."""
    points = 0.0
    if performance_rate >= measure.threshold_percentage:
        points += measure.max_points
    if performance_rate >= PI_BONUS_RATE:
        points += measure.bonus_points
    return points


def score_pi(facts: Sequence[PIPerformanceFact]) -> CategoryScore:
    """
    Score the Promoting Interoperability category.

    The required-measure gate covers every required catalog measure: an
    unattested required measure has earned zero points and fails the gate.
    """
    attested = [f for f in facts if f.is_attested]

    failed_required = sorted(
        f.measure_id
        for f in facts
        if f.required_measure and (not f.is_attested or not f.points_earned)
    )

    earned = sum(f.points_earned or 0.0 for f in attested)
    possible = sum(f.max_points for f in attested)

    raw_facts = {
        "attested_measures": len(attested),
        "points_earned": earned,
        "max_points": possible,
        "failed_required_measures": failed_required,
    }

    if failed_required:
        logger.debug(f"PI gate failed on required measures: {', '.join(failed_required)}")
        return CategoryScore(category=Category.PI, score=0.0, gate_failed=True, raw_facts=raw_facts)

    if possible <= 0:
        return CategoryScore(category=Category.PI, score=0.0, raw_facts=raw_facts)

    score = min(MAX_CATEGORY_SCORE, earned / possible * 100)
    return CategoryScore(category=Category.PI, score=round(score, 2), raw_facts=raw_facts)


# =============================================================================
# Improvement Activities
# =============================================================================


def calculate_ia_points(activity: ImprovementActivity, start_date: date, end_date: date) -> float:
    """Weight-based points, awarded only for activities spanning at least 90 days."""
    if (end_date - start_date).days < IA_CONTINUOUS_DAYS:
        return 0.0
    return IA_POINTS_BY_WEIGHT[activity.weight]


def total_ia_points(facts: Sequence[IAAttestationFact]) -> float:
    return sum(
        f.points_earned or 0.0
        for f in facts
        if f.attestation_status == AttestationStatus.COMPLETED
    )


def score_ia(
    facts: Sequence[IAAttestationFact],
    required_points: int = IA_REQUIRED_POINTS,
) -> CategoryScore:
    """Score the Improvement Activities category from completed attestations."""
    total_points = total_ia_points(facts)
    score = min(MAX_CATEGORY_SCORE, total_points / required_points * 100)
    return CategoryScore(
        category=Category.IA,
        score=round(score, 2),
        raw_facts={
            "completed_activities": sum(
                1 for f in facts if f.attestation_status == AttestationStatus.COMPLETED
            ),
            "total_points": total_points,
            "required_points": required_points,
        },
    )


# =============================================================================
# Cost
# =============================================================================


def score_cost(facts: Sequence[CostPerformanceFact]) -> CategoryScore:
    if not facts:
        return CategoryScore(category=Category.COST, score=0.0, data_available=False)

    scores: List[float] = [f.performance_score for f in facts]
    average = sum(scores) / len(scores)
    return CategoryScore(
        category=Category.COST,
        score=round(min(MAX_CATEGORY_SCORE, average), 2),
        raw_facts={"cost_measures": len(scores)},
    )
