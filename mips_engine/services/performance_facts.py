"""
Performance Fact Access

Reads volume and per-category performance facts scoped by (provider, year),
recalculates derived quality performance from recorded counts and writes PI/IA
attestations. Each loader acquires its own pooled connection so
the composite calculator can run the four category reads concurrently.

Empty results raise DataUnavailableError unless the caller passes
allow_empty=True (the gap engine does, since "nothing recorded" is itself a
gap). The composite calculator catches the error and scores the category 0.

Rows are converted into pydantic models here; NULL columns stay None.
"""

import logging
from datetime import date
from typing import Any, List, Mapping, Optional

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import (
    DataUnavailableError,
    InputError,
    NotFoundError,
    validate_identifiers,
)
from mips_engine.models.enums import CalculationStatus, Category
from mips_engine.models.schemas import (
    CostPerformanceFact,
    IAAttestationFact,
    IAAttestationResult,
    ImprovementActivity,
    PIAttestationResult,
    PIMeasure,
    PIPerformanceFact,
    QualityMeasurePerformance,
    QualityPerformanceFact,
    QualityPerformanceSummary,
    VolumeFacts,
)
from mips_engine.services.category_scoring import (
    DEFAULT_MINIMUM_CASES,
    IA_CONTINUOUS_DAYS,
    calculate_ia_points,
    calculate_pi_points,
    derive_quality_performance,
)
from mips_engine.sql import (
    COST_FACTS_QUERY,
    IA_ACTIVITY_QUERY,
    IA_FACTS_QUERY,
    PI_FACTS_QUERY,
    PI_MEASURE_QUERY,
    QUALITY_COUNTS_QUERY,
    QUALITY_FACTS_QUERY,
    UPSERT_IA_ATTESTATION,
    UPSERT_PI_ATTESTATION,
    UPSERT_QUALITY_PERFORMANCE,
    VOLUME_FACTS_QUERY,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Row Conversion
# =============================================================================


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def quality_fact_from_row(row: Mapping[str, Any]) -> QualityPerformanceFact:
    """Case minimum is re-derived from the denominator, never trusted from storage."""
    denominator = _optional_int(row["denominator_count"])
    minimum_cases = _optional_int(row["minimum_case_requirement"])
    if minimum_cases is None:
        minimum_cases = DEFAULT_MINIMUM_CASES

    return QualityPerformanceFact(
        measure_id=row["measure_id"],
        title=row["measure_title"],
        outcome_measure=bool(row["outcome_measure"]),
        high_priority=bool(row["high_priority"]),
        minimum_case_requirement=_optional_int(row["minimum_case_requirement"]),
        expected_completeness=_optional_float(row["data_completeness_expected"]),
        numerator=_optional_int(row["numerator_count"]),
        denominator=denominator,
        exclusions=_optional_int(row["exclusion_count"]),
        performance_rate=_optional_float(row["performance_rate"]),
        performance_score=_optional_float(row["performance_score"]),
        data_completeness=_optional_float(row["data_completeness"]),
        case_minimum_met=denominator is not None and denominator >= minimum_cases,
    )


def pi_fact_from_row(row: Mapping[str, Any]) -> PIPerformanceFact:
    return PIPerformanceFact(
        measure_id=row["measure_id"],
        title=row["measure_title"],
        required_measure=bool(row["required_measure"]),
        max_points=float(row["max_points"] or 0),
        threshold_percentage=float(row["threshold_percentage"] or 0),
        attestation_status=row["attestation_status"],
        points_earned=_optional_float(row["points_earned"]),
        performance_rate=_optional_float(row["performance_rate"]),
    )


def ia_fact_from_row(row: Mapping[str, Any]) -> IAAttestationFact:
    return IAAttestationFact(
        activity_id=row["activity_id"],
        attestation_status=row["attestation_status"],
        points_earned=_optional_float(row["points_earned"]),
    )


def cost_fact_from_row(row: Mapping[str, Any]) -> CostPerformanceFact:
    return CostPerformanceFact(
        measure_id=row["measure_id"],
        performance_score=float(row["performance_score"]),
    )


async def _fetch_rows(query: str, provider_id: str, performance_year: int) -> List[Mapping[str, Any]]:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetch(query, provider_id, performance_year)


# =============================================================================
# Volume Facts
# =============================================================================


async def fetch_volume_facts(provider_id: str, performance_year: int) -> VolumeFacts:
    """
    Aggregate completed encounters for a provider/year into volume facts.

    A provider with no encounters yields all-zero facts; the evaluator turns
    that into a "cannot be determined" result.
    """
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(VOLUME_FACTS_QUERY, provider_id, performance_year)

    if row is None:
        return VolumeFacts(total_patients=0, program_patients=0, program_allowed_charges=0.0)

    return VolumeFacts(
        total_patients=int(row["total_patients"] or 0),
        program_patients=int(row["program_patients"] or 0),
        program_allowed_charges=float(row["program_allowed_charges"] or 0),
    )


# =============================================================================
# Category Fact Loaders
# =============================================================================


async def fetch_quality_facts(
    provider_id: str,
    performance_year: int,
    allow_empty: bool = False,
) -> List[QualityPerformanceFact]:
    """
    Load selected quality measures with their performance rows.

    Raises:
        DataUnavailableError: If the provider has no selected measures and
            allow_empty is False.
    """
    rows = await _fetch_rows(QUALITY_FACTS_QUERY, provider_id, performance_year)
    facts = [quality_fact_from_row(row) for row in rows]
    if not facts and not allow_empty:
        raise DataUnavailableError(Category.QUALITY.value, provider_id, performance_year)
    return facts


async def fetch_pi_facts(
    provider_id: str,
    performance_year: int,
    allow_empty: bool = False,
) -> List[PIPerformanceFact]:
    """
    Load every catalog PI measure with the provider's attestation, if any.

    Raises:
        DataUnavailableError: If no PI measure has any attestation row and
            allow_empty is False.
    """
    rows = await _fetch_rows(PI_FACTS_QUERY, provider_id, performance_year)
    facts = [pi_fact_from_row(row) for row in rows]
    has_attestations = any(f.attestation_status is not None for f in facts)
    if not has_attestations and not allow_empty:
        raise DataUnavailableError(Category.PI.value, provider_id, performance_year)
    return facts


async def fetch_ia_facts(
    provider_id: str,
    performance_year: int,
    allow_empty: bool = False,
) -> List[IAAttestationFact]:
    rows = await _fetch_rows(IA_FACTS_QUERY, provider_id, performance_year)
    facts = [ia_fact_from_row(row) for row in rows]
    if not facts and not allow_empty:
        raise DataUnavailableError(Category.IA.value, provider_id, performance_year)
    return facts


async def fetch_cost_facts(
    provider_id: str,
    performance_year: int,
    allow_empty: bool = False,
) -> List[CostPerformanceFact]:
    rows = await _fetch_rows(COST_FACTS_QUERY, provider_id, performance_year)
    facts = [cost_fact_from_row(row) for row in rows]
    if not facts and not allow_empty:
        raise DataUnavailableError(Category.COST.value, provider_id, performance_year)
    return facts


# =============================================================================
# Quality Performance Recalculation
# =============================================================================


def _quality_measure_performance(
    row: Mapping[str, Any],
    settings: Settings,
) -> QualityMeasurePerformance:
    """Derive rate, score and case-minimum flag for one counts row."""
    measure_id = row["measure_id"]
    numerator = _optional_int(row["numerator_count"])
    denominator = _optional_int(row["denominator_count"])
    exclusions = _optional_int(row["exclusion_count"]) or 0
    data_completeness = _optional_float(row["data_completeness"])
    minimum_cases = _optional_int(row["minimum_case_requirement"])
    if minimum_cases is None:
        minimum_cases = settings.default_minimum_case_requirement

    if numerator is None or denominator is None:
        return QualityMeasurePerformance(
            measure_id=measure_id,
            status=CalculationStatus.NO_DATA,
            minimum_case_requirement=minimum_cases,
            message="No numerator/denominator counts recorded",
        )

    if exclusions > denominator or numerator > denominator - exclusions:
        return QualityMeasurePerformance(
            measure_id=measure_id,
            status=CalculationStatus.INVALID,
            numerator=numerator,
            denominator=denominator,
            exclusions=exclusions,
            minimum_case_requirement=minimum_cases,
            message=(
                f"Inconsistent counts: numerator={numerator}, "
                f"denominator={denominator}, exclusions={exclusions}"
            ),
        )

    derived = derive_quality_performance(
        numerator,
        denominator,
        exclusions=exclusions,
        data_completeness=data_completeness,
        minimum_cases=minimum_cases,
        min_completeness=settings.quality_min_completeness,
    )
    return QualityMeasurePerformance(
        measure_id=measure_id,
        status=CalculationStatus.CALCULATED,
        numerator=numerator,
        denominator=denominator,
        exclusions=exclusions,
        data_completeness=data_completeness,
        minimum_case_requirement=minimum_cases,
        **derived,
    )


async def calculate_quality_performance(
    provider_id: str,
    performance_year: int,
    measure_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> QualityPerformanceSummary:
    """
    Recalculate the derived quality performance columns from recorded counts.

    For every selected measure (or only measure_id), performance_rate,
    performance_score and case_minimum_met are derived from the numerator,
    denominator and exclusion counts and the catalog case minimum, then
    upserted into mips_quality_performance for the calendar-year reporting
    period. Measures with no counts or inconsistent counts are reported and
    left untouched.

    Raises:
        InputError: If identifiers are malformed.
    """
    validate_identifiers(provider_id, performance_year)
    settings = settings or get_settings()

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            rows = await conn.fetch(QUALITY_COUNTS_QUERY, provider_id, performance_year, measure_id)

            results = []
            for row in rows:
                result = _quality_measure_performance(row, settings)
                results.append(result)
                if result.status != CalculationStatus.CALCULATED:
                    logger.warning(
                        f"Quality measure {result.measure_id} not recalculated for "
                        f"provider={provider_id} year={performance_year}: {result.message}"
                    )
                    continue

                await conn.execute(
                    UPSERT_QUALITY_PERFORMANCE,
                    row["provider_measure_id"],
                    date(performance_year, 1, 1),
                    date(performance_year, 12, 31),
                    result.numerator,
                    result.denominator,
                    result.exclusions,
                    result.performance_rate,
                    result.performance_score,
                    result.data_completeness,
                    result.case_minimum_met,
                )

    calculated = [r for r in results if r.status == CalculationStatus.CALCULATED]
    count = len(calculated)
    summary = QualityPerformanceSummary(
        provider_id=provider_id,
        performance_year=performance_year,
        calculated_measures=count,
        measures_with_minimum_cases=sum(1 for r in calculated if r.case_minimum_met),
        average_performance_rate=(
            round(sum(r.performance_rate for r in calculated) / count, 2) if count else 0.0
        ),
        average_data_completeness=(
            round(sum(r.data_completeness or 0.0 for r in calculated) / count, 2) if count else 0.0
        ),
        measures=results,
    )

    logger.info(
        f"Recalculated quality performance provider={provider_id} year={performance_year}: "
        f"{count}/{len(results)} measures calculated"
    )
    return summary


# =============================================================================
# Attestations
# =============================================================================


async def attest_pi_measure(
    provider_id: str,
    performance_year: int,
    measure_id: str,
    numerator_value: int,
    denominator_value: int,
    evidence_documentation: Optional[str] = None,
) -> PIAttestationResult:
    """
    Record a PI attestation and the points it earns.

    The performance rate is numerator / denominator * 100 (0 for an empty
    denominator); points follow calculate_pi_points.

    Raises:
        InputError: If identifiers are malformed or counts are inconsistent.
        NotFoundError: If the measure is not in the year's PI catalog.
    """
    validate_identifiers(provider_id, performance_year)
    if numerator_value < 0 or denominator_value < 0 or numerator_value > denominator_value:
        raise InputError(
            f"Invalid PI counts for {measure_id}: numerator={numerator_value}, "
            f"denominator={denominator_value}"
        )

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(PI_MEASURE_QUERY, measure_id, performance_year)
        if row is None:
            raise NotFoundError(f"PI measure {measure_id} not found for {performance_year}")

        measure = PIMeasure(
            measure_id=row["measure_id"],
            title=row["measure_title"],
            measure_category=row["measure_category"],
            required_measure=bool(row["required_measure"]),
            max_points=float(row["max_points"] or 0),
            bonus_points=float(row["bonus_points"] or 0),
            threshold_percentage=float(row["threshold_percentage"] or 0),
        )

        if denominator_value > 0:
            performance_rate = round(numerator_value / denominator_value * 100, 2)
        else:
            performance_rate = 0.0
        points_earned = calculate_pi_points(measure, performance_rate)

        await conn.execute(
            UPSERT_PI_ATTESTATION,
            provider_id,
            performance_year,
            measure_id,
            numerator_value,
            denominator_value,
            performance_rate,
            points_earned,
            evidence_documentation,
        )

    logger.info(
        f"PI attestation provider={provider_id} year={performance_year} "
        f"measure={measure_id}: rate={performance_rate}% points={points_earned}"
    )
    return PIAttestationResult(
        measure_id=measure_id,
        performance_rate=performance_rate,
        points_earned=points_earned,
    )


async def attest_improvement_activity(
    provider_id: str,
    performance_year: int,
    activity_id: str,
    start_date: date,
    end_date: date,
    attestation_statement: Optional[str] = None,
    supporting_evidence: Optional[str] = None,
) -> IAAttestationResult:
    """
    Record a completed improvement activity and the points it earns.

    Raises:
        InputError: If identifiers are malformed or end_date precedes start_date.
        NotFoundError: If the activity is not in the year's IA catalog.
    """
    validate_identifiers(provider_id, performance_year)
    if end_date < start_date:
        raise InputError(f"Activity {activity_id} ends before it starts")

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(IA_ACTIVITY_QUERY, activity_id, performance_year)
        if row is None:
            raise NotFoundError(f"Improvement activity {activity_id} not found for {performance_year}")

        activity = ImprovementActivity(
            activity_id=row["activity_id"],
            title=row["activity_title"],
            subcategory=row["subcategory"],
            weight=row["weight"],
        )
        continuous = (end_date - start_date).days >= IA_CONTINUOUS_DAYS
        points_earned = calculate_ia_points(activity, start_date, end_date)

        await conn.execute(
            UPSERT_IA_ATTESTATION,
            provider_id,
            performance_year,
            activity_id,
            start_date,
            end_date,
            continuous,
            points_earned,
            attestation_statement,
            supporting_evidence,
        )

    logger.info(
        f"IA attestation provider={provider_id} year={performance_year} "
        f"activity={activity_id}: points={points_earned}"
    )
    return IAAttestationResult(
        activity_id=activity_id,
        continuous_90_days=continuous,
        points_earned=points_earned,
    )
