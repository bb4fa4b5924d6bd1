"""
Gap Analysis Engine

Derives the open compliance gaps for one (provider, year) from the current
performance facts and replaces the persisted gap set.

Gap Rules:
- Quality (per selected measure):
    - denominator < catalog case minimum -> insufficient_volume, high, due Oct 31
    - completeness < expected completeness -> incomplete_data, medium, due Nov 30
- PI (per catalog measure):
    - attestation missing / not started / in progress -> missing_data,
      critical if required else medium, due Dec 31
    - attested with rate < threshold -> insufficient_performance, medium, due Nov 30
- IA:
    - completed points < 40 -> one insufficient_points gap, high, due Dec 31

Each run is stateless: the whole set is rebuilt, so re-running with unchanged
facts yields an identical, identically ordered set.

Concurrency:
    The rewrite for one key holds an in-process KeyedAsyncLock and, inside the
    transaction, pg_advisory_xact_lock(hashtext(provider_id), year), so no reader
    observes a half-written set from another rewrite of the same key.
"""

import asyncio
import logging
from collections import Counter
from datetime import date
from typing import Iterable, List, Optional, Sequence

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import validate_identifiers
from mips_engine.core.locks import KeyedAsyncLock
from mips_engine.models.enums import AttestationStatus, GapCategory, GapType, ImpactLevel
from mips_engine.models.schemas import (
    DataGap,
    GapSummary,
    IAAttestationFact,
    PIPerformanceFact,
    QualityPerformanceFact,
)
from mips_engine.services.category_scoring import total_ia_points
from mips_engine.services.performance_facts import (
    fetch_ia_facts,
    fetch_pi_facts,
    fetch_quality_facts,
)
from mips_engine.sql import DELETE_DATA_GAPS, GAP_ADVISORY_LOCK, INSERT_DATA_GAP


logger = logging.getLogger(__name__)

_gap_locks = KeyedAsyncLock()

_CATEGORY_ORDER = {category: index for index, category in enumerate(GapCategory)}
_TYPE_ORDER = {gap_type: index for index, gap_type in enumerate(GapType)}

PENDING_ATTESTATION = (None, AttestationStatus.NOT_STARTED, AttestationStatus.IN_PROGRESS)


def _points(value: float) -> str:
    return f"{value:g}"


# =============================================================================
# Due Dates
# =============================================================================


def volume_due_date(performance_year: int) -> date:
    return date(performance_year, 10, 31)


def remediation_due_date(performance_year: int) -> date:
    return date(performance_year, 11, 30)


def year_end_due_date(performance_year: int) -> date:
    return date(performance_year, 12, 31)


# =============================================================================
# Gap Rules
# =============================================================================


def identify_quality_gaps(
    provider_id: str,
    performance_year: int,
    facts: Sequence[QualityPerformanceFact],
    default_minimum_cases: int = 20,
    default_expected_completeness: float = 70.0,
) -> List[DataGap]:
    """
    Volume and completeness gaps for each selected quality measure.

    A selection with no performance row has recorded 0 cases and 0%
    completeness, so it produces both gaps.
    """
    gaps: List[DataGap] = []

    for fact in facts:
        denominator = fact.denominator if fact.denominator is not None else 0
        completeness = fact.data_completeness if fact.data_completeness is not None else 0.0
        minimum = (
            fact.minimum_case_requirement
            if fact.minimum_case_requirement is not None
            else default_minimum_cases
        )
        expected = (
            fact.expected_completeness
            if fact.expected_completeness is not None
            else default_expected_completeness
        )

        if denominator < minimum:
            gaps.append(DataGap(
                provider_id=provider_id,
                performance_year=performance_year,
                category=GapCategory.QUALITY_DATA,
                gap_type=GapType.INSUFFICIENT_VOLUME,
                measure_id=fact.measure_id,
                description=f"{fact.title} has {denominator}/{minimum} required cases",
                impact=ImpactLevel.HIGH,
                remediation="Increase patient encounters or consider alternative measures",
                due_date=volume_due_date(performance_year),
            ))

        if completeness < expected:
            gaps.append(DataGap(
                provider_id=provider_id,
                performance_year=performance_year,
                category=GapCategory.QUALITY_DATA,
                gap_type=GapType.INCOMPLETE_DATA,
                measure_id=fact.measure_id,
                description=(
                    f"{fact.title} has {_points(completeness)}% data completeness "
                    f"(target: {_points(expected)}%)"
                ),
                impact=ImpactLevel.MEDIUM,
                remediation="Improve documentation and data capture processes",
                due_date=remediation_due_date(performance_year),
            ))

    return gaps


def identify_pi_gaps(
    provider_id: str,
    performance_year: int,
    facts: Sequence[PIPerformanceFact],
) -> List[DataGap]:
    """Attestation and threshold gaps for every catalog PI measure."""
    gaps: List[DataGap] = []

    for fact in facts:
        if fact.attestation_status in PENDING_ATTESTATION:
            gaps.append(DataGap(
                provider_id=provider_id,
                performance_year=performance_year,
                category=GapCategory.PI_EVIDENCE,
                gap_type=GapType.MISSING_DATA,
                measure_id=fact.measure_id,
                description=f"{fact.title} requires attestation",
                impact=ImpactLevel.CRITICAL if fact.required_measure else ImpactLevel.MEDIUM,
                remediation="Complete attestation with supporting documentation",
                due_date=year_end_due_date(performance_year),
            ))
            continue

        if fact.is_attested:
            rate = fact.performance_rate if fact.performance_rate is not None else 0.0
            if rate < fact.threshold_percentage:
                gaps.append(DataGap(
                    provider_id=provider_id,
                    performance_year=performance_year,
                    category=GapCategory.PI_EVIDENCE,
                    gap_type=GapType.INSUFFICIENT_PERFORMANCE,
                    measure_id=fact.measure_id,
                    description=(
                        f"{fact.title} performance {_points(rate)}% below threshold "
                        f"{_points(fact.threshold_percentage)}%"
                    ),
                    impact=ImpactLevel.MEDIUM,
                    remediation="Improve EHR workflows to meet performance threshold",
                    due_date=remediation_due_date(performance_year),
                ))

    return gaps


def identify_ia_gaps(
    provider_id: str,
    performance_year: int,
    facts: Sequence[IAAttestationFact],
    required_points: int = 40,
) -> List[DataGap]:
    total_points = total_ia_points(facts)
    if total_points >= required_points:
        return []

    shortfall = required_points - total_points
    return [DataGap(
        provider_id=provider_id,
        performance_year=performance_year,
        category=GapCategory.IA_DOCUMENTATION,
        gap_type=GapType.INSUFFICIENT_POINTS,
        measure_id=None,
        description=(
            f"Need {_points(shortfall)} more IA points "
            f"(current: {_points(total_points)}/{required_points})"
        ),
        impact=ImpactLevel.HIGH,
        remediation="Complete additional improvement activities",
        due_date=year_end_due_date(performance_year),
    )]


def sort_gaps(gaps: Iterable[DataGap]) -> List[DataGap]:
    """Order by category, then measure id (activity-level gaps last), then gap type."""
    return sorted(
        gaps,
        key=lambda g: (
            _CATEGORY_ORDER[g.category],
            g.measure_id is None,
            g.measure_id or "",
            _TYPE_ORDER[g.gap_type],
        ),
    )


def summarize_gaps(gaps: Sequence[DataGap]) -> GapSummary:
    by_category = Counter(g.category.value for g in gaps)
    by_impact = Counter(g.impact.value for g in gaps)
    return GapSummary(
        total_gaps=len(gaps),
        critical_gaps=by_impact.get(ImpactLevel.CRITICAL.value, 0),
        by_category=dict(sorted(by_category.items())),
        by_impact=dict(sorted(by_impact.items())),
    )


# =============================================================================
# Regeneration
# =============================================================================


async def replace_data_gaps(provider_id: str, performance_year: int, gaps: Sequence[DataGap]) -> None:
    """
    Replace the persisted gap set for a provider/year in one transaction.

    The advisory lock serializes rewrites of the same key across processes
    until the transaction ends.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(GAP_ADVISORY_LOCK, provider_id, performance_year)
            await conn.execute(DELETE_DATA_GAPS, provider_id, performance_year)
            for gap in gaps:
                await conn.execute(
                    INSERT_DATA_GAP,
                    gap.provider_id,
                    gap.performance_year,
                    gap.category.value,
                    gap.gap_type.value,
                    gap.measure_id,
                    gap.description,
                    gap.impact.value,
                    gap.remediation,
                    gap.due_date,
                )


async def analyze_gaps(
    provider_id: str,
    performance_year: int,
    settings: Optional[Settings] = None,
) -> List[DataGap]:
    """
    Re-derive and persist the data gaps for a provider/year.

    Args:
        provider_id: Provider identifier.
        performance_year: Program year.
        settings: Process settings (default: cached settings).

    Returns:
        The new gap set, in deterministic order.

    Raises:
        InputError: If the provider id or year is malformed.
    """
    validate_identifiers(provider_id, performance_year)
    settings = settings or get_settings()

    async with _gap_locks.hold((provider_id, performance_year)):
        quality_facts, pi_facts, ia_facts = await asyncio.gather(
            fetch_quality_facts(provider_id, performance_year, allow_empty=True),
            fetch_pi_facts(provider_id, performance_year, allow_empty=True),
            fetch_ia_facts(provider_id, performance_year, allow_empty=True),
        )

        gaps = sort_gaps(
            identify_quality_gaps(
                provider_id,
                performance_year,
                quality_facts,
                default_minimum_cases=settings.default_minimum_case_requirement,
                default_expected_completeness=settings.default_expected_completeness,
            )
            + identify_pi_gaps(provider_id, performance_year, pi_facts)
            + identify_ia_gaps(
                provider_id,
                performance_year,
                ia_facts,
                required_points=settings.ia_required_points,
            )
        )

        await replace_data_gaps(provider_id, performance_year, gaps)

    summary = summarize_gaps(gaps)
    logger.info(
        f"Regenerated {summary.total_gaps} data gaps for provider={provider_id} "
        f"year={performance_year} ({summary.critical_gaps} critical)"
    )
    return gaps
