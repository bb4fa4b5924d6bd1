"""
Measure Catalog & Selection Validator Service

Validates a provider's candidate quality measure set against the year's catalog,
categorizes the catalog for selection guidance, and replaces persisted
selections atomically.

Validation Rules:
- Hard (violation, blocks persistence): fewer than the minimum number of
  distinct catalog measures (default 6).
- Soft (advisory, never blocks):
    - no outcome measure selected while the catalog offers one for the specialty
    - no high-priority measure selected
    - duplicate or unknown measure ids (ignored for counting)

The validator also reports catalog availability vs. actual choice
(SelectionCounts); those counts feed recommendations but are not a gate.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import validate_identifiers, validate_performance_year
from mips_engine.models.enums import CollectionType, RecommendationPriority, SelectionStatus
from mips_engine.models.schemas import (
    CategorizedCatalog,
    DataCollectionPlan,
    MeasureDataRequirement,
    MeasureRecommendation,
    MeasureSelectionInput,
    QualityMeasure,
    SelectionCounts,
    SelectionValidationResult,
)
from mips_engine.sql import (
    DELETE_MEASURE_SELECTIONS,
    INSERT_MEASURE_SELECTION,
    QUALITY_CATALOG_QUERY,
)


logger = logging.getLogger(__name__)


DEFAULT_MINIMUM_MEASURES = 6
DEFAULT_SELECTION_REASON = "Provider selected measure"
DEFAULT_TARGET_RATE = 50.0
DEFAULT_SUBMISSION_METHOD = CollectionType.ECQM

OUTCOME_ADVISORY = "At least one outcome measure should be selected when available"
HIGH_PRIORITY_ADVISORY = "At least one high-priority measure should be selected"

DATA_COLLECTION_RECOMMENDATIONS: List[str] = [
    "Ensure all relevant CPT and ICD-10 codes are documented in encounters",
    "Configure EHR templates to capture required data elements",
    "Train staff on proper documentation for selected measures",
    "Set up monthly performance monitoring and review",
]


# =============================================================================
# Validation
# =============================================================================


def _distinct(ids: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split ids into first occurrences (in order) and repeated ids."""
    seen: Dict[str, None] = {}
    duplicates: List[str] = []
    for measure_id in ids:
        if measure_id in seen:
            if measure_id not in duplicates:
                duplicates.append(measure_id)
            continue
        seen[measure_id] = None
    return list(seen), duplicates


def validate_measure_selection(
    measure_ids: Sequence[str],
    catalog: Sequence[QualityMeasure],
    specialty: Optional[str] = None,
    minimum_measures: int = DEFAULT_MINIMUM_MEASURES,
) -> SelectionValidationResult:
    """
    Validate a candidate measure id list.

    Args:
        measure_ids: Candidate ids, in the caller's order.
        catalog: Active quality measures for the performance year.
        specialty: Provider specialty, narrows outcome availability.
        minimum_measures: Hard minimum of distinct catalog measures.

    Returns:
        SelectionValidationResult; valid is False only for hard violations.

    Example:
        >>> result = validate_measure_selection(["001", "236"], catalog)
        >>> result.valid
        False
        >>> result.violations
        ['Minimum 6 quality measures required for MIPS reporting']
    """
    by_id = {m.measure_id: m for m in catalog}
    distinct_ids, duplicates = _distinct(measure_ids)

    selected = [by_id[mid] for mid in distinct_ids if mid in by_id]
    unknown = [mid for mid in distinct_ids if mid not in by_id]

    available = [m for m in catalog if m.applies_to_specialty(specialty)]
    counts = SelectionCounts(
        selected_count=len(selected),
        outcome_available=sum(1 for m in available if m.outcome_measure),
        outcome_selected=sum(1 for m in selected if m.outcome_measure),
        high_priority_available=sum(1 for m in available if m.high_priority),
        high_priority_selected=sum(1 for m in selected if m.high_priority),
    )

    violations: List[str] = []
    advisories: List[str] = []

    if counts.selected_count < minimum_measures:
        violations.append(f"Minimum {minimum_measures} quality measures required for MIPS reporting")

    if counts.outcome_available > 0 and counts.outcome_selected == 0:
        advisories.append(OUTCOME_ADVISORY)
    if counts.high_priority_selected == 0:
        advisories.append(HIGH_PRIORITY_ADVISORY)
    if duplicates:
        advisories.append(f"Duplicate measure ids ignored: {', '.join(duplicates)}")
    if unknown:
        advisories.append(f"Measure ids not found in the catalog: {', '.join(unknown)}")

    return SelectionValidationResult(
        valid=not violations,
        violations=violations,
        advisories=advisories,
        counts=counts,
        unknown_measure_ids=unknown,
    )


# =============================================================================
# Catalog Guidance
# =============================================================================


def categorize_measures(
    catalog: Sequence[QualityMeasure],
    specialty: Optional[str] = None,
) -> CategorizedCatalog:
    """
    Split the catalog into exclusive buckets.

    recommended: outcome AND high-priority; then outcome; then high-priority;
    then measures listing the specialty; everything else is other.
    """
    categorized = CategorizedCatalog()
    for measure in catalog:
        if measure.outcome_measure and measure.high_priority:
            categorized.recommended.append(measure)
        elif measure.outcome_measure:
            categorized.outcome.append(measure)
        elif measure.high_priority:
            categorized.high_priority.append(measure)
        elif specialty and specialty in measure.specialty_set:
            categorized.specialty.append(measure)
        else:
            categorized.other.append(measure)
    return categorized


def generate_measure_recommendations(categorized: CategorizedCatalog) -> List[MeasureRecommendation]:
    recommendations: List[MeasureRecommendation] = []

    if categorized.recommended:
        recommendations.append(MeasureRecommendation(
            priority=RecommendationPriority.HIGH,
            type="measure_selection",
            message=(
                f"Consider selecting {len(categorized.recommended)} high-priority outcome "
                "measures for maximum scoring potential"
            ),
            measures=[m.measure_id for m in categorized.recommended[:3]],
        ))

    if categorized.specialty:
        recommendations.append(MeasureRecommendation(
            priority=RecommendationPriority.MEDIUM,
            type="specialty_alignment",
            message=f"{len(categorized.specialty)} measures are specifically designed for your specialty",
            measures=[m.measure_id for m in categorized.specialty[:4]],
        ))

    ecqm_measures = [
        m for m in categorized.all_measures() if m.collection_type == CollectionType.ECQM
    ]
    if len(ecqm_measures) >= DEFAULT_MINIMUM_MEASURES:
        recommendations.append(MeasureRecommendation(
            priority=RecommendationPriority.MEDIUM,
            type="collection_method",
            message="eCQM measures available for automated data collection",
            measures=[m.measure_id for m in ecqm_measures[:6]],
        ))

    return recommendations


def build_data_collection_plan(selected: Sequence[QualityMeasure]) -> DataCollectionPlan:
    """Counts by collection type and the billing codes each selected measure needs."""
    collection_methods = {ct.value: 0 for ct in CollectionType}
    for measure in selected:
        if measure.collection_type is not None:
            collection_methods[measure.collection_type.value] += 1

    return DataCollectionPlan(
        total_measures=len(selected),
        collection_methods=collection_methods,
        data_requirements=[
            MeasureDataRequirement(
                measure_id=m.measure_id,
                title=m.title,
                collection_type=m.collection_type,
                cpt_codes=m.cpt_codes,
                icd10_codes=m.icd10_codes,
            )
            for m in selected
        ],
        recommendations=list(DATA_COLLECTION_RECOMMENDATIONS),
    )


# =============================================================================
# Catalog Access
# =============================================================================


def _as_list(value: Any) -> List[str]:
    # Arrays come back as lists; older rows store comma-separated text.
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value]


def measure_from_row(row: Mapping[str, Any]) -> QualityMeasure:
    return QualityMeasure(
        measure_id=row["measure_id"],
        title=row["measure_title"],
        measure_type=row["measure_type"],
        collection_type=row["collection_type"],
        specialty_set=_as_list(row["specialty_set"]),
        high_priority=bool(row["high_priority"]),
        outcome_measure=bool(row["outcome_measure"]),
        minimum_case_requirement=row["minimum_case_requirement"],
        cpt_codes=_as_list(row["cpt_codes"]),
        icd10_codes=_as_list(row["icd10_codes"]),
    )


async def fetch_quality_catalog(
    performance_year: int,
    specialty: Optional[str] = None,
    collection_type: Optional[CollectionType] = None,
) -> List[QualityMeasure]:
    """
    Load the active quality measure catalog for a year.

    Args:
        performance_year: Catalog year.
        specialty: Keep only measures applicable to this specialty.
        collection_type: Keep only measures with this collection type.

    Returns:
        Measures ordered high-priority first, then outcome, then by id.
    """
    validate_performance_year(performance_year)

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(QUALITY_CATALOG_QUERY, performance_year)

    catalog = [measure_from_row(row) for row in rows]
    if specialty:
        catalog = [m for m in catalog if m.applies_to_specialty(specialty)]
    if collection_type is not None:
        catalog = [m for m in catalog if m.collection_type == collection_type]
    return catalog


# =============================================================================
# Selection Persistence
# =============================================================================


async def replace_measure_selections(
    provider_id: str,
    performance_year: int,
    measures: Sequence[MeasureSelectionInput],
    specialty: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Tuple[SelectionValidationResult, Optional[DataCollectionPlan]]:
    """
    Validate and atomically replace a provider's measure selections.

    Invalid sets are not persisted; the validation result is returned with
    a None plan so the caller can surface the violations.

    Returns:
        Tuple of (validation result, data collection plan or None).

    Raises:
        InputError: If the provider id or year is malformed.
    """
    validate_identifiers(provider_id, performance_year)
    settings = settings or get_settings()

    catalog = await fetch_quality_catalog(performance_year)
    validation = validate_measure_selection(
        [m.measure_id for m in measures],
        catalog,
        specialty=specialty,
        minimum_measures=settings.minimum_measures_required,
    )
    if not validation.valid:
        logger.info(
            f"Rejected measure selection for provider={provider_id} year={performance_year}: "
            f"{'; '.join(validation.violations)}"
        )
        return validation, None

    by_id = {m.measure_id: m for m in catalog}
    to_insert: Dict[str, MeasureSelectionInput] = {}
    for measure in measures:
        if measure.measure_id in by_id and measure.measure_id not in to_insert:
            to_insert[measure.measure_id] = measure

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(DELETE_MEASURE_SELECTIONS, provider_id, performance_year)
            for measure in to_insert.values():
                expected = measure.expected_completeness
                target = measure.target_rate
                method = measure.submission_method or DEFAULT_SUBMISSION_METHOD
                await conn.execute(
                    INSERT_MEASURE_SELECTION,
                    provider_id,
                    performance_year,
                    measure.measure_id,
                    SelectionStatus.SELECTED.value,
                    measure.selection_reason or DEFAULT_SELECTION_REASON,
                    expected if expected is not None else settings.default_expected_completeness,
                    target if target is not None else DEFAULT_TARGET_RATE,
                    method.value,
                )

    logger.info(
        f"Selected {len(to_insert)} quality measures for provider={provider_id} year={performance_year}"
    )
    plan = build_data_collection_plan([by_id[mid] for mid in to_insert])
    return validation, plan
