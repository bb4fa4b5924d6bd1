"""
Pydantic models for the MIPS scoring engine.

This module provides type-safe validation and serialization for every entity the
engine reads or writes: year configuration, eligibility records, the measure
catalog and provider selections, per-category performance facts, submissions,
data gaps, timeline status and the API request/response contracts.

All models use Pydantic v2 syntax. Field names are snake_case in Python and are
serialized with camelCase aliases so API payloads keep the original JSON shape.
"""

from datetime import date as DateType, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from mips_engine.models.enums import (
    ActivityWeight,
    AttestationStatus,
    CalculationStatus,
    Category,
    CollectionType,
    EligibilityStatus,
    GapCategory,
    GapType,
    ImpactLevel,
    Phase,
    PIMeasureCategory,
    RecommendationPriority,
    SelectionStatus,
    Urgency,
)


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON, accepts either on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# Year-Scoped Configuration
# =============================================================================


class CategoryWeights(CamelModel):
    """
    Category weights used for the composite score.

    Weights are persisted on every Submission because they can change between
    performance years.
    """
    model_config = ConfigDict(allow_inf_nan=False)

    quality: float = Field(..., ge=0.0, le=1.0)
    pi: float = Field(..., ge=0.0, le=1.0)
    ia: float = Field(..., ge=0.0, le=1.0)
    cost: float = Field(..., ge=0.0, le=1.0)

    @property
    def total(self) -> float:
        return self.quality + self.pi + self.ia + self.cost

    def for_category(self, category: Category) -> float:
        return {
            Category.QUALITY: self.quality,
            Category.PI: self.pi,
            Category.IA: self.ia,
            Category.COST: self.cost,
        }[category]


class PaymentScale(CamelModel):
    """Two-sided payment adjustment scale anchored at the performance threshold."""
    model_config = ConfigDict(allow_inf_nan=False)

    performance_threshold: float = Field(..., gt=0.0, lt=100.0)
    max_positive_adjustment: float = Field(..., ge=0.0)
    max_negative_adjustment: float = Field(..., le=0.0)


class EligibilityThresholds(CamelModel):
    """Eligibility thresholds and low-volume exemption ceilings for one year."""
    model_config = ConfigDict(allow_inf_nan=False)

    medicare_volume_percent: float = Field(..., ge=0.0, le=100.0)
    patient_volume: int = Field(..., ge=0)
    allowed_charges: float = Field(..., ge=0.0)
    low_volume_patient_ceiling: int = Field(..., ge=0)
    low_volume_charges_ceiling: float = Field(..., ge=0.0)


class YearConfiguration(CamelModel):
    """
    All year-scoped rules the scoring service is constructed with.

    defaults_applied lists the configuration keys that fell back to the
    documented defaults; it is carried onto Submissions for audit.
    """
    performance_year: int
    weights: CategoryWeights
    payment_scale: PaymentScale
    eligibility_thresholds: EligibilityThresholds
    defaults_applied: List[str] = Field(default_factory=list)


# =============================================================================
# Eligibility
# =============================================================================


class VolumeFacts(CamelModel):
    """
    Volume aggregates for one provider/year from the external encounter store.

    program_patients and program_allowed_charges are the Medicare (program payer)
    subsets of the provider's completed encounters.
    """
    total_patients: int = Field(..., ge=0)
    program_patients: int = Field(..., ge=0)
    program_allowed_charges: float = Field(..., ge=0.0)


class SpecialtyInfo(CamelModel):
    code: str
    name: str


class EligibilityRecord(CamelModel):
    """
    Eligibility determination for one (provider, year).

    Upserted on every re-evaluation, never deleted. input_valid is False when
    the volume facts are internally inconsistent (program patients exceeding
    total patients); such records are always not_eligible.
    """
    provider_id: str
    performance_year: int
    tin: Optional[str] = None
    npi: Optional[str] = None
    specialty_code: str
    specialty_name: str
    status: EligibilityStatus
    reason: str
    medicare_volume_percent: float
    patient_volume: int
    allowed_charges: float
    thresholds: EligibilityThresholds
    input_valid: bool = True
    requirements: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


# =============================================================================
# Quality Measure Catalog & Selections
# =============================================================================


class QualityMeasure(CamelModel):
    """Catalog entry for a quality measure. Authored externally, read-only here."""
    measure_id: str
    title: str
    measure_type: Optional[str] = None
    collection_type: Optional[CollectionType] = None
    specialty_set: List[str] = Field(default_factory=list)
    high_priority: bool = False
    outcome_measure: bool = False
    minimum_case_requirement: Optional[int] = Field(None, ge=0)
    cpt_codes: List[str] = Field(default_factory=list)
    icd10_codes: List[str] = Field(default_factory=list)

    def applies_to_specialty(self, specialty: Optional[str]) -> bool:
        """True when the measure lists the specialty or is open to all specialties."""
        if not specialty or not self.specialty_set:
            return True
        return "all_specialties" in self.specialty_set or specialty in self.specialty_set


class MeasureSelectionInput(CamelModel):
    """One measure in a provider's requested selection set."""
    measure_id: str
    selection_reason: Optional[str] = None
    expected_completeness: Optional[float] = Field(None, ge=0.0, le=100.0)
    target_rate: Optional[float] = Field(None, ge=0.0, le=100.0)
    submission_method: Optional[CollectionType] = None


class ProviderMeasureSelection(CamelModel):
    provider_id: str
    performance_year: int
    measure_id: str
    selection_status: SelectionStatus = SelectionStatus.SELECTED
    selection_reason: str
    expected_completeness: float
    target_rate: float
    submission_method: CollectionType


class SelectionCounts(CamelModel):
    """Catalog availability vs. actual choice, used for recommendations."""
    selected_count: int = 0
    outcome_available: int = 0
    outcome_selected: int = 0
    high_priority_available: int = 0
    high_priority_selected: int = 0


class SelectionValidationResult(CamelModel):
    """
    Result of validating a candidate measure set.

    violations block the selection; advisories are non-blocking.
    """
    valid: bool
    violations: List[str] = Field(default_factory=list)
    advisories: List[str] = Field(default_factory=list)
    counts: SelectionCounts = Field(default_factory=SelectionCounts)
    unknown_measure_ids: List[str] = Field(default_factory=list)


class MeasureRecommendation(CamelModel):
    priority: RecommendationPriority
    type: str
    message: str
    measures: List[str] = Field(default_factory=list)


class CategorizedCatalog(CamelModel):
    """Catalog split by characteristics, each measure in exactly one bucket."""
    recommended: List[QualityMeasure] = Field(default_factory=list)
    outcome: List[QualityMeasure] = Field(default_factory=list)
    high_priority: List[QualityMeasure] = Field(default_factory=list)
    specialty: List[QualityMeasure] = Field(default_factory=list)
    other: List[QualityMeasure] = Field(default_factory=list)

    def all_measures(self) -> List[QualityMeasure]:
        return self.recommended + self.outcome + self.high_priority + self.specialty + self.other


class MeasureDataRequirement(CamelModel):
    measure_id: str
    title: str
    collection_type: Optional[CollectionType] = None
    cpt_codes: List[str] = Field(default_factory=list)
    icd10_codes: List[str] = Field(default_factory=list)


class DataCollectionPlan(CamelModel):
    total_measures: int
    collection_methods: Dict[str, int]
    data_requirements: List[MeasureDataRequirement]
    recommendations: List[str]


# =============================================================================
# Category Performance Facts
# =============================================================================


class QualityPerformanceFact(CamelModel):
    """
    A selected quality measure joined with its catalog entry and performance row.

    Performance fields are None when no performance row exists yet for the
    selection; scorers and gap rules handle None explicitly.
    """
    measure_id: str
    title: str
    outcome_measure: bool = False
    high_priority: bool = False
    minimum_case_requirement: Optional[int] = None
    expected_completeness: Optional[float] = None
    numerator: Optional[int] = Field(None, ge=0)
    denominator: Optional[int] = Field(None, ge=0)
    exclusions: Optional[int] = Field(None, ge=0)
    performance_rate: Optional[float] = Field(None, ge=0.0, le=100.0)
    performance_score: Optional[float] = Field(None, ge=0.0, le=10.0)
    data_completeness: Optional[float] = Field(None, ge=0.0, le=100.0)
    case_minimum_met: bool = False


class PIMeasure(CamelModel):
    measure_id: str
    title: str
    measure_category: PIMeasureCategory = PIMeasureCategory.BASE
    required_measure: bool = False
    max_points: float = Field(0.0, ge=0.0)
    bonus_points: float = Field(0.0, ge=0.0)
    threshold_percentage: float = Field(0.0, ge=0.0, le=100.0)


class PIPerformanceFact(CamelModel):
    """A catalog PI measure joined with the provider's attestation row, if any."""
    measure_id: str
    title: str
    required_measure: bool = False
    max_points: float = Field(0.0, ge=0.0)
    threshold_percentage: float = Field(0.0, ge=0.0, le=100.0)
    attestation_status: Optional[AttestationStatus] = None
    points_earned: Optional[float] = Field(None, ge=0.0)
    performance_rate: Optional[float] = Field(None, ge=0.0)

    @property
    def is_attested(self) -> bool:
        return self.attestation_status == AttestationStatus.ATTESTED


class ImprovementActivity(CamelModel):
    activity_id: str
    title: str
    subcategory: Optional[str] = None
    weight: ActivityWeight = ActivityWeight.MEDIUM


class IAAttestationFact(CamelModel):
    activity_id: str
    attestation_status: AttestationStatus
    points_earned: Optional[float] = Field(None, ge=0.0)


class CostPerformanceFact(CamelModel):
    """Externally computed, claims-based per-measure cost score (0-100)."""
    measure_id: str
    performance_score: float = Field(..., ge=0.0, le=100.0)


class CategoryScore(CamelModel):
    """
    Output of a category scorer.

    gate_failed is True when a hard gate forced the score to 0 (no qualifying
    quality measure, or an unmet required PI measure). raw_facts carries the
    intermediate values the score was derived from.
    """
    category: Category
    score: float = Field(..., ge=0.0, le=100.0)
    gate_failed: bool = False
    data_available: bool = True
    raw_facts: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Submission
# =============================================================================


class Submission(CamelModel):
    """
    Current computed scoring state for one (provider, year).

    Upserted whenever composite scoring runs; not an append-only log.
    """
    provider_id: str
    performance_year: int
    quality_score: float
    pi_score: float
    ia_score: float
    cost_score: float
    weights: CategoryWeights
    composite_score: float = Field(..., ge=0.0, le=100.0)
    payment_adjustment: float
    unavailable_categories: List[Category] = Field(default_factory=list)
    defaults_applied: List[str] = Field(default_factory=list)
    calculated_at: datetime


# =============================================================================
# Data Gaps
# =============================================================================


class DataGap(CamelModel):
    """A detected compliance shortfall with its remediation deadline."""
    provider_id: str
    performance_year: int
    category: GapCategory
    gap_type: GapType
    measure_id: Optional[str] = None
    description: str
    impact: ImpactLevel
    remediation: str
    due_date: DateType


class GapSummary(CamelModel):
    total_gaps: int = 0
    critical_gaps: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_impact: Dict[str, int] = Field(default_factory=dict)


# =============================================================================
# Timeline
# =============================================================================


class PhaseStatus(CamelModel):
    performance_year: int
    phase: Phase
    description: str
    days_remaining: int = Field(..., ge=0)
    performance_end: DateType
    submission_end: DateType


class PeriodWindow(CamelModel):
    start: DateType
    end: DateType
    description: str


class Milestone(CamelModel):
    date: DateType
    milestone: str
    description: str


class UpcomingDeadline(Milestone):
    days_until: int
    urgency: Urgency


class Timeline(CamelModel):
    performance_year: int
    performance_period: PeriodWindow
    submission_period: PeriodWindow
    improvement_activity_minimum_days: int
    key_milestones: List[Milestone]


class TimelineResponse(CamelModel):
    timeline: Timeline
    current_phase: PhaseStatus
    upcoming_deadlines: List[UpcomingDeadline]


# =============================================================================
# Quality Recalculation & Attestations
# =============================================================================


class QualityMeasurePerformance(CamelModel):
    """Derived performance for one selected quality measure after recalculation."""
    measure_id: str
    status: CalculationStatus
    numerator: Optional[int] = None
    denominator: Optional[int] = None
    exclusions: Optional[int] = None
    data_completeness: Optional[float] = None
    minimum_case_requirement: Optional[int] = None
    performance_rate: Optional[float] = None
    performance_score: Optional[float] = None
    case_minimum_met: bool = False
    message: Optional[str] = None


class QualityPerformanceSummary(CamelModel):
    """
    Result of recalculating a provider's quality performance rows.

    Averages cover CALCULATED measures only.
    """
    provider_id: str
    performance_year: int
    calculated_measures: int = 0
    measures_with_minimum_cases: int = 0
    average_performance_rate: float = 0.0
    average_data_completeness: float = 0.0
    measures: List[QualityMeasurePerformance] = Field(default_factory=list)


class PIAttestationResult(CamelModel):
    measure_id: str
    performance_rate: float
    points_earned: float


class IAAttestationResult(CamelModel):
    activity_id: str
    continuous_90_days: bool
    points_earned: float


# =============================================================================
# API Request Models
# =============================================================================


class ProviderYearRequest(CamelModel):
    provider_id: str = Field(..., min_length=1)
    performance_year: int


class QualityPerformanceRequest(ProviderYearRequest):
    """Recalculates every selected measure when measure_id is omitted."""
    measure_id: Optional[str] = None


class EligibilityRequest(ProviderYearRequest):
    """Volume facts are fetched from encounters when omitted."""
    tin: Optional[str] = None
    npi: Optional[str] = None
    specialty: Optional[str] = None
    volume_facts: Optional[VolumeFacts] = None


class SelectionValidationRequest(CamelModel):
    measure_ids: List[str]
    performance_year: int
    specialty: Optional[str] = None


class MeasureSelectionRequest(ProviderYearRequest):
    specialty: Optional[str] = None
    measures: List[MeasureSelectionInput]


class PIAttestationRequest(ProviderYearRequest):
    measure_id: str = Field(..., min_length=1)
    numerator_value: int = Field(..., ge=0)
    denominator_value: int = Field(..., ge=0)
    evidence_documentation: Optional[str] = None

    @model_validator(mode="after")
    def _numerator_within_denominator(self) -> "PIAttestationRequest":
        if self.numerator_value > self.denominator_value:
            raise ValueError("numeratorValue cannot exceed denominatorValue")
        return self


class IAAttestationRequest(ProviderYearRequest):
    activity_id: str = Field(..., min_length=1)
    start_date: DateType
    end_date: DateType
    attestation_statement: Optional[str] = None
    supporting_evidence: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "IAAttestationRequest":
        if self.end_date < self.start_date:
            raise ValueError("endDate cannot precede startDate")
        return self


class BatchScoringReport(CamelModel):
    performance_year: int
    processed: int
    succeeded: int
    failed: Dict[str, str] = Field(default_factory=dict)
    submissions: List[Submission] = Field(default_factory=list)
