"""
Package initialization file for engine models.

Re-exports all Pydantic schemas and enumerations so other modules can import
them from mips_engine.models directly.

Usage:
    from mips_engine.models import (
        EligibilityStatus,
        VolumeFacts,
        Submission,
        DataGap,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from mips_engine.models.enums import (
    ActivityWeight,
    AttestationStatus,
    CalculationStatus,
    Category,
    CollectionType,
    ConfigKey,
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

# =============================================================================
# Schemas
# =============================================================================

from mips_engine.models.schemas import (
    # Configuration
    CategoryWeights,
    PaymentScale,
    EligibilityThresholds,
    YearConfiguration,
    # Eligibility
    VolumeFacts,
    SpecialtyInfo,
    EligibilityRecord,
    # Catalog & selection
    QualityMeasure,
    MeasureSelectionInput,
    ProviderMeasureSelection,
    SelectionCounts,
    SelectionValidationResult,
    MeasureRecommendation,
    CategorizedCatalog,
    MeasureDataRequirement,
    DataCollectionPlan,
    # Performance facts
    QualityPerformanceFact,
    PIMeasure,
    PIPerformanceFact,
    ImprovementActivity,
    IAAttestationFact,
    CostPerformanceFact,
    CategoryScore,
    # Results
    Submission,
    DataGap,
    GapSummary,
    # Timeline
    PhaseStatus,
    PeriodWindow,
    Milestone,
    UpcomingDeadline,
    Timeline,
    TimelineResponse,
    # Attestations
    QualityMeasurePerformance,
    QualityPerformanceSummary,
    PIAttestationResult,
    IAAttestationResult,
    # Requests
    ProviderYearRequest,
    EligibilityRequest,
    QualityPerformanceRequest,
    SelectionValidationRequest,
    MeasureSelectionRequest,
    PIAttestationRequest,
    IAAttestationRequest,
    BatchScoringReport,
)

__all__ = [
    # Enums
    'ActivityWeight',
    'AttestationStatus',
    'CalculationStatus',
    'Category',
    'CollectionType',
    'ConfigKey',
    'EligibilityStatus',
    'GapCategory',
    'GapType',
    'ImpactLevel',
    'Phase',
    'PIMeasureCategory',
    'RecommendationPriority',
    'SelectionStatus',
    'Urgency',
    # Configuration
    'CategoryWeights',
    'PaymentScale',
    'EligibilityThresholds',
    'YearConfiguration',
    # Eligibility
    'VolumeFacts',
    'SpecialtyInfo',
    'EligibilityRecord',
    # Catalog & selection
    'QualityMeasure',
    'MeasureSelectionInput',
    'ProviderMeasureSelection',
    'SelectionCounts',
    'SelectionValidationResult',
    'MeasureRecommendation',
    'CategorizedCatalog',
    'MeasureDataRequirement',
    'DataCollectionPlan',
    # Performance facts
    'QualityPerformanceFact',
    'PIMeasure',
    'PIPerformanceFact',
    'ImprovementActivity',
    'IAAttestationFact',
    'CostPerformanceFact',
    'CategoryScore',
    # Results
    'Submission',
    'DataGap',
    'GapSummary',
    # Timeline
    'PhaseStatus',
    'PeriodWindow',
    'Milestone',
    'UpcomingDeadline',
    'Timeline',
    'TimelineResponse',
    # Attestations
    'QualityMeasurePerformance',
    'QualityPerformanceSummary',
    'PIAttestationResult',
    'IAAttestationResult',
    # Requests
    'ProviderYearRequest',
    'EligibilityRequest',
    'QualityPerformanceRequest',
    'SelectionValidationRequest',
    'MeasureSelectionRequest',
    'PIAttestationRequest',
    'IAAttestationRequest',
    'BatchScoringReport',
]
