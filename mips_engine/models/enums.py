"""
Enumeration definitions for the MIPS scoring engine.

All enums inherit from both `str` and `Enum` so they serialize as plain strings in
Pydantic models and can be written to the database without conversion.
"""

from enum import Enum


class EligibilityStatus(str, Enum):
    """
    Outcome of the eligibility evaluation for a provider/year.

    - eligible: meets the Medicare volume threshold AND the patient or charges threshold
    - exempt: fails eligibility but is at or below both low-volume ceilings
    - not_eligible: everything else, including undeterminable input
    """
    ELIGIBLE = "eligible"
    EXEMPT = "exempt"
    NOT_ELIGIBLE = "not_eligible"


class Category(str, Enum):
    """The four weighted performance categories."""
    QUALITY = "quality"
    PI = "pi"
    IA = "ia"
    COST = "cost"


class SelectionStatus(str, Enum):
    """Status of a provider's quality measure selection. Only SELECTED is scored."""
    SELECTED = "selected"
    REMOVED = "removed"


class CollectionType(str, Enum):
    """Quality measure collection method."""
    ECQM = "ecqm"
    REGISTRY = "registry"
    CLAIMS = "claims"


class PIMeasureCategory(str, Enum):
    """Promoting Interoperability measure grouping."""
    BASE = "base"
    PERFORMANCE = "performance"
    BONUS = "bonus"


class AttestationStatus(str, Enum):
    """
    Attestation lifecycle shared by PI measures and improvement activities.

    PI performance counts only when ATTESTED; IA points count only when COMPLETED.
    """
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ATTESTED = "attested"
    COMPLETED = "completed"


class CalculationStatus(str, Enum):
    """Outcome of recalculating one selected quality measure."""
    CALCULATED = "calculated"
    NO_DATA = "no_data"
    INVALID = "invalid"


class ActivityWeight(str, Enum):
    """Improvement activity weight. High-weight activities earn double points."""
    HIGH = "high"
    MEDIUM = "medium"


class GapCategory(str, Enum):
    """Category a data gap belongs to."""
    QUALITY_DATA = "quality_data"
    PI_EVIDENCE = "pi_evidence"
    IA_DOCUMENTATION = "ia_documentation"


class GapType(str, Enum):
    """Kind of shortfall a data gap represents."""
    INSUFFICIENT_VOLUME = "insufficient_volume"
    INCOMPLETE_DATA = "incomplete_data"
    MISSING_DATA = "missing_data"
    INSUFFICIENT_PERFORMANCE = "insufficient_performance"
    INSUFFICIENT_POINTS = "insufficient_points"


class ImpactLevel(str, Enum):
    """Severity of a data gap, most severe first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Phase(str, Enum):
    """Lifecycle phase of a performance year."""
    PERFORMANCE_PERIOD = "performance_period"
    SUBMISSION_PERIOD = "submission_period"
    COMPLETED = "completed"


class Urgency(str, Enum):
    """Urgency of an upcoming timeline milestone."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationPriority(str, Enum):
    """Priority of a measure-selection recommendation."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConfigKey(str, Enum):
    """
    Closed set of keys accepted in the mips_configuration table.

    Each key maps to exactly one typed YearConfiguration field in the
    configuration service; unknown keys are ignored.
    """
    QUALITY_CATEGORY_WEIGHT = "quality_category_weight"
    PI_CATEGORY_WEIGHT = "pi_category_weight"
    IA_CATEGORY_WEIGHT = "ia_category_weight"
    COST_CATEGORY_WEIGHT = "cost_category_weight"
    PERFORMANCE_THRESHOLD = "performance_threshold"
    MAX_POSITIVE_ADJUSTMENT = "max_positive_adjustment"
    MAX_NEGATIVE_ADJUSTMENT = "max_negative_adjustment"
    MEDICARE_VOLUME_THRESHOLD = "medicare_volume_threshold"
    PATIENT_VOLUME_THRESHOLD = "patient_volume_threshold"
    ALLOWED_CHARGES_THRESHOLD = "allowed_charges_threshold"
    LOW_VOLUME_PATIENT_CEILING = "low_volume_patient_ceiling"
    LOW_VOLUME_CHARGES_CEILING = "low_volume_charges_ceiling"
