"""
MIPS Engine Services Module

Business logic for the MIPS scoring engine. Pure rules (classification,
validation, scoring, gap derivation, timeline) are plain functions that take
already-loaded facts; the async entry points load facts, apply the rules and
persist results.

Services:
- configuration: year-scoped weights/thresholds with logged default fallback
- eligibility: participation status from volume facts
- measure_selection: catalog validation, categorization and selection persistence
- category_scoring: Quality / PI / IA / Cost scorers and attestation point rules
- performance_facts: fact loaders and attestation upserts
- composite: ScoringService, composite score, payment adjustment, Submission upsert
- gap_analysis: gap derivation and serialized per-key regeneration
- timeline: phase tracking, program calendar and upcoming deadlines

All services are consumed by the API layer (mips_engine/api/) and the batch
jobs (mips_engine/jobs/).
"""

# =============================================================================
# Configuration Service Exports
# =============================================================================

from mips_engine.services.configuration import (
    build_year_configuration,
    default_year_configuration,
    load_year_configuration,
)

# =============================================================================
# Eligibility Service Exports
# =============================================================================

from mips_engine.services.eligibility import (
    evaluate_eligibility,
    determine_eligibility,
    get_specialty_info,
    calculate_volume_percent,
    persist_eligibility,
)

# =============================================================================
# Measure Selection Service Exports
# =============================================================================

from mips_engine.services.measure_selection import (
    validate_measure_selection,
    categorize_measures,
    generate_measure_recommendations,
    build_data_collection_plan,
    fetch_quality_catalog,
    replace_measure_selections,
)

# =============================================================================
# Category Scoring Service Exports
# =============================================================================

from mips_engine.services.category_scoring import (
    score_performance_rate,
    derive_quality_performance,
    score_quality,
    score_pi,
    score_ia,
    score_cost,
    calculate_pi_points,
    calculate_ia_points,
)

# =============================================================================
# Performance Fact Exports
# =============================================================================

from mips_engine.services.performance_facts import (
    fetch_volume_facts,
    fetch_quality_facts,
    fetch_pi_facts,
    fetch_ia_facts,
    fetch_cost_facts,
    calculate_quality_performance,
    attest_pi_measure,
    attest_improvement_activity,
)

# =============================================================================
# Composite Service Exports
# =============================================================================

from mips_engine.services.composite import (
    ScoringService,
    compute_composite,
    persist_submission,
)

# =============================================================================
# Gap Analysis Service Exports
# =============================================================================

from mips_engine.services.gap_analysis import (
    identify_quality_gaps,
    identify_pi_gaps,
    identify_ia_gaps,
    summarize_gaps,
    analyze_gaps,
)

# =============================================================================
# Timeline Service Exports
# =============================================================================

from mips_engine.services.timeline import (
    get_phase,
    generate_timeline,
    get_upcoming_deadlines,
)

__all__ = [
    # ----- Configuration -----
    'build_year_configuration',
    'default_year_configuration',
    'load_year_configuration',
    # ----- Eligibility -----
    'evaluate_eligibility',
    'determine_eligibility',
    'get_specialty_info',
    'calculate_volume_percent',
    'persist_eligibility',
    # ----- Measure Selection -----
    'validate_measure_selection',
    'categorize_measures',
    'generate_measure_recommendations',
    'build_data_collection_plan',
    'fetch_quality_catalog',
    'replace_measure_selections',
    # ----- Category Scoring -----
    'score_performance_rate',
    'derive_quality_performance',
    'score_quality',
    'score_pi',
    'score_ia',
    'score_cost',
    'calculate_pi_points',
    'calculate_ia_points',
    # ----- Performance Facts -----
    'fetch_volume_facts',
    'fetch_quality_facts',
    'fetch_pi_facts',
    'fetch_ia_facts',
    'fetch_cost_facts',
    'calculate_quality_performance',
    'attest_pi_measure',
    'attest_improvement_activity',
    # ----- Composite -----
    'ScoringService',
    'compute_composite',
    'persist_submission',
    # ----- Gap Analysis -----
    'identify_quality_gaps',
    'identify_pi_gaps',
    'identify_ia_gaps',
    'summarize_gaps',
    'analyze_gaps',
    # ----- Timeline -----
    'get_phase',
    'generate_timeline',
    'get_upcoming_deadlines',
]
