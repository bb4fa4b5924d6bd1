"""
Parameterized read queries for configuration, catalog and performance facts.

Every query is scoped by (provider_id, performance_year) or by performance_year
alone for catalog tables. Placeholders use asyncpg's $n syntax; no identifier or
value is ever interpolated into the SQL text.

Derived values:
    - medicare_volume_percent is computed in Python from the patient counts
    - case_minimum_met is derived from denominator_count and the catalog minimum
      rather than read from the stored column
"""


# =============================================================================
# Year Configuration
# =============================================================================

YEAR_CONFIGURATION_QUERY = """
    SELECT config_key, config_value
    FROM mips_configuration
    WHERE performance_year = $1
"""


# =============================================================================
# Eligibility Volume
# =============================================================================

# Aggregates completed encounters for the provider in the calendar year.
# total_patients counts every distinct patient; program_* restricts to Medicare.
VOLUME_FACTS_QUERY = """
    SELECT
        COUNT(DISTINCT e.patient_id) AS total_patients,
        COUNT(DISTINCT CASE WHEN pi.insurance_type = 'medicare' THEN e.patient_id END)
            AS program_patients,
        COALESCE(SUM(CASE WHEN pi.insurance_type = 'medicare' THEN e.total_charges END), 0)
            AS program_allowed_charges
    FROM encounters e
    LEFT JOIN patient_insurances pi ON e.patient_id = pi.patient_id
    WHERE e.provider_id = $1
      AND EXTRACT(YEAR FROM e.encounter_date) = $2
      AND e.status = 'completed'
"""


# =============================================================================
# Quality
# =============================================================================

QUALITY_CATALOG_QUERY = """
    SELECT measure_id, measure_title, measure_type, collection_type, specialty_set,
           high_priority, outcome_measure, minimum_case_requirement,
           cpt_codes, icd10_codes
    FROM mips_quality_measures
    WHERE performance_year = $1 AND is_active = TRUE
    ORDER BY high_priority DESC, outcome_measure DESC, measure_id
"""

# Selected measures with their catalog data and (optional) performance row.
# LEFT JOIN keeps selections that have no performance row yet so the gap
# engine can flag them; the quality scorer filters them out.
QUALITY_FACTS_QUERY = """
    SELECT
        pm.measure_id,
        qm.measure_title,
        qm.outcome_measure,
        qm.high_priority,
        qm.minimum_case_requirement,
        pm.data_completeness_expected,
        qp.numerator_count,
        qp.denominator_count,
        qp.exclusion_count,
        qp.performance_rate,
        qp.performance_score,
        qp.data_completeness
    FROM mips_provider_measures pm
    JOIN mips_quality_measures qm
      ON pm.measure_id = qm.measure_id AND qm.performance_year = pm.performance_year
    LEFT JOIN mips_quality_performance qp ON pm.id = qp.provider_measure_id
    WHERE pm.provider_id = $1
      AND pm.performance_year = $2
      AND pm.selection_status = 'selected'
    ORDER BY pm.measure_id
"""

# Raw counts for recalculation. $3 narrows to one measure when not NULL.
QUALITY_COUNTS_QUERY = """
    SELECT
        pm.id AS provider_measure_id,
        pm.measure_id,
        qm.minimum_case_requirement,
        qp.numerator_count,
        qp.denominator_count,
        qp.exclusion_count,
        qp.data_completeness
    FROM mips_provider_measures pm
    JOIN mips_quality_measures qm
      ON pm.measure_id = qm.measure_id AND qm.performance_year = pm.performance_year
    LEFT JOIN mips_quality_performance qp ON pm.id = qp.provider_measure_id
    WHERE pm.provider_id = $1
      AND pm.performance_year = $2
      AND pm.selection_status = 'selected'
      AND ($3::text IS NULL OR pm.measure_id = $3)
    ORDER BY pm.measure_id
"""


# =============================================================================
# Promoting Interoperability
# =============================================================================

PI_MEASURE_QUERY = """
    SELECT measure_id, measure_title, measure_category, required_measure,
           max_points, bonus_points, threshold_percentage
    FROM mips_pi_measures
    WHERE measure_id = $1 AND performance_year = $2 AND is_active = TRUE
"""

# Every active catalog PI measure with the provider's attestation, if any.
PI_FACTS_QUERY = """
    SELECT
        pim.measure_id,
        pim.measure_title,
        pim.required_measure,
        pim.max_points,
        pim.threshold_percentage,
        pip.attestation_status,
        pip.points_earned,
        pip.performance_rate
    FROM mips_pi_measures pim
    LEFT JOIN mips_pi_performance pip
      ON pim.measure_id = pip.measure_id
     AND pip.provider_id = $1
     AND pip.performance_year = $2
    WHERE pim.performance_year = $2 AND pim.is_active = TRUE
    ORDER BY pim.measure_id
"""


# =============================================================================
# Improvement Activities
# =============================================================================

IA_ACTIVITY_QUERY = """
    SELECT activity_id, activity_title, subcategory, weight
    FROM mips_improvement_activities
    WHERE activity_id = $1 AND performance_year = $2 AND is_active = TRUE
"""

IA_FACTS_QUERY = """
    SELECT activity_id, attestation_status, points_earned
    FROM mips_ia_attestations
    WHERE provider_id = $1 AND performance_year = $2
    ORDER BY activity_id
"""


# =============================================================================
# Cost
# =============================================================================

COST_FACTS_QUERY = """
    SELECT measure_id, performance_score
    FROM mips_cost_performance
    WHERE provider_id = $1 AND performance_year = $2 AND performance_score IS NOT NULL
    ORDER BY measure_id
"""


# =============================================================================
# Batch Scoring & Digest
# =============================================================================

PROVIDERS_FOR_YEAR_QUERY = """
    SELECT DISTINCT provider_id
    FROM mips_eligibility
    WHERE performance_year = $1
    ORDER BY provider_id
"""

OPEN_GAPS_FOR_YEAR_QUERY = """
    SELECT provider_id, performance_year, gap_category, gap_type, measure_id,
           gap_description, impact_level, remediation_task, due_date
    FROM mips_data_gaps
    WHERE performance_year = $1 AND status = 'open'
    ORDER BY provider_id, gap_category, measure_id NULLS LAST, gap_type
"""
