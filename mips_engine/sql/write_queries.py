"""
Parameterized write statements.

Eligibility and submission writes are idempotent upserts keyed by
(provider_id, performance_year), so a retried write after a transient failure
leaves exactly one row. Selection and gap sets are replaced with DELETE + INSERT
inside one transaction by the calling service.
"""


# =============================================================================
# Eligibility
# =============================================================================

UPSERT_ELIGIBILITY = """
    INSERT INTO mips_eligibility (
        provider_id, tin, npi, performance_year, specialty_code, specialty_name,
        eligibility_status, eligibility_reason, input_valid,
        medicare_volume_percent, patient_volume, allowed_charges,
        medicare_volume_threshold, patient_volume_threshold, allowed_charges_threshold,
        low_volume_patient_ceiling, low_volume_charges_ceiling,
        created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17,
        NOW(), NOW()
    )
    ON CONFLICT (provider_id, performance_year) DO UPDATE SET
        tin = COALESCE(EXCLUDED.tin, mips_eligibility.tin),
        npi = COALESCE(EXCLUDED.npi, mips_eligibility.npi),
        specialty_code = EXCLUDED.specialty_code,
        specialty_name = EXCLUDED.specialty_name,
        eligibility_status = EXCLUDED.eligibility_status,
        eligibility_reason = EXCLUDED.eligibility_reason,
        input_valid = EXCLUDED.input_valid,
        medicare_volume_percent = EXCLUDED.medicare_volume_percent,
        patient_volume = EXCLUDED.patient_volume,
        allowed_charges = EXCLUDED.allowed_charges,
        medicare_volume_threshold = EXCLUDED.medicare_volume_threshold,
        patient_volume_threshold = EXCLUDED.patient_volume_threshold,
        allowed_charges_threshold = EXCLUDED.allowed_charges_threshold,
        low_volume_patient_ceiling = EXCLUDED.low_volume_patient_ceiling,
        low_volume_charges_ceiling = EXCLUDED.low_volume_charges_ceiling,
        updated_at = NOW()
"""


# =============================================================================
# Measure Selections
# =============================================================================

DELETE_MEASURE_SELECTIONS = """
    DELETE FROM mips_provider_measures
    WHERE provider_id = $1 AND performance_year = $2
"""

INSERT_MEASURE_SELECTION = """
    INSERT INTO mips_provider_measures (
        provider_id, performance_year, measure_id, selection_status,
        selection_reason, data_completeness_expected, performance_rate_target,
        submission_method
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
"""


# =============================================================================
# Quality Performance
# =============================================================================

# Rewrites the derived columns from the raw counts; the counts are echoed back
# unchanged so a first calculation can also create the row.
UPSERT_QUALITY_PERFORMANCE = """
    INSERT INTO mips_quality_performance (
        provider_measure_id, reporting_period_start, reporting_period_end,
        numerator_count, denominator_count, exclusion_count,
        performance_rate, performance_score, data_completeness,
        case_minimum_met, last_calculated_at
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, NOW())
    ON CONFLICT (provider_measure_id) DO UPDATE SET
        numerator_count = EXCLUDED.numerator_count,
        denominator_count = EXCLUDED.denominator_count,
        exclusion_count = EXCLUDED.exclusion_count,
        performance_rate = EXCLUDED.performance_rate,
        performance_score = EXCLUDED.performance_score,
        data_completeness = EXCLUDED.data_completeness,
        case_minimum_met = EXCLUDED.case_minimum_met,
        last_calculated_at = NOW()
"""


# =============================================================================
# Attestations
# =============================================================================

UPSERT_PI_ATTESTATION = """
    INSERT INTO mips_pi_performance (
        provider_id, performance_year, measure_id, numerator_value, denominator_value,
        performance_rate, points_earned, attestation_status, attestation_date,
        evidence_documentation
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, 'attested', NOW(), $8)
    ON CONFLICT (provider_id, performance_year, measure_id) DO UPDATE SET
        numerator_value = EXCLUDED.numerator_value,
        denominator_value = EXCLUDED.denominator_value,
        performance_rate = EXCLUDED.performance_rate,
        points_earned = EXCLUDED.points_earned,
        attestation_status = 'attested',
        attestation_date = NOW(),
        evidence_documentation = EXCLUDED.evidence_documentation,
        updated_at = NOW()
"""

UPSERT_IA_ATTESTATION = """
    INSERT INTO mips_ia_attestations (
        provider_id, performance_year, activity_id, attestation_status,
        start_date, end_date, continuous_90_days, points_earned,
        attestation_statement, supporting_evidence, attestation_date
    ) VALUES ($1, $2, $3, 'completed', $4, $5, $6, $7, $8, $9, NOW())
    ON CONFLICT (provider_id, performance_year, activity_id) DO UPDATE SET
        attestation_status = 'completed',
        start_date = EXCLUDED.start_date,
        end_date = EXCLUDED.end_date,
        continuous_90_days = EXCLUDED.continuous_90_days,
        points_earned = EXCLUDED.points_earned,
        attestation_statement = EXCLUDED.attestation_statement,
        supporting_evidence = EXCLUDED.supporting_evidence,
        attestation_date = NOW(),
        updated_at = NOW()
"""


# =============================================================================
# Submissions
# =============================================================================

UPSERT_SUBMISSION = """
    INSERT INTO mips_submissions (
        provider_id, performance_year,
        quality_score, pi_score, ia_score, cost_score,
        quality_weight, pi_weight, ia_weight, cost_weight,
        composite_score, payment_adjustment,
        unavailable_categories, defaults_applied,
        calculated_at, created_at, updated_at
    ) VALUES (
        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15,
        NOW(), NOW()
    )
    ON CONFLICT (provider_id, performance_year) DO UPDATE SET
        quality_score = EXCLUDED.quality_score,
        pi_score = EXCLUDED.pi_score,
        ia_score = EXCLUDED.ia_score,
        cost_score = EXCLUDED.cost_score,
        quality_weight = EXCLUDED.quality_weight,
        pi_weight = EXCLUDED.pi_weight,
        ia_weight = EXCLUDED.ia_weight,
        cost_weight = EXCLUDED.cost_weight,
        composite_score = EXCLUDED.composite_score,
        payment_adjustment = EXCLUDED.payment_adjustment,
        unavailable_categories = EXCLUDED.unavailable_categories,
        defaults_applied = EXCLUDED.defaults_applied,
        calculated_at = EXCLUDED.calculated_at,
        updated_at = NOW()
"""


# =============================================================================
# Data Gaps
# =============================================================================

# Serializes gap rewrites for one key across processes for the transaction.
GAP_ADVISORY_LOCK = "SELECT pg_advisory_xact_lock(hashtext($1), $2)"

DELETE_DATA_GAPS = """
    DELETE FROM mips_data_gaps
    WHERE provider_id = $1 AND performance_year = $2
"""

INSERT_DATA_GAP = """
    INSERT INTO mips_data_gaps (
        provider_id, performance_year, gap_category, gap_type, measure_id,
        gap_description, impact_level, remediation_task, due_date, status
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, 'open')
"""


# =============================================================================
# Job State
# =============================================================================

DIGEST_STATE_QUERY = """
    SELECT digest_date, sent_at
    FROM job_digest_state
    WHERE job_type = $1 AND digest_date = $2
"""

UPSERT_DIGEST_STATE = """
    INSERT INTO job_digest_state (job_type, digest_date, sent_at, digest_count)
    VALUES ($1, $2, $3, 1)
    ON CONFLICT (job_type, digest_date) DO UPDATE SET
        sent_at = EXCLUDED.sent_at,
        digest_count = job_digest_state.digest_count + 1
"""
