"""
SQL statement module for the MIPS scoring engine.

Submodules:
    fact_queries: reads of year configuration, catalogs and per-category
                  performance facts, scoped by (provider, year).
    write_queries: idempotent upserts (eligibility, submission, attestations)
                   and the delete/insert statements for replaced sets
                   (measure selections, data gaps).

Example usage:
    from mips_engine.sql import QUALITY_FACTS_QUERY, UPSERT_SUBMISSION

    rows = await conn.fetch(QUALITY_FACTS_QUERY, provider_id, performance_year)
"""

from mips_engine.sql.fact_queries import (
    YEAR_CONFIGURATION_QUERY,
    VOLUME_FACTS_QUERY,
    QUALITY_CATALOG_QUERY,
    QUALITY_FACTS_QUERY,
    QUALITY_COUNTS_QUERY,
    PI_MEASURE_QUERY,
    PI_FACTS_QUERY,
    IA_ACTIVITY_QUERY,
    IA_FACTS_QUERY,
    COST_FACTS_QUERY,
    PROVIDERS_FOR_YEAR_QUERY,
    OPEN_GAPS_FOR_YEAR_QUERY,
)

from mips_engine.sql.write_queries import (
    UPSERT_ELIGIBILITY,
    UPSERT_QUALITY_PERFORMANCE,
    DELETE_MEASURE_SELECTIONS,
    INSERT_MEASURE_SELECTION,
    UPSERT_PI_ATTESTATION,
    UPSERT_IA_ATTESTATION,
    UPSERT_SUBMISSION,
    GAP_ADVISORY_LOCK,
    DELETE_DATA_GAPS,
    INSERT_DATA_GAP,
    DIGEST_STATE_QUERY,
    UPSERT_DIGEST_STATE,
)

__all__ = [
    'YEAR_CONFIGURATION_QUERY',
    'VOLUME_FACTS_QUERY',
    'QUALITY_CATALOG_QUERY',
    'QUALITY_FACTS_QUERY',
    'QUALITY_COUNTS_QUERY',
    'PI_MEASURE_QUERY',
    'PI_FACTS_QUERY',
    'IA_ACTIVITY_QUERY',
    'IA_FACTS_QUERY',
    'COST_FACTS_QUERY',
    'PROVIDERS_FOR_YEAR_QUERY',
    'OPEN_GAPS_FOR_YEAR_QUERY',
    'UPSERT_ELIGIBILITY',
    'UPSERT_QUALITY_PERFORMANCE',
    'DELETE_MEASURE_SELECTIONS',
    'INSERT_MEASURE_SELECTION',
    'UPSERT_PI_ATTESTATION',
    'UPSERT_IA_ATTESTATION',
    'UPSERT_SUBMISSION',
    'GAP_ADVISORY_LOCK',
    'DELETE_DATA_GAPS',
    'INSERT_DATA_GAP',
    'DIGEST_STATE_QUERY',
    'UPSERT_DIGEST_STATE',
]
