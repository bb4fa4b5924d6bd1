"""
Batch composite recomputation for a performance year.

Recomputes the Submission of every provider with an eligibility record for the
year (or of an explicit provider list). Providers are independent, so they run
concurrently, bounded by Settings.batch_max_concurrency so the pool is not
exhausted (each provider holds up to four connections while its category
facts load).

The year configuration is loaded once and shared by every provider. A failure
for one provider is recorded in the report and never aborts the others.

Usage:
    report = await recompute_year(2024)
    print(f"{report.succeeded}/{report.processed} recomputed")

    # Only selected providers
    report = await recompute_year(2024, provider_ids=["prov-1", "prov-2"])
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import execute_query
from mips_engine.core.exceptions import validate_performance_year
from mips_engine.models.schemas import BatchScoringReport, Submission
from mips_engine.services.composite import compute_composite
from mips_engine.services.configuration import load_year_configuration
from mips_engine.sql import PROVIDERS_FOR_YEAR_QUERY


logger = logging.getLogger(__name__)


async def fetch_providers_for_year(performance_year: int) -> List[str]:
    """Providers with an eligibility record for the year, ordered by id."""
    rows = await execute_query(PROVIDERS_FOR_YEAR_QUERY, performance_year)
    return [row["provider_id"] for row in rows]


async def recompute_year(
    performance_year: int,
    provider_ids: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> BatchScoringReport:
    """
    Recompute and persist submissions for many providers.

    Args:
        performance_year: Program year.
        provider_ids: Providers to recompute (default: all with eligibility records).
        settings: Process settings (default: cached settings).

    Returns:
        BatchScoringReport with per-provider failures keyed by provider id.

    Raises:
        InputError: If performance_year is malformed.
    """
    validate_performance_year(performance_year)
    settings = settings or get_settings()

    if provider_ids is None:
        provider_ids = await fetch_providers_for_year(performance_year)
    provider_ids = list(dict.fromkeys(provider_ids))

    if not provider_ids:
        logger.info(f"No providers to recompute for {performance_year}")
        return BatchScoringReport(performance_year=performance_year, processed=0, succeeded=0)

    config = await load_year_configuration(performance_year, settings)
    semaphore = asyncio.Semaphore(settings.batch_max_concurrency)

    async def recompute_with_limit(provider_id: str) -> Submission:
        async with semaphore:
            return await compute_composite(provider_id, performance_year, config=config, settings=settings)

    results = await asyncio.gather(
        *(recompute_with_limit(pid) for pid in provider_ids),
        return_exceptions=True,
    )

    submissions: List[Submission] = []
    failed = {}
    for provider_id, result in zip(provider_ids, results):
        if isinstance(result, Exception):
            logger.error(
                f"Recompute failed for provider={provider_id} year={performance_year}: {result}",
                exc_info=result,
            )
            failed[provider_id] = str(result)
        elif isinstance(result, BaseException):
            raise result
        else:
            submissions.append(result)

    logger.info(
        f"Batch recompute for {performance_year}: {len(submissions)}/{len(provider_ids)} succeeded"
        + (f", {len(failed)} failed" if failed else "")
    )

    return BatchScoringReport(
        performance_year=performance_year,
        processed=len(provider_ids),
        succeeded=len(submissions),
        failed=failed,
        submissions=submissions,
    )
