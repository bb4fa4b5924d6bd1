"""
Slack digest of open MIPS data gaps.

Posts a Block Kit summary of the open gaps for a performance year to the Slack
incoming webhook configured in SLACK_WEBHOOK_URL, using slack_sdk's
WebhookClient.

Idempotency:
- At most one digest per (performance year, digest date). Successful sends are
  recorded in job_digest_state under job type "mips_gap_digest_<year>".
- force=True re-sends and increments digest_count.

Errors never propagate out of send_gap_digest; the result dict carries them so a
scheduler can log and move on.

Usage:
    result = await send_gap_digest(2024)
    result = await send_gap_digest(2024, digest_date=date(2024, 10, 1), force=True)
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from mips_engine.core.config import get_settings
from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import validate_performance_year
from mips_engine.models.enums import ImpactLevel
from mips_engine.models.schemas import DataGap
from mips_engine.services.gap_analysis import summarize_gaps
from mips_engine.sql import DIGEST_STATE_QUERY, OPEN_GAPS_FOR_YEAR_QUERY, UPSERT_DIGEST_STATE


logger = logging.getLogger(__name__)

MAX_PROVIDERS_LISTED = 5

CATEGORY_LABELS = {
    "quality_data": "Quality data",
    "pi_evidence": "PI evidence",
    "ia_documentation": "IA documentation",
}


def digest_job_type(performance_year: int) -> str:
    return f"mips_gap_digest_{performance_year}"


# =============================================================================
# Idempotency
# =============================================================================

async def check_already_sent(performance_year: int, digest_date: date) -> bool:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(DIGEST_STATE_QUERY, digest_job_type(performance_year), digest_date)
        return row is not None


async def mark_digest_sent(performance_year: int, digest_date: date) -> None:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            UPSERT_DIGEST_STATE,
            digest_job_type(performance_year),
            digest_date,
            datetime.now(timezone.utc),
        )


# =============================================================================
# Data Fetching
# =============================================================================

async def fetch_open_gaps(performance_year: int) -> List[DataGap]:
    """All open gaps for the year, ordered by provider then category."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(OPEN_GAPS_FOR_YEAR_QUERY, performance_year)

    return [
        DataGap(
            provider_id=row["provider_id"],
            performance_year=row["performance_year"],
            category=row["gap_category"],
            gap_type=row["gap_type"],
            measure_id=row["measure_id"],
            description=row["gap_description"],
            impact=row["impact_level"],
            remediation=row["remediation_task"],
            due_date=row["due_date"],
        )
        for row in rows
    ]


# =============================================================================
# Slack Message Formatting
# =============================================================================

def format_digest_blocks(
    performance_year: int,
    digest_date: date,
    gaps: List[DataGap],
) -> List[Dict[str, Any]]:
    """
    Build the Block Kit message.

    Sections: header, totals, per-category counts, providers with the most
    critical gaps (top 5), footer.
    """
    summary = summarize_gaps(gaps)
    providers = {g.provider_id for g in gaps}

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"MIPS {performance_year} Data Gaps - {digest_date.strftime('%B %d, %Y')}",
                "emoji": True,
            },
        },
        {"type": "divider"},
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"*Open gaps:* {summary.total_gaps:,} across {len(providers):,} providers\n"
                    f"*Critical:* {summary.critical_gaps:,}"
                ),
            },
        },
    ]

    if summary.by_category:
        category_lines = [
            f"- {CATEGORY_LABELS.get(category, category)}: {count:,}"
            for category, count in summary.by_category.items()
        ]
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*By Category*\n" + "\n".join(category_lines)},
        })

    critical_by_provider: Dict[str, List[DataGap]] = defaultdict(list)
    for gap in gaps:
        if gap.impact == ImpactLevel.CRITICAL:
            critical_by_provider[gap.provider_id].append(gap)

    blocks.append({"type": "divider"})
    if critical_by_provider:
        ranked = sorted(critical_by_provider.items(), key=lambda item: (-len(item[1]), item[0]))
        lines = []
        for index, (provider_id, provider_gaps) in enumerate(ranked[:MAX_PROVIDERS_LISTED], 1):
            measures = ", ".join(g.measure_id for g in provider_gaps if g.measure_id)
            lines.append(f"{index}. *{provider_id}*: {len(provider_gaps)} critical ({measures})")
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*Critical Gaps by Provider*\n" + "\n".join(lines)},
        })
    else:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*No critical gaps open.*"},
        })

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Generated at {timestamp} | MIPS Scoring Engine"}],
    })
    return blocks


# =============================================================================
# Main Entry Point
# =============================================================================

async def send_gap_digest(
    performance_year: int,
    digest_date: Optional[date] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Send the open-gap digest for a performance year.

    Args:
        performance_year: Program year to summarize.
        digest_date: Idempotency date (default: today, UTC).
        force: Send even if a digest was already sent for this date.

    Returns:
        Dict with success, and either skipped/reason, the sent counts, or error.
    """
    validate_performance_year(performance_year)
    settings = get_settings()

    if not settings.slack_webhook_url:
        return {
            "success": False,
            "error": "SLACK_WEBHOOK_URL not configured. Set this environment variable to enable gap digests.",
        }

    target_date = digest_date or datetime.now(timezone.utc).date()

    if not force:
        try:
            if await check_already_sent(performance_year, target_date):
                return {
                    "success": True,
                    "skipped": True,
                    "reason": f"Gap digest already sent for {target_date}",
                    "date": str(target_date),
                }
        except Exception as e:
            logger.warning(f"Could not read digest state for {target_date}, sending anyway: {e}")

    try:
        gaps = await fetch_open_gaps(performance_year)
    except Exception as e:
        logger.error(f"Failed to fetch open gaps for {performance_year}: {e}", exc_info=True)
        return {"success": False, "error": f"Failed to fetch open gaps: {e}", "date": str(target_date)}

    if not gaps:
        return {
            "success": True,
            "skipped": True,
            "reason": f"No open gaps for {performance_year}",
            "date": str(target_date),
        }

    blocks = format_digest_blocks(performance_year, target_date, gaps)
    summary = summarize_gaps(gaps)

    try:
        client = WebhookClient(settings.slack_webhook_url)
        response = client.send(text=f"MIPS {performance_year}: {summary.total_gaps} open data gaps", blocks=blocks)
    except Exception as e:
        logger.error(f"Failed to send gap digest: {e}", exc_info=True)
        return {"success": False, "error": f"Failed to send Slack message: {e}", "date": str(target_date)}

    if response.status_code != 200:
        return {
            "success": False,
            "error": f"Slack API returned status {response.status_code}: {response.body}",
            "date": str(target_date),
        }

    try:
        await mark_digest_sent(performance_year, target_date)
    except Exception as e:
        # The message went out; a retry may duplicate it.
        logger.warning(f"Gap digest sent but state not recorded for {target_date}: {e}")

    logger.info(
        f"Gap digest sent for {performance_year} ({summary.total_gaps} gaps, "
        f"{summary.critical_gaps} critical)"
    )
    return {
        "success": True,
        "date": str(target_date),
        "total_gaps": summary.total_gaps,
        "critical_gaps": summary.critical_gaps,
    }
