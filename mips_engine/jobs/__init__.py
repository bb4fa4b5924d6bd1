"""
Background jobs for the MIPS scoring engine.

- batch_scoring: recompute every provider's Submission for a year, concurrently
  and with per-provider failure isolation
- gap_digest: idempotent Slack digest of open data gaps (one per year and date,
  tracked in job_digest_state; force=True re-sends)

Environment:
- SLACK_WEBHOOK_URL: Slack incoming webhook for gap digests
"""

from mips_engine.jobs.batch_scoring import (
    recompute_year,
    fetch_providers_for_year,
)

from mips_engine.jobs.gap_digest import (
    send_gap_digest,
    check_already_sent,
    format_digest_blocks,
)

__all__ = [
    'recompute_year',
    'fetch_providers_for_year',
    'send_gap_digest',
    'check_already_sent',
    'format_digest_blocks',
]
