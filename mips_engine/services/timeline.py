"""
Timeline / Phase Tracker

Pure functions over the program calendar of a performance year. Nothing here
reads the clock implicitly: callers pass "now".

Calendar for performance year Y:
    performance period   Y-01-01 .. Y-12-31 (inclusive)
    submission window    (Y+1)-01-02 .. (Y+1)-03-31
    completed            after (Y+1)-03-31

days_remaining is the calendar-day difference to the end of the active phase,
so it is 0 on the last day of a phase.
"""

from datetime import date, datetime
from typing import List, Union

from mips_engine.core.exceptions import validate_performance_year
from mips_engine.models.enums import Phase, Urgency
from mips_engine.models.schemas import (
    Milestone,
    PeriodWindow,
    PhaseStatus,
    Timeline,
    UpcomingDeadline,
)


IA_MINIMUM_DAYS = 90
UPCOMING_WINDOW_DAYS = 90

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def performance_period_end(performance_year: int) -> date:
    return date(performance_year, 12, 31)


def submission_period_end(performance_year: int) -> date:
    return date(performance_year + 1, 3, 31)


def get_phase(performance_year: int, now: DateLike) -> PhaseStatus:
    """
    Phase of the program year at "now".

    Args:
        performance_year: Program year.
        now: Current date or datetime (only the date part is used).

    Returns:
        PhaseStatus with the phase and days remaining in it.

    Raises:
        InputError: If performance_year is malformed.
    """
    validate_performance_year(performance_year)
    today = _as_date(now)
    performance_end = performance_period_end(performance_year)
    submission_end = submission_period_end(performance_year)

    if today <= performance_end:
        phase = Phase.PERFORMANCE_PERIOD
        description = "Data Collection Phase"
        days_remaining = (performance_end - today).days
    elif today <= submission_end:
        phase = Phase.SUBMISSION_PERIOD
        description = "Data Submission Phase"
        days_remaining = (submission_end - today).days
    else:
        phase = Phase.COMPLETED
        description = "Performance Year Completed"
        days_remaining = 0

    return PhaseStatus(
        performance_year=performance_year,
        phase=phase,
        description=description,
        days_remaining=days_remaining,
        performance_end=performance_end,
        submission_end=submission_end,
    )


def generate_timeline(performance_year: int) -> Timeline:
    validate_performance_year(performance_year)
    submission_year = performance_year + 1

    return Timeline(
        performance_year=performance_year,
        performance_period=PeriodWindow(
            start=date(performance_year, 1, 1),
            end=performance_period_end(performance_year),
            description="Data collection and performance measurement period",
        ),
        submission_period=PeriodWindow(
            start=date(submission_year, 1, 2),
            end=submission_period_end(performance_year),
            description="MIPS data submission window",
        ),
        improvement_activity_minimum_days=IA_MINIMUM_DAYS,
        key_milestones=[
            Milestone(
                date=date(performance_year, 3, 31),
                milestone="Q1 Data Review",
                description="Review first quarter performance and adjust strategies",
            ),
            Milestone(
                date=date(performance_year, 6, 30),
                milestone="Mid-Year Assessment",
                description="Evaluate progress and identify data gaps",
            ),
            Milestone(
                date=date(performance_year, 9, 30),
                milestone="Q3 Performance Check",
                description="Final quarter to address any performance issues",
            ),
            Milestone(
                date=performance_period_end(performance_year),
                milestone="Performance Period Ends",
                description="Final data collection deadline",
            ),
            Milestone(
                date=submission_period_end(performance_year),
                milestone="Submission Deadline",
                description="Final deadline for MIPS data submission",
            ),
        ],
    )


def _urgency(days_until: int) -> Urgency:
    if days_until <= 30:
        return Urgency.HIGH
    if days_until <= 60:
        return Urgency.MEDIUM
    return Urgency.LOW


def get_upcoming_deadlines(timeline: Timeline, now: DateLike) -> List[UpcomingDeadline]:
    """Milestones due within the next 90 days (today included), soonest first."""
    today = _as_date(now)
    upcoming: List[UpcomingDeadline] = []

    for milestone in timeline.key_milestones:
        days_until = (milestone.date - today).days
        if 0 <= days_until <= UPCOMING_WINDOW_DAYS:
            upcoming.append(UpcomingDeadline(
                date=milestone.date,
                milestone=milestone.milestone,
                description=milestone.description,
                days_until=days_until,
                urgency=_urgency(days_until),
            ))

    return sorted(upcoming, key=lambda d: d.days_until)
