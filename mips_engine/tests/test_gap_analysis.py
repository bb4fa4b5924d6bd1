"""
Tests for the Gap Analysis Engine.

Covers:
- Quality volume/completeness gaps, PI attestation/threshold gaps, IA points gap
- Due dates and impact levels per rule
- Deterministic ordering and the summary
- Transactional replacement and idempotent regeneration
- Serialization of concurrent regenerations for the same key
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from mips_engine.core.exceptions import InputError
from mips_engine.models.enums import AttestationStatus, GapCategory, GapType, ImpactLevel
from mips_engine.services import gap_analysis
from mips_engine.services.gap_analysis import (
    analyze_gaps,
    identify_ia_gaps,
    identify_pi_gaps,
    identify_quality_gaps,
    replace_data_gaps,
    sort_gaps,
    summarize_gaps,
)
from mips_engine.sql import DELETE_DATA_GAPS, GAP_ADVISORY_LOCK, INSERT_DATA_GAP

from mips_engine.tests.conftest import (
    TEST_PROVIDER_ID,
    TEST_YEAR,
    make_ia_fact,
    make_pi_fact,
    make_quality_fact,
)


# ============================================================
# GAP RULES
# ============================================================

class TestQualityGaps:

    def test_low_denominator_is_insufficient_volume(self):
        gaps = identify_quality_gaps(
            TEST_PROVIDER_ID, TEST_YEAR, [make_quality_fact('001', title='Diabetes A1c', denominator=12)],
        )

        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.gap_type == GapType.INSUFFICIENT_VOLUME
        assert gap.category == GapCategory.QUALITY_DATA
        assert gap.impact == ImpactLevel.HIGH
        assert gap.description == 'Diabetes A1c has 12/20 required cases'
        assert gap.due_date == date(2024, 10, 31)

    def test_low_completeness_is_incomplete_data(self):
        gaps = identify_quality_gaps(
            TEST_PROVIDER_ID, TEST_YEAR,
            [make_quality_fact('001', title='BP Control', data_completeness=62.5, expected_completeness=75.0)],
        )

        assert len(gaps) == 1
        assert gaps[0].gap_type == GapType.INCOMPLETE_DATA
        assert gaps[0].impact == ImpactLevel.MEDIUM
        assert gaps[0].description == 'BP Control has 62.5% data completeness (target: 75%)'
        assert gaps[0].due_date == date(2024, 11, 30)

    def test_missing_performance_row_yields_both_gaps(self):
        fact = make_quality_fact(
            '001', minimum_case_requirement=None, expected_completeness=None,
            denominator=None, data_completeness=None,
        )
        gaps = identify_quality_gaps(TEST_PROVIDER_ID, TEST_YEAR, [fact])

        assert [g.gap_type for g in gaps] == [GapType.INSUFFICIENT_VOLUME, GapType.INCOMPLETE_DATA]
        assert gaps[0].description.endswith('has 0/20 required cases')

    def test_healthy_measure_has_no_gaps(self):
        assert identify_quality_gaps(TEST_PROVIDER_ID, TEST_YEAR, [make_quality_fact('001')]) == []


class TestPIGaps:

    def test_unattested_required_measure_is_critical(self):
        facts = [make_pi_fact('PI_1', title='e-Prescribing', required_measure=True,
                              attestation_status=None, points_earned=None)]
        gaps = identify_pi_gaps(TEST_PROVIDER_ID, TEST_YEAR, facts)

        assert len(gaps) == 1
        assert gaps[0].gap_type == GapType.MISSING_DATA
        assert gaps[0].impact == ImpactLevel.CRITICAL
        assert gaps[0].description == 'e-Prescribing requires attestation'
        assert gaps[0].due_date == date(2024, 12, 31)

    def test_in_progress_optional_measure_is_medium(self):
        facts = [make_pi_fact('PI_2', attestation_status=AttestationStatus.IN_PROGRESS)]
        gaps = identify_pi_gaps(TEST_PROVIDER_ID, TEST_YEAR, facts)

        assert gaps[0].impact == ImpactLevel.MEDIUM

    def test_attested_below_threshold(self):
        facts = [make_pi_fact('PI_3', title='HIE', performance_rate=42.0, threshold_percentage=60.0)]
        gaps = identify_pi_gaps(TEST_PROVIDER_ID, TEST_YEAR, facts)

        assert gaps[0].gap_type == GapType.INSUFFICIENT_PERFORMANCE
        assert gaps[0].description == 'HIE performance 42% below threshold 60%'
        assert gaps[0].due_date == date(2024, 11, 30)

    def test_attested_at_threshold_has_no_gap(self):
        facts = [make_pi_fact('PI_3', performance_rate=60.0, threshold_percentage=60.0)]
        assert identify_pi_gaps(TEST_PROVIDER_ID, TEST_YEAR, facts) == []


class TestIAGaps:

    def test_shortfall_produces_single_gap(self):
        gaps = identify_ia_gaps(TEST_PROVIDER_ID, TEST_YEAR, [make_ia_fact('IA_1', 10.0)])

        assert len(gaps) == 1
        assert gaps[0].measure_id is None
        assert gaps[0].impact == ImpactLevel.HIGH
        assert gaps[0].description == 'Need 30 more IA points (current: 10/40)'

    def test_requirement_met_has_no_gap(self):
        facts = [make_ia_fact('IA_1', 20.0), make_ia_fact('IA_2', 20.0)]
        assert identify_ia_gaps(TEST_PROVIDER_ID, TEST_YEAR, facts) == []

    def test_no_activities_needs_full_requirement(self):
        gaps = identify_ia_gaps(TEST_PROVIDER_ID, TEST_YEAR, [])
        assert gaps[0].description == 'Need 40 more IA points (current: 0/40)'


# ============================================================
# ORDERING AND SUMMARY
# ============================================================

class TestOrderingAndSummary:

    def _gaps(self):
        return (
            identify_ia_gaps(TEST_PROVIDER_ID, TEST_YEAR, [])
            + identify_pi_gaps(TEST_PROVIDER_ID, TEST_YEAR, [
                make_pi_fact('PI_2', attestation_status=None, required_measure=True),
            ])
            + identify_quality_gaps(TEST_PROVIDER_ID, TEST_YEAR, [
                make_quality_fact('236', denominator=5, data_completeness=10.0),
                make_quality_fact('001', denominator=5),
            ])
        )

    def test_sorted_by_category_measure_and_type(self):
        ordered = sort_gaps(self._gaps())

        assert [(g.category, g.measure_id, g.gap_type) for g in ordered] == [
            (GapCategory.QUALITY_DATA, '001', GapType.INSUFFICIENT_VOLUME),
            (GapCategory.QUALITY_DATA, '236', GapType.INSUFFICIENT_VOLUME),
            (GapCategory.QUALITY_DATA, '236', GapType.INCOMPLETE_DATA),
            (GapCategory.PI_EVIDENCE, 'PI_2', GapType.MISSING_DATA),
            (GapCategory.IA_DOCUMENTATION, None, GapType.INSUFFICIENT_POINTS),
        ]

    def test_ordering_is_independent_of_input_order(self):
        gaps = self._gaps()
        assert sort_gaps(gaps) == sort_gaps(list(reversed(gaps)))

    def test_summary_counts(self):
        summary = summarize_gaps(self._gaps())

        assert summary.total_gaps == 5
        assert summary.critical_gaps == 1
        assert summary.by_category == {'ia_documentation': 1, 'pi_evidence': 1, 'quality_data': 3}
        assert summary.by_impact == {'critical': 1, 'high': 3, 'medium': 1}


# ============================================================
# REGENERATION
# ============================================================

@pytest.fixture
def gap_fact_loaders():
    quality = [make_quality_fact('001', denominator=8)]
    pi = [make_pi_fact('PI_1', required_measure=True, attestation_status=None, points_earned=None)]
    ia = [make_ia_fact('IA_1', 20.0)]

    with patch('mips_engine.services.gap_analysis.fetch_quality_facts',
               new=AsyncMock(return_value=quality)) as fetch_quality, \
         patch('mips_engine.services.gap_analysis.fetch_pi_facts',
               new=AsyncMock(return_value=pi)) as fetch_pi, \
         patch('mips_engine.services.gap_analysis.fetch_ia_facts',
               new=AsyncMock(return_value=ia)) as fetch_ia:
        yield fetch_quality, fetch_pi, fetch_ia


class TestRegeneration:

    @pytest.mark.asyncio
    async def test_replace_deletes_then_inserts_in_transaction(self, mock_db_pool, mock_conn):
        gaps = identify_ia_gaps(TEST_PROVIDER_ID, TEST_YEAR, [])

        with patch('mips_engine.services.gap_analysis.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)):
            await replace_data_gaps(TEST_PROVIDER_ID, TEST_YEAR, gaps)

        mock_conn.transaction.assert_called_once()
        queries = [c.args[0] for c in mock_conn.execute.call_args_list]
        assert queries == [GAP_ADVISORY_LOCK, DELETE_DATA_GAPS, INSERT_DATA_GAP]

        insert_args = mock_conn.execute.call_args_list[2].args
        assert insert_args[1:5] == (TEST_PROVIDER_ID, TEST_YEAR, 'ia_documentation', 'insufficient_points')
        assert insert_args[5] is None
        assert insert_args[9] == date(2024, 12, 31)

    @pytest.mark.asyncio
    async def test_analyze_reads_facts_allowing_empty(self, mock_db_pool, gap_fact_loaders, settings):
        fetch_quality, fetch_pi, fetch_ia = gap_fact_loaders

        with patch('mips_engine.services.gap_analysis.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)):
            gaps = await analyze_gaps(TEST_PROVIDER_ID, TEST_YEAR, settings=settings)

        fetch_quality.assert_awaited_once_with(TEST_PROVIDER_ID, TEST_YEAR, allow_empty=True)
        fetch_pi.assert_awaited_once_with(TEST_PROVIDER_ID, TEST_YEAR, allow_empty=True)
        fetch_ia.assert_awaited_once_with(TEST_PROVIDER_ID, TEST_YEAR, allow_empty=True)
        assert [g.gap_type for g in gaps] == [
            GapType.INSUFFICIENT_VOLUME,
            GapType.MISSING_DATA,
            GapType.INSUFFICIENT_POINTS,
        ]

    @pytest.mark.asyncio
    async def test_regeneration_is_idempotent(self, mock_db_pool, mock_conn, gap_fact_loaders, settings):
        with patch('mips_engine.services.gap_analysis.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)):
            first = await analyze_gaps(TEST_PROVIDER_ID, TEST_YEAR, settings=settings)
            first_writes = list(mock_conn.execute.call_args_list)
            mock_conn.execute.reset_mock()

            second = await analyze_gaps(TEST_PROVIDER_ID, TEST_YEAR, settings=settings)
            second_writes = list(mock_conn.execute.call_args_list)

        assert first == second
        assert first_writes == second_writes
        # Each run deletes the previous set before inserting
        assert [c.args[0] for c in second_writes].count(DELETE_DATA_GAPS) == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_for_same_key_do_not_interleave(self, mock_db_pool, mock_conn, settings):
        events = []

        async def slow_quality_facts(provider_id, year, allow_empty=False):
            events.append('read')
            await asyncio.sleep(0.01)
            return []

        async def record_execute(query, *args):
            if query == DELETE_DATA_GAPS:
                events.append('write')

        mock_conn.execute.side_effect = record_execute

        with patch('mips_engine.services.gap_analysis.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)), \
             patch('mips_engine.services.gap_analysis.fetch_quality_facts', new=slow_quality_facts), \
             patch('mips_engine.services.gap_analysis.fetch_pi_facts', new=AsyncMock(return_value=[])), \
             patch('mips_engine.services.gap_analysis.fetch_ia_facts', new=AsyncMock(return_value=[])):
            await asyncio.gather(
                analyze_gaps(TEST_PROVIDER_ID, TEST_YEAR, settings=settings),
                analyze_gaps(TEST_PROVIDER_ID, TEST_YEAR, settings=settings),
            )

        assert events == ['read', 'write', 'read', 'write']
        assert len(gap_analysis._gap_locks) == 0

    @pytest.mark.asyncio
    async def test_rejects_malformed_identifiers(self):
        with pytest.raises(InputError):
            await analyze_gaps(TEST_PROVIDER_ID, None)
