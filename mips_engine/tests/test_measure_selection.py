"""
Tests for the Measure Catalog & Selection Validator Service.

Covers:
- Minimum-measure violation and the outcome/high-priority advisories
- Duplicate and unknown id handling
- Catalog categorization, recommendations and the data collection plan
- Catalog loading/filtering and transactional selection replacement
"""

from unittest.mock import AsyncMock, call, patch

import pytest

from mips_engine.core.exceptions import InputError
from mips_engine.models.enums import CollectionType, RecommendationPriority
from mips_engine.models.schemas import MeasureSelectionInput
from mips_engine.services.measure_selection import (
    DATA_COLLECTION_RECOMMENDATIONS,
    HIGH_PRIORITY_ADVISORY,
    OUTCOME_ADVISORY,
    build_data_collection_plan,
    categorize_measures,
    fetch_quality_catalog,
    generate_measure_recommendations,
    measure_from_row,
    replace_measure_selections,
    validate_measure_selection,
)
from mips_engine.sql import DELETE_MEASURE_SELECTIONS, INSERT_MEASURE_SELECTION

from mips_engine.tests.conftest import TEST_PROVIDER_ID, TEST_YEAR, make_measure


def _catalog_row(measure_id: str, **overrides):
    row = {
        'measure_id': measure_id,
        'measure_title': f'Measure {measure_id}',
        'measure_type': 'process',
        'collection_type': 'ecqm',
        'specialty_set': ['all_specialties'],
        'high_priority': False,
        'outcome_measure': False,
        'minimum_case_requirement': 20,
        'cpt_codes': ['99213'],
        'icd10_codes': None,
    }
    row.update(overrides)
    return row


# ============================================================
# VALIDATION
# ============================================================

class TestValidateMeasureSelection:

    def test_fewer_than_six_is_a_violation(self, quality_catalog):
        result = validate_measure_selection(['001', '236', '134'], quality_catalog)

        assert result.valid is False
        assert result.violations == ['Minimum 6 quality measures required for MIPS reporting']
        assert result.counts.selected_count == 3

    def test_six_plain_measures_is_valid_with_advisories(self, quality_catalog, plain_measure_ids):
        result = validate_measure_selection(plain_measure_ids, quality_catalog)

        assert result.valid is True
        assert result.violations == []
        assert OUTCOME_ADVISORY in result.advisories
        assert HIGH_PRIORITY_ADVISORY in result.advisories
        assert result.counts.outcome_available == 3
        assert result.counts.outcome_selected == 0

    def test_outcome_and_high_priority_selected_has_no_advisories(self, quality_catalog):
        result = validate_measure_selection(
            ['001', '226', '047', '130', '128', '113'], quality_catalog,
        )

        assert result.valid is True
        assert result.advisories == []
        assert result.counts.outcome_selected == 1
        assert result.counts.high_priority_selected == 1

    def test_outcome_advisory_only_when_outcome_available(self, plain_measure_ids):
        catalog = [make_measure(mid) for mid in plain_measure_ids]
        result = validate_measure_selection(plain_measure_ids, catalog)

        assert OUTCOME_ADVISORY not in result.advisories
        assert HIGH_PRIORITY_ADVISORY in result.advisories

    def test_outcome_availability_respects_specialty(self, plain_measure_ids):
        catalog = [make_measure(mid) for mid in plain_measure_ids]
        catalog.append(make_measure('900', outcome_measure=True, specialty_set=['dermatology']))

        cardiology = validate_measure_selection(plain_measure_ids, catalog, specialty='cardiology')
        dermatology = validate_measure_selection(plain_measure_ids, catalog, specialty='dermatology')

        assert OUTCOME_ADVISORY not in cardiology.advisories
        assert OUTCOME_ADVISORY in dermatology.advisories

    def test_duplicates_do_not_count_toward_minimum(self, quality_catalog):
        result = validate_measure_selection(
            ['226', '226', '047', '130', '128', '113'], quality_catalog,
        )

        assert result.valid is False
        assert result.counts.selected_count == 5
        assert 'Duplicate measure ids ignored: 226' in result.advisories

    def test_unknown_ids_are_reported_and_not_counted(self, quality_catalog, plain_measure_ids):
        result = validate_measure_selection(plain_measure_ids[:5] + ['999'], quality_catalog)

        assert result.valid is False
        assert result.unknown_measure_ids == ['999']
        assert 'Measure ids not found in the catalog: 999' in result.advisories

    def test_custom_minimum(self, quality_catalog):
        result = validate_measure_selection(['001', '236'], quality_catalog, minimum_measures=2)
        assert result.valid is True


# ============================================================
# CATALOG GUIDANCE
# ============================================================

class TestCategorizeMeasures:

    def test_each_measure_in_exactly_one_bucket(self, quality_catalog):
        categorized = categorize_measures(quality_catalog, specialty='cardiology')

        assert [m.measure_id for m in categorized.recommended] == ['001', '236']
        assert [m.measure_id for m in categorized.outcome] == ['134']
        assert [m.measure_id for m in categorized.high_priority] == ['317']
        assert [m.measure_id for m in categorized.specialty] == ['112', '113']
        assert len(categorized.other) == 4
        assert len(categorized.all_measures()) == len(quality_catalog)

    def test_without_specialty_nothing_is_specialty_specific(self, quality_catalog):
        categorized = categorize_measures(quality_catalog)
        assert categorized.specialty == []
        assert len(categorized.other) == 6


class TestRecommendations:

    def test_recommendations_for_full_catalog(self, quality_catalog):
        recommendations = generate_measure_recommendations(
            categorize_measures(quality_catalog, specialty='cardiology')
        )
        by_type = {r.type: r for r in recommendations}

        assert by_type['measure_selection'].priority == RecommendationPriority.HIGH
        assert by_type['measure_selection'].measures == ['001', '236']
        assert by_type['specialty_alignment'].measures == ['112', '113']
        assert len(by_type['collection_method'].measures) == 6

    def test_small_catalog_has_no_collection_method_recommendation(self):
        catalog = [make_measure(f'00{i}') for i in range(3)]
        recommendations = generate_measure_recommendations(categorize_measures(catalog))
        assert recommendations == []


class TestDataCollectionPlan:

    def test_counts_by_collection_type(self, quality_catalog):
        selected = [m for m in quality_catalog if m.measure_id in ('317', '112', '226')]
        plan = build_data_collection_plan(selected)

        assert plan.total_measures == 3
        assert plan.collection_methods == {'ecqm': 1, 'registry': 1, 'claims': 1}
        assert [r.measure_id for r in plan.data_requirements] == ['317', '112', '226']
        assert plan.recommendations == DATA_COLLECTION_RECOMMENDATIONS


# ============================================================
# CATALOG ACCESS
# ============================================================

class TestCatalogAccess:

    def test_row_with_comma_separated_codes(self):
        measure = measure_from_row(_catalog_row('001', cpt_codes='99213, 99214,', specialty_set=None))

        assert measure.cpt_codes == ['99213', '99214']
        assert measure.icd10_codes == []
        assert measure.specialty_set == []
        assert measure.collection_type == CollectionType.ECQM

    @pytest.mark.asyncio
    async def test_fetch_filters_by_specialty_and_collection_type(self, mock_db_pool, mock_conn):
        mock_conn.fetch.return_value = [
            _catalog_row('001'),
            _catalog_row('112', specialty_set=['cardiology'], collection_type='claims'),
            _catalog_row('500', specialty_set=['dermatology']),
        ]

        with patch('mips_engine.services.measure_selection.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)):
            all_measures = await fetch_quality_catalog(TEST_YEAR)
            cardiology = await fetch_quality_catalog(TEST_YEAR, specialty='cardiology')
            claims = await fetch_quality_catalog(
                TEST_YEAR, specialty='cardiology', collection_type=CollectionType.CLAIMS,
            )

        assert len(all_measures) == 3
        assert [m.measure_id for m in cardiology] == ['001', '112']
        assert [m.measure_id for m in claims] == ['112']

    @pytest.mark.asyncio
    async def test_fetch_rejects_malformed_year(self):
        with pytest.raises(InputError):
            await fetch_quality_catalog(True)


# ============================================================
# SELECTION PERSISTENCE
# ============================================================

class TestReplaceMeasureSelections:

    @pytest.mark.asyncio
    async def test_valid_selection_replaces_in_transaction(
        self, mock_db_pool, mock_conn, quality_catalog, plain_measure_ids, settings,
    ):
        measures = [MeasureSelectionInput(measure_id=mid) for mid in plain_measure_ids]
        measures.append(MeasureSelectionInput(measure_id='226', target_rate=90.0))
        measures[0] = MeasureSelectionInput(
            measure_id='112', selection_reason='Cardiology focus',
            expected_completeness=85.0, target_rate=75.0, submission_method=CollectionType.CLAIMS,
        )

        with patch('mips_engine.services.measure_selection.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)), \
             patch('mips_engine.services.measure_selection.fetch_quality_catalog',
                   new=AsyncMock(return_value=quality_catalog)):
            validation, plan = await replace_measure_selections(
                TEST_PROVIDER_ID, TEST_YEAR, measures, settings=settings,
            )

        assert validation.valid is True
        assert plan is not None
        assert plan.total_measures == 6

        mock_conn.transaction.assert_called_once()
        calls = mock_conn.execute.call_args_list
        assert calls[0] == call(DELETE_MEASURE_SELECTIONS, TEST_PROVIDER_ID, TEST_YEAR)
        assert len(calls) == 7

        first_insert = calls[1].args
        assert first_insert == (
            INSERT_MEASURE_SELECTION, TEST_PROVIDER_ID, TEST_YEAR, '112', 'selected',
            'Cardiology focus', 85.0, 75.0, 'claims',
        )
        # The first occurrence of a duplicated id wins; defaults fill the gaps
        defaults_insert = calls[3].args
        assert defaults_insert == (
            INSERT_MEASURE_SELECTION, TEST_PROVIDER_ID, TEST_YEAR, '226', 'selected',
            'Provider selected measure', 70.0, 50.0, 'ecqm',
        )

    @pytest.mark.asyncio
    async def test_invalid_selection_is_not_persisted(self, mock_db_pool, mock_conn, quality_catalog, settings):
        measures = [MeasureSelectionInput(measure_id=mid) for mid in ('001', '236')]

        with patch('mips_engine.services.measure_selection.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)), \
             patch('mips_engine.services.measure_selection.fetch_quality_catalog',
                   new=AsyncMock(return_value=quality_catalog)):
            validation, plan = await replace_measure_selections(
                TEST_PROVIDER_ID, TEST_YEAR, measures, settings=settings,
            )

        assert validation.valid is False
        assert plan is None
        mock_conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_blank_provider(self):
        with pytest.raises(InputError):
            await replace_measure_selections('', TEST_YEAR, [])
