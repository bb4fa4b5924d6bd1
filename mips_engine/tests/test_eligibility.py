"""
Tests for the Eligibility Evaluator Service.

Covers:
- Specialty code/name mapping
- Volume percent calculation
- Eligible / exempt / not_eligible classification at the default thresholds
- Undeterminable input (no encounters, program patients > total patients)
- Persistence of the upserted record and the determine_eligibility pipeline
"""

from unittest.mock import AsyncMock, patch

import pytest

from mips_engine.core.exceptions import InputError
from mips_engine.models.enums import EligibilityStatus
from mips_engine.models.schemas import VolumeFacts
from mips_engine.services.eligibility import (
    ELIGIBLE_REQUIREMENTS,
    EXEMPT_NEXT_STEPS,
    build_failed_criteria,
    calculate_volume_percent,
    determine_eligibility,
    evaluate_eligibility,
    get_specialty_info,
    persist_eligibility,
)
from mips_engine.sql import UPSERT_ELIGIBILITY

from mips_engine.tests.conftest import TEST_PROVIDER_ID, TEST_YEAR


def _facts(total: int, program: int, charges: float) -> VolumeFacts:
    return VolumeFacts(total_patients=total, program_patients=program, program_allowed_charges=charges)


# ============================================================
# SPECIALTY AND VOLUME HELPERS
# ============================================================

class TestSpecialtyInfo:

    def test_known_specialty_maps_to_cms_code(self):
        info = get_specialty_info('cardiology')
        assert info.code == '06'
        assert info.name == 'Cardiology'

    def test_unknown_specialty_keeps_name(self):
        info = get_specialty_info('sleep_medicine')
        assert info.code == '99'
        assert info.name == 'sleep_medicine'

    def test_missing_specialty_is_general_practice(self):
        info = get_specialty_info(None)
        assert info.code == '99'
        assert info.name == 'General Practice'


class TestVolumePercent:

    def test_rounds_to_two_decimals(self):
        assert calculate_volume_percent(_facts(3, 2, 0)) == 66.67

    def test_zero_total_is_zero(self):
        assert calculate_volume_percent(_facts(0, 0, 0)) == 0.0


# ============================================================
# CLASSIFICATION
# ============================================================

class TestEvaluateEligibility:

    def test_meets_volume_and_patients_is_eligible(self, year_config):
        # 250 of 312 patients => 80.13%
        record = evaluate_eligibility(
            TEST_PROVIDER_ID,
            TEST_YEAR,
            _facts(312, 250, 50000),
            year_config.eligibility_thresholds,
            specialty='family_medicine',
        )

        assert record.status == EligibilityStatus.ELIGIBLE
        assert record.input_valid is True
        assert record.medicare_volume_percent == 80.13
        assert record.patient_volume == 250
        assert record.allowed_charges == 50000
        assert record.specialty_code == '08'
        assert record.requirements == ELIGIBLE_REQUIREMENTS
        assert record.reason == 'Provider meets MIPS volume and patient/charges thresholds'

    def test_meets_volume_and_charges_only_is_eligible(self, year_config):
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(200, 180, 120000), year_config.eligibility_thresholds,
        )
        assert record.status == EligibilityStatus.ELIGIBLE

    def test_thresholds_are_inclusive(self, year_config):
        # Exactly 75%, exactly 200 patients
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(400, 300, 0), year_config.eligibility_thresholds,
        )
        assert record.medicare_volume_percent == 75.0
        assert record.status == EligibilityStatus.ELIGIBLE

    def test_low_volume_is_exempt(self, year_config):
        # Below the volume threshold, at or under both ceilings
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(500, 150, 40000), year_config.eligibility_thresholds,
        )

        assert record.status == EligibilityStatus.EXEMPT
        assert record.next_steps == EXEMPT_NEXT_STEPS
        assert 'low-volume threshold exemption' in record.reason
        assert 'patient volume 150 <= 200' in record.reason
        assert '$40,000.00 <= $90,000.00' in record.reason

    def test_high_volume_low_share_is_not_eligible(self, year_config):
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(1000, 300, 150000), year_config.eligibility_thresholds,
        )

        assert record.status == EligibilityStatus.NOT_ELIGIBLE
        assert record.input_valid is True
        assert record.reason == (
            'Provider does not meet MIPS thresholds: Medicare volume 30.00% < 75.00%'
        )

    def test_not_eligible_reason_lists_every_failed_criterion(self, year_config):
        # 190 patients but $100k charges => not exempt; share 50%
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(380, 190, 80000.0), year_config.eligibility_thresholds,
        )
        # charges under the ceiling and patients under the ceiling => exempt instead
        assert record.status == EligibilityStatus.EXEMPT

        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(380, 190, 95000.0), year_config.eligibility_thresholds,
        )
        assert record.status == EligibilityStatus.NOT_ELIGIBLE
        assert 'Medicare volume 50.00% < 75.00%' in record.reason
        assert 'Patient volume 190 < 200' in record.reason
        assert 'Allowed charges' not in record.reason

    def test_no_encounters_is_undeterminable(self, year_config):
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(0, 0, 0), year_config.eligibility_thresholds,
        )

        assert record.status == EligibilityStatus.NOT_ELIGIBLE
        assert record.input_valid is False
        assert record.medicare_volume_percent == 0.0
        assert record.reason.startswith('Eligibility cannot be determined, missing encounter volume')

    def test_program_patients_exceeding_total_is_flagged_invalid(self, year_config):
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(100, 150, 200000), year_config.eligibility_thresholds,
        )

        assert record.status == EligibilityStatus.NOT_ELIGIBLE
        assert record.input_valid is False
        assert record.medicare_volume_percent <= 100.0
        assert 'program patients 150 exceed total patients 100' in record.reason

    def test_blank_provider_id_raises(self, year_config):
        with pytest.raises(InputError):
            evaluate_eligibility('  ', TEST_YEAR, _facts(10, 5, 0), year_config.eligibility_thresholds)

    def test_malformed_year_raises(self, year_config):
        with pytest.raises(InputError):
            evaluate_eligibility(TEST_PROVIDER_ID, 1999, _facts(10, 5, 0), year_config.eligibility_thresholds)


class TestFailedCriteria:

    def test_formats_money_and_percent(self, year_config):
        failed = build_failed_criteria(60.0, 250, 50000.0, year_config.eligibility_thresholds)
        assert failed == [
            'Medicare volume 60.00% < 75.00%',
            'Allowed charges $50,000.00 < $90,000.00',
        ]


# ============================================================
# PERSISTENCE
# ============================================================

class TestPersistence:

    @pytest.mark.asyncio
    async def test_persist_upserts_record(self, mock_db_pool, mock_conn, year_config):
        record = evaluate_eligibility(
            TEST_PROVIDER_ID, TEST_YEAR, _facts(312, 250, 50000), year_config.eligibility_thresholds,
            tin='123456789', npi='1234567890',
        )

        with patch('mips_engine.services.eligibility.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)):
            await persist_eligibility(record)

        mock_conn.execute.assert_awaited_once()
        args = mock_conn.execute.call_args.args
        assert args[0] == UPSERT_ELIGIBILITY
        assert args[1:5] == (TEST_PROVIDER_ID, '123456789', '1234567890', TEST_YEAR)
        assert args[7] == 'eligible'
        assert args[9] is True
        assert len(args) == 18

    @pytest.mark.asyncio
    async def test_determine_fetches_facts_when_missing(self, mock_db_pool, mock_conn, year_config):
        facts = _facts(312, 250, 50000)

        with patch('mips_engine.services.eligibility.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)), \
             patch('mips_engine.services.eligibility.load_year_configuration',
                   new=AsyncMock(return_value=year_config)) as load_config, \
             patch('mips_engine.services.eligibility.fetch_volume_facts',
                   new=AsyncMock(return_value=facts)) as fetch_facts:
            record = await determine_eligibility(TEST_PROVIDER_ID, TEST_YEAR)

        load_config.assert_awaited_once_with(TEST_YEAR)
        fetch_facts.assert_awaited_once_with(TEST_PROVIDER_ID, TEST_YEAR)
        mock_conn.execute.assert_awaited_once()
        assert record.status == EligibilityStatus.ELIGIBLE

    @pytest.mark.asyncio
    async def test_determine_uses_supplied_facts(self, mock_db_pool, year_config):
        with patch('mips_engine.services.eligibility.get_db_pool',
                   new=AsyncMock(return_value=mock_db_pool)), \
             patch('mips_engine.services.eligibility.fetch_volume_facts',
                   new=AsyncMock()) as fetch_facts:
            record = await determine_eligibility(
                TEST_PROVIDER_ID, TEST_YEAR, volume_facts=_facts(500, 150, 40000), config=year_config,
            )

        fetch_facts.assert_not_awaited()
        assert record.status == EligibilityStatus.EXEMPT

    @pytest.mark.asyncio
    async def test_determine_rejects_missing_provider(self):
        with pytest.raises(InputError):
            await determine_eligibility('', TEST_YEAR)
