"""
Eligibility Evaluator Service

Classifies a provider's participation status for a performance year from three
volume aggregates: the Medicare share of patients, the Medicare patient count,
and Medicare allowed charges.

Decision Rules:
- eligible: volume% >= T1 AND (patients >= T2 OR allowed charges >= T3)
- exempt: not eligible AND patients <= patient ceiling AND charges <= charges ceiling
- not_eligible: otherwise; the reason lists every failed sub-threshold with its
  numeric comparison

Undeterminable input is an outcome, not an exception:
- total_patients == 0: not_eligible, "Eligibility cannot be determined, missing ..."
- program_patients > total_patients: not_eligible with input_valid = False, so a
  volume percent above 100 is never produced

Thresholds come from the year's configuration, never from constants here.
"""

import logging
from typing import Dict, List, Optional

from mips_engine.core.database import get_db_pool
from mips_engine.core.exceptions import validate_identifiers
from mips_engine.models.enums import EligibilityStatus
from mips_engine.models.schemas import (
    EligibilityRecord,
    EligibilityThresholds,
    SpecialtyInfo,
    VolumeFacts,
    YearConfiguration,
)
from mips_engine.services.configuration import load_year_configuration
from mips_engine.services.performance_facts import fetch_volume_facts
from mips_engine.sql import UPSERT_ELIGIBILITY


logger = logging.getLogger(__name__)


# =============================================================================
# Specialty Mapping
# CMS specialty codes for the specialties the practice supports
# =============================================================================

SPECIALTY_MAP: Dict[str, SpecialtyInfo] = {
    "family_medicine": SpecialtyInfo(code="08", name="Family Medicine"),
    "internal_medicine": SpecialtyInfo(code="11", name="Internal Medicine"),
    "cardiology": SpecialtyInfo(code="06", name="Cardiology"),
    "dermatology": SpecialtyInfo(code="07", name="Dermatology"),
    "emergency_medicine": SpecialtyInfo(code="93", name="Emergency Medicine"),
    "orthopedic_surgery": SpecialtyInfo(code="20", name="Orthopedic Surgery"),
    "pediatrics": SpecialtyInfo(code="37", name="Pediatrics"),
    "psychiatry": SpecialtyInfo(code="26", name="Psychiatry"),
    "radiology": SpecialtyInfo(code="30", name="Radiology"),
    "anesthesiology": SpecialtyInfo(code="05", name="Anesthesiology"),
}

UNKNOWN_SPECIALTY_CODE = "99"

ELIGIBLE_REQUIREMENTS: List[str] = [
    "Report on at least 6 quality measures (including 1 outcome measure if available)",
    "Attest to required Promoting Interoperability measures",
    "Complete Improvement Activities (40 points minimum)",
    "Cost category is automatically calculated by CMS",
]

ELIGIBLE_NEXT_STEPS: List[str] = [
    "Select appropriate quality measures for your specialty",
    "Ensure EHR is certified for PI reporting",
    "Plan Improvement Activities for 90-day periods",
    "Monitor data collection throughout performance year",
]

EXEMPT_NEXT_STEPS: List[str] = [
    "No MIPS reporting required due to low volume",
    "Consider voluntary participation for bonus points",
    "Monitor volume growth for future years",
]

NOT_ELIGIBLE_NEXT_STEPS: List[str] = [
    "Increase Medicare patient volume to meet thresholds",
    "Consider group reporting if individual reporting not feasible",
    "Monitor quarterly metrics to track progress",
]

UNDETERMINED_NEXT_STEPS: List[str] = [
    "Verify completed encounters are recorded for the performance year",
    "Re-run the eligibility check once encounter data is reconciled",
]


def get_specialty_info(specialty: Optional[str]) -> SpecialtyInfo:
    """
    Map a specialty slug to its CMS code and display name.

    Unknown specialties keep their own name under code '99'; a missing
    specialty is reported as General Practice.
    """
    if specialty and specialty in SPECIALTY_MAP:
        return SPECIALTY_MAP[specialty]
    return SpecialtyInfo(code=UNKNOWN_SPECIALTY_CODE, name=specialty or "General Practice")


def calculate_volume_percent(volume_facts: VolumeFacts) -> float:
    """
    Medicare share of patients as a percentage, rounded to 2 decimals.

    Returns 0.0 when there are no patients. Callers must reject facts where
    program patients exceed total patients before relying on this value.
    """
    if volume_facts.total_patients == 0:
        return 0.0
    percent = volume_facts.program_patients / volume_facts.total_patients * 100
    return round(percent, 2)


def _format_money(amount: float) -> str:
    return f"${amount:,.2f}"


def build_failed_criteria(
    volume_percent: float,
    patient_volume: int,
    allowed_charges: float,
    thresholds: EligibilityThresholds,
) -> List[str]:
    """List each failed sub-threshold rendered with its numeric comparison."""
    failed: List[str] = []
    if volume_percent < thresholds.medicare_volume_percent:
        failed.append(
            f"Medicare volume {volume_percent:.2f}% < {thresholds.medicare_volume_percent:.2f}%"
        )
    if patient_volume < thresholds.patient_volume:
        failed.append(f"Patient volume {patient_volume} < {thresholds.patient_volume}")
    if allowed_charges < thresholds.allowed_charges:
        failed.append(
            f"Allowed charges {_format_money(allowed_charges)} < {_format_money(thresholds.allowed_charges)}"
        )
    return failed


def evaluate_eligibility(
    provider_id: str,
    performance_year: int,
    volume_facts: VolumeFacts,
    thresholds: EligibilityThresholds,
    specialty: Optional[str] = None,
    tin: Optional[str] = None,
    npi: Optional[str] = None,
) -> EligibilityRecord:
    """
    Classify eligibility from already-fetched volume facts.

    Pure and deterministic: no I/O, no exceptions for expected outcomes.

    Args:
        provider_id: Provider identifier.
        performance_year: Program year.
        volume_facts: Total patients, program patients, program allowed charges.
        thresholds: Year-scoped thresholds and low-volume ceilings.
        specialty: Specialty slug for code/name mapping.
        tin: Taxpayer identification number, stored as given.
        npi: National provider identifier, stored as given.

    Returns:
        EligibilityRecord with status, reason and the metrics used.
    """
    validate_identifiers(provider_id, performance_year)

    specialty_info = get_specialty_info(specialty)
    patient_volume = volume_facts.program_patients
    allowed_charges = volume_facts.program_allowed_charges

    record_fields = dict(
        provider_id=provider_id,
        performance_year=performance_year,
        tin=tin,
        npi=npi,
        specialty_code=specialty_info.code,
        specialty_name=specialty_info.name,
        patient_volume=patient_volume,
        allowed_charges=allowed_charges,
        thresholds=thresholds,
    )

    # Undeterminable input
    if volume_facts.total_patients == 0:
        return EligibilityRecord(
            status=EligibilityStatus.NOT_ELIGIBLE,
            reason=(
                "Eligibility cannot be determined, missing encounter volume: "
                f"no completed encounters recorded for {performance_year}"
            ),
            medicare_volume_percent=0.0,
            input_valid=False,
            next_steps=list(UNDETERMINED_NEXT_STEPS),
            **record_fields,
        )

    if volume_facts.program_patients > volume_facts.total_patients:
        return EligibilityRecord(
            status=EligibilityStatus.NOT_ELIGIBLE,
            reason=(
                "Eligibility cannot be determined, invalid volume data: "
                f"program patients {volume_facts.program_patients} exceed "
                f"total patients {volume_facts.total_patients}"
            ),
            medicare_volume_percent=0.0,
            input_valid=False,
            next_steps=list(UNDETERMINED_NEXT_STEPS),
            **record_fields,
        )

    volume_percent = calculate_volume_percent(volume_facts)
    meets_volume = volume_percent >= thresholds.medicare_volume_percent
    meets_patients = patient_volume >= thresholds.patient_volume
    meets_charges = allowed_charges >= thresholds.allowed_charges

    if meets_volume and (meets_patients or meets_charges):
        return EligibilityRecord(
            status=EligibilityStatus.ELIGIBLE,
            reason="Provider meets MIPS volume and patient/charges thresholds",
            medicare_volume_percent=volume_percent,
            requirements=list(ELIGIBLE_REQUIREMENTS),
            next_steps=list(ELIGIBLE_NEXT_STEPS),
            **record_fields,
        )

    if (
        patient_volume <= thresholds.low_volume_patient_ceiling
        and allowed_charges <= thresholds.low_volume_charges_ceiling
    ):
        return EligibilityRecord(
            status=EligibilityStatus.EXEMPT,
            reason=(
                "Provider qualifies for low-volume threshold exemption: "
                f"patient volume {patient_volume} <= {thresholds.low_volume_patient_ceiling}, "
                f"allowed charges {_format_money(allowed_charges)} <= "
                f"{_format_money(thresholds.low_volume_charges_ceiling)}"
            ),
            medicare_volume_percent=volume_percent,
            next_steps=list(EXEMPT_NEXT_STEPS),
            **record_fields,
        )

    failed = build_failed_criteria(volume_percent, patient_volume, allowed_charges, thresholds)
    return EligibilityRecord(
        status=EligibilityStatus.NOT_ELIGIBLE,
        reason=f"Provider does not meet MIPS thresholds: {', '.join(failed)}",
        medicare_volume_percent=volume_percent,
        next_steps=list(NOT_ELIGIBLE_NEXT_STEPS),
        **record_fields,
    )


async def persist_eligibility(record: EligibilityRecord) -> None:
    """Upsert the eligibility record keyed by (provider_id, performance_year)."""
    pool = await get_db_pool()
    thresholds = record.thresholds

    async with pool.acquire() as conn:
        await conn.execute(
            UPSERT_ELIGIBILITY,
            record.provider_id,
            record.tin,
            record.npi,
            record.performance_year,
            record.specialty_code,
            record.specialty_name,
            record.status.value,
            record.reason,
            record.input_valid,
            record.medicare_volume_percent,
            record.patient_volume,
            record.allowed_charges,
            thresholds.medicare_volume_percent,
            thresholds.patient_volume,
            thresholds.allowed_charges,
            thresholds.low_volume_patient_ceiling,
            thresholds.low_volume_charges_ceiling,
        )


async def determine_eligibility(
    provider_id: str,
    performance_year: int,
    volume_facts: Optional[VolumeFacts] = None,
    specialty: Optional[str] = None,
    tin: Optional[str] = None,
    npi: Optional[str] = None,
    config: Optional[YearConfiguration] = None,
) -> EligibilityRecord:
    """
    Evaluate and persist eligibility for a provider/year.

    Volume facts are aggregated from completed encounters when not supplied;
    thresholds come from the year configuration.

    Raises:
        InputError: If the provider id or year is malformed.
    """
    validate_identifiers(provider_id, performance_year)

    if config is None:
        config = await load_year_configuration(performance_year)
    if volume_facts is None:
        volume_facts = await fetch_volume_facts(provider_id, performance_year)

    record = evaluate_eligibility(
        provider_id,
        performance_year,
        volume_facts,
        config.eligibility_thresholds,
        specialty=specialty,
        tin=tin,
        npi=npi,
    )
    await persist_eligibility(record)

    logger.info(
        f"Eligibility for provider={provider_id} year={performance_year}: "
        f"{record.status.value} ({record.reason})"
    )
    return record
