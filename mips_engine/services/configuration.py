"""
Year-Scoped Configuration Service

Loads category weights, the payment adjustment scale and eligibility thresholds
for a performance year from the mips_configuration table, falling back to the
documented defaults in Settings when rows are missing or invalid.

Fallback rules:
- A missing, unparseable or non-finite (inf, nan) key uses its default.
- Each group (weights, payment scale, eligibility thresholds) is validated as a
  whole after merging; an inconsistent group (e.g., weights that do not sum to
  1.0) reverts entirely to defaults.
- Every fallback is logged at WARNING and listed in
  YearConfiguration.defaults_applied so submissions can record it for audit.

Keys map to typed fields through CONFIG_FIELD_MAP; configuration values never
become part of SQL text.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import execute_query
from mips_engine.core.exceptions import ConfigurationError, validate_performance_year
from mips_engine.models.enums import ConfigKey
from mips_engine.models.schemas import (
    CategoryWeights,
    EligibilityThresholds,
    PaymentScale,
    YearConfiguration,
)
from mips_engine.sql import YEAR_CONFIGURATION_QUERY


logger = logging.getLogger(__name__)

# Allowed deviation of the weight sum from 1.0
WEIGHT_SUM_TOLERANCE: float = 0.001


# =============================================================================
# Key -> Field Mapping
# (group, field name, value type)
# =============================================================================

CONFIG_FIELD_MAP: Dict[ConfigKey, Tuple[str, str, type]] = {
    ConfigKey.QUALITY_CATEGORY_WEIGHT: ("weights", "quality", float),
    ConfigKey.PI_CATEGORY_WEIGHT: ("weights", "pi", float),
    ConfigKey.IA_CATEGORY_WEIGHT: ("weights", "ia", float),
    ConfigKey.COST_CATEGORY_WEIGHT: ("weights", "cost", float),
    ConfigKey.PERFORMANCE_THRESHOLD: ("payment_scale", "performance_threshold", float),
    ConfigKey.MAX_POSITIVE_ADJUSTMENT: ("payment_scale", "max_positive_adjustment", float),
    ConfigKey.MAX_NEGATIVE_ADJUSTMENT: ("payment_scale", "max_negative_adjustment", float),
    ConfigKey.MEDICARE_VOLUME_THRESHOLD: ("eligibility_thresholds", "medicare_volume_percent", float),
    ConfigKey.PATIENT_VOLUME_THRESHOLD: ("eligibility_thresholds", "patient_volume", int),
    ConfigKey.ALLOWED_CHARGES_THRESHOLD: ("eligibility_thresholds", "allowed_charges", float),
    ConfigKey.LOW_VOLUME_PATIENT_CEILING: ("eligibility_thresholds", "low_volume_patient_ceiling", int),
    ConfigKey.LOW_VOLUME_CHARGES_CEILING: ("eligibility_thresholds", "low_volume_charges_ceiling", float),
}

GROUP_MODELS = {
    "weights": CategoryWeights,
    "payment_scale": PaymentScale,
    "eligibility_thresholds": EligibilityThresholds,
}


def _default_values(settings: Settings) -> Dict[str, Dict[str, Any]]:
    """Documented defaults, grouped like YearConfiguration."""
    return {
        "weights": {
            "quality": settings.default_quality_weight,
            "pi": settings.default_pi_weight,
            "ia": settings.default_ia_weight,
            "cost": settings.default_cost_weight,
        },
        "payment_scale": {
            "performance_threshold": settings.default_performance_threshold,
            "max_positive_adjustment": settings.default_max_positive_adjustment,
            "max_negative_adjustment": settings.default_max_negative_adjustment,
        },
        "eligibility_thresholds": {
            "medicare_volume_percent": settings.default_medicare_volume_threshold,
            "patient_volume": settings.default_patient_volume_threshold,
            "allowed_charges": settings.default_allowed_charges_threshold,
            "low_volume_patient_ceiling": settings.default_low_volume_patient_ceiling,
            "low_volume_charges_ceiling": settings.default_low_volume_charges_ceiling,
        },
    }


def _group_keys(group: str) -> List[str]:
    return [key.value for key, (g, _, _) in CONFIG_FIELD_MAP.items() if g == group]


def _resolve_group(performance_year: int, group: str, values: Dict[str, Any]):
    """
    Build the typed model for one configuration group.

    Raises:
        ConfigurationError: If the merged values fail validation, or the
            weights do not sum to 1.0.
    """
    try:
        model = GROUP_MODELS[group](**values)
    except ValidationError as e:
        raise ConfigurationError(performance_year, _group_keys(group), detail=str(e.errors()[0]["msg"]))

    if group == "weights" and abs(model.total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ConfigurationError(
            performance_year,
            _group_keys(group),
            detail=f"weights sum to {model.total:.4f}, expected 1.0",
        )
    return model


def default_year_configuration(
    performance_year: int,
    settings: Optional[Settings] = None,
) -> YearConfiguration:
    """Year configuration built purely from defaults, with nothing flagged."""
    settings = settings or get_settings()
    defaults = _default_values(settings)
    return YearConfiguration(
        performance_year=performance_year,
        weights=CategoryWeights(**defaults["weights"]),
        payment_scale=PaymentScale(**defaults["payment_scale"]),
        eligibility_thresholds=EligibilityThresholds(**defaults["eligibility_thresholds"]),
    )


def build_year_configuration(
    performance_year: int,
    rows: Iterable[Mapping[str, Any]],
    settings: Optional[Settings] = None,
) -> YearConfiguration:
    """
    Merge mips_configuration rows over the defaults for a year.

    Args:
        performance_year: Year the rows belong to.
        rows: Records with config_key and config_value columns.
        settings: Settings supplying defaults (default: cached settings).

    Returns:
        YearConfiguration with defaults_applied listing every key that did
        not come from a valid configuration row.
    """
    settings = settings or get_settings()
    defaults = _default_values(settings)
    merged = {group: dict(values) for group, values in defaults.items()}

    provided: set = set()
    invalid: List[str] = []

    for row in rows:
        raw_key = row["config_key"]
        try:
            key = ConfigKey(raw_key)
        except ValueError:
            logger.debug(f"Ignoring unknown configuration key {raw_key!r} for {performance_year}")
            continue

        group, field_name, value_type = CONFIG_FIELD_MAP[key]
        raw_value = row["config_value"]
        try:
            number = float(raw_value)
            if not math.isfinite(number):
                raise ValueError(f"non-finite value {raw_value!r}")
            value = value_type(number)
        except (TypeError, ValueError):
            invalid.append(key.value)
            continue

        merged[group][field_name] = value
        provided.add(key.value)

    resolved = {}
    fallback_keys = {key.value for key in CONFIG_FIELD_MAP} - provided
    for group in GROUP_MODELS:
        try:
            resolved[group] = _resolve_group(performance_year, group, merged[group])
        except ConfigurationError as e:
            logger.warning(f"Configuration fallback: {e}; using defaults for {group}")
            resolved[group] = GROUP_MODELS[group](**defaults[group])
            fallback_keys.update(e.keys)

    defaults_applied = sorted(fallback_keys | set(invalid))
    if invalid:
        logger.warning(
            f"Unparseable configuration values for {performance_year}: {', '.join(sorted(invalid))}"
        )
    if defaults_applied:
        logger.warning(
            f"Year {performance_year} configuration used defaults for: {', '.join(defaults_applied)}"
        )

    return YearConfiguration(
        performance_year=performance_year,
        weights=resolved["weights"],
        payment_scale=resolved["payment_scale"],
        eligibility_thresholds=resolved["eligibility_thresholds"],
        defaults_applied=defaults_applied,
    )


async def load_year_configuration(
    performance_year: int,
    settings: Optional[Settings] = None,
) -> YearConfiguration:
    """
    Load the configuration for a performance year from the database.

    Raises:
        InputError: If performance_year is malformed.
    """
    validate_performance_year(performance_year)
    rows = await execute_query(YEAR_CONFIGURATION_QUERY, performance_year)
    return build_year_configuration(performance_year, rows, settings)
