"""
Reference data - damage cost statistics and vehicle valuation sources.

Read-only lookups over the bundled reference database, shown next to
AI estimates so agents can sanity-check costs.
"""

import json
import logging
from pathlib import Path

from claims_review.config import (
    DAMAGE_KEYWORDS,
    REFERENCE_DATA_PATH,
    VALUE_RANGE_HIGH,
    VALUE_RANGE_LOW,
)
from claims_review.models import (
    CostRange,
    DamageTypeReference,
    ReferenceNotFoundError,
    StorageError,
    ValueDataSource,
    VehicleValuation,
)

logger = logging.getLogger(__name__)


# --- Global reference cache ---
# The file never changes at runtime; parse it once per container.

_reference_data: dict | None = None


# --- Public API ---

def find_damage_reference(damage_type: str) -> DamageTypeReference:
    """
    Best reference entry for a free-text damage type.

    Match order:
    1. Exact (case-insensitive)
    2. Either name contains the other
    3. Both mention the same component keyword (bumper, door, ...)

    Raises:
        ReferenceNotFoundError: If nothing matches.
        StorageError: If the reference file cannot be read.
    """
    wanted = damage_type.strip().lower()
    entries = [DamageTypeReference.model_validate(e) for e in _load_reference().get("damageTypes", [])]

    match = next((e for e in entries if e.type.lower() == wanted), None)

    if match is None and wanted:
        match = next((e for e in entries if _is_partial_match(wanted, e.type.lower())), None)

    if match is None:
        logger.warning("No reference data found for damage type: %r", damage_type)
        raise ReferenceNotFoundError(f"No reference data for damage type: {damage_type}")

    logger.debug("Reference data for %r matched to %r", damage_type, match.type)
    return match


def vehicle_valuation(make: str, model: str, year: int, vehicle_value: float) -> VehicleValuation:
    """
    Valuation summary for the policy's estimated vehicle value.

    Range is VALUE_RANGE_LOW..VALUE_RANGE_HIGH of the value. Every
    configured data source is reported against the same value.
    """
    sources = _load_reference().get("vehicleValuation", {}).get("dataSources", [])

    return VehicleValuation(
        make=make,
        model=model,
        year=year,
        average_value=vehicle_value,
        value_range=CostRange(
            min=round(vehicle_value * VALUE_RANGE_LOW),
            max=round(vehicle_value * VALUE_RANGE_HIGH),
        ),
        data_sources=[
            ValueDataSource(
                source=s["source"],
                record_count=s.get("recordCount") or "N/A",
                average_value=vehicle_value,
                notes=s.get("notes", ""),
            )
            for s in sources
        ],
    )


def clear_reference_cache() -> None:
    """Clears cached reference data. Used in testing only."""
    global _reference_data
    _reference_data = None


# --- Internal ---

def _load_reference() -> dict:
    global _reference_data

    if _reference_data is not None:
        return _reference_data

    try:
        data = json.loads(Path(REFERENCE_DATA_PATH).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise StorageError(f"Failed to load reference data from {REFERENCE_DATA_PATH}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("damageTypes"), list):
        raise StorageError("Invalid reference database structure")

    _reference_data = data
    return _reference_data


def _is_partial_match(wanted: str, candidate: str) -> bool:
    if wanted in candidate or candidate in wanted:
        return True
    return any(k in wanted and k in candidate for k in DAMAGE_KEYWORDS)
