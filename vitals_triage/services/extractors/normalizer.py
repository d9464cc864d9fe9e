"""
Tolerant Value Normalization for Patient Records

Patient records arrive as free-form JSON objects: the same field can sit
under several key names, numbers can be strings carrying units ("99.6°F",
"45 years"), and blood pressure can be an object or a "120/80" string
polluted with error markers.

This module converts those raw values into:
  - Optional[float] (finite number or None, never 0 for an empty string)
  - BloodPressure pairs
  - trimmed patient identifiers

Nothing here raises on malformed data; unusable values become None and are
classified downstream.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from vitals_triage.core.definitions import (
    AGE_KEYS,
    BLOOD_PRESSURE_KEYS,
    BP_SENTINELS,
    COLLECTION_KEYS,
    DIASTOLIC_KEYS,
    PATIENT_ID_KEYS,
    SYSTOLIC_KEYS,
    TEMPERATURE_KEYS,
    BloodPressure,
    PatientVitals,
)

_NON_NUMERIC = re.compile(r"[^\d.+\-]")
_BP_SENTINEL_RE = re.compile("|".join(re.escape(s) for s in BP_SENTINELS), re.IGNORECASE)


# ============================================================================
# Field lookup
# ============================================================================


@dataclass(frozen=True)
class FieldAccessor:
    """
    Reads one logical field from a record by trying alias keys in order.

    The first alias holding a non-null value wins.
    """

    name: str
    keys: Tuple[str, ...]

    def lookup(self, record: Any) -> Any:
        if not isinstance(record, Mapping):
            return None
        for key in self.keys:
            value = record.get(key)
            if value is not None:
                return value
        return None


PATIENT_ID = FieldAccessor("patient_id", PATIENT_ID_KEYS)
BLOOD_PRESSURE = FieldAccessor("blood_pressure", BLOOD_PRESSURE_KEYS)
TEMPERATURE = FieldAccessor("temperature", TEMPERATURE_KEYS)
AGE = FieldAccessor("age", AGE_KEYS)

SYSTOLIC = FieldAccessor("systolic", SYSTOLIC_KEYS)
DIASTOLIC = FieldAccessor("diastolic", DIASTOLIC_KEYS)


# ============================================================================
# Scalars
# ============================================================================


def normalize_number(raw: Any) -> Optional[float]:
    """
    Convert a raw field value to a finite number or None.

    - finite int/float values pass through unchanged (bools are rejected)
    - strings are trimmed; an empty string is None, not 0
    - otherwise every character except digits, '.', '+' and '-' is dropped
      and the remainder parsed
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        try:
            finite = math.isfinite(raw)
        except OverflowError:
            return None
        return raw if finite else None

    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None

        cleaned = _NON_NUMERIC.sub("", s)
        if not cleaned:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return None
        return value if math.isfinite(value) else None

    return None


def parse_blood_pressure(raw: Any) -> BloodPressure:
    """
    Parse blood pressure from an object or a "systolic/diastolic" string.

    A string containing an error marker (N/A, INVALID, TEMP_ERROR, ERROR),
    or one that does not split into exactly two parts on '/', is fully
    absent: both components are None.
    """
    if raw is None:
        return BloodPressure()

    if isinstance(raw, Mapping):
        return BloodPressure(
            systolic=normalize_number(SYSTOLIC.lookup(raw)),
            diastolic=normalize_number(DIASTOLIC.lookup(raw)),
        )

    if isinstance(raw, str):
        s = raw.strip()
        if not s or _BP_SENTINEL_RE.search(s):
            return BloodPressure()

        parts = s.split("/")
        if len(parts) != 2:
            return BloodPressure()

        return BloodPressure(
            systolic=normalize_number(parts[0]),
            diastolic=normalize_number(parts[1]),
        )

    return BloodPressure()


def extract_patient_id(record: Any) -> Optional[str]:
    """Return the trimmed identifier, or None when missing, blank or boolean."""
    raw = PATIENT_ID.lookup(record)
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    pid = str(raw).strip()
    return pid or None


def normalize_patient(record: Any) -> Optional[PatientVitals]:
    """Normalize one raw record; None if it has no usable identifier."""
    pid = extract_patient_id(record)
    if pid is None:
        return None
    return PatientVitals(
        patient_id=pid,
        blood_pressure=parse_blood_pressure(BLOOD_PRESSURE.lookup(record)),
        temperature=normalize_number(TEMPERATURE.lookup(record)),
        age=normalize_number(AGE.lookup(record)),
    )


# ============================================================================
# Payloads
# ============================================================================


def extract_patients(payload: Any) -> List[Dict[str, Any]]:
    """
    Locate the patient collection in a page payload.

    Accepts an array root, an array under data/patients/results/items, or
    a nested data.data array. Anything else yields an empty list.
    """
    if not payload:
        return []
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return []

    for key in COLLECTION_KEYS:
        if isinstance(payload.get(key), list):
            return payload[key]

    nested = payload.get("data")
    if isinstance(nested, Mapping) and isinstance(nested.get("data"), list):
        return nested["data"]

    return []
