"""
Clinical stage classification for blood pressure, temperature and age.

Each classifier maps a normalized value to one label of a closed set and
returns "invalid" when the value is absent or outside every defined range.
"""

from __future__ import annotations

import math
from typing import Optional

from vitals_triage.core.definitions import (
    AGE_MIDDLE_MIN,
    AGE_SENIOR_ABOVE,
    BP_ELEVATED_SYSTOLIC_MAX,
    BP_ELEVATED_SYSTOLIC_MIN,
    BP_STAGE1_DIASTOLIC,
    BP_STAGE1_SYSTOLIC,
    BP_STAGE2_DIASTOLIC,
    BP_STAGE2_SYSTOLIC,
    TEMP_HIGH,
    TEMP_LOW_MAX,
    TEMP_LOW_MIN,
    AgeStage,
    BloodPressure,
    BpStage,
    PatientStages,
    PatientVitals,
    TempStage,
)


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def bp_stage(bp: BloodPressure) -> BpStage:
    """
    Stage 2: SBP >= 140 or DBP >= 90
    Stage 1: SBP >= 130 or DBP >= 80
    Elevated: SBP 120-129 and DBP < 80
    Normal: SBP < 120 and DBP < 80

    Anything else is invalid, e.g. a fractional systolic in (129, 130)
    with DBP < 80. The gap is kept as invalid rather than folded into
    Stage 1 or Elevated.
    """
    sys_, dia = bp.systolic, bp.diastolic
    if not (_finite(sys_) and _finite(dia)):
        return "invalid"

    if sys_ >= BP_STAGE2_SYSTOLIC or dia >= BP_STAGE2_DIASTOLIC:
        return "stage2"
    if sys_ >= BP_STAGE1_SYSTOLIC or dia >= BP_STAGE1_DIASTOLIC:
        return "stage1"
    if BP_ELEVATED_SYSTOLIC_MIN <= sys_ <= BP_ELEVATED_SYSTOLIC_MAX and dia < BP_STAGE1_DIASTOLIC:
        return "elevated"
    if sys_ < BP_ELEVATED_SYSTOLIC_MIN and dia < BP_STAGE1_DIASTOLIC:
        return "normal"
    return "invalid"


def temperature_stage(temp: Optional[float]) -> TempStage:
    # (100.9, 101.0) falls through to normal
    if not _finite(temp):
        return "invalid"
    if temp >= TEMP_HIGH:
        return "high"
    if TEMP_LOW_MIN <= temp <= TEMP_LOW_MAX:
        return "low"
    return "normal"


def age_stage(age: Optional[float]) -> AgeStage:
    if not _finite(age):
        return "invalid"
    if age > AGE_SENIOR_ABOVE:
        return "o65"
    if age >= AGE_MIDDLE_MIN:
        return "40to65"
    if age >= 0:
        return "u40"
    return "invalid"


def classify_patient(vitals: PatientVitals) -> PatientStages:
    return PatientStages(
        bp=bp_stage(vitals.blood_pressure),
        temperature=temperature_stage(vitals.temperature),
        age=age_stage(vitals.age),
    )
