"""
Patient Vitals Data Models for Risk Triage

This module defines the immutable data models shared by the normalizer,
stage classifier and scoring engine:

1. Normalized vitals (blood pressure pair, temperature, age)
2. Per-dimension clinical stage labels
3. Scoring variants (baseline toggles for the composite risk score)
4. Field alias tables used to read free-form patient records
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Literal, Tuple


# ============================================================================
# Stage labels
# ============================================================================

BpStage = Literal["normal", "elevated", "stage1", "stage2", "invalid"]
TempStage = Literal["normal", "low", "high", "invalid"]
AgeStage = Literal["u40", "40to65", "o65", "invalid"]

INVALID = "invalid"


# ============================================================================
# Clinical thresholds
# ============================================================================

# Blood pressure (mmHg)
BP_STAGE2_SYSTOLIC = 140
BP_STAGE2_DIASTOLIC = 90
BP_STAGE1_SYSTOLIC = 130
BP_STAGE1_DIASTOLIC = 80
BP_ELEVATED_SYSTOLIC_MIN = 120
BP_ELEVATED_SYSTOLIC_MAX = 129

# Temperature (°F)
TEMP_HIGH = 101.0
TEMP_LOW_MIN = 99.6
TEMP_LOW_MAX = 100.9
FEVER_THRESHOLD = 99.6

# Age (years)
AGE_SENIOR_ABOVE = 65
AGE_MIDDLE_MIN = 40

# Composite score at or above which a patient is high-risk
HIGH_RISK_THRESHOLD = 4


# ============================================================================
# Field aliases (source-preference order)
# ============================================================================

PATIENT_ID_KEYS: Tuple[str, ...] = ("patient_id", "patientId", "id")
BLOOD_PRESSURE_KEYS: Tuple[str, ...] = ("blood_pressure", "bloodPressure", "bp")
TEMPERATURE_KEYS: Tuple[str, ...] = ("temperature", "temp", "body_temperature")
AGE_KEYS: Tuple[str, ...] = ("age",)

SYSTOLIC_KEYS: Tuple[str, ...] = ("systolic", "sys", "Systolic")
DIASTOLIC_KEYS: Tuple[str, ...] = ("diastolic", "dia", "Diastolic")

# Payload keys that may hold the patient collection, checked in order
COLLECTION_KEYS: Tuple[str, ...] = ("data", "patients", "results", "items")

# Case-insensitive markers that make a blood pressure string unusable
BP_SENTINELS: Tuple[str, ...] = ("N/A", "INVALID", "TEMP_ERROR", "ERROR")


# ============================================================================
# Normalized values
# ============================================================================


@dataclass(frozen=True)
class BloodPressure:
    """Immutable blood pressure reading. Either component may be absent."""

    systolic: Optional[float] = None
    diastolic: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return self.systolic is not None and self.diastolic is not None


@dataclass(frozen=True)
class PatientVitals:
    """
    Normalized core fields for one patient.

    Every numeric field is either a finite number or None, never NaN or
    infinity.
    """

    patient_id: str
    blood_pressure: BloodPressure
    temperature: Optional[float] = None
    age: Optional[float] = None


@dataclass(frozen=True)
class PatientStages:
    """Exactly one stage label per clinical dimension."""

    bp: BpStage
    temperature: TempStage
    age: AgeStage

    @property
    def has_invalid(self) -> bool:
        return INVALID in (self.bp, self.temperature, self.age)


# ============================================================================
# Scoring variants
# ============================================================================


@dataclass(frozen=True)
class ScoringVariant:
    """
    One configuration of the composite score baselines.

    bp_normal_base: points for a normal blood pressure (0 or 1)
    age_under_40_base: points for age under 40 (0 or 1)
    """

    name: str
    bp_normal_base: int
    age_under_40_base: int


def build_variants(toggles: Tuple[int, ...] = (1, 0)) -> List[ScoringVariant]:
    """
    Enumerate the cross product of both baseline toggles.

    The blood pressure toggle varies slowest, so with the default toggle
    order (1, 0) the variants come out as V1 (1,1), V2 (1,0), V3 (0,1),
    V4 (0,0).
    """
    variants: List[ScoringVariant] = []
    for bp_base in toggles:
        for age_base in toggles:
            index = len(variants) + 1
            variants.append(
                ScoringVariant(
                    name=f"V{index} (BP normal={bp_base}, age<40={age_base})",
                    bp_normal_base=bp_base,
                    age_under_40_base=age_base,
                )
            )
    return variants


DEFAULT_VARIANTS: Tuple[ScoringVariant, ...] = tuple(build_variants())
