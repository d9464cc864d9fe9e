"""
Composite Risk Scoring and Variant Calibration

The composite score adds three contributions:

  - Blood pressure: base (normal), base+1 (elevated), base+2 (stage 1),
    base+3 (stage 2), 0 (invalid)
  - Temperature:    0 (normal), 1 (low-grade), 2 (high), 0 (invalid)
  - Age:            base (<40), 1 (40-65), 2 (>65), 0 (invalid)

The two baselines are not fixed. A small set of ScoringVariant
configurations is scored over the whole patient set and the variant whose
high-risk count matches a known expected count is selected; if none
matches, the nearest count wins (first variant on ties).

This is calibration against one ground-truth number, not a validated
clinical formula. Variants and the selection rule are both injectable so
either can change without touching the score itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from vitals_triage.core.definitions import (
    DEFAULT_VARIANTS,
    HIGH_RISK_THRESHOLD,
    PatientStages,
    ScoringVariant,
)

logger = logging.getLogger(__name__)

_BP_OFFSETS: Dict[str, int] = {"normal": 0, "elevated": 1, "stage1": 2, "stage2": 3}
_TEMP_POINTS: Dict[str, int] = {"normal": 0, "low": 1, "high": 2, "invalid": 0}


def bp_points(stage: str, variant: ScoringVariant) -> int:
    if stage not in _BP_OFFSETS:
        return 0
    return variant.bp_normal_base + _BP_OFFSETS[stage]


def temperature_points(stage: str) -> int:
    return _TEMP_POINTS.get(stage, 0)


def age_points(stage: str, variant: ScoringVariant) -> int:
    if stage == "o65":
        return 2
    if stage == "40to65":
        return 1
    if stage == "u40":
        return variant.age_under_40_base
    return 0


def score(stages: PatientStages, variant: ScoringVariant) -> int:
    """Composite integer risk score for one patient under one variant."""
    return (
        bp_points(stages.bp, variant)
        + temperature_points(stages.temperature)
        + age_points(stages.age, variant)
    )


# ============================================================================
# Variant evaluation
# ============================================================================


@dataclass
class VariantResult:
    variant: ScoringVariant
    ids: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.ids)

    @property
    def name(self) -> str:
        return self.variant.name


@dataclass
class VariantSelection:
    chosen: VariantResult
    results: List[VariantResult]
    expected_count: int

    @property
    def exact_match(self) -> bool:
        return self.chosen.count == self.expected_count


SelectionRule = Callable[[Sequence[VariantResult], int], VariantResult]


def evaluate_variants(
    patients: Iterable[Tuple[str, PatientStages]],
    variants: Sequence[ScoringVariant] = DEFAULT_VARIANTS,
    threshold: int = HIGH_RISK_THRESHOLD,
) -> List[VariantResult]:
    """
    Score every (patient_id, stages) pair under every variant.

    Each result holds the sorted, de-duplicated ids scoring at or above
    the threshold.
    """
    hits: List[set] = [set() for _ in variants]
    for pid, stages in patients:
        for i, variant in enumerate(variants):
            if score(stages, variant) >= threshold:
                hits[i].add(pid)

    return [VariantResult(variant=v, ids=sorted(h)) for v, h in zip(variants, hits)]


def exact_or_nearest(results: Sequence[VariantResult], expected: int) -> VariantResult:
    """First exact count match, else smallest |count - expected|, first seen on ties."""
    if not results:
        raise ValueError("No variant results to select from")

    for r in results:
        if r.count == expected:
            return r

    best = results[0]
    best_dist = abs(best.count - expected)
    for r in results[1:]:
        dist = abs(r.count - expected)
        if dist < best_dist:
            best, best_dist = r, dist
    return best


def select_variant(
    results: Sequence[VariantResult],
    expected_count: int,
    rule: SelectionRule = exact_or_nearest,
) -> VariantSelection:
    for r in results:
        logger.info("Variant %s: %d high-risk candidates", r.name, r.count)

    chosen = rule(results, expected_count)
    selection = VariantSelection(
        chosen=chosen, results=list(results), expected_count=expected_count
    )
    if not selection.exact_match:
        logger.warning(
            "No variant hit the expected count %d; using closest %s (count=%d)",
            expected_count,
            chosen.name,
            chosen.count,
        )
    return selection


def variant_summary_frame(selection: VariantSelection) -> pd.DataFrame:
    """Tabulate per-variant counts for operator reporting."""
    rows = [
        {
            "variant": r.name,
            "bp_normal_base": r.variant.bp_normal_base,
            "age_under_40_base": r.variant.age_under_40_base,
            "count": r.count,
            "distance": abs(r.count - selection.expected_count),
            "selected": r is selection.chosen,
        }
        for r in selection.results
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "variant",
            "bp_normal_base",
            "age_under_40_base",
            "count",
            "distance",
            "selected",
        ],
    )
