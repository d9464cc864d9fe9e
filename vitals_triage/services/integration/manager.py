from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from vitals_triage.api.schemas import (
    AssessmentResponse,
    SubmissionPayload,
    VariantSummary,
)
from vitals_triage.core.config import Settings
from vitals_triage.core.definitions import (
    DEFAULT_VARIANTS,
    FEVER_THRESHOLD,
    PatientStages,
    ScoringVariant,
)
from vitals_triage.services.calculators.scoring import (
    SelectionRule,
    VariantSelection,
    evaluate_variants,
    exact_or_nearest,
    select_variant,
)
from vitals_triage.services.calculators.stages import classify_patient
from vitals_triage.services.extractors.normalizer import normalize_patient
from vitals_triage.services.integration.fetcher import ResilientFetcher
from vitals_triage.services.integration.paginator import fetch_all_patients

logger = logging.getLogger(__name__)

# ============================================================================
# Assessment Data Structures
# ============================================================================


@dataclass
class AssessmentResult:
    """Outcome of one assessment pass over the fetched patients."""

    total_patients: int
    selection: VariantSelection
    fever_patients: List[str] = field(default_factory=list)
    data_quality_issues: List[str] = field(default_factory=list)
    submission_response: Optional[Any] = None

    @property
    def high_risk_patients(self) -> List[str]:
        return self.selection.chosen.ids

    def to_payload(self) -> SubmissionPayload:
        return SubmissionPayload(
            high_risk_patients=self.high_risk_patients,
            fever_patients=self.fever_patients,
            data_quality_issues=self.data_quality_issues,
        )

    def to_response(self) -> AssessmentResponse:
        return AssessmentResponse(
            total_patients=self.total_patients,
            expected_count=self.selection.expected_count,
            variants=[
                VariantSummary(
                    name=r.name,
                    bp_normal_base=r.variant.bp_normal_base,
                    age_under_40_base=r.variant.age_under_40_base,
                    count=r.count,
                )
                for r in self.selection.results
            ],
            selected_variant=self.selection.chosen.name,
            exact_match=self.selection.exact_match,
            results=self.to_payload(),
            submission_response=self.submission_response,
        )


# ============================================================================
# Pipeline
# ============================================================================


def assess_patients(
    records: Iterable[Dict[str, Any]],
    expected_count: int,
    variants: Sequence[ScoringVariant] = DEFAULT_VARIANTS,
    rule: SelectionRule = exact_or_nearest,
) -> AssessmentResult:
    """
    Classify every record once and derive the three result sets.

    - fever: finite temperature >= 99.6
    - data quality: any dimension classified invalid
    - high risk: ids of the variant chosen by ``rule``

    Records without an identifier are skipped. A repeated identifier keeps
    the last record seen.
    """
    stages_by_id: Dict[str, PatientStages] = {}
    temperature_by_id: Dict[str, Optional[float]] = {}

    for record in records:
        vitals = normalize_patient(record)
        if vitals is None:
            continue
        stages_by_id[vitals.patient_id] = classify_patient(vitals)
        temperature_by_id[vitals.patient_id] = vitals.temperature

    fever = sorted(
        pid
        for pid, temp in temperature_by_id.items()
        if temp is not None and temp >= FEVER_THRESHOLD
    )
    data_quality = sorted(
        pid for pid, stages in stages_by_id.items() if stages.has_invalid
    )

    results = evaluate_variants(stages_by_id.items(), variants)
    selection = select_variant(results, expected_count, rule=rule)

    return AssessmentResult(
        total_patients=len(stages_by_id),
        selection=selection,
        fever_patients=fever,
        data_quality_issues=data_quality,
    )


def submit_results(
    fetcher: ResilientFetcher, url: str, payload: SubmissionPayload
) -> Any:
    return fetcher.fetch(
        url,
        method="POST",
        json_body=payload.model_dump(),
        headers={"Content-Type": "application/json"},
    )


def run_assessment(
    settings: Settings,
    limit: Optional[int] = None,
    expected_count: Optional[int] = None,
    submit: bool = False,
    fetcher: Optional[ResilientFetcher] = None,
) -> AssessmentResult:
    """
    Fetch all patients, assess them and optionally submit the results.

    A fetcher built here is closed before returning; an injected one is
    left open for the caller.
    """
    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = ResilientFetcher(settings.api_key, timeout=settings.timeout_s)

    try:
        patients = fetch_all_patients(
            fetcher,
            settings.patients_url,
            limit=limit if limit is not None else settings.page_limit,
        )
        logger.info("Fetched %d unique patients", len(patients))

        result = assess_patients(
            patients,
            expected_count=(
                expected_count
                if expected_count is not None
                else settings.expected_high_risk
            ),
        )

        if submit:
            result.submission_response = submit_results(
                fetcher, settings.submit_url, result.to_payload()
            )
        return result
    finally:
        if owns_fetcher:
            fetcher.close()
