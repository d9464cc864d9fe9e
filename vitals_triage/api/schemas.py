from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional


def _sorted_unique(ids: List[str]) -> List[str]:
    return sorted(set(ids))


# --- Submission ---


class SubmissionPayload(BaseModel):
    """Body POSTed to the submission endpoint. Every list is sorted and unique."""

    high_risk_patients: List[str] = Field(default_factory=list)
    fever_patients: List[str] = Field(default_factory=list)
    data_quality_issues: List[str] = Field(default_factory=list)

    @field_validator(
        "high_risk_patients", "fever_patients", "data_quality_issues", mode="after"
    )
    @classmethod
    def _normalize_ids(cls, value: List[str]) -> List[str]:
        return _sorted_unique(value)


# --- Request Model ---


class AssessmentRequest(BaseModel):
    limit: int = Field(20, ge=1, le=20, description="Page size for the patient API")
    submit: bool = Field(False, description="POST the results after computing them")
    expected_count: Optional[int] = Field(
        None, ge=0, description="Overrides the configured expected high-risk count"
    )


# --- Response Components ---


class VariantSummary(BaseModel):
    name: str
    bp_normal_base: int
    age_under_40_base: int
    count: int


class AssessmentResponse(BaseModel):
    total_patients: int
    expected_count: int
    variants: List[VariantSummary]
    selected_variant: str
    exact_match: bool
    results: SubmissionPayload
    submission_response: Optional[Any] = None
