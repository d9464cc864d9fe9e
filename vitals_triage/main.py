import requests
from fastapi import FastAPI, HTTPException

from vitals_triage.core.config import ConfigurationError, Settings
from vitals_triage.services.integration.fetcher import FetchError
from vitals_triage.services.integration.manager import run_assessment
from vitals_triage.api.schemas import AssessmentRequest, AssessmentResponse

app = FastAPI(
    title="Vitals Triage API",
    description="Fetches patient vitals, scores risk and buckets patients into high-risk, fever and data-quality sets.",
    version="1.0.0",
)


@app.post("/assessment", response_model=AssessmentResponse)
def assess(request: AssessmentRequest):
    """
    Run a full assessment against the patient API:
    - Fetch and de-duplicate every page
    - Score each patient under all variants and pick the calibrated one
    - Optionally submit the results
    """
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        result = run_assessment(
            settings,
            limit=request.limit,
            expected_count=request.expected_count,
            submit=request.submit,
        )
    except (FetchError, requests.RequestException) as e:
        raise HTTPException(status_code=502, detail=f"Patient API error: {str(e)}")

    return result.to_response()


# --- Health Check ---
@app.get("/health")
def health_check():
    return {"status": "active"}
