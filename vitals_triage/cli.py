"""
Command-line entry point.

Usage:
    vitals-triage
    vitals-triage --submit
    vitals-triage --limit 10 --expected-count 20

Requires DEMOMED_API_KEY in the environment.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import requests

from vitals_triage.core.config import ConfigurationError, Settings, clamp_page_limit
from vitals_triage.services.calculators.scoring import variant_summary_frame
from vitals_triage.services.integration.fetcher import FetchError
from vitals_triage.services.integration.manager import AssessmentResult, run_assessment


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vitals-triage",
        description="Fetch patients, compute risk buckets and optionally submit them.",
    )
    parser.add_argument("--submit", action="store_true", help="POST the results")
    parser.add_argument("--limit", type=int, default=None, help="Page size (1-20)")
    parser.add_argument(
        "--expected-count",
        type=int,
        default=None,
        help="Known high-risk count used to pick the scoring variant",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def print_report(result: AssessmentResult, submitted: bool) -> None:
    selection = result.selection
    payload = result.to_payload()

    print(f"Total patients fetched: {result.total_patients}")
    print("\nHigh-risk variants (count):")
    print(variant_summary_frame(selection).to_string(index=False))

    print(
        f"\nSelected high-risk variant: {selection.chosen.name} "
        f"(count={selection.chosen.count})"
    )
    if not selection.exact_match:
        print(
            f"WARNING: No variant hit {selection.expected_count}. "
            "Picked the closest one."
        )

    print(f"\nFever (>=99.6): {len(payload.fever_patients)}")
    print(f"Data quality issues: {len(payload.data_quality_issues)}")
    print("\n--- RESULT JSON ---\n")
    print(json.dumps(payload.model_dump(), indent=2))

    if not submitted:
        print("\n(Not submitted. Run with --submit to POST results.)")
        return

    print("\n--- SUBMISSION RESPONSE ---\n")
    print(json.dumps(result.submission_response, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 1

    limit = clamp_page_limit(args.limit) if args.limit is not None else None

    try:
        result = run_assessment(
            settings,
            limit=limit,
            expected_count=args.expected_count,
            submit=args.submit,
        )
    except (FetchError, requests.RequestException) as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return 1

    print_report(result, submitted=args.submit)
    return 0


if __name__ == "__main__":
    sys.exit(main())
