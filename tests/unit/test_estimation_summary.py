"""
Unit tests for estimation value objects and oracle payload parsing.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from voicecraft_kernel.domain.estimation import (
    EstimateResult,
    ProjectSummary,
    WorkItemSummary,
)
from voicecraft_kernel.exceptions import EstimationFailedError
from voicecraft_kernel.services.estimation_gateway import parse_estimate_payload


def _summary(*durations):
    return ProjectSummary(
        project_id=uuid4(),
        name="Podcast season 2",
        description=None,
        priority="high",
        request_text="Remove background hum and level the voices.",
        work_items=tuple(
            WorkItemSummary(uuid4(), f"ep{i}.wav", d) for i, d in enumerate(durations, start=1)
        ),
    )


class TestProjectSummary:

    def test_total_duration_skips_unknown(self):
        summary = _summary(Decimal("90"), None, Decimal("30"))
        assert summary.total_duration_seconds == Decimal("120")
        assert summary.total_duration_minutes == Decimal("2.00")

    def test_prompt_lists_files_and_request(self):
        prompt = _summary(Decimal("90"), None).to_prompt()
        assert "Project: Podcast season 2" in prompt
        assert "Description: No description" in prompt
        assert "Priority: high" in prompt
        assert "Number of audio files: 2" in prompt
        assert "1. ep1.wav (90s)" in prompt
        assert "2. ep2.wav (unknown duration)" in prompt
        assert prompt.endswith("Remove background hum and level the voices.")


class TestEstimateResultPayload:

    def test_payload_is_json_safe(self):
        result = EstimateResult(
            cost=Decimal("42.50"),
            duration_hours=Decimal("3.5"),
            breakdown={"editing": Decimal("30.00"), "items": [Decimal("1.5")]},
            assumptions=("clean source",),
        )
        payload = result.to_payload()
        assert payload["cost"] == "42.50"
        assert payload["duration_hours"] == "3.5"
        assert payload["breakdown"] == {"editing": "30.00", "items": ["1.5"]}
        assert payload["assumptions"] == ["clean source"]

    def test_unknown_duration(self):
        assert EstimateResult(cost=Decimal("1")).to_payload()["duration_hours"] is None


class TestParseEstimatePayload:

    def test_full_payload(self):
        result = parse_estimate_payload(
            {
                "estimatedCost": Decimal("75.25"),
                "estimatedDuration": 6,
                "breakdown": {"mixing": "40"},
                "recommendations": ["use lossless masters", "normalize to -16 LUFS"],
            }
        )
        assert result.cost == Decimal("75.25")
        assert result.duration_hours == Decimal("6")
        assert result.breakdown == {"mixing": "40"}
        assert result.assumptions == ("use lossless masters", "normalize to -16 LUFS")
        assert result.raw["estimatedCost"] == Decimal("75.25")

    def test_assumptions_key_preferred(self):
        result = parse_estimate_payload(
            {"estimatedCost": "10", "assumptions": "one speaker", "recommendations": ["x"]}
        )
        assert result.assumptions == ("one speaker",)

    def test_bad_duration_dropped(self):
        result = parse_estimate_payload({"estimatedCost": "10", "estimatedDuration": "soon"})
        assert result.duration_hours is None

    def test_non_dict_breakdown_dropped(self):
        result = parse_estimate_payload({"estimatedCost": "10", "breakdown": "n/a"})
        assert result.breakdown == {}

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"estimatedCost": None},
            {"estimatedCost": 0},
            {"estimatedCost": "-5"},
            {"estimatedCost": "NaN"},
            {"estimatedCost": "lots"},
            {"estimatedCost": True},
        ],
    )
    def test_missing_or_non_positive_cost(self, payload):
        with pytest.raises(EstimationFailedError):
            parse_estimate_payload(payload)

    def test_non_object_rejected(self):
        with pytest.raises(EstimationFailedError):
            parse_estimate_payload(["estimatedCost", 10])
