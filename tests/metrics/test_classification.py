"""Tests for classification aggregation."""

from __future__ import annotations

from typing import Any

import pytest

from dashvault.metrics import classification_rate, extract_environment, percentage, summarize_bugs
from dashvault.services.tracker import WorkItem


class TestExtractEnvironment:
    """Tests for extract_environment."""

    @pytest.mark.parametrize(
        ("bug_type", "expected"),
        [
            ("Production Issue", "Prod"),
            ("prod", "Prod"),
            ("SIT defect", "SIT"),
            ("UAT", "UAT"),
            ("Deployment", "Deploy"),
            ("Pre-deploy check", "Deploy"),
            ("Cosmetic", "Other"),
            ("Position", "Other"),
            (None, "Unclassified"),
            ("   ", "Unclassified"),
        ],
    )
    def test_mapping(self, bug_type: str | None, expected: str) -> None:
        assert extract_environment(bug_type) == expected


class TestPercentages:
    """Tests for percentage helpers."""

    def test_rounding(self) -> None:
        assert percentage(1, 3) == 33.3
        assert classification_rate(5, 6) == 83.3

    def test_zero_total(self) -> None:
        assert percentage(0, 0) == 0.0
        assert classification_rate(3, 0) == 0.0


class TestSummarizeBugs:
    """Tests for summarize_bugs."""

    @pytest.fixture
    def items(self, tracker_fixtures: dict[str, Any]) -> list[WorkItem]:
        return [WorkItem.from_raw(raw) for raw in tracker_fixtures["work_items"]]

    def test_counts(self, items: list[WorkItem]) -> None:
        summary = summarize_bugs(items)

        # Bugs 101-108, tasks ignored
        assert summary["total_bugs"] == 8
        assert summary["unclassified"] == 1
        assert summary["classified"] == 7
        assert summary["environment_breakdown"]["Prod"]["count"] == 3
        assert summary["environment_breakdown"]["Other"]["bugs"][0]["id"] == 106

    def test_bug_types_are_sorted(self, items: list[WorkItem]) -> None:
        bug_types = summarize_bugs(items)["bug_types"]

        assert list(bug_types) == sorted(bug_types)
        assert bug_types["Prod"] == 2

    def test_without_bug_detail(self, items: list[WorkItem]) -> None:
        summary = summarize_bugs(items, include_bugs=False)

        assert "classified" not in summary
        assert all(bucket["bugs"] == [] for bucket in summary["environment_breakdown"].values())

    def test_empty(self) -> None:
        assert summarize_bugs([]) == {
            "total_bugs": 0,
            "unclassified": 0,
            "bug_types": {},
            "environment_breakdown": {},
            "classified": 0,
        }

    def test_environment_narrows_the_bug_set(self, items: list[WorkItem]) -> None:
        summary = summarize_bugs(items, environment="Prod")

        # 101, 107 and 108 are production bugs
        assert summary["total_bugs"] == 3
        assert summary["unclassified"] == 0
        assert list(summary["environment_breakdown"]) == ["Prod"]
        assert summary["bug_types"] == {"Prod": 2, "Production Issue": 1}
