"""
Tests for mandate-based startup filtering.

Covers wildcard mandates, inclusive numeric ranges, case- and
whitespace-insensitive text criteria, domain substring matching and
order preservation.
"""

import pytest

from deal_workflow.core import (
    Mandate,
    Startup,
    filter_startups,
    filter_startups_detailed,
    get_filter_summary,
)
from deal_workflow.core.filtering import (
    filter_by_amount,
    filter_by_domain,
    filter_by_stage,
    filter_startup,
)


# --- Test Data Fixtures ---

@pytest.fixture
def startups():
    """Fundraising startups in a fixed order."""
    return [
        Startup("S-1", "Ledgerly", sector="Fintech", domain="Payments",
                stage="Seed", round_type="Seed", country="India",
                investment_ask=250_000, equity_ask=8),
        Startup("S-2", "Agrisense", sector="AgriTech", domain="Sensors",
                stage="Seed", round_type="Seed", country="India",
                investment_ask=99_999, equity_ask=5),
        Startup("S-3", "PayRail", sector="FinTech Infrastructure",
                stage="seed ", round_type="Seed", country=" INDIA",
                investment_ask=500_000, equity_ask=12),
        Startup("S-4", "Cloudnest", sector="SaaS", domain="DevTools",
                stage="Series A", round_type="Series A", country="USA",
                investment_ask=2_000_000, equity_ask=15),
    ]


@pytest.fixture
def mandate():
    return Mandate(
        mandate_id="MND-1",
        owner_id="ADV-1",
        name="Indian fintech seed",
        stage="Seed",
        domain="fintech",
        country="India",
        amount_min=100_000,
        amount_max=500_000,
    )


def _ids(startups: list[Startup]) -> list[str]:
    return [s.startup_id for s in startups]


# --- Wildcard ---

class TestWildcardMandate:
    """Test mandates with no criteria."""

    def test_wildcard_returns_all_in_order(self, startups):
        mandate = Mandate(mandate_id="MND-0", owner_id="ADV-1", name="Anything")
        assert mandate.is_wildcard is True
        assert _ids(filter_startups(startups, mandate)) == ["S-1", "S-2", "S-3", "S-4"]

    def test_blank_strings_count_as_unset(self, startups):
        mandate = Mandate(
            mandate_id="MND-0", owner_id="ADV-1", name="Blank",
            stage="  ", domain="",
        )
        assert mandate.is_wildcard is True
        assert len(filter_startups(startups, mandate)) == 4

    def test_empty_candidates(self, mandate):
        assert filter_startups([], mandate) == []


# --- Criteria ---

class TestMandateCriteria:
    """Test individual criteria through the full filter."""

    def test_combined_criteria(self, startups, mandate):
        """Fintech seed in India between 100k and 500k."""
        assert _ids(filter_startups(startups, mandate)) == ["S-1", "S-3"]

    def test_amount_range_inclusive(self, startups):
        mandate = Mandate(
            mandate_id="MND-2", owner_id="ADV-1", name="Amount",
            amount_min=100_000, amount_max=500_000,
        )
        matched = _ids(filter_startups(startups, mandate))
        assert "S-2" not in matched  # 99,999
        assert "S-3" in matched      # 500,000 on the upper bound

    def test_domain_substring_on_sector(self, startups):
        mandate = Mandate(mandate_id="MND-3", owner_id="ADV-1", name="Fin", domain="FINTECH")
        assert _ids(filter_startups(startups, mandate)) == ["S-1", "S-3"]

    def test_domain_substring_on_domain_field(self, startups):
        mandate = Mandate(mandate_id="MND-4", owner_id="ADV-1", name="Tools", domain="devtool")
        assert _ids(filter_startups(startups, mandate)) == ["S-4"]

    def test_text_criteria_ignore_case_and_whitespace(self, startups):
        mandate = Mandate(
            mandate_id="MND-5", owner_id="ADV-1", name="Seed",
            stage=" SEED", country="india ",
        )
        assert _ids(filter_startups(startups, mandate)) == ["S-1", "S-2", "S-3"]

    def test_equity_range(self, startups):
        mandate = Mandate(
            mandate_id="MND-6", owner_id="ADV-1", name="Equity",
            equity_min=5, equity_max=10,
        )
        assert _ids(filter_startups(startups, mandate)) == ["S-1", "S-2"]

    def test_missing_ask_fails_numeric_criterion(self, mandate):
        unknown = Startup("S-9", "Stealth", sector="Fintech", stage="Seed", country="India")
        assert filter_startups([unknown], mandate) == []

    def test_no_match_is_empty_not_error(self, startups):
        mandate = Mandate(mandate_id="MND-7", owner_id="ADV-1", name="Bio", domain="biotech")
        assert filter_startups(startups, mandate) == []


# --- Individual Filters ---

class TestFilterFunctions:
    """Test filter functions return (passed, reason)."""

    def test_stage_reason(self, startups, mandate):
        passed, reason = filter_by_stage(startups[3], mandate)
        assert passed is False
        assert reason.startswith("Stage")

    def test_amount_below_minimum(self, startups, mandate):
        passed, reason = filter_by_amount(startups[1], mandate)
        assert passed is False
        assert "below minimum" in reason

    def test_domain_pass(self, startups, mandate):
        assert filter_by_domain(startups[0], mandate) == (True, "")

    def test_fail_fast(self, startups, mandate):
        """fail_fast stops at the first failure; detailed mode collects all."""
        quick = filter_startup(startups[3], mandate)
        full = filter_startup(startups[3], mandate, fail_fast=False)
        assert len(quick.failed_filters) == 1
        assert len(full.failed_filters) > 1


# --- Detailed Results ---

class TestDetailedFiltering:
    """Test detailed filtering and summary."""

    def test_detailed_results(self, startups, mandate):
        passed, results = filter_startups_detailed(startups, mandate)
        assert _ids(passed) == ["S-1", "S-3"]
        assert len(results) == 4

    def test_summary(self, startups, mandate):
        _, results = filter_startups_detailed(startups, mandate)
        summary = get_filter_summary(results)

        assert summary["total"] == 4
        assert summary["passed"] == 2
        assert summary["failed"] == 2
        assert summary["pass_rate"] == 50.0
        assert summary["failure_reasons"]["Amount"] == 2
        assert summary["failure_reasons"]["Domain"] == 2

    def test_summary_empty(self):
        summary = get_filter_summary([])
        assert summary["total"] == 0
        assert summary["pass_rate"] == 0
