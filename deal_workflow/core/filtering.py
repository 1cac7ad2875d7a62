"""
Filtering module for matching startups against mandates.

Each criterion set on the mandate is applied as a filter; criteria left
unset pass everything. Filters are AND-ed and the input order is kept.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .mandate import Mandate, Startup, normalize_text


@dataclass
class FilterResult:
    """Result of filtering a single startup."""

    startup: Startup
    passed: bool
    failed_filters: list[str]


def filter_by_stage(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by company stage (exact, case-insensitive)."""
    wanted = normalize_text(mandate.stage)
    if not wanted or normalize_text(startup.stage) == wanted:
        return True, ""
    return False, f"Stage '{startup.stage}' does not match '{mandate.stage}'"


def filter_by_round_type(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by round type (exact, case-insensitive)."""
    wanted = normalize_text(mandate.round_type)
    if not wanted or normalize_text(startup.round_type) == wanted:
        return True, ""
    return False, f"Round '{startup.round_type}' does not match '{mandate.round_type}'"


def filter_by_domain(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by domain; a substring hit on either sector or domain counts."""
    wanted = normalize_text(mandate.domain)
    if not wanted:
        return True, ""

    if wanted in normalize_text(startup.sector) or wanted in normalize_text(startup.domain):
        return True, ""

    return False, f"Domain '{mandate.domain}' not found in '{startup.sector}'/'{startup.domain}'"


def filter_by_country(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by country (exact, case-insensitive)."""
    wanted = normalize_text(mandate.country)
    if not wanted or normalize_text(startup.country) == wanted:
        return True, ""
    return False, f"Country '{startup.country}' does not match '{mandate.country}'"


def filter_by_amount(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by investment ask."""
    if mandate.accepts_amount(startup.investment_ask):
        return True, ""

    ask = startup.investment_ask
    if ask is None:
        return False, "Amount ask unknown but mandate sets an amount range"
    if mandate.amount_min is not None and ask < mandate.amount_min:
        return False, f"Amount {ask:,.0f} below minimum {mandate.amount_min:,.0f}"
    return False, f"Amount {ask:,.0f} above maximum {mandate.amount_max:,.0f}"


def filter_by_equity(startup: Startup, mandate: Mandate) -> tuple[bool, str]:
    """Filter by equity ask."""
    if mandate.accepts_equity(startup.equity_ask):
        return True, ""

    equity = startup.equity_ask
    if equity is None:
        return False, "Equity ask unknown but mandate sets an equity range"
    if mandate.equity_min is not None and equity < mandate.equity_min:
        return False, f"Equity {equity:.2f}% below minimum {mandate.equity_min:.2f}%"
    return False, f"Equity {equity:.2f}% above maximum {mandate.equity_max:.2f}%"


# Default filter chain
DEFAULT_FILTERS: list[Callable[[Startup, Mandate], tuple[bool, str]]] = [
    filter_by_stage,
    filter_by_round_type,
    filter_by_domain,
    filter_by_country,
    filter_by_amount,
    filter_by_equity,
]


def filter_startup(
    startup: Startup,
    mandate: Mandate,
    filters: Optional[list[Callable]] = None,
    fail_fast: bool = True
) -> FilterResult:
    """
    Apply filters to a single startup.

    Args:
        startup: The fundraising startup to check
        mandate: The mandate with criteria
        filters: Custom filter functions (uses DEFAULT_FILTERS if None)
        fail_fast: If True, stop on first failed filter

    Returns:
        FilterResult with pass/fail status and reasons
    """
    active_filters = filters or DEFAULT_FILTERS
    failed_filters: list[str] = []

    for filter_fn in active_filters:
        passed, reason = filter_fn(startup, mandate)
        if not passed:
            failed_filters.append(reason)
            if fail_fast:
                break

    return FilterResult(
        startup=startup,
        passed=len(failed_filters) == 0,
        failed_filters=failed_filters,
    )


def filter_startups(
    startups: list[Startup],
    mandate: Mandate,
    filters: Optional[list[Callable]] = None
) -> list[Startup]:
    """
    Filter startups against a mandate, preserving input order.

    An empty result is a normal outcome, not an error.
    """
    if mandate.is_wildcard and filters is None:
        return list(startups)

    return [s for s in startups if filter_startup(s, mandate, filters).passed]


def filter_startups_detailed(
    startups: list[Startup],
    mandate: Mandate,
    filters: Optional[list[Callable]] = None
) -> tuple[list[Startup], list[FilterResult]]:
    """
    Filter startups with detailed results for all.

    Returns:
        Tuple of (passed startups, all filter results)
    """
    passed = []
    results = []

    for startup in startups:
        result = filter_startup(startup, mandate, filters, fail_fast=False)
        results.append(result)
        if result.passed:
            passed.append(startup)

    return passed, results


def get_filter_summary(results: list[FilterResult]) -> dict:
    """
    Generate summary statistics from filter results.

    Failure reasons are bucketed by their leading word ("Stage",
    "Amount", ...).
    """
    total = len(results)
    passed = sum(1 for r in results if r.passed)
    failed = total - passed

    reason_counts: dict[str, int] = {}
    for result in results:
        for reason in result.failed_filters:
            filter_type = reason.split()[0] if reason else "Unknown"
            reason_counts[filter_type] = reason_counts.get(filter_type, 0) + 1

    return {
        "total": total,
        "passed": passed,
        "failed": failed,
        "pass_rate": (passed / total * 100) if total > 0 else 0,
        "failure_reasons": reason_counts,
    }
