"""
Input validation rules for mandates, offers and opportunities.

Runs before anything is stored so that the filter and transition engines
only ever see well-formed records.
"""

from dataclasses import dataclass

from .mandate import Mandate, MandateOwnerType
from .offer import (
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    Offer,
    OpportunityStatus,
    OFFER_STAGES,
    OPPORTUNITY_STAGES,
)


class ValidationError(Exception):
    """Raised when validation fails."""

    def __init__(self, field: str, message: str, value: object = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


@dataclass
class ValidationResult:
    """Result of validation operation."""

    is_valid: bool
    errors: list[ValidationError]
    warnings: list[str]

    def __bool__(self) -> bool:
        return self.is_valid

    def raise_first(self) -> None:
        """Raise the first error, if any."""
        if self.errors:
            raise self.errors[0]


def _check_range(errors: list[ValidationError], name: str, low, high,
                 upper_limit: float = None) -> None:
    for bound_name, bound in ((f"{name}_min", low), (f"{name}_max", high)):
        if bound is None:
            continue
        if bound < 0:
            errors.append(ValidationError(bound_name, "Value cannot be negative", bound))
        elif upper_limit is not None and bound > upper_limit:
            errors.append(ValidationError(
                bound_name, f"Value cannot exceed {upper_limit:g}", bound
            ))

    if low is not None and high is not None and low > high:
        errors.append(ValidationError(
            name,
            "Minimum cannot exceed maximum",
            {"min": low, "max": high}
        ))


def validate_mandate(mandate: Mandate) -> ValidationResult:
    """
    Validate a mandate for correctness and completeness.

    Returns ValidationResult with any errors found.
    """
    errors: list[ValidationError] = []
    warnings: list[str] = []

    if not mandate.mandate_id:
        errors.append(ValidationError("mandate_id", "Mandate ID is required"))

    if not mandate.owner_id:
        errors.append(ValidationError("owner_id", "Owner is required"))

    if not mandate.name or not mandate.name.strip():
        errors.append(ValidationError("name", "Mandate name is required"))
    elif len(mandate.name) > 256:
        errors.append(ValidationError(
            "name",
            "Mandate name must be 256 characters or less",
            mandate.name
        ))

    _check_range(errors, "amount", mandate.amount_min, mandate.amount_max)
    _check_range(errors, "equity", mandate.equity_min, mandate.equity_max, upper_limit=100)

    if mandate.owner_type == MandateOwnerType.INVESTOR and mandate.investor_ids:
        errors.append(ValidationError(
            "investor_ids",
            "Only advisor mandates can hold an investor group",
            mandate.investor_ids
        ))

    if mandate.is_wildcard:
        warnings.append("Mandate sets no criteria and will match every startup")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def validate_offer(offer: Offer) -> ValidationResult:
    """Validate a direct offer before submission."""
    errors: list[ValidationError] = []
    warnings: list[str] = []

    if not offer.offer_id:
        errors.append(ValidationError("offer_id", "Offer ID is required"))
    if not offer.startup_id:
        errors.append(ValidationError("startup_id", "Startup is required"))
    if not offer.investor_email or "@" not in offer.investor_email:
        errors.append(ValidationError(
            "investor_email", "A valid investor email is required", offer.investor_email
        ))

    if offer.amount is None or offer.amount <= 0:
        errors.append(ValidationError("amount", "Offer amount must be positive", offer.amount))

    if offer.equity_percentage is None or not 0 < offer.equity_percentage <= 100:
        errors.append(ValidationError(
            "equity_percentage",
            "Equity must be between 0 and 100 percent",
            offer.equity_percentage
        ))

    if offer.stage not in OFFER_STAGES:
        errors.append(ValidationError("stage", f"Stage must be one of {OFFER_STAGES}", offer.stage))

    if offer.contact_details_revealed:
        errors.append(ValidationError(
            "contact_details_revealed",
            "A new offer cannot start with contacts revealed",
        ))

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def validate_opportunity(opportunity: CoInvestmentOpportunity) -> ValidationResult:
    """Validate a co-investment opportunity's amounts and stage."""
    errors: list[ValidationError] = []
    warnings: list[str] = []

    if not opportunity.opportunity_id:
        errors.append(ValidationError("opportunity_id", "Opportunity ID is required"))
    if not opportunity.startup_id:
        errors.append(ValidationError("startup_id", "Startup is required"))

    if opportunity.investment_amount <= 0:
        errors.append(ValidationError(
            "investment_amount", "Investment amount must be positive",
            opportunity.investment_amount
        ))

    _check_range(
        errors, "co_investment",
        opportunity.minimum_co_investment, opportunity.maximum_co_investment,
    )

    if opportunity.maximum_co_investment > opportunity.investment_amount:
        warnings.append(
            "Maximum co-investment exceeds the total; lead investor share clamps to zero"
        )

    if opportunity.stage not in OPPORTUNITY_STAGES:
        errors.append(ValidationError(
            "stage", f"Stage must be one of {OPPORTUNITY_STAGES}", opportunity.stage
        ))

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def validate_co_investment_offer(
    offer: CoInvestmentOffer,
    opportunity: CoInvestmentOpportunity,
) -> ValidationResult:
    """Validate a co-investment offer against the opportunity's open band."""
    errors: list[ValidationError] = []
    warnings: list[str] = []

    if offer.opportunity_id != opportunity.opportunity_id:
        errors.append(ValidationError(
            "opportunity_id", "Offer does not belong to this opportunity", offer.opportunity_id
        ))

    if opportunity.status != OpportunityStatus.ACTIVE:
        errors.append(ValidationError(
            "opportunity_id", "Opportunity is closed", opportunity.opportunity_id
        ))

    low, high = opportunity.minimum_co_investment, opportunity.maximum_co_investment
    if not low <= offer.amount <= high:
        errors.append(ValidationError(
            "amount",
            f"Co-investment must be between {low:,.0f} and {high:,.0f}",
            offer.amount
        ))

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )
