"""
Mandate data model.

A mandate is a saved set of investment criteria. Advisors keep mandates
for groups of the investors they represent; investors keep their own.
Every criterion is optional; an unset criterion matches anything.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class MandateOwnerType(Enum):
    """Which kind of party owns the mandate."""

    ADVISOR = "advisor"
    INVESTOR = "investor"


def normalize_text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


@dataclass
class Mandate:
    """
    Advisor or investor mandate.

    Used to filter fundraising startups and, for advisor mandates, to
    expand into the group of investors it was defined for.
    """

    # Identification
    mandate_id: str
    owner_id: str
    owner_type: MandateOwnerType = MandateOwnerType.ADVISOR
    name: str = ""

    # Criteria
    stage: Optional[str] = None
    round_type: Optional[str] = None
    domain: Optional[str] = None
    country: Optional[str] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    equity_min: Optional[float] = None
    equity_max: Optional[float] = None

    # Investors this mandate was defined for (advisor mandates only)
    investor_ids: list[str] = field(default_factory=list)

    # Status
    is_active: bool = True
    display_order: int = 0

    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_wildcard(self) -> bool:
        """No criteria set; every startup matches."""
        text_fields = (self.stage, self.round_type, self.domain, self.country)
        numeric_fields = (self.amount_min, self.amount_max, self.equity_min, self.equity_max)
        return (
            all(not normalize_text(v) for v in text_fields)
            and all(v is None for v in numeric_fields)
        )

    def accepts_amount(self, amount: Optional[float]) -> bool:
        """Check if an investment ask falls within the inclusive amount range."""
        return _within(amount, self.amount_min, self.amount_max)

    def accepts_equity(self, equity: Optional[float]) -> bool:
        """Check if an equity ask falls within the inclusive equity range."""
        return _within(equity, self.equity_min, self.equity_max)

    def to_dict(self) -> dict:
        """Convert mandate to dictionary representation."""
        return {
            "mandate_id": self.mandate_id,
            "owner_id": self.owner_id,
            "owner_type": self.owner_type.value,
            "name": self.name,
            "stage": self.stage,
            "round_type": self.round_type,
            "domain": self.domain,
            "country": self.country,
            "amount_min": self.amount_min,
            "amount_max": self.amount_max,
            "equity_min": self.equity_min,
            "equity_max": self.equity_max,
            "investor_ids": list(self.investor_ids),
            "is_active": self.is_active,
            "display_order": self.display_order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Mandate":
        """Create mandate from dictionary representation."""
        mandate = cls(
            mandate_id=data["mandate_id"],
            owner_id=data["owner_id"],
            owner_type=MandateOwnerType(data.get("owner_type", "advisor")),
            name=data.get("name", ""),
            stage=data.get("stage"),
            round_type=data.get("round_type"),
            domain=data.get("domain"),
            country=data.get("country"),
            amount_min=data.get("amount_min"),
            amount_max=data.get("amount_max"),
            equity_min=data.get("equity_min"),
            equity_max=data.get("equity_max"),
            investor_ids=list(data.get("investor_ids", [])),
            is_active=data.get("is_active", True),
            display_order=data.get("display_order", 0),
        )

        if data.get("created_at"):
            mandate.created_at = datetime.fromisoformat(data["created_at"])
        if data.get("updated_at"):
            mandate.updated_at = datetime.fromisoformat(data["updated_at"])

        return mandate


def _within(value: Optional[float], low: Optional[float], high: Optional[float]) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


@dataclass
class Startup:
    """Fundraising startup as seen by the mandate filter."""

    startup_id: str
    name: str
    sector: str = ""
    domain: str = ""
    stage: str = ""
    round_type: str = ""
    country: str = ""
    investment_ask: Optional[float] = None
    equity_ask: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "startup_id": self.startup_id,
            "name": self.name,
            "sector": self.sector,
            "domain": self.domain,
            "stage": self.stage,
            "round_type": self.round_type,
            "country": self.country,
            "investment_ask": self.investment_ask,
            "equity_ask": self.equity_ask,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Startup":
        return cls(
            startup_id=data["startup_id"],
            name=data.get("name", ""),
            sector=data.get("sector") or "",
            domain=data.get("domain") or "",
            stage=data.get("stage") or "",
            round_type=data.get("round_type") or "",
            country=data.get("country") or "",
            investment_ask=data.get("investment_ask"),
            equity_ask=data.get("equity_ask"),
        )
