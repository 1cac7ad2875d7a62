"""
Offer data models.

Three variants move through the approval workflow, joined by a ``kind``
discriminator:

- Offer: a direct, one-to-one investment offer (stages 1-4)
- CoInvestmentOffer: a third-party offer into a co-investment opportunity
- CoInvestmentOpportunity: a lead investor's commitment opened to others

All three are frozen; transitions return new snapshots.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union


class EntityKind(Enum):
    """Discriminator for the workflow entity variants."""

    OFFER = "offer"
    CO_INVESTMENT_OFFER = "co_investment_offer"
    OPPORTUNITY = "opportunity"


class ApprovalStatus(Enum):
    """State of a single advisor approval track."""

    NOT_REQUIRED = "not_required"  # Party has no advisor
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_cleared(self) -> bool:
        """Track no longer blocks advancement."""
        return self in (ApprovalStatus.APPROVED, ApprovalStatus.NOT_REQUIRED)


class CoInvestmentStatus(Enum):
    """Status of a co-investment offer, forward-only."""

    PENDING_INVESTOR_ADVISOR_APPROVAL = "pending_investor_advisor_approval"
    PENDING_LEAD_INVESTOR_APPROVAL = "pending_lead_investor_approval"
    PENDING_STARTUP_APPROVAL = "pending_startup_approval"
    ACCEPTED = "accepted"
    INVESTOR_ADVISOR_REJECTED = "investor_advisor_rejected"
    LEAD_INVESTOR_REJECTED = "lead_investor_rejected"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in CO_INVESTMENT_TERMINAL

    @property
    def is_rejected(self) -> bool:
        return self in CO_INVESTMENT_REJECTED


# Forward order of the non-rejected statuses
CO_INVESTMENT_ORDER: tuple[CoInvestmentStatus, ...] = (
    CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL,
    CoInvestmentStatus.PENDING_LEAD_INVESTOR_APPROVAL,
    CoInvestmentStatus.PENDING_STARTUP_APPROVAL,
    CoInvestmentStatus.ACCEPTED,
)

CO_INVESTMENT_REJECTED = frozenset({
    CoInvestmentStatus.INVESTOR_ADVISOR_REJECTED,
    CoInvestmentStatus.LEAD_INVESTOR_REJECTED,
    CoInvestmentStatus.REJECTED,
})

CO_INVESTMENT_TERMINAL = CO_INVESTMENT_REJECTED | {CoInvestmentStatus.ACCEPTED}


def is_forward_transition(current: CoInvestmentStatus, target: CoInvestmentStatus) -> bool:
    """
    Check whether a co-investment status change moves strictly forward.

    Any non-terminal status may jump to a rejected status. Otherwise the
    target must sit later in CO_INVESTMENT_ORDER.
    """
    if current.is_terminal:
        return False
    if target.is_rejected:
        return True
    return CO_INVESTMENT_ORDER.index(target) > CO_INVESTMENT_ORDER.index(current)


class OpportunityStatus(Enum):
    ACTIVE = "active"
    CLOSED = "closed"


# Stage constants for direct offers
STAGE_INVESTOR_ADVISOR = 1
STAGE_STARTUP_ADVISOR = 2
STAGE_READY = 3
STAGE_COMPLETE = 4

OFFER_STAGES = (STAGE_INVESTOR_ADVISOR, STAGE_STARTUP_ADVISOR, STAGE_READY, STAGE_COMPLETE)
OPPORTUNITY_STAGES = (STAGE_INVESTOR_ADVISOR, STAGE_STARTUP_ADVISOR, STAGE_COMPLETE)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Offer:
    """
    Direct investment offer between one investor and one startup.

    Stage 1 waits on the investor's advisor, stage 2 on the startup's
    advisor, stage 3 is ready for negotiation and stage 4 is a completed
    deal with contact details revealed.
    """

    kind: ClassVar[EntityKind] = EntityKind.OFFER

    offer_id: str
    startup_id: str
    investor_email: str
    amount: float
    equity_percentage: float
    currency: str = "USD"
    stage: int = STAGE_INVESTOR_ADVISOR

    investor_advisor_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    investor_advisor_approval_at: Optional[datetime] = None
    startup_advisor_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    startup_advisor_approval_at: Optional[datetime] = None

    contact_details_revealed: bool = False
    contact_details_revealed_at: Optional[datetime] = None

    created_at: datetime = field(default_factory=datetime.now)

    @property
    def entity_id(self) -> str:
        return self.offer_id

    @property
    def is_rejected(self) -> bool:
        """Either advisor track rejected; terminal."""
        return ApprovalStatus.REJECTED in (
            self.investor_advisor_approval_status,
            self.startup_advisor_approval_status,
        )

    @property
    def approvals_cleared(self) -> bool:
        """Both advisor tracks approved or not required."""
        return (
            self.investor_advisor_approval_status.is_cleared
            and self.startup_advisor_approval_status.is_cleared
        )

    @property
    def is_complete(self) -> bool:
        return self.stage == STAGE_COMPLETE

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "offer_id": self.offer_id,
            "startup_id": self.startup_id,
            "investor_email": self.investor_email,
            "amount": self.amount,
            "equity_percentage": self.equity_percentage,
            "currency": self.currency,
            "stage": self.stage,
            "investor_advisor_approval_status": self.investor_advisor_approval_status.value,
            "investor_advisor_approval_at": _format_datetime(self.investor_advisor_approval_at),
            "startup_advisor_approval_status": self.startup_advisor_approval_status.value,
            "startup_advisor_approval_at": _format_datetime(self.startup_advisor_approval_at),
            "contact_details_revealed": self.contact_details_revealed,
            "contact_details_revealed_at": _format_datetime(self.contact_details_revealed_at),
            "is_rejected": self.is_rejected,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Offer":
        """Create offer from dictionary representation."""
        return cls(
            offer_id=data["offer_id"],
            startup_id=data["startup_id"],
            investor_email=data["investor_email"],
            amount=data.get("amount", 0),
            equity_percentage=data.get("equity_percentage", 0),
            currency=data.get("currency", "USD"),
            stage=data.get("stage", STAGE_INVESTOR_ADVISOR),
            investor_advisor_approval_status=ApprovalStatus(
                data.get("investor_advisor_approval_status", "pending")
            ),
            investor_advisor_approval_at=_parse_datetime(data.get("investor_advisor_approval_at")),
            startup_advisor_approval_status=ApprovalStatus(
                data.get("startup_advisor_approval_status", "pending")
            ),
            startup_advisor_approval_at=_parse_datetime(data.get("startup_advisor_approval_at")),
            contact_details_revealed=data.get("contact_details_revealed", False),
            contact_details_revealed_at=_parse_datetime(data.get("contact_details_revealed_at")),
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
        )


@dataclass(frozen=True)
class CoInvestmentOffer:
    """Third-party offer into an open co-investment opportunity."""

    kind: ClassVar[EntityKind] = EntityKind.CO_INVESTMENT_OFFER

    offer_id: str
    opportunity_id: str
    startup_id: str
    investor_email: str
    amount: float
    equity_percentage: float
    currency: str = "USD"
    status: CoInvestmentStatus = CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL
    investor_advisor_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    investor_advisor_approval_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def entity_id(self) -> str:
        return self.offer_id

    @property
    def is_rejected(self) -> bool:
        return self.status.is_rejected

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "offer_id": self.offer_id,
            "opportunity_id": self.opportunity_id,
            "startup_id": self.startup_id,
            "investor_email": self.investor_email,
            "amount": self.amount,
            "equity_percentage": self.equity_percentage,
            "currency": self.currency,
            "status": self.status.value,
            "investor_advisor_approval_status": self.investor_advisor_approval_status.value,
            "investor_advisor_approval_at": _format_datetime(self.investor_advisor_approval_at),
            "is_rejected": self.is_rejected,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CoInvestmentOffer":
        return cls(
            offer_id=data["offer_id"],
            opportunity_id=data["opportunity_id"],
            startup_id=data["startup_id"],
            investor_email=data["investor_email"],
            amount=data.get("amount", 0),
            equity_percentage=data.get("equity_percentage", 0),
            currency=data.get("currency", "USD"),
            status=CoInvestmentStatus(
                data.get("status", CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL.value)
            ),
            investor_advisor_approval_status=ApprovalStatus(
                data.get("investor_advisor_approval_status", "pending")
            ),
            investor_advisor_approval_at=_parse_datetime(data.get("investor_advisor_approval_at")),
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
        )


@dataclass(frozen=True)
class CoInvestmentOpportunity:
    """
    A lead investor's investment opened to third-party co-investors.

    The lead commits ``investment_amount``; the band between
    ``minimum_co_investment`` and ``maximum_co_investment`` is open to
    others. Stage 3 is unused in this flow.
    """

    kind: ClassVar[EntityKind] = EntityKind.OPPORTUNITY

    opportunity_id: str
    startup_id: str
    listed_by: str  # Lead investor
    investment_amount: float
    minimum_co_investment: float
    maximum_co_investment: float
    equity_percentage: float = 0.0
    stage: int = STAGE_INVESTOR_ADVISOR
    lead_investor_advisor_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    startup_advisor_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    startup_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    status: OpportunityStatus = OpportunityStatus.ACTIVE
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def entity_id(self) -> str:
        return self.opportunity_id

    @property
    def lead_investor_invested(self) -> float:
        """Portion kept by the lead investor, clamped at zero."""
        return max(0.0, self.investment_amount - self.maximum_co_investment)

    @property
    def is_rejected(self) -> bool:
        return ApprovalStatus.REJECTED in (
            self.lead_investor_advisor_approval_status,
            self.startup_advisor_approval_status,
            self.startup_approval_status,
        )

    @property
    def effective_stage(self) -> int:
        """
        Display stage derived from the approval tracks.

        A ``not_required`` track skips its stage, so the stored stage can
        lag behind what the parties should see.
        """
        if self.lead_investor_advisor_approval_status == ApprovalStatus.PENDING:
            return 1
        if self.startup_advisor_approval_status == ApprovalStatus.PENDING:
            return 2
        if self.startup_approval_status == ApprovalStatus.APPROVED:
            return 4
        return 3

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "opportunity_id": self.opportunity_id,
            "startup_id": self.startup_id,
            "listed_by": self.listed_by,
            "investment_amount": self.investment_amount,
            "minimum_co_investment": self.minimum_co_investment,
            "maximum_co_investment": self.maximum_co_investment,
            "lead_investor_invested": self.lead_investor_invested,
            "equity_percentage": self.equity_percentage,
            "stage": self.stage,
            "effective_stage": self.effective_stage,
            "lead_investor_advisor_approval_status": self.lead_investor_advisor_approval_status.value,
            "startup_advisor_approval_status": self.startup_advisor_approval_status.value,
            "startup_approval_status": self.startup_approval_status.value,
            "status": self.status.value,
            "is_rejected": self.is_rejected,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CoInvestmentOpportunity":
        return cls(
            opportunity_id=data["opportunity_id"],
            startup_id=data["startup_id"],
            listed_by=data.get("listed_by", ""),
            investment_amount=data.get("investment_amount", 0),
            minimum_co_investment=data.get("minimum_co_investment", 0),
            maximum_co_investment=data.get("maximum_co_investment", 0),
            equity_percentage=data.get("equity_percentage", 0.0),
            stage=data.get("stage", STAGE_INVESTOR_ADVISOR),
            lead_investor_advisor_approval_status=ApprovalStatus(
                data.get("lead_investor_advisor_approval_status", "pending")
            ),
            startup_advisor_approval_status=ApprovalStatus(
                data.get("startup_advisor_approval_status", "pending")
            ),
            startup_approval_status=ApprovalStatus(data.get("startup_approval_status", "pending")),
            status=OpportunityStatus(data.get("status", "active")),
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(),
        )


WorkflowEntity = Union[Offer, CoInvestmentOffer, CoInvestmentOpportunity]

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.OFFER: Offer,
    EntityKind.CO_INVESTMENT_OFFER: CoInvestmentOffer,
    EntityKind.OPPORTUNITY: CoInvestmentOpportunity,
}


def entity_from_dict(data: dict) -> WorkflowEntity:
    """Rebuild any workflow entity from its ``kind``-tagged dictionary."""
    kind = EntityKind(data.get("kind", EntityKind.OFFER.value))
    return ENTITY_TYPES[kind].from_dict(data)
