"""
Approval gate evaluation.

Answers "may this role act on this entity right now?" without touching
any store. Each entity variant has a fixed set of gates, each owned by one
role and open only while its approval track is pending:

Direct offer:
  stage 1  investor_advisor  (investor track pending)
  stage 2  startup_advisor   (startup track pending, investor track cleared)
  stage 3  no advisor action, ready for negotiation
  stage 4  terminal success

Co-investment offer:
  pending_investor_advisor_approval  investor_advisor
  later statuses are read-only here

Co-investment opportunity:
  stage 1  investor_advisor  (lead investor's advisor)
  stage 2  startup_advisor

A role that owns a gate on the entity but finds it closed gets a STALE
denial (refresh and retry). A role with no gate on the entity at all gets
an UNAUTHORIZED denial.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidReferenceError, StaleStateError, UnauthorizedActionError
from .offer import (
    ApprovalStatus,
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    CoInvestmentStatus,
    Offer,
    WorkflowEntity,
    STAGE_COMPLETE,
    STAGE_INVESTOR_ADVISOR,
    STAGE_READY,
    STAGE_STARTUP_ADVISOR,
)


class ActingRole(Enum):
    """Resolved role of the caller for a single request."""

    INVESTOR_ADVISOR = "investor_advisor"
    STARTUP_ADVISOR = "startup_advisor"
    INVESTOR = "investor"
    STARTUP = "startup"


class GateDenial(Enum):
    """Why a gate refused an action."""

    STALE = "stale"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class GateResult:
    """Outcome of evaluating one role against one entity."""

    allowed: bool
    reason: str
    role: ActingRole
    entity_kind: str
    entity_id: str
    denial: Optional[GateDenial] = None

    def raise_for_denial(self) -> "GateResult":
        """Raise the matching workflow error if the gate is closed."""
        if self.denial == GateDenial.UNAUTHORIZED:
            raise UnauthorizedActionError(
                self.role.value, self.entity_kind, self.entity_id, self.reason
            )
        if self.denial == GateDenial.STALE:
            raise StaleStateError(self.entity_kind, self.entity_id, self.reason)
        return self

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "role": self.role.value,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "denial": self.denial.value if self.denial else None,
        }


def _result(entity: WorkflowEntity, role: ActingRole, reason: str,
            denial: Optional[GateDenial] = None) -> GateResult:
    return GateResult(
        allowed=denial is None,
        reason=reason,
        role=role,
        entity_kind=entity.kind.value,
        entity_id=entity.entity_id,
        denial=denial,
    )


def _evaluate_offer(offer: Offer, role: ActingRole) -> GateResult:
    investor_track = offer.investor_advisor_approval_status
    startup_track = offer.startup_advisor_approval_status

    if role == ActingRole.INVESTOR_ADVISOR:
        if investor_track == ApprovalStatus.NOT_REQUIRED:
            return _result(offer, role, "investor advisor approval not required",
                           GateDenial.UNAUTHORIZED)
        if offer.is_rejected:
            return _result(offer, role, "offer already rejected", GateDenial.STALE)
        if offer.stage != STAGE_INVESTOR_ADVISOR or investor_track != ApprovalStatus.PENDING:
            return _result(
                offer, role,
                f"investor advisor gate closed (stage {offer.stage}, {investor_track.value})",
                GateDenial.STALE,
            )
        return _result(offer, role, "awaiting investor advisor decision")

    if role == ActingRole.STARTUP_ADVISOR:
        if startup_track == ApprovalStatus.NOT_REQUIRED:
            return _result(offer, role, "startup advisor approval not required",
                           GateDenial.UNAUTHORIZED)
        if offer.is_rejected:
            return _result(offer, role, "offer already rejected", GateDenial.STALE)
        if offer.stage != STAGE_STARTUP_ADVISOR or startup_track != ApprovalStatus.PENDING:
            return _result(
                offer, role,
                f"startup advisor gate closed (stage {offer.stage}, {startup_track.value})",
                GateDenial.STALE,
            )
        if not investor_track.is_cleared:
            return _result(offer, role, "investor advisor has not approved yet", GateDenial.STALE)
        return _result(offer, role, "awaiting startup advisor decision")

    return _result(offer, role, "no advisor gate for this role", GateDenial.UNAUTHORIZED)


def _evaluate_co_investment_offer(offer: CoInvestmentOffer, role: ActingRole) -> GateResult:
    if role != ActingRole.INVESTOR_ADVISOR:
        return _result(
            offer, role,
            "only the investor advisor acts on co-investment offers here",
            GateDenial.UNAUTHORIZED,
        )
    if offer.investor_advisor_approval_status == ApprovalStatus.NOT_REQUIRED:
        return _result(offer, role, "investor advisor approval not required",
                       GateDenial.UNAUTHORIZED)
    if offer.status != CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL:
        return _result(offer, role, f"status is '{offer.status.value}'", GateDenial.STALE)
    return _result(offer, role, "awaiting investor advisor decision")


def _evaluate_opportunity(opportunity: CoInvestmentOpportunity, role: ActingRole) -> GateResult:
    if role == ActingRole.INVESTOR_ADVISOR:
        track, gate_stage, label = (
            opportunity.lead_investor_advisor_approval_status,
            STAGE_INVESTOR_ADVISOR,
            "lead investor advisor",
        )
    elif role == ActingRole.STARTUP_ADVISOR:
        track, gate_stage, label = (
            opportunity.startup_advisor_approval_status,
            STAGE_STARTUP_ADVISOR,
            "startup advisor",
        )
    else:
        return _result(opportunity, role, "no advisor gate for this role", GateDenial.UNAUTHORIZED)

    if track == ApprovalStatus.NOT_REQUIRED:
        return _result(opportunity, role, f"{label} approval not required", GateDenial.UNAUTHORIZED)
    if opportunity.is_rejected:
        return _result(opportunity, role, "opportunity already rejected", GateDenial.STALE)
    if opportunity.stage != gate_stage or track != ApprovalStatus.PENDING:
        return _result(
            opportunity, role,
            f"{label} gate closed (stage {opportunity.stage}, {track.value})",
            GateDenial.STALE,
        )
    return _result(opportunity, role, f"awaiting {label} decision")


def can_act(entity: Optional[WorkflowEntity], role: ActingRole) -> GateResult:
    """
    Evaluate whether a role may act on an entity in its current state.

    Args:
        entity: Snapshot of an offer, co-investment offer or opportunity
        role: The caller's resolved role

    Returns:
        GateResult; call ``raise_for_denial()`` to turn a denial into an error

    Raises:
        InvalidReferenceError: If no entity was supplied
    """
    if entity is None or not entity.entity_id:
        raise InvalidReferenceError("entity", getattr(entity, "entity_id", None))

    if isinstance(entity, Offer):
        return _evaluate_offer(entity, role)
    if isinstance(entity, CoInvestmentOffer):
        return _evaluate_co_investment_offer(entity, role)
    if isinstance(entity, CoInvestmentOpportunity):
        return _evaluate_opportunity(entity, role)

    raise TypeError(f"Unsupported workflow entity: {type(entity).__name__}")


def describe_offer_stage(offer: Offer) -> str:
    """Human-readable status line for a direct offer."""
    if offer.investor_advisor_approval_status == ApprovalStatus.REJECTED:
        return "Rejected by investor advisor"
    if offer.startup_advisor_approval_status == ApprovalStatus.REJECTED:
        return "Rejected by startup advisor"
    if offer.stage == STAGE_INVESTOR_ADVISOR:
        return "Stage 1: Investor advisor approval"
    if offer.stage == STAGE_STARTUP_ADVISOR:
        return "Stage 2: Startup advisor approval"
    if offer.stage == STAGE_READY:
        return "Stage 3: Approved & ready"
    if offer.stage == STAGE_COMPLETE:
        return "Stage 4: Deal in negotiation, contacts revealed"
    return f"Stage {offer.stage}"
