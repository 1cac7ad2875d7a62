"""
Stage transition engine.

Pure functions from (snapshot, role, decision) to a new snapshot plus the
events the caller may broadcast. Nothing here reads or writes a store;
persistence and staleness checks against stored versions live in the
workflow service.

Direct offers advance by a single deterministic rule over the two
approval tracks (see ``next_offer_stage``), so the outcome never depends on
the order in which advisors happened to act.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import StaleStateError
from .gate import ActingRole, can_act
from .offer import (
    ApprovalStatus,
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    CoInvestmentStatus,
    Offer,
    OpportunityStatus,
    WorkflowEntity,
    is_forward_transition,
    STAGE_COMPLETE,
    STAGE_INVESTOR_ADVISOR,
    STAGE_READY,
    STAGE_STARTUP_ADVISOR,
)


class Decision(Enum):
    """Decision an advisor can take at an open gate."""

    APPROVE = "approve"
    REJECT = "reject"


class WorkflowEventType(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    STAGE_ADVANCED = "stage_advanced"
    STATUS_CHANGED = "status_changed"
    CONTACT_DETAILS_REVEALED = "contact_details_revealed"


@dataclass(frozen=True)
class WorkflowEvent:
    """Something that happened to an entity, for the caller to broadcast."""

    event_type: WorkflowEventType
    entity_kind: str
    entity_id: str
    occurred_at: datetime
    role: Optional[ActingRole] = None
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type.value,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "occurred_at": self.occurred_at.isoformat(),
            "role": self.role.value if self.role else None,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class TransitionResult:
    """New snapshot produced by a transition, with its events."""

    previous: WorkflowEntity
    entity: WorkflowEntity
    events: tuple[WorkflowEvent, ...] = ()

    @property
    def changed(self) -> bool:
        return self.previous != self.entity

    @property
    def rejected(self) -> bool:
        return self.entity.is_rejected

    @property
    def revealed(self) -> bool:
        """True only for the transition that actually revealed contacts."""
        return any(
            e.event_type == WorkflowEventType.CONTACT_DETAILS_REVEALED for e in self.events
        )

    def to_dict(self) -> dict:
        return {
            "entity": self.entity.to_dict(),
            "changed": self.changed,
            "rejected": self.rejected,
            "revealed": self.revealed,
            "events": [e.to_dict() for e in self.events],
        }


# Co-investment offer gates: status -> decision -> next status
CO_INVESTMENT_TRANSITIONS: dict[CoInvestmentStatus, dict[Decision, CoInvestmentStatus]] = {
    CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL: {
        Decision.APPROVE: CoInvestmentStatus.PENDING_LEAD_INVESTOR_APPROVAL,
        Decision.REJECT: CoInvestmentStatus.INVESTOR_ADVISOR_REJECTED,
    },
}

_TRACK_STATUS = {
    Decision.APPROVE: ApprovalStatus.APPROVED,
    Decision.REJECT: ApprovalStatus.REJECTED,
}


def next_offer_stage(
    stage: int,
    investor_status: ApprovalStatus,
    startup_status: ApprovalStatus,
) -> int:
    """
    Stage a direct offer should sit at, given its approval tracks.

    A rejected track freezes the stage. Otherwise the first pending track
    decides the stage (investor first, then startup); with both tracks
    approved or not required the offer is ready (stage 3). The result never
    drops below the current stage.
    """
    if ApprovalStatus.REJECTED in (investor_status, startup_status):
        return stage

    if investor_status == ApprovalStatus.PENDING:
        target = STAGE_INVESTOR_ADVISOR
    elif startup_status == ApprovalStatus.PENDING:
        target = STAGE_STARTUP_ADVISOR
    else:
        target = STAGE_READY

    return max(stage, target)


def _event(entity: WorkflowEntity, event_type: WorkflowEventType, now: datetime,
           role: Optional[ActingRole] = None, **payload) -> WorkflowEvent:
    return WorkflowEvent(
        event_type=event_type,
        entity_kind=entity.kind.value,
        entity_id=entity.entity_id,
        occurred_at=now,
        role=role,
        payload=payload,
    )


def _decision_event(entity: WorkflowEntity, decision: Decision, role: ActingRole,
                    now: datetime) -> WorkflowEvent:
    event_type = (
        WorkflowEventType.APPROVED if decision == Decision.APPROVE
        else WorkflowEventType.REJECTED
    )
    return _event(entity, event_type, now, role)


def _apply_offer(offer: Offer, role: ActingRole, decision: Decision,
                 now: datetime) -> TransitionResult:
    track_status = _TRACK_STATUS[decision]

    if role == ActingRole.INVESTOR_ADVISOR:
        updated = replace(
            offer,
            investor_advisor_approval_status=track_status,
            investor_advisor_approval_at=now,
        )
    else:
        updated = replace(
            offer,
            startup_advisor_approval_status=track_status,
            startup_advisor_approval_at=now,
        )

    events = [_decision_event(offer, decision, role, now)]

    new_stage = next_offer_stage(
        updated.stage,
        updated.investor_advisor_approval_status,
        updated.startup_advisor_approval_status,
    )
    if new_stage != updated.stage:
        events.append(_event(
            offer, WorkflowEventType.STAGE_ADVANCED, now, role,
            from_stage=updated.stage, to_stage=new_stage,
        ))
        updated = replace(updated, stage=new_stage)

    if updated.stage >= STAGE_COMPLETE and not updated.contact_details_revealed:
        revealed = _reveal(updated, now)
        updated = revealed.entity
        events.extend(revealed.events)

    return TransitionResult(previous=offer, entity=updated, events=tuple(events))


def _apply_co_investment_offer(offer: CoInvestmentOffer, role: ActingRole,
                               decision: Decision, now: datetime) -> TransitionResult:
    target = CO_INVESTMENT_TRANSITIONS[offer.status][decision]
    if not is_forward_transition(offer.status, target):
        raise StaleStateError(
            offer.kind.value, offer.offer_id,
            f"cannot move from '{offer.status.value}' to '{target.value}'",
            expected=offer.status.value, actual=target.value,
        )

    updated = replace(
        offer,
        status=target,
        investor_advisor_approval_status=_TRACK_STATUS[decision],
        investor_advisor_approval_at=now,
    )
    events = (
        _decision_event(offer, decision, role, now),
        _event(offer, WorkflowEventType.STATUS_CHANGED, now, role,
               from_status=offer.status.value, to_status=target.value),
    )
    return TransitionResult(previous=offer, entity=updated, events=events)


def _apply_opportunity(opportunity: CoInvestmentOpportunity, role: ActingRole,
                       decision: Decision, now: datetime) -> TransitionResult:
    track_status = _TRACK_STATUS[decision]

    if role == ActingRole.INVESTOR_ADVISOR:
        updated = replace(opportunity, lead_investor_advisor_approval_status=track_status)
        if opportunity.startup_advisor_approval_status == ApprovalStatus.PENDING:
            next_stage = STAGE_STARTUP_ADVISOR
        else:
            next_stage = STAGE_COMPLETE
    else:
        updated = replace(opportunity, startup_advisor_approval_status=track_status)
        next_stage = STAGE_COMPLETE

    events = [_decision_event(opportunity, decision, role, now)]

    if decision == Decision.REJECT:
        updated = replace(updated, status=OpportunityStatus.CLOSED)
        events.append(_event(
            opportunity, WorkflowEventType.STATUS_CHANGED, now, role,
            from_status=opportunity.status.value, to_status=OpportunityStatus.CLOSED.value,
        ))
    else:
        events.append(_event(
            opportunity, WorkflowEventType.STAGE_ADVANCED, now, role,
            from_stage=opportunity.stage, to_stage=next_stage,
        ))
        updated = replace(updated, stage=next_stage)

    return TransitionResult(previous=opportunity, entity=updated, events=tuple(events))


def apply_decision(
    entity: WorkflowEntity,
    role: ActingRole,
    decision: Decision,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Apply an approve/reject decision at the role's gate.

    Args:
        entity: Current snapshot (never mutated)
        role: The acting role
        decision: APPROVE or REJECT
        now: Timestamp to stamp on the transition (defaults to now)

    Returns:
        TransitionResult with the new snapshot and emitted events

    Raises:
        StaleStateError: The role's gate is not open in this snapshot
        UnauthorizedActionError: The role has no gate on this entity
        InvalidReferenceError: No entity was supplied
    """
    can_act(entity, role).raise_for_denial()
    now = now or datetime.now()

    if isinstance(entity, Offer):
        return _apply_offer(entity, role, decision, now)
    if isinstance(entity, CoInvestmentOffer):
        return _apply_co_investment_offer(entity, role, decision, now)
    return _apply_opportunity(entity, role, decision, now)


def _reveal(offer: Offer, now: datetime) -> TransitionResult:
    updated = replace(offer, contact_details_revealed=True, contact_details_revealed_at=now)
    event = _event(
        offer, WorkflowEventType.CONTACT_DETAILS_REVEALED, now,
        startup_id=offer.startup_id, investor_email=offer.investor_email,
    )
    return TransitionResult(previous=offer, entity=updated, events=(event,))


def _require_revealable(offer: Offer) -> None:
    if offer.is_rejected:
        raise StaleStateError(offer.kind.value, offer.offer_id, "offer was rejected")
    if not offer.approvals_cleared:
        raise StaleStateError(
            offer.kind.value, offer.offer_id,
            "both advisor tracks must be approved before contacts are revealed",
            expected="approved",
            actual=(
                offer.investor_advisor_approval_status.value,
                offer.startup_advisor_approval_status.value,
            ),
        )
    if offer.stage < STAGE_READY:
        raise StaleStateError(
            offer.kind.value, offer.offer_id, f"offer is still at stage {offer.stage}",
            expected=STAGE_READY, actual=offer.stage,
        )


def reveal_contact_details(offer: Offer, now: Optional[datetime] = None) -> TransitionResult:
    """
    Reveal both parties' contact details on a fully approved offer.

    Idempotent: an offer that is already revealed comes back unchanged with
    no events.

    Raises:
        StaleStateError: The offer is rejected or not fully approved
    """
    if offer.contact_details_revealed:
        return TransitionResult(previous=offer, entity=offer)
    _require_revealable(offer)
    return _reveal(offer, now or datetime.now())


def negotiate(offer: Offer, now: Optional[datetime] = None) -> TransitionResult:
    """
    Move a ready offer to stage 4 and reveal contact details.

    Repeating the call on a completed, revealed offer is a no-op.

    Raises:
        StaleStateError: The offer is rejected or not fully approved
    """
    if offer.stage == STAGE_COMPLETE and offer.contact_details_revealed:
        return TransitionResult(previous=offer, entity=offer)
    _require_revealable(offer)
    now = now or datetime.now()

    updated = offer
    events: list[WorkflowEvent] = []
    if offer.stage < STAGE_COMPLETE:
        updated = replace(offer, stage=STAGE_COMPLETE)
        events.append(_event(
            offer, WorkflowEventType.STAGE_ADVANCED, now,
            from_stage=offer.stage, to_stage=STAGE_COMPLETE,
        ))

    if not updated.contact_details_revealed:
        revealed = _reveal(updated, now)
        updated = revealed.entity
        events.extend(revealed.events)

    return TransitionResult(previous=offer, entity=updated, events=tuple(events))


def initial_offer_stage(offer: Offer) -> int:
    """Starting stage for a freshly submitted offer, skipping not-required gates."""
    return next_offer_stage(
        STAGE_INVESTOR_ADVISOR,
        offer.investor_advisor_approval_status,
        offer.startup_advisor_approval_status,
    )


def initial_opportunity_stage(opportunity: CoInvestmentOpportunity) -> int:
    """Starting stage for a new opportunity; stage 3 is never used here."""
    if opportunity.lead_investor_advisor_approval_status == ApprovalStatus.PENDING:
        return STAGE_INVESTOR_ADVISOR
    if opportunity.startup_advisor_approval_status == ApprovalStatus.PENDING:
        return STAGE_STARTUP_ADVISOR
    return STAGE_COMPLETE
