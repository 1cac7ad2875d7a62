"""
Core modules for the deal workflow.

- offer: Direct offer, co-investment offer and opportunity models
- errors: Workflow error taxonomy
- gate: Approval gate evaluation (who may act now)
- transition: Stage transitions, contact-detail revelation
- mandate: Mandate and startup candidate models
- filtering: Filter startups by mandate criteria
- reconciliation: Retire or link advisor-tracked contacts
- recommendation: Recommendation fan-out and recipient selection
- validation: Input validation rules
"""

from .errors import (
    WorkflowError,
    StaleStateError,
    UnauthorizedActionError,
    InvalidReferenceError,
    PartialFailure,
)
from .offer import (
    EntityKind,
    ApprovalStatus,
    CoInvestmentStatus,
    OpportunityStatus,
    Offer,
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    WorkflowEntity,
    entity_from_dict,
)
from .gate import ActingRole, GateDenial, GateResult, can_act, describe_offer_stage
from .transition import (
    Decision,
    WorkflowEventType,
    WorkflowEvent,
    TransitionResult,
    apply_decision,
    next_offer_stage,
    initial_offer_stage,
    initial_opportunity_stage,
    reveal_contact_details,
    negotiate,
)
from .mandate import Mandate, MandateOwnerType, Startup
from .filtering import filter_startups, filter_startups_detailed, get_filter_summary
from .reconciliation import (
    ContactKind,
    InviteStatus,
    TrackedContact,
    PlatformEntity,
    PlatformIndex,
    ReconciliationPlan,
    ReconciliationReport,
    InviteDecision,
    find_contacts_to_retire,
    retire_contacts,
    link_contact,
    decide_invite,
)
from .recommendation import Recommendation, RecipientSelection, FanOutResult, fan_out
from .validation import (
    ValidationError,
    ValidationResult,
    validate_mandate,
    validate_offer,
    validate_opportunity,
    validate_co_investment_offer,
)

__all__ = [
    # Errors
    "WorkflowError",
    "StaleStateError",
    "UnauthorizedActionError",
    "InvalidReferenceError",
    "PartialFailure",
    # Offers
    "EntityKind",
    "ApprovalStatus",
    "CoInvestmentStatus",
    "OpportunityStatus",
    "Offer",
    "CoInvestmentOffer",
    "CoInvestmentOpportunity",
    "WorkflowEntity",
    "entity_from_dict",
    # Gates
    "ActingRole",
    "GateDenial",
    "GateResult",
    "can_act",
    "describe_offer_stage",
    # Transitions
    "Decision",
    "WorkflowEventType",
    "WorkflowEvent",
    "TransitionResult",
    "apply_decision",
    "next_offer_stage",
    "initial_offer_stage",
    "initial_opportunity_stage",
    "reveal_contact_details",
    "negotiate",
    # Mandates
    "Mandate",
    "MandateOwnerType",
    "Startup",
    "filter_startups",
    "filter_startups_detailed",
    "get_filter_summary",
    # Reconciliation
    "ContactKind",
    "InviteStatus",
    "TrackedContact",
    "PlatformEntity",
    "PlatformIndex",
    "ReconciliationPlan",
    "ReconciliationReport",
    "InviteDecision",
    "find_contacts_to_retire",
    "retire_contacts",
    "link_contact",
    "decide_invite",
    # Recommendations
    "Recommendation",
    "RecipientSelection",
    "FanOutResult",
    "fan_out",
    # Validation
    "ValidationError",
    "ValidationResult",
    "validate_mandate",
    "validate_offer",
    "validate_opportunity",
    "validate_co_investment_offer",
]
