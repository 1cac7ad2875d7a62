"""
Workflow service.

Ties the pure engines in ``deal_workflow.core`` to the record store. Every
state-changing call reads a versioned snapshot, computes the transition
without side effects, then writes back with a compare-and-set on the
version it read. A concurrent writer makes the second write fail with
StaleStateError instead of silently overwriting.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from loguru import logger

from deal_workflow.config import get_invite_base_url, get_storage_path
from deal_workflow.core import (
    ActingRole,
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    Decision,
    EntityKind,
    GateResult,
    InvalidReferenceError,
    InviteDecision,
    Mandate,
    Offer,
    PartialFailure,
    PlatformEntity,
    RecipientSelection,
    Recommendation,
    ReconciliationReport,
    StaleStateError,
    Startup,
    TrackedContact,
    TransitionResult,
    WorkflowEntity,
    apply_decision,
    can_act,
    decide_invite,
    fan_out,
    FanOutResult,
    filter_startups,
    filter_startups_detailed,
    find_contacts_to_retire,
    get_filter_summary,
    initial_offer_stage,
    initial_opportunity_stage,
    link_contact,
    negotiate,
    retire_contacts,
    reveal_contact_details,
    validate_co_investment_offer,
    validate_mandate,
    validate_offer,
    validate_opportunity,
)
from .storage import RecordKind, WorkflowStorage


ENTITY_RECORD_KINDS: dict[EntityKind, RecordKind] = {
    EntityKind.OFFER: RecordKind.OFFER,
    EntityKind.CO_INVESTMENT_OFFER: RecordKind.CO_INVESTMENT_OFFER,
    EntityKind.OPPORTUNITY: RecordKind.OPPORTUNITY,
}


class WorkflowService:
    """Operations over stored offers, mandates, contacts and recommendations."""

    def __init__(self, storage: WorkflowStorage, invite_base_url: Optional[str] = None):
        self.storage = storage
        self.invite_base_url = invite_base_url or get_invite_base_url()

    # Offers and opportunities

    def submit_offer(self, offer: Offer) -> Offer:
        """
        Store a new direct offer.

        The stored stage skips gates whose advisor track is not required,
        so an offer with no advisors on either side starts ready (stage 3).

        Raises:
            ValidationError: The offer failed validation
        """
        validate_offer(offer).raise_first()
        offer = replace(offer, stage=initial_offer_stage(offer))
        self.storage.create(RecordKind.OFFER, offer)
        logger.info("Offer {} submitted at stage {}", offer.offer_id, offer.stage)
        return offer

    def submit_opportunity(self, opportunity: CoInvestmentOpportunity) -> CoInvestmentOpportunity:
        result = validate_opportunity(opportunity)
        result.raise_first()
        for warning in result.warnings:
            logger.warning("Opportunity {}: {}", opportunity.opportunity_id, warning)

        opportunity = replace(opportunity, stage=initial_opportunity_stage(opportunity))
        self.storage.create(RecordKind.OPPORTUNITY, opportunity)
        logger.info(
            "Opportunity {} listed by {} at stage {}",
            opportunity.opportunity_id, opportunity.listed_by, opportunity.stage,
        )
        return opportunity

    def submit_co_investment_offer(self, offer: CoInvestmentOffer) -> CoInvestmentOffer:
        """
        Store a co-investment offer against an existing opportunity.

        Raises:
            InvalidReferenceError: The opportunity does not exist
            ValidationError: Amount outside the open band, or opportunity closed
        """
        opportunity, _ = self.storage.get_versioned(RecordKind.OPPORTUNITY, offer.opportunity_id)
        validate_co_investment_offer(offer, opportunity).raise_first()
        self.storage.create(RecordKind.CO_INVESTMENT_OFFER, offer)
        logger.info(
            "Co-investment offer {} on opportunity {} ({})",
            offer.offer_id, offer.opportunity_id, offer.status.value,
        )
        return offer

    def get_entity(self, kind: EntityKind, entity_id: str) -> WorkflowEntity:
        entity, _ = self.storage.get_versioned(ENTITY_RECORD_KINDS[kind], entity_id)
        return entity

    def list_entities(self, kind: EntityKind, startup_id: Optional[str] = None) -> list[WorkflowEntity]:
        predicate = None
        if startup_id:
            predicate = lambda e: e.startup_id == startup_id
        return self.storage.query(ENTITY_RECORD_KINDS[kind], predicate)

    def list_opportunity_offers(self, opportunity_id: str) -> list[CoInvestmentOffer]:
        self.get_entity(EntityKind.OPPORTUNITY, opportunity_id)
        return self.storage.query(
            RecordKind.CO_INVESTMENT_OFFER, lambda o: o.opportunity_id == opportunity_id
        )

    def evaluate_gate(self, kind: EntityKind, entity_id: str, role: ActingRole) -> GateResult:
        """Check whether a role may act on the stored entity right now."""
        return can_act(self.get_entity(kind, entity_id), role)

    def decide(
        self,
        kind: EntityKind,
        entity_id: str,
        role: ActingRole,
        decision: Decision,
    ) -> TransitionResult:
        """
        Apply an advisor decision and persist the result.

        Raises:
            StaleStateError: Gate closed, or another decision landed first
            UnauthorizedActionError: Role has no gate on this entity
            InvalidReferenceError: Unknown entity
        """
        record_kind = ENTITY_RECORD_KINDS[kind]
        entity, version = self.storage.get_versioned(record_kind, entity_id)

        result = apply_decision(entity, role, decision)
        self.storage.update(record_kind, result.entity, expected_version=version)

        logger.info(
            "{} {} {} by {} ({} events)",
            kind.value, entity_id, decision.value, role.value, len(result.events),
        )
        if result.revealed:
            logger.info("Contact details revealed for {} {}", kind.value, entity_id)
        return result

    def reveal_contact_details(self, offer_id: str) -> TransitionResult:
        """Reveal contacts on a fully approved offer; at most one reveal is recorded."""
        return self._write_offer_transition(offer_id, reveal_contact_details)

    def negotiate_offer(self, offer_id: str) -> TransitionResult:
        """Move a ready offer to stage 4 and reveal contacts."""
        return self._write_offer_transition(offer_id, negotiate)

    def _write_offer_transition(
        self,
        offer_id: str,
        transition: Callable[[Offer], TransitionResult],
    ) -> TransitionResult:
        offer, version = self.storage.get_versioned(RecordKind.OFFER, offer_id)
        result = transition(offer)
        if not result.changed:
            return result

        try:
            self.storage.update(RecordKind.OFFER, result.entity, expected_version=version)
        except StaleStateError:
            # A concurrent writer may already have revealed; re-read and settle
            current, _ = self.storage.get_versioned(RecordKind.OFFER, offer_id)
            if current.contact_details_revealed:
                logger.debug("Offer {} already revealed by a concurrent call", offer_id)
                return TransitionResult(previous=current, entity=current)
            raise

        if result.revealed:
            logger.info("Contact details revealed for offer {}", offer_id)
        return result

    # Mandates

    def create_mandate(self, mandate: Mandate) -> Mandate:
        """
        Validate and store a mandate.

        Raises:
            ValidationError: The mandate failed validation
            ValueError: A mandate with the same id exists
        """
        result = validate_mandate(mandate)
        result.raise_first()
        for warning in result.warnings:
            logger.debug("Mandate {}: {}", mandate.mandate_id, warning)

        self.storage.create(RecordKind.MANDATE, mandate)
        logger.info("Mandate {} created for {}", mandate.mandate_id, mandate.owner_id)
        return mandate

    def get_mandate(self, mandate_id: str) -> Mandate:
        mandate, _ = self.storage.get_versioned(RecordKind.MANDATE, mandate_id)
        return mandate

    def list_mandates(self, owner_id: Optional[str] = None,
                      active: Optional[bool] = None) -> list[Mandate]:
        """List mandates ordered by display order, then name."""
        mandates = self.storage.query(RecordKind.MANDATE)

        if owner_id is not None:
            mandates = [m for m in mandates if m.owner_id == owner_id]
        if active is not None:
            mandates = [m for m in mandates if m.is_active == active]

        return sorted(mandates, key=lambda m: (m.display_order, m.name))

    def update_mandate(self, mandate: Mandate) -> Mandate:
        existing, version = self.storage.get_versioned(RecordKind.MANDATE, mandate.mandate_id)
        mandate.created_at = existing.created_at
        mandate.updated_at = datetime.now()

        validate_mandate(mandate).raise_first()
        self.storage.update(RecordKind.MANDATE, mandate, expected_version=version)
        logger.info("Mandate {} updated", mandate.mandate_id)
        return mandate

    def delete_mandate(self, mandate_id: str) -> None:
        if not self.storage.delete(RecordKind.MANDATE, mandate_id):
            raise InvalidReferenceError(RecordKind.MANDATE.value, mandate_id)
        logger.info("Mandate {} deleted", mandate_id)

    def mandate_members(self, mandate_id: str) -> list[str]:
        """Investor ids currently grouped under a mandate."""
        return list(self.get_mandate(mandate_id).investor_ids)

    def filter_by_mandate(self, mandate_id: str, candidates: list[Startup]) -> list[Startup]:
        """
        Filter candidate startups through a stored mandate.

        Raises:
            InvalidReferenceError: Unknown mandate
        """
        mandate = self.get_mandate(mandate_id)
        matches = filter_startups(candidates, mandate)
        logger.debug(
            "Mandate {} matched {}/{} startups", mandate_id, len(matches), len(candidates)
        )
        return matches

    def filter_by_mandate_detailed(self, mandate_id: str,
                                   candidates: list[Startup]) -> tuple[list[Startup], dict]:
        """Like ``filter_by_mandate`` but also returns a failure-reason summary."""
        mandate = self.get_mandate(mandate_id)
        passed, results = filter_startups_detailed(candidates, mandate)
        return passed, get_filter_summary(results)

    # Tracked contacts

    def add_contact(self, contact: TrackedContact) -> TrackedContact:
        self.storage.create(RecordKind.TRACKED_CONTACT, contact)
        logger.info("Contact {} added by {}", contact.contact_id, contact.owner_id)
        return contact

    def list_contacts(self, owner_id: str) -> list[TrackedContact]:
        return self.storage.query(RecordKind.TRACKED_CONTACT, lambda c: c.owner_id == owner_id)

    def register_platform_entity(self, entity: PlatformEntity) -> PlatformEntity:
        self.storage.create(RecordKind.PLATFORM_ENTITY, entity)
        return entity

    def reconcile_owner(self, owner_id: str,
                        already_retired: Iterable[str] = ()) -> ReconciliationReport:
        """
        Link or retire an advisor's tracked contacts against platform records.

        One failing item is recorded in the report and never stops the rest.
        A second pass over unchanged data retires and links nothing.
        """
        if not owner_id:
            raise InvalidReferenceError("owner", owner_id)

        versioned = self.storage.query_versioned(
            RecordKind.TRACKED_CONTACT, lambda c: c.owner_id == owner_id
        )
        versions = {c.contact_id: v for c, v in versioned}
        contacts = [c for c, _ in versioned]
        emails = {c.email_key for c in contacts if c.email_key}
        platform = self.storage.query(
            RecordKind.PLATFORM_ENTITY,
            lambda e: e.owner_id == owner_id or e.email_key in emails,
        )

        plan = find_contacts_to_retire(contacts, platform, already_retired)
        report = ReconciliationReport(owner_id=owner_id)
        if plan.is_empty:
            return report

        for contact, entity in plan.to_link:
            try:
                self.storage.update(
                    RecordKind.TRACKED_CONTACT,
                    link_contact(contact, entity.entity_id),
                    expected_version=versions[contact.contact_id],
                )
            except Exception as exc:
                report.failures.append(PartialFailure(contact.contact_id, "link", exc))
                continue
            report.linked.append(contact.contact_id)

        retire_contacts(owner_id, plan.to_retire, self._delete_contact, report)

        logger.info(
            "Reconciled contacts for {}: {} retired, {} linked, {} failed",
            owner_id, len(report.retired), len(report.linked), len(report.failures),
        )
        for failure in report.failures:
            logger.warning("Reconciliation: {}", failure)
        return report

    def _delete_contact(self, contact: TrackedContact) -> None:
        if not self.storage.delete(RecordKind.TRACKED_CONTACT, contact.contact_id):
            raise InvalidReferenceError(RecordKind.TRACKED_CONTACT.value, contact.contact_id)

    def link_contact(self, contact_id: str, platform_entity_id: str) -> TrackedContact:
        """Mark a tracked contact as the given platform record."""
        contact, version = self.storage.get_versioned(RecordKind.TRACKED_CONTACT, contact_id)
        self.storage.get_versioned(RecordKind.PLATFORM_ENTITY, platform_entity_id)

        linked = link_contact(contact, platform_entity_id)
        self.storage.update(RecordKind.TRACKED_CONTACT, linked, expected_version=version)
        logger.info("Contact {} linked to {}", contact_id, platform_entity_id)
        return linked

    def send_invite(self, contact_id: str) -> InviteDecision:
        """
        Invite a tracked contact to join the platform.

        Raises:
            StaleStateError: The contact is already on the platform
        """
        contact, version = self.storage.get_versioned(RecordKind.TRACKED_CONTACT, contact_id)
        decision = decide_invite(contact, self.invite_base_url)

        if decision.should_send:
            self.storage.update(
                RecordKind.TRACKED_CONTACT, decision.contact, expected_version=version
            )
            logger.info("Invite sent to contact {}: {}", contact_id, decision.link)
        else:
            logger.debug("Invite for contact {} already sent", contact_id)
        return decision

    # Recommendations

    def fan_out_recommendations(
        self,
        startup_id: str,
        owner_id: str,
        recipient_ids: Iterable[str] = (),
        mandate_ids: Iterable[str] = (),
    ) -> FanOutResult:
        """
        Recommend a startup to individual recipients and mandate groups.

        Mandate members are expanded at call time. Recipients already holding
        a recommendation from this owner are skipped.

        Raises:
            InvalidReferenceError: Missing startup/owner, or unknown mandate
        """
        if not startup_id:
            raise InvalidReferenceError("startup", startup_id)
        if not owner_id:
            raise InvalidReferenceError("owner", owner_id)

        recipients = list(recipient_ids)
        for mandate_id in mandate_ids:
            recipients.extend(self.mandate_members(mandate_id))

        result = fan_out(startup_id, owner_id, recipients, self._has_recommendation,
                         self._create_recommendation)

        logger.info(
            "Startup {} recommended by {}: {} created, {} skipped, {} failed",
            startup_id, owner_id, len(result.created), len(result.skipped), len(result.failures),
        )
        for failure in result.failures:
            logger.warning("Recommendation: {}", failure)
        return result

    def fan_out_selection(self, startup_id: str, owner_id: str,
                          selection: RecipientSelection) -> FanOutResult:
        """Fan out to everyone in a pending recipient selection."""
        return self.fan_out_recommendations(startup_id, owner_id, sorted(selection.recipient_ids))

    def list_recommendations(self, owner_id: Optional[str] = None,
                             recipient_id: Optional[str] = None) -> list[Recommendation]:
        recommendations = self.storage.query(RecordKind.RECOMMENDATION)
        if owner_id is not None:
            recommendations = [r for r in recommendations if r.owner_id == owner_id]
        if recipient_id is not None:
            recommendations = [r for r in recommendations if r.recipient_id == recipient_id]
        return recommendations

    def _has_recommendation(self, owner_id: str, startup_id: str, recipient_id: str) -> bool:
        key = (owner_id, startup_id, recipient_id)
        return bool(self.storage.query(RecordKind.RECOMMENDATION, lambda r: r.key == key))

    def _create_recommendation(self, owner_id: str, startup_id: str,
                               recipient_id: str) -> Recommendation:
        recommendation = Recommendation(
            recommendation_id=self.storage.generate_id(RecordKind.RECOMMENDATION),
            owner_id=owner_id,
            startup_id=startup_id,
            recipient_id=recipient_id,
        )
        return self.storage.create(RecordKind.RECOMMENDATION, recommendation)


# Global service instance
_service: Optional[WorkflowService] = None


def get_service() -> WorkflowService:
    """Get or create the global service instance."""
    global _service
    if _service is None:
        _service = WorkflowService(WorkflowStorage(get_storage_path()))
        logger.info("Workflow service ready (storage: {})", get_storage_path() or "memory")
    return _service
