#!/usr/bin/env python3
"""
Deal Workflow - Demo

Walks through the workflow end to end against an in-memory store:

- Direct offer approval (investor advisor, startup advisor, negotiation)
- Gate denials: stale repeats and unauthorized roles
- Mandate filtering of fundraising startups
- Reconciliation of advisor-tracked contacts
- Recommendation fan-out to individuals and mandate groups

Run with: python run.py
"""

import json

from deal_workflow.api import WorkflowService, WorkflowStorage
from deal_workflow.core import (
    ActingRole,
    ContactKind,
    Decision,
    EntityKind,
    Mandate,
    Offer,
    PlatformEntity,
    StaleStateError,
    Startup,
    TrackedContact,
    UnauthorizedActionError,
    describe_offer_stage,
)


def create_sample_startups() -> list[Startup]:
    """Create sample fundraising startups for demonstration."""
    return [
        Startup("S-1", "Ledgerly", sector="Fintech", domain="Payments",
                stage="Seed", round_type="Seed", country="India",
                investment_ask=250_000, equity_ask=8),
        Startup("S-2", "Agrisense", sector="AgriTech", domain="Sensors",
                stage="Seed", round_type="Seed", country="India",
                investment_ask=99_999, equity_ask=5),
        Startup("S-3", "PayRail", sector="FinTech Infrastructure", domain="",
                stage="seed ", round_type="Seed", country="india",
                investment_ask=500_000, equity_ask=12),
        Startup("S-4", "Cloudnest", sector="SaaS", domain="DevTools",
                stage="Series A", round_type="Series A", country="USA",
                investment_ask=2_000_000, equity_ask=15),
    ]


def demo_offer_approval(service: WorkflowService):
    """Demonstrate the direct offer approval chain."""
    print("\n" + "=" * 60)
    print("OFFER APPROVAL DEMO")
    print("=" * 60)

    offer = service.submit_offer(Offer(
        offer_id="OFR-DEMO-1",
        startup_id="S-1",
        investor_email="ana@example.com",
        amount=250_000,
        equity_percentage=8,
    ))
    print(f"\nSubmitted {offer.offer_id}: {describe_offer_stage(offer)}")

    for role in ActingRole:
        gate = service.evaluate_gate(EntityKind.OFFER, offer.offer_id, role)
        status = "OPEN" if gate.allowed else gate.denial.value.upper()
        print(f"  [{status}] {role.value}: {gate.reason}")

    steps = [
        (ActingRole.INVESTOR_ADVISOR, Decision.APPROVE),
        (ActingRole.INVESTOR_ADVISOR, Decision.APPROVE),
        (ActingRole.INVESTOR, Decision.APPROVE),
        (ActingRole.STARTUP_ADVISOR, Decision.APPROVE),
    ]

    print("\n--- Decisions ---\n")
    for role, decision in steps:
        try:
            result = service.decide(EntityKind.OFFER, offer.offer_id, role, decision)
        except StaleStateError as e:
            print(f"  STALE        {role.value} {decision.value}: {e}")
            continue
        except UnauthorizedActionError as e:
            print(f"  UNAUTHORIZED {role.value} {decision.value}: {e}")
            continue
        events = ", ".join(ev.event_type.value for ev in result.events)
        print(f"  OK           {role.value} {decision.value} -> "
              f"{describe_offer_stage(result.entity)} [{events}]")

    first = service.negotiate_offer(offer.offer_id)
    second = service.negotiate_offer(offer.offer_id)
    print(f"\nNegotiate: revealed={first.revealed}, stage={first.entity.stage}")
    print(f"Negotiate again: revealed={second.revealed}, events={len(second.events)}")


def demo_mandate_filtering(service: WorkflowService):
    """Demonstrate filtering startups by mandate criteria."""
    print("\n" + "=" * 60)
    print("MANDATE FILTERING DEMO")
    print("=" * 60)

    mandate = service.create_mandate(Mandate(
        mandate_id="MND-DEMO-1",
        owner_id="ADV-1",
        name="Indian fintech seed",
        stage="Seed",
        domain="fintech",
        country="India",
        amount_min=100_000,
        amount_max=500_000,
        investor_ids=["INV-1", "INV-2", "INV-3"],
    ))
    startups = create_sample_startups()

    print(f"\nMandate: {mandate.name} ({mandate.mandate_id})")
    print(f"  Amount: {mandate.amount_min:,.0f} - {mandate.amount_max:,.0f}")

    passed, summary = service.filter_by_mandate_detailed(mandate.mandate_id, startups)
    passed_ids = {s.startup_id for s in passed}

    print(f"\n--- Filtering {len(startups)} startups ---\n")
    for startup in startups:
        status = "PASS" if startup.startup_id in passed_ids else "FAIL"
        print(f"[{status}] {startup.startup_id}: {startup.name} ({startup.sector})")

    print("\n--- Summary ---")
    print(f"  Passed: {summary['passed']}/{summary['total']}")
    print(f"  Failure reasons: {summary['failure_reasons']}")


def demo_reconciliation(service: WorkflowService):
    """Demonstrate retiring and linking advisor-tracked contacts."""
    print("\n" + "=" * 60)
    print("CONTACT RECONCILIATION DEMO")
    print("=" * 60)

    service.add_contact(TrackedContact("CNT-1", "ADV-1", ContactKind.INVESTOR,
                                       "Ana", " Ana@Example.com "))
    service.add_contact(TrackedContact("CNT-2", "ADV-1", ContactKind.INVESTOR,
                                       "Ben", "ben@example.com"))
    service.add_contact(TrackedContact("CNT-3", "ADV-1", ContactKind.STARTUP,
                                       "Agrisense", "hello@agrisense.io"))

    service.register_platform_entity(PlatformEntity(
        "INV-1", ContactKind.INVESTOR, "Ana", "ana@example.com", owner_id="ADV-1"))
    service.register_platform_entity(PlatformEntity(
        "INV-9", ContactKind.INVESTOR, "Ben", "ben@example.com", owner_id="ADV-7"))

    report = service.reconcile_owner("ADV-1")
    print(f"\nFirst pass:  retired={report.retired} linked={report.linked}")
    report = service.reconcile_owner("ADV-1")
    print(f"Second pass: retired={report.retired} linked={report.linked}")

    invite = service.send_invite("CNT-3")
    print(f"\nInvite CNT-3: send={invite.should_send} link={invite.link}")


def demo_recommendations(service: WorkflowService):
    """Demonstrate recommendation fan-out with duplicate skipping."""
    print("\n" + "=" * 60)
    print("RECOMMENDATION FAN-OUT DEMO")
    print("=" * 60)

    first = service.fan_out_recommendations("S-1", "ADV-1", ["INV-2"])
    print(f"\nIndividual: {json.dumps(first.to_dict())}")

    second = service.fan_out_recommendations("S-1", "ADV-1", mandate_ids=["MND-DEMO-1"])
    print(f"Mandate group: {json.dumps(second.to_dict())}")


def main():
    """Run all demos."""
    print("\n" + "=" * 60)
    print("  DEAL WORKFLOW - DEMO")
    print("=" * 60)

    service = WorkflowService(WorkflowStorage())

    demo_offer_approval(service)
    demo_mandate_filtering(service)
    demo_reconciliation(service)
    demo_recommendations(service)

    print("\n" + "=" * 60)
    print("  DEMO COMPLETE")
    print("=" * 60)
    print("\nModules:")
    print("  - deal_workflow.core.gate: Approval gate evaluation")
    print("  - deal_workflow.core.transition: Stage transitions and reveal")
    print("  - deal_workflow.core.filtering: Mandate-based filtering")
    print("  - deal_workflow.core.reconciliation: Tracked contact reconciliation")
    print("  - deal_workflow.core.recommendation: Recommendation fan-out")
    print("  - deal_workflow.api: Storage, service and HTTP API")
    print("\nRun with: python run.py")
    print()


if __name__ == "__main__":
    main()
