"""
Deal Workflow - FastAPI application

HTTP surface over the workflow service: offers and their approval gates,
co-investment opportunities, mandates, advisor contacts and
recommendations.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from deal_workflow import __version__
from deal_workflow.core import (
    ActingRole,
    ApprovalStatus,
    CoInvestmentOffer,
    CoInvestmentOpportunity,
    CoInvestmentStatus,
    ContactKind,
    Decision,
    EntityKind,
    InvalidReferenceError,
    Mandate,
    MandateOwnerType,
    Offer,
    PlatformEntity,
    StaleStateError,
    Startup,
    TrackedContact,
    UnauthorizedActionError,
    ValidationError,
    WorkflowError,
    describe_offer_stage,
)
from deal_workflow.logging_config import setup_logging
from .service import WorkflowService, get_service
from .storage import RecordKind


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Deal Workflow",
    description="Multi-party deal approval, mandate matching and recommendations API",
    version=__version__,
    lifespan=lifespan,
)


ERROR_STATUS: dict[type, int] = {
    StaleStateError: 409,
    UnauthorizedActionError: 403,
    InvalidReferenceError: 404,
}


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    status = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        400,
    )
    logger.warning("{} {} -> {}: {}", request.method, request.url.path, status, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "field": exc.field},
    )


# Pydantic models for request/response
class OfferCreate(BaseModel):
    startup_id: str
    investor_email: str
    amount: float
    equity_percentage: float
    currency: str = "USD"
    offer_id: Optional[str] = None
    investor_has_advisor: bool = True
    startup_has_advisor: bool = True


class OpportunityCreate(BaseModel):
    startup_id: str
    listed_by: str
    investment_amount: float
    minimum_co_investment: float
    maximum_co_investment: float
    equity_percentage: float = 0.0
    opportunity_id: Optional[str] = None
    lead_investor_has_advisor: bool = True
    startup_has_advisor: bool = True


class CoInvestmentOfferCreate(BaseModel):
    investor_email: str
    amount: float
    equity_percentage: float
    currency: str = "USD"
    offer_id: Optional[str] = None
    investor_has_advisor: bool = True


class DecisionRequest(BaseModel):
    role: ActingRole
    decision: Decision


class MandateCreate(BaseModel):
    owner_id: str
    name: str
    owner_type: str = "advisor"
    stage: Optional[str] = None
    round_type: Optional[str] = None
    domain: Optional[str] = None
    country: Optional[str] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    equity_min: Optional[float] = None
    equity_max: Optional[float] = None
    investor_ids: list[str] = []
    is_active: bool = True
    display_order: int = 0


class StartupInput(BaseModel):
    startup_id: str
    name: str = ""
    sector: str = ""
    domain: str = ""
    stage: str = ""
    round_type: str = ""
    country: str = ""
    investment_ask: Optional[float] = None
    equity_ask: Optional[float] = None


class FilterRequest(BaseModel):
    startups: list[StartupInput]
    detailed: bool = False


class ContactCreate(BaseModel):
    owner_id: str
    kind: str = "investor"
    name: str
    email: str = ""
    phone: str = ""
    notes: str = ""


class PlatformEntityCreate(BaseModel):
    kind: str = "investor"
    name: str
    email: str = ""
    owner_id: Optional[str] = None
    entity_id: Optional[str] = None


class ReconcileRequest(BaseModel):
    owner_id: str
    already_retired: list[str] = []


class LinkRequest(BaseModel):
    platform_entity_id: str


class RecommendRequest(BaseModel):
    startup_id: str
    owner_id: str
    recipient_ids: list[str] = []
    mandate_ids: list[str] = []


def _track(has_advisor: bool) -> ApprovalStatus:
    return ApprovalStatus.PENDING if has_advisor else ApprovalStatus.NOT_REQUIRED


def _offer_payload(offer: Offer) -> dict:
    data = offer.to_dict()
    data["stage_label"] = describe_offer_stage(offer)
    return data


# Routes

@app.get("/api/health")
async def health(service: WorkflowService = Depends(get_service)):
    """Health check endpoint."""
    return {"status": "ok", "records": service.storage.count()}


@app.get("/api/enums")
async def get_enums():
    """Get available enum values for form dropdowns."""
    return {
        "roles": [e.value for e in ActingRole],
        "decisions": [e.value for e in Decision],
        "entity_kinds": [e.value for e in EntityKind],
        "approval_statuses": [e.value for e in ApprovalStatus],
        "co_investment_statuses": [e.value for e in CoInvestmentStatus],
        "mandate_owner_types": [e.value for e in MandateOwnerType],
        "contact_kinds": [e.value for e in ContactKind],
    }


@app.post("/api/offers")
async def create_offer(data: OfferCreate, service: WorkflowService = Depends(get_service)):
    """Submit a direct offer."""
    offer = Offer(
        offer_id=data.offer_id or service.storage.generate_id(RecordKind.OFFER),
        startup_id=data.startup_id,
        investor_email=data.investor_email,
        amount=data.amount,
        equity_percentage=data.equity_percentage,
        currency=data.currency,
        investor_advisor_approval_status=_track(data.investor_has_advisor),
        startup_advisor_approval_status=_track(data.startup_has_advisor),
    )

    try:
        offer = service.submit_offer(offer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return JSONResponse(content=_offer_payload(offer), status_code=201)


@app.get("/api/offers")
async def list_offers(startup_id: Optional[str] = None,
                      service: WorkflowService = Depends(get_service)):
    offers = service.list_entities(EntityKind.OFFER, startup_id)
    return {"offers": [_offer_payload(o) for o in offers], "count": len(offers)}


@app.get("/api/offers/{offer_id}")
async def get_offer(offer_id: str, service: WorkflowService = Depends(get_service)):
    return _offer_payload(service.get_entity(EntityKind.OFFER, offer_id))


@app.post("/api/offers/{offer_id}/reveal")
async def reveal_offer_contacts(offer_id: str, service: WorkflowService = Depends(get_service)):
    """Reveal both parties' contact details on an approved offer."""
    return service.reveal_contact_details(offer_id).to_dict()


@app.post("/api/offers/{offer_id}/negotiate")
async def negotiate_offer(offer_id: str, service: WorkflowService = Depends(get_service)):
    """Move an approved offer into negotiation (stage 4)."""
    return service.negotiate_offer(offer_id).to_dict()


@app.post("/api/opportunities")
async def create_opportunity(data: OpportunityCreate,
                             service: WorkflowService = Depends(get_service)):
    """List a co-investment opportunity."""
    opportunity = CoInvestmentOpportunity(
        opportunity_id=data.opportunity_id or service.storage.generate_id(RecordKind.OPPORTUNITY),
        startup_id=data.startup_id,
        listed_by=data.listed_by,
        investment_amount=data.investment_amount,
        minimum_co_investment=data.minimum_co_investment,
        maximum_co_investment=data.maximum_co_investment,
        equity_percentage=data.equity_percentage,
        lead_investor_advisor_approval_status=_track(data.lead_investor_has_advisor),
        startup_advisor_approval_status=_track(data.startup_has_advisor),
    )

    try:
        opportunity = service.submit_opportunity(opportunity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return JSONResponse(content=opportunity.to_dict(), status_code=201)


@app.get("/api/opportunities/{opportunity_id}")
async def get_opportunity(opportunity_id: str, service: WorkflowService = Depends(get_service)):
    return service.get_entity(EntityKind.OPPORTUNITY, opportunity_id).to_dict()


@app.post("/api/opportunities/{opportunity_id}/offers")
async def create_co_investment_offer(opportunity_id: str, data: CoInvestmentOfferCreate,
                                     service: WorkflowService = Depends(get_service)):
    """Submit a co-investment offer into an opportunity."""
    opportunity = service.get_entity(EntityKind.OPPORTUNITY, opportunity_id)

    if data.investor_has_advisor:
        status = CoInvestmentStatus.PENDING_INVESTOR_ADVISOR_APPROVAL
    else:
        status = CoInvestmentStatus.PENDING_LEAD_INVESTOR_APPROVAL

    offer = CoInvestmentOffer(
        offer_id=data.offer_id or service.storage.generate_id(RecordKind.CO_INVESTMENT_OFFER),
        opportunity_id=opportunity_id,
        startup_id=opportunity.startup_id,
        investor_email=data.investor_email,
        amount=data.amount,
        equity_percentage=data.equity_percentage,
        currency=data.currency,
        status=status,
        investor_advisor_approval_status=_track(data.investor_has_advisor),
    )

    try:
        offer = service.submit_co_investment_offer(offer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return JSONResponse(content=offer.to_dict(), status_code=201)


@app.get("/api/opportunities/{opportunity_id}/offers")
async def list_co_investment_offers(opportunity_id: str,
                                    service: WorkflowService = Depends(get_service)):
    offers = service.list_opportunity_offers(opportunity_id)
    return {"offers": [o.to_dict() for o in offers], "count": len(offers)}


@app.get("/api/workflow/{kind}/{entity_id}/gate")
async def evaluate_gate(kind: EntityKind, entity_id: str, role: ActingRole,
                        service: WorkflowService = Depends(get_service)):
    """Check whether a role may act on an entity now."""
    return service.evaluate_gate(kind, entity_id, role).to_dict()


@app.post("/api/workflow/{kind}/{entity_id}/decision")
async def decide(kind: EntityKind, entity_id: str, data: DecisionRequest,
                 service: WorkflowService = Depends(get_service)):
    """Approve or reject at the role's gate."""
    return service.decide(kind, entity_id, data.role, data.decision).to_dict()


@app.get("/api/mandates")
async def list_mandates(owner_id: Optional[str] = None, active: Optional[bool] = None,
                        service: WorkflowService = Depends(get_service)):
    """List mandates with optional filtering."""
    mandates = service.list_mandates(owner_id=owner_id, active=active)
    return {
        "mandates": [m.to_dict() for m in mandates],
        "count": len(mandates),
    }


@app.get("/api/mandates/{mandate_id}")
async def get_mandate(mandate_id: str, service: WorkflowService = Depends(get_service)):
    return service.get_mandate(mandate_id).to_dict()


@app.post("/api/mandates")
async def create_mandate(data: MandateCreate, service: WorkflowService = Depends(get_service)):
    """Create a new mandate."""
    try:
        mandate_data = data.model_dump()
        mandate_data["mandate_id"] = service.storage.generate_id(RecordKind.MANDATE)

        mandate = service.create_mandate(Mandate.from_dict(mandate_data))

        return JSONResponse(content=mandate.to_dict(), status_code=201)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/mandates/{mandate_id}")
async def update_mandate(mandate_id: str, data: MandateCreate,
                         service: WorkflowService = Depends(get_service)):
    """Update an existing mandate."""
    try:
        mandate_data = data.model_dump()
        mandate_data["mandate_id"] = mandate_id

        return service.update_mandate(Mandate.from_dict(mandate_data)).to_dict()

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/api/mandates/{mandate_id}")
async def delete_mandate(mandate_id: str, service: WorkflowService = Depends(get_service)):
    service.delete_mandate(mandate_id)
    return {"deleted": mandate_id}


@app.get("/api/mandates/{mandate_id}/members")
async def mandate_members(mandate_id: str, service: WorkflowService = Depends(get_service)):
    return {"mandate_id": mandate_id, "investor_ids": service.mandate_members(mandate_id)}


@app.post("/api/mandates/{mandate_id}/filter")
async def filter_startups(mandate_id: str, data: FilterRequest,
                          service: WorkflowService = Depends(get_service)):
    """Run candidate startups through a mandate's criteria."""
    startups = [Startup.from_dict(s.model_dump()) for s in data.startups]

    if data.detailed:
        passed, summary = service.filter_by_mandate_detailed(mandate_id, startups)
        return {
            "startups": [s.to_dict() for s in passed],
            "count": len(passed),
            "summary": summary,
        }

    passed = service.filter_by_mandate(mandate_id, startups)
    return {"startups": [s.to_dict() for s in passed], "count": len(passed)}


@app.post("/api/contacts")
async def add_contact(data: ContactCreate, service: WorkflowService = Depends(get_service)):
    """Track an investor or startup the advisor works with off-platform."""
    try:
        contact = TrackedContact(
            contact_id=service.storage.generate_id(RecordKind.TRACKED_CONTACT),
            owner_id=data.owner_id,
            kind=ContactKind(data.kind),
            name=data.name,
            email=data.email,
            phone=data.phone,
            notes=data.notes,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return JSONResponse(content=service.add_contact(contact).to_dict(), status_code=201)


@app.get("/api/contacts")
async def list_contacts(owner_id: str, service: WorkflowService = Depends(get_service)):
    contacts = service.list_contacts(owner_id)
    return {"contacts": [c.to_dict() for c in contacts], "count": len(contacts)}


@app.post("/api/platform-entities")
async def register_platform_entity(data: PlatformEntityCreate,
                                   service: WorkflowService = Depends(get_service)):
    try:
        entity = PlatformEntity(
            entity_id=data.entity_id or service.storage.generate_id(RecordKind.PLATFORM_ENTITY),
            kind=ContactKind(data.kind),
            name=data.name,
            email=data.email,
            owner_id=data.owner_id,
        )
        service.register_platform_entity(entity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return JSONResponse(content=entity.to_dict(), status_code=201)


@app.post("/api/contacts/reconcile")
async def reconcile_contacts(data: ReconcileRequest,
                             service: WorkflowService = Depends(get_service)):
    """Retire or link tracked contacts that now exist on the platform."""
    return service.reconcile_owner(data.owner_id, data.already_retired).to_dict()


@app.post("/api/contacts/{contact_id}/invite")
async def invite_contact(contact_id: str, service: WorkflowService = Depends(get_service)):
    return service.send_invite(contact_id).to_dict()


@app.post("/api/contacts/{contact_id}/link")
async def link_contact(contact_id: str, data: LinkRequest,
                       service: WorkflowService = Depends(get_service)):
    return service.link_contact(contact_id, data.platform_entity_id).to_dict()


@app.post("/api/recommendations")
async def recommend_startup(data: RecommendRequest,
                            service: WorkflowService = Depends(get_service)):
    """Recommend a startup to investors and mandate groups."""
    result = service.fan_out_recommendations(
        data.startup_id, data.owner_id, data.recipient_ids, data.mandate_ids
    )
    return result.to_dict()


@app.get("/api/recommendations")
async def list_recommendations(owner_id: Optional[str] = None,
                               recipient_id: Optional[str] = None,
                               service: WorkflowService = Depends(get_service)):
    recommendations = service.list_recommendations(owner_id=owner_id, recipient_id=recipient_id)
    return {
        "recommendations": [r.to_dict() for r in recommendations],
        "count": len(recommendations),
    }


# Run with: uvicorn deal_workflow.api.server:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
