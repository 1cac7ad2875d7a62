"""
Reconciliation of advisor-tracked contacts against platform records.

Advisors track investors and startups by hand before those contacts join
the platform. Once the same person or company exists natively, the
hand-kept copy is either linked (platform match found anywhere) or retired
(the platform record is already associated with the same advisor).

The plan is computed from one keyed index per pass; applying it is done
item by item so one failed deletion never stops the rest.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional
from urllib.parse import urlencode

from .errors import PartialFailure, StaleStateError
from .mandate import normalize_text


class ContactKind(Enum):
    INVESTOR = "investor"
    STARTUP = "startup"


class InviteStatus(Enum):
    NONE = "none"
    SENT = "sent"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class TrackedContact:
    """Investor or startup added manually by an advisor."""

    contact_id: str
    owner_id: str
    kind: ContactKind
    name: str
    email: str
    phone: str = ""
    notes: str = ""
    is_on_platform: bool = False
    platform_entity_id: Optional[str] = None
    invite_status: InviteStatus = InviteStatus.NONE
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def email_key(self) -> str:
        return normalize_text(self.email)

    def to_dict(self) -> dict:
        return {
            "contact_id": self.contact_id,
            "owner_id": self.owner_id,
            "kind": self.kind.value,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "notes": self.notes,
            "is_on_platform": self.is_on_platform,
            "platform_entity_id": self.platform_entity_id,
            "invite_status": self.invite_status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackedContact":
        created_at = data.get("created_at")
        return cls(
            contact_id=data["contact_id"],
            owner_id=data["owner_id"],
            kind=ContactKind(data.get("kind", "investor")),
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            notes=data.get("notes", ""),
            is_on_platform=data.get("is_on_platform", False),
            platform_entity_id=data.get("platform_entity_id"),
            invite_status=InviteStatus(data.get("invite_status", "none")),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )


@dataclass(frozen=True)
class PlatformEntity:
    """
    Native platform investor or startup.

    ``owner_id`` is the advisor the entity is associated with, if any.
    """

    entity_id: str
    kind: ContactKind
    name: str
    email: str
    owner_id: Optional[str] = None

    @property
    def email_key(self) -> str:
        return normalize_text(self.email)

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "kind": self.kind.value,
            "name": self.name,
            "email": self.email,
            "owner_id": self.owner_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlatformEntity":
        return cls(
            entity_id=data["entity_id"],
            kind=ContactKind(data.get("kind", "investor")),
            name=data.get("name", ""),
            email=data.get("email", ""),
            owner_id=data.get("owner_id"),
        )


class PlatformIndex:
    """
    Lookup structure built once per reconciliation pass.

    owner -> platform ids, owner -> emails, and (kind, email) -> entity
    across all owners for linking.
    """

    def __init__(self, entities: Iterable[PlatformEntity]):
        self._ids_by_owner: dict[str, set[str]] = {}
        self._emails_by_owner: dict[str, set[str]] = {}
        self._by_email: dict[tuple[ContactKind, str], PlatformEntity] = {}

        for entity in entities:
            key = entity.email_key
            if key:
                self._by_email.setdefault((entity.kind, key), entity)
            if entity.owner_id is None:
                continue
            self._ids_by_owner.setdefault(entity.owner_id, set()).add(entity.entity_id)
            if key:
                self._emails_by_owner.setdefault(entity.owner_id, set()).add(key)

    def owned_by(self, owner_id: str, contact: TrackedContact) -> bool:
        """Contact is already represented by a platform record of the same owner."""
        if contact.platform_entity_id and contact.platform_entity_id in self._ids_by_owner.get(owner_id, ()):
            return True
        key = contact.email_key
        return bool(key) and key in self._emails_by_owner.get(owner_id, ())

    def match_email(self, contact: TrackedContact) -> Optional[PlatformEntity]:
        key = contact.email_key
        if not key:
            return None
        return self._by_email.get((contact.kind, key))


@dataclass
class ReconciliationPlan:
    """Contacts to retire, and contacts to link to a platform record."""

    to_retire: list[TrackedContact] = field(default_factory=list)
    to_link: list[tuple[TrackedContact, PlatformEntity]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_retire and not self.to_link


@dataclass
class ReconciliationReport:
    """Outcome of applying a plan."""

    owner_id: str
    retired: list[str] = field(default_factory=list)
    linked: list[str] = field(default_factory=list)
    failures: list[PartialFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "retired": self.retired,
            "linked": self.linked,
            "failures": [f.to_dict() for f in self.failures],
        }


def find_contacts_to_retire(
    tracked: Iterable[TrackedContact],
    platform: Iterable[PlatformEntity],
    already_retired: Iterable[str] = (),
) -> ReconciliationPlan:
    """
    Decide which tracked contacts are now redundant with platform records.

    A contact is retired when its recorded platform id belongs to the same
    owner's platform entities, or its email (trimmed, case-insensitive)
    matches one of them. Contacts not retired but whose email matches any
    platform entity of the same kind are linked instead.

    Args:
        tracked: Advisor-tracked contacts to inspect
        platform: Platform entities (any owner)
        already_retired: Contact ids to skip

    Returns:
        ReconciliationPlan
    """
    index = PlatformIndex(platform)
    skip = set(already_retired)
    plan = ReconciliationPlan()

    for contact in tracked:
        if contact.contact_id in skip:
            continue
        if index.owned_by(contact.owner_id, contact):
            plan.to_retire.append(contact)
            continue
        if contact.is_on_platform:
            continue
        match = index.match_email(contact)
        if match is not None:
            plan.to_link.append((contact, match))

    return plan


def retire_contacts(
    owner_id: str,
    contacts: Iterable[TrackedContact],
    delete: Callable[[TrackedContact], None],
    report: Optional[ReconciliationReport] = None,
) -> ReconciliationReport:
    """
    Delete each contact independently, collecting per-item failures.

    Args:
        owner_id: Advisor the pass runs for
        contacts: Contacts flagged for retirement
        delete: Deletes one contact; may raise
        report: Existing report to extend

    Returns:
        ReconciliationReport listing retired ids and failures
    """
    report = report or ReconciliationReport(owner_id=owner_id)

    for contact in contacts:
        try:
            delete(contact)
        except Exception as exc:
            report.failures.append(PartialFailure(contact.contact_id, "retire", exc))
            continue
        report.retired.append(contact.contact_id)

    return report


def link_contact(contact: TrackedContact, platform_entity_id: str) -> TrackedContact:
    """Mark a tracked contact as present on the platform."""
    return replace(
        contact,
        is_on_platform=True,
        platform_entity_id=platform_entity_id,
        invite_status=InviteStatus.ACCEPTED,
    )


@dataclass(frozen=True)
class InviteDecision:
    """Whether an invitation should go out, and the link it carries."""

    contact: TrackedContact
    should_send: bool
    link: str

    def to_dict(self) -> dict:
        return {
            "contact_id": self.contact.contact_id,
            "should_send": self.should_send,
            "invite_status": self.contact.invite_status.value,
            "link": self.link,
        }


def build_invite_link(base_url: str, contact: TrackedContact) -> str:
    """Registration link carrying the inviting advisor and contact."""
    query = urlencode({
        "page": "register",
        "role": contact.kind.value,
        "advisor": contact.owner_id,
        "invite": contact.contact_id,
    })
    return f"{base_url.rstrip('/')}/?{query}"


def decide_invite(contact: TrackedContact, base_url: str) -> InviteDecision:
    """
    Decide whether to invite a tracked contact to the platform.

    Contacts already on the platform cannot be invited. A contact that has
    already been sent an invitation keeps its link but is not re-sent.

    Raises:
        StaleStateError: The contact has already joined the platform
    """
    link = build_invite_link(base_url, contact)

    if contact.is_on_platform or contact.invite_status == InviteStatus.ACCEPTED:
        raise StaleStateError(
            "tracked_contact", contact.contact_id, "contact is already on the platform"
        )
    if contact.invite_status == InviteStatus.SENT:
        return InviteDecision(contact=contact, should_send=False, link=link)

    return InviteDecision(
        contact=replace(contact, invite_status=InviteStatus.SENT),
        should_send=True,
        link=link,
    )
