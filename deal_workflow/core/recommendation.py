"""
Recommendation fan-out.

Creates one recommendation record per recipient for an (owner, startup)
pair, skipping recipients who already hold one. Recipients can be picked
individually or through advisor mandates, whose member investors are
expanded when the mandate is selected.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from .errors import PartialFailure
from .mandate import Mandate


@dataclass(frozen=True)
class Recommendation:
    """A startup recommended to one recipient by one owner."""

    recommendation_id: str
    owner_id: str
    startup_id: str
    recipient_id: str
    notes: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.owner_id, self.startup_id, self.recipient_id)

    def to_dict(self) -> dict:
        return {
            "recommendation_id": self.recommendation_id,
            "owner_id": self.owner_id,
            "startup_id": self.startup_id,
            "recipient_id": self.recipient_id,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        created_at = data.get("created_at")
        return cls(
            recommendation_id=data["recommendation_id"],
            owner_id=data["owner_id"],
            startup_id=data["startup_id"],
            recipient_id=data["recipient_id"],
            notes=data.get("notes", ""),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )


@dataclass
class FanOutResult:
    """Outcome of one fan-out call."""

    startup_id: str
    owner_id: str
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[PartialFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "startup_id": self.startup_id,
            "owner_id": self.owner_id,
            "created": self.created,
            "skipped": self.skipped,
            "failures": [f.to_dict() for f in self.failures],
        }


class RecipientSelection:
    """
    Pending recipient set built from individual picks and mandate groups.

    Selecting a mandate adds the investors it holds at that moment;
    deselecting removes them again unless they were also picked on their
    own or belong to another selected mandate.
    """

    def __init__(self):
        self._individual: set[str] = set()
        self._mandates: dict[str, frozenset[str]] = {}

    def select_investor(self, investor_id: str) -> None:
        self._individual.add(investor_id)

    def deselect_investor(self, investor_id: str) -> None:
        self._individual.discard(investor_id)

    def select_mandate(self, mandate: Mandate) -> None:
        self._mandates[mandate.mandate_id] = frozenset(mandate.investor_ids)

    def deselect_mandate(self, mandate_id: str) -> None:
        self._mandates.pop(mandate_id, None)

    def toggle_mandate(self, mandate: Mandate) -> bool:
        """Toggle a mandate group; returns True if it is now selected."""
        if mandate.mandate_id in self._mandates:
            self.deselect_mandate(mandate.mandate_id)
            return False
        self.select_mandate(mandate)
        return True

    @property
    def selected_mandates(self) -> list[str]:
        return list(self._mandates)

    @property
    def recipient_ids(self) -> set[str]:
        recipients = set(self._individual)
        for members in self._mandates.values():
            recipients |= members
        return recipients

    def clear(self) -> None:
        self._individual.clear()
        self._mandates.clear()


def fan_out(
    startup_id: str,
    owner_id: str,
    recipient_ids: Iterable[str],
    exists: Callable[[str, str, str], bool],
    create: Callable[[str, str, str], Optional[Recommendation]],
) -> FanOutResult:
    """
    Create a recommendation for each recipient who does not have one.

    The existence check runs immediately before each insert, which narrows
    but does not close the window for concurrent duplicates. A failed
    insert is recorded and the remaining recipients are still processed.

    Args:
        startup_id: Startup being recommended
        owner_id: Advisor or investor making the recommendation
        recipient_ids: Recipients; duplicates are collapsed
        exists: (owner_id, startup_id, recipient_id) -> already recommended?
        create: (owner_id, startup_id, recipient_id) -> new record

    Returns:
        FanOutResult; empty ``created`` is not an error
    """
    result = FanOutResult(startup_id=startup_id, owner_id=owner_id)

    for recipient_id in dict.fromkeys(recipient_ids):
        try:
            if exists(owner_id, startup_id, recipient_id):
                result.skipped.append(recipient_id)
                continue
            create(owner_id, startup_id, recipient_id)
        except Exception as exc:
            result.failures.append(PartialFailure(recipient_id, "recommend", exc))
            continue
        result.created.append(recipient_id)

    return result
