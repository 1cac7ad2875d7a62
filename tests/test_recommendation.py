"""
Tests for recommendation fan-out and recipient selection.
"""

import pytest

from deal_workflow.core import (
    Mandate,
    RecipientSelection,
    Recommendation,
    fan_out,
)


class FakeRecommendations:
    """In-memory recommendation table with optional failing recipients."""

    def __init__(self, existing=(), failing=()):
        self.rows: list[Recommendation] = []
        self.failing = set(failing)
        for owner_id, startup_id, recipient_id in existing:
            self.create(owner_id, startup_id, recipient_id)

    def exists(self, owner_id, startup_id, recipient_id) -> bool:
        return any(r.key == (owner_id, startup_id, recipient_id) for r in self.rows)

    def create(self, owner_id, startup_id, recipient_id) -> Recommendation:
        if recipient_id in self.failing:
            raise RuntimeError("insert failed")
        row = Recommendation(
            recommendation_id=f"REC-{len(self.rows) + 1}",
            owner_id=owner_id,
            startup_id=startup_id,
            recipient_id=recipient_id,
        )
        self.rows.append(row)
        return row


@pytest.fixture
def group_mandate():
    return Mandate(
        mandate_id="MND-1",
        owner_id="ADV-1",
        name="Seed group",
        investor_ids=["INV-1", "INV-2"],
    )


class TestFanOut:
    """Test fan-out semantics."""

    def test_skips_existing_recipient(self):
        table = FakeRecommendations(existing=[("ADV-1", "42", "2")])

        result = fan_out("42", "ADV-1", ["1", "2", "3"], table.exists, table.create)

        assert set(result.created) == {"1", "3"}
        assert result.skipped == ["2"]
        assert result.failures == []
        assert len(table.rows) == 3

    def test_repeat_call_creates_nothing(self):
        table = FakeRecommendations()
        fan_out("42", "ADV-1", ["1", "2"], table.exists, table.create)

        again = fan_out("42", "ADV-1", ["1", "2"], table.exists, table.create)

        assert again.created == []
        assert again.skipped == ["1", "2"]
        assert len(table.rows) == 2

    def test_duplicate_recipients_collapsed(self):
        table = FakeRecommendations()
        result = fan_out("42", "ADV-1", ["1", "1", "2"], table.exists, table.create)
        assert result.created == ["1", "2"]
        assert len(table.rows) == 2

    def test_existing_for_other_owner_not_skipped(self):
        table = FakeRecommendations(existing=[("ADV-2", "42", "1")])
        result = fan_out("42", "ADV-1", ["1"], table.exists, table.create)
        assert result.created == ["1"]

    def test_partial_failure_continues(self):
        table = FakeRecommendations(failing=["2"])

        result = fan_out("42", "ADV-1", ["1", "2", "3"], table.exists, table.create)

        assert result.created == ["1", "3"]
        assert [f.item_id for f in result.failures] == ["2"]
        assert result.to_dict()["failures"][0]["operation"] == "recommend"

    def test_empty_recipients(self):
        table = FakeRecommendations()
        result = fan_out("42", "ADV-1", [], table.exists, table.create)
        assert result.created == []
        assert result.skipped == []


class TestRecipientSelection:
    """Test pending selection of individuals and mandate groups."""

    def test_select_mandate_adds_members(self, group_mandate):
        selection = RecipientSelection()
        selection.select_investor("INV-9")
        selection.select_mandate(group_mandate)
        assert selection.recipient_ids == {"INV-1", "INV-2", "INV-9"}

    def test_toggle_mandate(self, group_mandate):
        selection = RecipientSelection()
        assert selection.toggle_mandate(group_mandate) is True
        assert selection.selected_mandates == ["MND-1"]
        assert selection.toggle_mandate(group_mandate) is False
        assert selection.recipient_ids == set()

    def test_deselect_keeps_individual_pick(self, group_mandate):
        selection = RecipientSelection()
        selection.select_investor("INV-1")
        selection.select_mandate(group_mandate)
        selection.deselect_mandate("MND-1")
        assert selection.recipient_ids == {"INV-1"}

    def test_members_snapshotted_at_selection(self, group_mandate):
        """Later edits to the mandate do not change the selected group."""
        selection = RecipientSelection()
        selection.select_mandate(group_mandate)
        group_mandate.investor_ids.append("INV-3")
        assert selection.recipient_ids == {"INV-1", "INV-2"}

    def test_clear(self, group_mandate):
        selection = RecipientSelection()
        selection.select_investor("INV-9")
        selection.select_mandate(group_mandate)
        selection.clear()
        assert selection.recipient_ids == set()
        assert selection.selected_mandates == []
