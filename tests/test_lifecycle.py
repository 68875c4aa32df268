"""
Complaint lifecycle engine tests: creation, status transitions, assignment,
upvotes, comments and listing, run directly against a mongomock database.
"""

import re
from datetime import timedelta

import pytest

from nyaychain import config, ledger, lifecycle
from nyaychain.errors import NotFound, ValidationFailed
from nyaychain.utils import now_utc


def _create(db, user, category="Water Supply", now=None, title="No water since Monday"):
    return lifecycle.create_complaint(
        db, user["_id"], title, "Taps have been dry for three days.", category,
        73.85, 18.52, "Ward 12, Shivaji Nagar", now=now)


# ═══════════════════════════════════════════════════════════════════════════════
# CREATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestCreateComplaint:
    def test_new_complaint_is_pending_with_one_history_entry(self, db, users, water_supply):
        doc = _create(db, users["citizen"])
        stored = db.complaints.find_one({"_id": doc["_id"]})
        assert stored["status"] == "pending"
        assert len(stored["status_updates"]) == 1
        first = stored["status_updates"][0]
        assert first["status"] == "pending"
        assert first["updated_by"] == users["citizen"]["_id"]
        assert first["note"] == lifecycle.SUBMISSION_NOTE
        assert stored["category"] == water_supply["_id"]
        assert stored["priority"] == "medium"
        assert stored["upvotes"] == [] and stored["comments"] == []
        assert stored["resolution_time"] is None

    def test_category_can_be_given_by_id(self, db, users, water_supply):
        doc = _create(db, users["citizen"], category=water_supply["_id"])
        assert doc["category"] == water_supply["_id"]

    def test_location_is_geojson_point(self, db, users):
        doc = _create(db, users["citizen"])
        assert doc["location"] == {"type": "Point", "coordinates": [73.85, 18.52],
                                   "address": "Ward 12, Shivaji Nagar"}

    def test_ledger_fields_are_stamped(self, db, users):
        doc = _create(db, users["citizen"])
        assert re.fullmatch(r"0x[0-9a-f]{64}", doc["transaction_hash"])
        assert ledger.BLOCK_BASE <= doc["block_number"] < ledger.BLOCK_BASE + ledger.BLOCK_SPREAD
        assert doc["blockchain_timestamp"] is not None

    def test_unknown_category_rejected(self, db, users):
        with pytest.raises(ValidationFailed):
            _create(db, users["citizen"], category="Teleportation")
        assert db.complaints.count_documents({}) == 0

    def test_inactive_category_rejected(self, db, users, water_supply):
        db.categories.update_one({"_id": water_supply["_id"]}, {"$set": {"is_active": False}})
        with pytest.raises(ValidationFailed):
            _create(db, users["citizen"])

    def test_blank_title_rejected(self, db, users):
        with pytest.raises(ValidationFailed):
            _create(db, users["citizen"], title="   ")

    @pytest.mark.parametrize("lng, lat", [(200, 10), (10, -95), ("abc", 10), (None, None)])
    def test_bad_coordinates_rejected(self, db, users, lng, lat):
        with pytest.raises(ValidationFailed):
            lifecycle.create_complaint(db, users["citizen"]["_id"], "t", "d", "Water Supply",
                                       lng, lat, "somewhere")

    def test_too_many_images_rejected(self, db, users):
        with pytest.raises(ValidationFailed):
            lifecycle.build_complaint(db, users["citizen"]["_id"], "t", "d", "Water Supply",
                                      1, 1, "addr", image_paths=[f"/uploads/{i}.png" for i in range(6)])


# ═══════════════════════════════════════════════════════════════════════════════
# STATUS TRANSITIONS
# ═══════════════════════════════════════════════════════════════════════════════

class TestStatusChange:
    def test_water_supply_scenario(self, db, users):
        doc = _create(db, users["citizen"])
        assert doc["status"] == "pending"
        updated = lifecycle.apply_status_change(db, doc["_id"], "resolved", users["admin"]["_id"], note="Fixed")
        assert updated["status"] == "resolved"
        assert len(updated["status_updates"]) == 2
        assert updated["status_updates"][-1]["note"] == "Fixed"
        assert isinstance(updated["resolution_time"], int)

    def test_resolution_time_in_whole_hours(self, db, users):
        created = now_utc() - timedelta(hours=5)
        doc = _create(db, users["citizen"], now=created)
        updated = lifecycle.apply_status_change(db, doc["_id"], "resolved", users["admin"]["_id"])
        assert updated["resolution_time"] == 5

    def test_resolution_time_rounds_half_up(self, db, users):
        created = now_utc()
        doc = _create(db, users["citizen"], now=created)
        updated = lifecycle.apply_status_change(db, doc["_id"], "resolved", users["admin"]["_id"],
                                                now=created + timedelta(hours=2, minutes=30))
        assert updated["resolution_time"] == 3

    def test_resolution_time_set_only_once(self, db, users):
        created = now_utc() - timedelta(hours=5)
        doc = _create(db, users["citizen"], now=created)
        actor = users["admin"]["_id"]
        lifecycle.apply_status_change(db, doc["_id"], "resolved", actor)
        lifecycle.apply_status_change(db, doc["_id"], "in_progress", actor)
        again = lifecycle.apply_status_change(db, doc["_id"], "resolved", actor,
                                              now=now_utc() + timedelta(hours=10))
        assert again["resolution_time"] == 5
        assert len(again["status_updates"]) == 4

    def test_resolving_twice_keeps_first_resolution_time(self, db, users):
        created = now_utc() - timedelta(hours=5)
        doc = _create(db, users["citizen"], now=created)
        actor = users["admin"]["_id"]
        lifecycle.apply_status_change(db, doc["_id"], "resolved", actor)
        again = lifecycle.apply_status_change(db, doc["_id"], "resolved", actor,
                                              now=now_utc() + timedelta(hours=10))
        assert again["resolution_time"] == 5
        assert len(again["status_updates"]) == 3

    def test_stale_read_cannot_overwrite_resolution_time(self, db, users, monkeypatch):
        created = now_utc() - timedelta(hours=5)
        doc = _create(db, users["citizen"], now=created)
        actor = users["admin"]["_id"]
        stale = db.complaints.find_one({"_id": doc["_id"]})
        lifecycle.apply_status_change(db, doc["_id"], "resolved", actor)
        # a second resolver that loaded the complaint before the first write landed
        monkeypatch.setattr(lifecycle, "get_complaint", lambda db, complaint_id: stale)
        again = lifecycle.apply_status_change(db, doc["_id"], "resolved", actor,
                                              now=now_utc() + timedelta(hours=10))
        assert again["resolution_time"] == 5
        assert again["status"] == "resolved"
        assert len(again["status_updates"]) == 3

    def test_default_note_describes_transition(self, db, users):
        doc = _create(db, users["citizen"])
        updated = lifecycle.apply_status_change(db, doc["_id"], "in_progress", users["official"]["_id"])
        assert updated["status_updates"][-1]["note"] == "Status updated from pending to in_progress"
        assert updated["status_updates"][-1]["updated_by"] == users["official"]["_id"]

    def test_history_is_append_only(self, db, users):
        doc = _create(db, users["citizen"])
        before = db.complaints.find_one({"_id": doc["_id"]})["status_updates"]
        after = lifecycle.apply_status_change(db, doc["_id"], "rejected", users["admin"]["_id"])["status_updates"]
        assert after[:len(before)] == before

    def test_invalid_status_rejected(self, db, users):
        doc = _create(db, users["citizen"])
        with pytest.raises(ValidationFailed):
            lifecycle.apply_status_change(db, doc["_id"], "closed", users["admin"]["_id"])
        assert db.complaints.find_one({"_id": doc["_id"]})["status"] == "pending"

    def test_missing_complaint(self, db, users):
        with pytest.raises(NotFound):
            lifecycle.apply_status_change(db, "does-not-exist", "resolved", users["admin"]["_id"])

    def test_any_transition_allowed_by_default(self):
        lifecycle.check_transition("resolved", "pending", enforce=False)

    def test_enforced_graph_blocks_illegal_move(self):
        with pytest.raises(ValidationFailed):
            lifecycle.check_transition("resolved", "pending", enforce=True)
        lifecycle.check_transition("pending", "acknowledged", enforce=True)
        assert lifecycle.allowed_transitions("rejected") == {lifecycle.S.PENDING}

    def test_enforced_graph_allows_repeat_resolve(self, db, users, monkeypatch):
        monkeypatch.setattr(config, "ENFORCE_STATUS_GRAPH", True)
        doc = _create(db, users["citizen"], now=now_utc() - timedelta(hours=2))
        actor = users["admin"]["_id"]
        lifecycle.apply_status_change(db, doc["_id"], "resolved", actor)
        again = lifecycle.apply_status_change(db, doc["_id"], "resolved", actor,
                                              now=now_utc() + timedelta(hours=4))
        assert again["resolution_time"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# ASSIGNMENT
# ═══════════════════════════════════════════════════════════════════════════════

class TestAssign:
    def test_assigning_pending_acknowledges(self, db, users):
        doc = _create(db, users["citizen"])
        updated = lifecycle.assign(db, doc["_id"], users["official"]["_id"], "Water Works",
                                   users["admin"]["_id"], priority="high")
        assert updated["status"] == "acknowledged"
        assert updated["assigned_to"] == users["official"]["_id"]
        assert updated["department"] == "Water Works"
        assert updated["priority"] == "high"
        assert len(updated["status_updates"]) == 2
        assert updated["status_updates"][-1]["note"] == "Assigned to department: Water Works"

    def test_reassigning_adds_no_history(self, db, users):
        doc = _create(db, users["citizen"])
        lifecycle.assign(db, doc["_id"], users["official"]["_id"], "Water Works", users["admin"]["_id"])
        updated = lifecycle.assign(db, doc["_id"], users["admin"]["_id"], "Public Works", users["admin"]["_id"])
        assert updated["status"] == "acknowledged"
        assert updated["department"] == "Public Works"
        assert len(updated["status_updates"]) == 2

    def test_assigning_in_progress_keeps_status(self, db, users):
        doc = _create(db, users["citizen"])
        lifecycle.apply_status_change(db, doc["_id"], "in_progress", users["admin"]["_id"])
        updated = lifecycle.assign(db, doc["_id"], users["official"]["_id"], "Water Works", users["admin"]["_id"])
        assert updated["status"] == "in_progress"
        assert len(updated["status_updates"]) == 2

    def test_assignee_must_be_official_or_admin(self, db, users):
        doc = _create(db, users["citizen"])
        with pytest.raises(ValidationFailed):
            lifecycle.assign(db, doc["_id"], users["citizen2"]["_id"], "Water Works", users["admin"]["_id"])
        assert db.complaints.find_one({"_id": doc["_id"]})["assigned_to"] is None

    def test_department_required(self, db, users):
        doc = _create(db, users["citizen"])
        with pytest.raises(ValidationFailed):
            lifecycle.assign(db, doc["_id"], users["official"]["_id"], " ", users["admin"]["_id"])


# ═══════════════════════════════════════════════════════════════════════════════
# UPVOTES & COMMENTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestEngagement:
    def test_toggle_twice_restores(self, db, users):
        doc = _create(db, users["citizen"])
        first = lifecycle.toggle_upvote(db, doc["_id"], users["citizen2"]["_id"])
        assert first.upvotes == 1 and first.has_upvoted is True
        second = lifecycle.toggle_upvote(db, doc["_id"], users["citizen2"]["_id"])
        assert second.upvotes == 0 and second.has_upvoted is False
        assert db.complaints.find_one({"_id": doc["_id"]})["upvotes"] == []

    def test_two_citizens_then_one_withdraws(self, db, users):
        doc = _create(db, users["citizen"])
        lifecycle.toggle_upvote(db, doc["_id"], users["citizen"]["_id"])
        assert lifecycle.toggle_upvote(db, doc["_id"], users["citizen2"]["_id"]).upvotes == 2
        result = lifecycle.toggle_upvote(db, doc["_id"], users["citizen"]["_id"])
        assert result.upvotes == 1
        assert db.complaints.find_one({"_id": doc["_id"]})["upvotes"] == [users["citizen2"]["_id"]]

    def test_upvote_missing_complaint(self, db, users):
        with pytest.raises(NotFound):
            lifecycle.toggle_upvote(db, "nope", users["citizen"]["_id"])

    def test_comment_appended(self, db, users):
        doc = _create(db, users["citizen"])
        lifecycle.add_comment(db, doc["_id"], users["citizen"]["_id"], "citizen", "Any update?")
        updated = lifecycle.add_comment(db, doc["_id"], users["official"]["_id"], "official", "Crew assigned.")
        assert [c["text"] for c in updated["comments"]] == ["Any update?", "Crew assigned."]
        assert updated["comments"][1]["role"] == "official"

    def test_empty_comment_rejected(self, db, users):
        doc = _create(db, users["citizen"])
        with pytest.raises(ValidationFailed):
            lifecycle.add_comment(db, doc["_id"], users["citizen"]["_id"], "citizen", "  ")


# ═══════════════════════════════════════════════════════════════════════════════
# LISTING
# ═══════════════════════════════════════════════════════════════════════════════

class TestListComplaints:
    def test_pagination(self, db, users):
        base = now_utc() - timedelta(days=1)
        for i in range(7):
            _create(db, users["citizen"], title=f"Complaint {i}", now=base + timedelta(minutes=i))
        page = lifecycle.list_complaints(db, page=2, limit=3)
        assert page["total"] == 7 and page["pages"] == 3
        assert [c["title"] for c in page["complaints"]] == ["Complaint 3", "Complaint 2", "Complaint 1"]

    def test_filters(self, db, users, water_supply):
        mine = _create(db, users["citizen"])
        _create(db, users["citizen2"], category="Electricity")
        lifecycle.apply_status_change(db, mine["_id"], "resolved", users["admin"]["_id"])
        assert lifecycle.list_complaints(db, status="resolved")["total"] == 1
        assert lifecycle.list_complaints(db, category=water_supply["_id"])["total"] == 1
        assert lifecycle.list_complaints(db, submitted_by=users["citizen2"]["_id"])["total"] == 1

    def test_unknown_sort_field_rejected(self, db):
        with pytest.raises(ValidationFailed):
            lifecycle.list_complaints(db, sort="-hashed_password")


# ═══════════════════════════════════════════════════════════════════════════════
# LEDGER
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
class TestLedger:
    async def test_verify_recorded_complaint(self, db, users):
        doc = _create(db, users["citizen"])
        result = await ledger.verify_complaint(doc)
        assert result.verified is True
        assert result.transaction_hash == doc["transaction_hash"]
        assert result.confirmations >= 1
        assert result.explorer_url.endswith(doc["transaction_hash"])

    async def test_complaint_without_receipt_is_unverified(self, db, users):
        doc = _create(db, users["citizen"])
        doc.pop("transaction_hash")
        result = await ledger.verify_complaint(doc)
        assert result.verified is False and result.confirmations == 0
