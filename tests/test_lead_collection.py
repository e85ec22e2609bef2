import threading
from datetime import datetime

import pytest

from leadms.models.lead import LeadStatus, Stage
from leadms.services.lead_collection import (
    LeadCollection,
    LeadMutationError,
    LeadNotFoundError,
    LeadValidationError,
)

from conftest import FakeRecordStore, make_lead_row


def _new_lead_payload(**overrides):
    payload = {
        "business_name": "Green Leaf Cafe",
        "contact_person": "Meera Joshi",
        "phone": "9876543210",
        "email": "",
        "city": "Pune",
        "interested_services": ["SEO", "Graphic Design"],
        "notes_first_call": "",
    }
    payload.update(overrides)
    return payload


def test_load_orders_newest_first(store):
    store.seed("leads", make_lead_row(business_name="old", created_at=datetime(2024, 1, 1)))
    store.seed("leads", make_lead_row(business_name="new", created_at=datetime(2024, 2, 1)))
    collection = LeadCollection(store)
    assert [lead.business_name for lead in collection.load()] == ["new", "old"]


def test_load_failure_degrades_to_empty(store):
    store.seed("leads", make_lead_row())
    store.fail("select")
    collection = LeadCollection(store)
    assert collection.load() == []
    assert collection.snapshot() == []


def test_add_stamps_owner_and_defaults(store, session):
    collection = LeadCollection(store)
    collection.load()
    created = collection.add(_new_lead_payload(), session)

    assert created.user_id == "user-1"
    assert created.created_by == "user-1"
    assert created.stage == Stage.CONTACTED
    assert created.lead_status == LeadStatus.WARM
    assert created.email is None
    assert created.notes_first_call is None
    assert collection.snapshot() == [created]


def test_add_prepends_to_collection(store, session):
    store.seed("leads", make_lead_row(business_name="existing"))
    collection = LeadCollection(store)
    collection.load()
    collection.add(_new_lead_payload(), session)
    assert [lead.business_name for lead in collection.snapshot()] == ["Green Leaf Cafe", "existing"]


@pytest.mark.parametrize("field", ["business_name", "contact_person", "phone"])
def test_add_rejects_blank_required_field_before_calling_store(store, session, field):
    collection = LeadCollection(store)
    with pytest.raises(LeadValidationError):
        collection.add(_new_lead_payload(**{field: "   "}), session)
    assert ("insert", "leads") not in store.calls


def test_add_rejects_unknown_service(store, session):
    collection = LeadCollection(store)
    with pytest.raises(LeadValidationError):
        collection.add(_new_lead_payload(interested_services=["Astrology"]), session)


def test_failed_insert_leaves_collection_untouched(store, session):
    store.seed("leads", make_lead_row(business_name="existing"))
    collection = LeadCollection(store)
    before = collection.load()
    store.fail("insert")
    with pytest.raises(LeadMutationError) as excinfo:
        collection.add(_new_lead_payload(), session)
    assert "Failed to add lead" in excinfo.value.notice
    assert collection.snapshot() == before


def test_update_replaces_row_with_store_response(store):
    row = make_lead_row(city="Pune")
    store.seed("leads", row)
    collection = LeadCollection(store)
    collection.load()

    updated = collection.update(row["id"], {"city": "Nashik", "lead_status": "Hot"})

    assert updated.city == "Nashik"
    assert updated.lead_status == LeadStatus.HOT
    assert updated.updated_at > row["updated_at"]
    assert collection.get(row["id"]) == updated


def test_update_cannot_blank_required_field(store):
    row = make_lead_row()
    store.seed("leads", row)
    collection = LeadCollection(store)
    collection.load()
    with pytest.raises(LeadValidationError):
        collection.update(row["id"], {"phone": ""})
    with pytest.raises(LeadValidationError):
        collection.update(row["id"], {"stage": None})


def test_failed_update_leaves_collection_untouched(store):
    row = make_lead_row(lead_status="Cold")
    store.seed("leads", row)
    collection = LeadCollection(store)
    before = collection.load()
    store.fail("update")
    with pytest.raises(LeadMutationError):
        collection.update(row["id"], {"lead_status": "Hot"})
    assert collection.snapshot() == before


def test_update_unknown_lead(store):
    collection = LeadCollection(store)
    with pytest.raises(LeadNotFoundError):
        collection.update("missing", {"city": "Pune"})


def test_unknown_ids_never_reach_the_store(store):
    store.seed("leads", make_lead_row())
    collection = LeadCollection(store)
    collection.load()
    with pytest.raises(LeadNotFoundError):
        collection.delete("not-a-uuid")
    with pytest.raises(LeadNotFoundError):
        collection.update("not-a-uuid", {"city": "Pune"})
    assert [call for call in store.calls if call[0] != "select"] == []


def test_delete_removes_locally_after_store_confirms(store):
    keep, drop = make_lead_row(business_name="keep"), make_lead_row(business_name="drop")
    store.seed("leads", keep)
    store.seed("leads", drop)
    collection = LeadCollection(store)
    collection.load()

    collection.delete(drop["id"])

    assert [lead.business_name for lead in collection.snapshot()] == ["keep"]


def test_failed_delete_keeps_lead(store):
    row = make_lead_row()
    store.seed("leads", row)
    collection = LeadCollection(store)
    collection.load()
    store.fail("delete")
    with pytest.raises(LeadMutationError):
        collection.delete(row["id"])
    assert collection.get(row["id"]).id == row["id"]


class _DelayedStore(FakeRecordStore):
    """Holds back the response to a chosen update until released."""

    def __init__(self, hold_status):
        super().__init__()
        self.hold_status = hold_status
        self.received = threading.Event()
        self.release = threading.Event()

    def update(self, table, record_id, partial_row):
        response = super().update(table, record_id, partial_row)
        if partial_row.get("lead_status") == self.hold_status:
            self.received.set()
            assert self.release.wait(timeout=5)
        return response


def test_last_response_to_arrive_wins():
    store = _DelayedStore(hold_status=LeadStatus.HOT)
    row = make_lead_row(lead_status="Warm")
    store.seed("leads", row)
    collection = LeadCollection(store)
    collection.load()

    first = threading.Thread(target=collection.update, args=(row["id"], {"lead_status": "Hot"}))
    first.start()
    assert store.received.wait(timeout=5)

    collection.update(row["id"], {"lead_status": "Cold"})
    assert collection.get(row["id"]).lead_status == LeadStatus.COLD

    store.release.set()
    first.join(timeout=5)
    assert collection.get(row["id"]).lead_status == LeadStatus.HOT


def test_projections_read_current_collection(store):
    store.seed("leads", make_lead_row(business_name="a", city="Pune", stage="Follow-ups", created_at=datetime(2024, 1, 2)))
    store.seed("leads", make_lead_row(business_name="b", city="Mumbai", next_followup_date=datetime(2024, 3, 4), created_at=datetime(2024, 1, 1)))
    collection = LeadCollection(store)
    collection.load()

    assert [lead.business_name for lead in collection.visible({"city_contains": "pun"})] == ["a"]
    assert [lead.business_name for lead in collection.followups("all")] == ["b"]
    assert [lead.business_name for lead in collection.board()["Follow-ups"]] == ["a"]
    assert collection.cities() == ["Pune", "Mumbai"]
