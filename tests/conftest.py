import copy
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from leadms.auth.provider import AuthError
from leadms.auth.session import Session, SessionContext
from leadms.db.record_store import RecordNotFoundError, RecordStoreError
from leadms.models.lead import Lead

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_lead_row(**overrides):
    row = {
        "id": str(uuid.uuid4()),
        "user_id": "user-1",
        "created_by": "user-1",
        "business_name": "Acme Traders",
        "contact_person": "Ravi Kulkarni",
        "phone": "+91 98220 12345",
        "email": None,
        "address": None,
        "city": None,
        "lead_status": "Warm",
        "stage": "Contacted",
        "next_followup_date": None,
        "interested_services": None,
        "notes_first_call": None,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    row.update(overrides)
    return row


def make_lead(**overrides) -> Lead:
    return Lead.model_validate(make_lead_row(**overrides))


class FakeRecordStore:
    """Dict-backed stand-in for the hosted tables."""

    def __init__(self):
        self.tables = {"leads": [], "followup_conversations": [], "attachments": []}
        self.calls = []
        self.failing = set()
        self._clock = BASE_TIME

    def fail(self, operation):
        self.failing.add(operation)

    def _check(self, operation, table):
        self.calls.append((operation, table))
        if operation in self.failing:
            raise RecordStoreError(operation, table, "connection refused")

    def _tick(self):
        self._clock += timedelta(minutes=1)
        return self._clock

    def seed(self, table, row):
        self.tables[table].append(copy.deepcopy(row))

    def select(self, table, order_by="created_at", direction="desc", filters=None, limit=None):
        self._check("select", table)
        rows = [
            copy.deepcopy(row)
            for row in self.tables[table]
            if all(str(row.get(k)) == str(v) for k, v in (filters or {}).items())
        ]
        rows.sort(key=lambda row: row[order_by], reverse=direction == "desc")
        return rows[:limit] if limit is not None else rows

    def insert(self, table, row):
        self._check("insert", table)
        now = self._tick()
        created = {k: getattr(v, "value", v) for k, v in row.items()}
        created.update(id=str(uuid.uuid4()), created_at=now, updated_at=now)
        self.tables[table].append(created)
        return copy.deepcopy(created)

    def update(self, table, record_id, partial_row):
        self._check("update", table)
        for row in self.tables[table]:
            if row["id"] == record_id:
                row.update({k: getattr(v, "value", v) for k, v in partial_row.items()})
                row["updated_at"] = self._tick()
                return copy.deepcopy(row)
        raise RecordNotFoundError("update", table, record_id)

    def delete(self, table, record_id):
        self._check("delete", table)
        before = len(self.tables[table])
        self.tables[table] = [row for row in self.tables[table] if row["id"] != record_id]
        if len(self.tables[table]) == before:
            raise RecordNotFoundError("delete", table, record_id)
        return True

    def text_search(self, table, column, pattern):
        self._check("text_search", table)
        needle = pattern.lower()
        return [copy.deepcopy(row) for row in self.tables[table] if needle in (row.get(column) or "").lower()]


class StubAuthProvider:
    def __init__(self, user_id="user-1", email="owner@example.com"):
        self.user_id = user_id
        self.email = email
        self.signed_out = []
        self.user_lookups = []
        # tokens the hosted service would still accept, mapped to their user
        self.valid_tokens = {"token-abc": {"id": user_id, "email": email}}

    def _token(self):
        return {
            "access_token": "token-abc",
            "refresh_token": "refresh-abc",
            "expires_in": 3600,
            "user": {"id": self.user_id, "email": self.email},
        }

    def sign_in(self, email, password):
        return self._token()

    def sign_up(self, email, password):
        return self._token()

    def reset_password(self, email):
        return None

    def get_user(self, access_token):
        self.user_lookups.append(access_token)
        if access_token not in self.valid_tokens:
            raise AuthError("/user", 401, "invalid JWT")
        return dict(self.valid_tokens[access_token])

    def sign_out(self, access_token):
        self.signed_out.append(access_token)


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def session():
    return Session(user_id="user-1", email="owner@example.com", access_token="token-abc")


@pytest.fixture
def session_context():
    context = SessionContext(provider=StubAuthProvider()).start()
    yield context
    context.close()
