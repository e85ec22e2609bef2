import threading
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from leadms.auth.session import Session
from leadms.db.record_store import (
    LEADS_TABLE,
    RecordNotFoundError,
    RecordStore,
    RecordStoreError,
)
from leadms.models.lead import Lead, LeadCreate, LeadUpdate, Stage
from leadms.services.filters import (
    FilterCriteria,
    apply_filters,
    group_by_stage,
    unique_cities,
)
from leadms.services.followups import BUCKET_ALL, classify_by_followup
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


class LeadValidationError(ValueError):
    """Input rejected before anything was sent to the store."""

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("Lead data is invalid.")
        self.errors = errors


class LeadMutationError(RuntimeError):
    """A remote write failed; the local collection was left as it was."""

    def __init__(self, notice: str, lead_id: str | None = None):
        super().__init__(notice)
        self.notice = notice
        self.lead_id = lead_id


class LeadNotFoundError(LookupError):
    def __init__(self, lead_id: str):
        super().__init__(f"Lead {lead_id} not found.")
        self.lead_id = lead_id


class LeadCollection:
    """The dashboard's in-memory copy of the leads table.

    Only this object writes to its list, and only after the store has
    answered. Writes are not queued or versioned: whichever response
    arrives last is what the list shows.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._leads: List[Lead] = []
        self._lock = threading.Lock()

    # --- reads ---------------------------------------------------------------------------

    def load(self) -> List[Lead]:
        try:
            rows = self.store.select(LEADS_TABLE, order_by="created_at", direction="desc")
            leads = [Lead.model_validate(row) for row in rows]
        except (RecordStoreError, ValidationError):
            logger.exception("Error fetching leads; showing an empty list")
            leads = []
        with self._lock:
            self._leads = leads
        logger.info("Loaded %d leads", len(leads))
        return list(leads)

    def snapshot(self) -> List[Lead]:
        with self._lock:
            return list(self._leads)

    def get(self, lead_id: str) -> Lead:
        for lead in self.snapshot():
            if lead.id == lead_id:
                return lead
        raise LeadNotFoundError(lead_id)

    def visible(self, criteria: Any = None) -> List[Lead]:
        return apply_filters(self.snapshot(), criteria)

    def followups(self, bucket: str = BUCKET_ALL, today: Optional[date] = None) -> List[Lead]:
        return classify_by_followup(self.snapshot(), bucket, today=today)

    def board(self, criteria: Optional[FilterCriteria] = None) -> Dict[str, List[Lead]]:
        return group_by_stage(self.visible(criteria))

    def cities(self) -> List[str]:
        return unique_cities(self.snapshot())

    # --- mutations -----------------------------------------------------------------------

    def add(self, payload: Any, session: Session) -> Lead:
        if not isinstance(payload, LeadCreate):
            try:
                payload = LeadCreate.model_validate(payload)
            except ValidationError as exc:
                raise LeadValidationError(exc.errors()) from exc

        row = payload.model_dump()
        row["email"] = str(payload.email) if payload.email else None
        row["stage"] = Stage.CONTACTED
        row["user_id"] = session.user_id
        row["created_by"] = session.user_id

        try:
            created = Lead.model_validate(self.store.insert(LEADS_TABLE, row))
        except (RecordStoreError, ValidationError) as exc:
            logger.exception("Error adding lead business_name=%s", payload.business_name)
            raise LeadMutationError("Failed to add lead. Please try again.") from exc

        with self._lock:
            self._leads.insert(0, created)
        logger.info("Lead created id=%s by user_id=%s", created.id, session.user_id)
        return created

    def update(self, lead_id: str, changes: Any) -> Lead:
        if not isinstance(changes, LeadUpdate):
            try:
                changes = LeadUpdate.model_validate(changes)
            except ValidationError as exc:
                raise LeadValidationError(exc.errors()) from exc
        updates = changes.model_dump(exclude_unset=True)
        if "email" in updates and updates["email"] is not None:
            updates["email"] = str(updates["email"])
        if not updates:
            raise LeadValidationError([{"msg": "No editable fields were provided."}])
        return self._write(lead_id, updates)

    def _write(self, lead_id: str, updates: Mapping[str, Any]) -> Lead:
        self.get(lead_id)
        try:
            row = self.store.update(LEADS_TABLE, lead_id, updates)
        except RecordNotFoundError as exc:
            raise LeadNotFoundError(lead_id) from exc
        except RecordStoreError as exc:
            logger.exception("Error updating lead id=%s", lead_id)
            raise LeadMutationError("Failed to update lead", lead_id) from exc

        try:
            updated = Lead.model_validate(row)
        except ValidationError as exc:
            logger.exception("Store returned an unreadable row for lead id=%s", lead_id)
            raise LeadMutationError("Failed to update lead", lead_id) from exc

        # completion handler: the response that arrives last overwrites the row
        with self._lock:
            self._leads = [updated if lead.id == lead_id else lead for lead in self._leads]
        return updated

    def delete(self, lead_id: str) -> None:
        # ids the dashboard never loaded are not sent to the store
        self.get(lead_id)
        try:
            self.store.delete(LEADS_TABLE, lead_id)
        except RecordNotFoundError as exc:
            raise LeadNotFoundError(lead_id) from exc
        except RecordStoreError as exc:
            logger.exception("Error deleting lead id=%s", lead_id)
            raise LeadMutationError("Failed to delete lead", lead_id) from exc

        with self._lock:
            self._leads = [lead for lead in self._leads if lead.id != lead_id]
        logger.info("Lead deleted id=%s", lead_id)
