from datetime import datetime, timezone
from typing import FrozenSet, List, Optional

from pydantic import ValidationError

from leadms.auth.session import Session
from leadms.db.record_store import CONVERSATIONS_TABLE, RecordStore, RecordStoreError
from leadms.models.conversation import ConversationCreate, FollowUpConversation
from leadms.services.lead_collection import LeadMutationError, LeadValidationError
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


class ConversationLog:
    """Append-only follow-up notes attached to leads."""

    def __init__(self, store: RecordStore):
        self.store = store

    def list_for_lead(self, lead_id: str, limit: Optional[int] = None) -> List[FollowUpConversation]:
        """Newest conversation first. A failed read yields an empty list."""
        try:
            rows = self.store.select(
                CONVERSATIONS_TABLE,
                order_by="conversation_date",
                direction="desc",
                filters={"lead_id": lead_id},
                limit=limit,
            )
            return [FollowUpConversation.model_validate(row) for row in rows]
        except (RecordStoreError, ValidationError):
            logger.exception("Error fetching conversations for lead id=%s", lead_id)
            return []

    def latest_for_lead(self, lead_id: str) -> Optional[FollowUpConversation]:
        conversations = self.list_for_lead(lead_id, limit=1)
        return conversations[0] if conversations else None

    def add(self, lead_id: str, payload, session: Session) -> FollowUpConversation:
        if not isinstance(payload, ConversationCreate):
            try:
                payload = ConversationCreate.model_validate(payload)
            except ValidationError as exc:
                raise LeadValidationError(exc.errors()) from exc

        row = {
            "lead_id": lead_id,
            "created_by": session.user_id,
            "conversation_text": payload.conversation_text,
            "conversation_date": payload.conversation_date or datetime.now(timezone.utc),
        }
        try:
            created = FollowUpConversation.model_validate(
                self.store.insert(CONVERSATIONS_TABLE, row)
            )
        except (RecordStoreError, ValidationError) as exc:
            logger.exception("Error adding conversation for lead id=%s", lead_id)
            raise LeadMutationError("Failed to save conversation", lead_id) from exc
        logger.info("Conversation id=%s added to lead id=%s", created.id, lead_id)
        return created

    def search_lead_ids(self, query: str) -> FrozenSet[str]:
        """Ids of leads with a conversation whose text contains ``query``."""
        if not isinstance(query, str) or not query.strip():
            return frozenset()
        try:
            rows = self.store.text_search(CONVERSATIONS_TABLE, "conversation_text", query.strip())
        except RecordStoreError:
            logger.exception("Conversation search failed for query=%r", query)
            return frozenset()
        return frozenset(str(row["lead_id"]) for row in rows if row.get("lead_id") is not None)
