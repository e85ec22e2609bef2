from typing import List

from pydantic import ValidationError

from leadms.db.record_store import ATTACHMENTS_TABLE, RecordStore, RecordStoreError
from leadms.models.attachment import Attachment
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


def list_attachments(store: RecordStore, lead_id: str) -> List[Attachment]:
    """Newest upload first. A failed read yields an empty list."""
    try:
        rows = store.select(
            ATTACHMENTS_TABLE,
            order_by="uploaded_at",
            direction="desc",
            filters={"lead_id": lead_id},
        )
        return [Attachment.model_validate(row) for row in rows]
    except (RecordStoreError, ValidationError):
        logger.exception("Error fetching attachments for lead id=%s", lead_id)
        return []
