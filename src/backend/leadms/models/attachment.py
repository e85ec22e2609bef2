from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class Attachment(BaseModel):
    """A file reference recorded against a lead. Uploading is handled elsewhere."""

    id: str
    lead_id: str
    file_name: str
    file_url: str
    file_type: Optional[str] = None
    uploaded_at: datetime
    uploaded_by: str

    @field_validator("id", "lead_id", "uploaded_by", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return str(value) if value is not None else value
