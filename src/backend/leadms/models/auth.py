from typing import Optional

from pydantic import BaseModel, EmailStr


class Credentials(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class SessionOut(BaseModel):
    user_id: str
    email: Optional[str] = None
    # sent back as "Authorization: Bearer <access_token>" on every other call
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[int] = None
