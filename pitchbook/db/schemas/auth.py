from datetime import datetime
from pydantic import BaseModel

from .user import User


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    access_expires_at: datetime
    refresh_expires_at: datetime
    user: User


class RefreshRequest(BaseModel):
    refresh_token: str
