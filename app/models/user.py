from pydantic import BaseModel, EmailStr
from typing import Optional


class CurrentUser(BaseModel):
    """Identity taken from a verified Firebase ID token."""
    uid: str                      # From Firebase Auth
    email: Optional[str] = None   # Lowercased
    is_anonymous: bool = False
    name: Optional[str] = None


class AuthSession(BaseModel):
    """Tokens handed back to the browser after sign-in or restore."""
    uid: str
    email: Optional[str] = None
    id_token: str
    refresh_token: str
    expires_in: int = 3600
    is_anonymous: bool = False


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class RefreshPayload(BaseModel):
    refresh_token: str
