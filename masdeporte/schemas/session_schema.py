"""Session credentials and the user profile stored next to them."""

from typing import Optional

from pydantic import BaseModel


class SessionCredentials(BaseModel):
    """Tokens issued by login and rotated by refresh."""

    access_token: str
    refresh_token: str
    role: str


class UserProfile(BaseModel):
    """Profile fields restored together with the session on start."""

    email: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None
    surname: Optional[str] = None
