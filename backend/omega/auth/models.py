from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Utilisateur authentifié tel que décrit par son jeton de session."""
    id: str
    email: Optional[str] = None
    is_admin: bool = False
