"""JWT Payload Models"""
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

# Role -> actor tag recorded on bookings (created_by, cancelled_by)
ROLE_ACTORS = {
    "admin": "admin",
    "supervisor": "admin",
    "nanny": "nanny",
    "parent": "parent",
}


class JWTPayload(BaseModel):
    """JWT token payload extracted from Keycloak"""
    user_id: str = Field(..., alias="sub")
    name: str = ""
    nanny_id: Optional[int] = None
    roles: list[str] = []
    permissions: list[str] = []
    iat: Optional[datetime] = None
    exp: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def actor(self) -> str:
        """Most privileged actor tag the roles grant; parents by default."""
        for role in ("admin", "supervisor", "nanny", "parent"):
            if role in self.roles:
                return ROLE_ACTORS[role]
        return "parent"

    @property
    def is_nanny(self) -> bool:
        return self.actor == "nanny"
