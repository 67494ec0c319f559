from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user from a Supabase-issued JWT.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    # Marketplace account type: user, booking_agent, admin_agent, venue, ...
    user_type: Optional[str] = None
    is_admin_agent: bool = False

    @property
    def is_service(self) -> bool:
        return self.role == "service_role"

    @property
    def is_operator(self) -> bool:
        return self.is_service or self.user_type == "admin_agent" or self.is_admin_agent
