from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"
ROLE_INVESTOR = "investor"
ROLE_DRIVER = "driver"
ROLE_SERVICE = "service_role"


class AuthUser(BaseModel):
    """
    Represents the authenticated principal from a bearer token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = ROLE_INVESTOR

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_service(self) -> bool:
        return self.role == ROLE_SERVICE
