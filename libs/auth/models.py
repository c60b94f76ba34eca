import enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, enum.Enum):
    MEMBER = "member"
    COACH = "coach"
    ADMIN = "admin"
    OWNER = "owner"


class Principal(BaseModel):
    """
    The authenticated caller, resolved once per request from the JWT.

    Role strings are normalized here; downstream code only ever compares
    ``Role`` members.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: uuid.UUID = Field(..., alias="sub")
    role: Role
    gym_id: uuid.UUID

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def is_staff_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.OWNER)
