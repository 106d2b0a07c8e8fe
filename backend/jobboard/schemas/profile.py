"""Profile projection embedded in job and application reads."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    role: str
    department: str | None = None
