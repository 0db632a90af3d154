from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr


class CreateUserRequest(BaseModel):
    email: EmailStr
    employee_id: str
    username: str
    password: str
    role: Literal["admin", "manager", "employee", "sales_rep"] = "employee"


class AssignWorkSite(BaseModel):
    work_site_id: int | None = None


class PresenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    username: str | None = None
    online: bool
    last_seen_at: datetime | None = None
