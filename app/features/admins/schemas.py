"""
Admin identity schemas.

Admins are only identified (id, username, email); authentication is handled
outside this service. The id is what ends up in audit_logs.actor_id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class AdminBase(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    email: EmailStr
    role: str = "admin"


class AdminCreate(AdminBase):
    pass


class AdminRead(AdminBase):
    id: str
    is_active: bool = True
    created_at: datetime
    last_login: Optional[datetime] = None
