from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from .types import AuditAction


class AuditRecordRead(BaseModel):
    id: str
    actor_id: Optional[str] = None  # null once the acting admin is deleted
    action: AuditAction
    entity_table: str
    entity_id: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    created_at: datetime
