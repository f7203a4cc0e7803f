import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from models.audit_log import AuditAction


class AuditLogRead(BaseModel):
    id: uuid.UUID
    action: AuditAction
    details: Optional[str]
    user_id: uuid.UUID
    issue_id: Optional[uuid.UUID]
    created_at: datetime

    class Config:
        from_attributes = True
