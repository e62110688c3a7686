from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from schoollib.models.audit_log import AuditAction, ResourceType, RiskLevel


class AuditLogCreate(BaseModel):
    """Schema for creating an audit log entry."""
    action: AuditAction
    resource_type: ResourceType
    resource_id: Optional[int] = None
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    risk_level: RiskLevel
    notes: Optional[str] = None


class AuditLogResponse(BaseModel):
    """Response schema for audit log."""
    id: int
    timestamp: datetime
    action: AuditAction
    resource_type: ResourceType
    resource_id: Optional[int] = None
    user_id: str
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    risk_level: RiskLevel
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AuditLogFilter(BaseModel):
    """Filter parameters for querying audit logs."""
    risk_level: Optional[RiskLevel] = None
    resource_type: Optional[ResourceType] = None
    action: Optional[AuditAction] = None
    resource_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
