from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from schoollib.core.database import get_db
from schoollib.models.audit_log import AuditAction, ResourceType, RiskLevel
from schoollib.services.audit_service import AuditService
from schoollib.schemas.audit_log import AuditLogFilter, AuditLogListResponse

router = APIRouter()


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    risk_level: Optional[RiskLevel] = Query(None),
    resource_type: Optional[ResourceType] = Query(None),
    action: Optional[AuditAction] = Query(None),
    resource_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Risky mutations, newest first."""
    filters = AuditLogFilter(
        risk_level=risk_level,
        resource_type=resource_type,
        action=action,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    logs, total = await AuditService(db).get_audit_logs(filters)
    return AuditLogListResponse(logs=logs, total=total)
