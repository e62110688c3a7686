"""
Audit service: persists risk-classified mutations and serves the audit trail.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple, Union
from sqlalchemy import select, func, and_, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.config import settings
from schoollib.models.audit_log import AuditLog, AuditAction, ResourceType
from schoollib.schemas.audit_log import AuditLogCreate, AuditLogFilter
from schoollib.services.risk_engine import evaluate_risk

logger = logging.getLogger(__name__)


class AuditService:
    """Service for audit logging of catalog and ledger mutations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_mutation(
        self,
        action: Union[AuditAction, str],
        resource_type: Union[ResourceType, str],
        resource_id: Optional[int],
        previous_state: Optional[Dict[str, Any]],
        new_state: Optional[Dict[str, Any]],
    ) -> Optional[AuditLog]:
        """
        Classify an already-committed mutation and log it when risky.

        The primary mutation is never undone: if the audit write fails it is
        rolled back on its own and None is returned.
        """
        assessment = evaluate_risk(action, resource_type, previous_state, new_state)
        if not assessment.is_risky:
            return None

        data = AuditLogCreate(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            previous_state=previous_state,
            new_state=new_state,
            risk_level=assessment.risk_level,
            notes=assessment.notes,
        )
        try:
            log = await self.create_audit_log(data)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to write audit log for {data.resource_type.value} {resource_id}")
            return None

        logger.info(
            f"Audit [{log.risk_level.value}] {log.action.value} {log.resource_type.value} "
            f"{log.resource_id}: {log.notes}"
        )
        return log

    async def create_audit_log(self, data: AuditLogCreate) -> AuditLog:
        """Create an audit log entry. Only called by record_mutation."""
        log = AuditLog(
            timestamp=datetime.utcnow(),
            user_id=settings.AUDIT_USER_ID,
            **data.model_dump()
        )
        self.db.add(log)
        await self.db.commit()
        await self.db.refresh(log)
        return log

    async def get_audit_logs(
        self,
        filters: AuditLogFilter
    ) -> Tuple[List[AuditLog], int]:
        """Get audit logs with filtering, newest first."""
        query = select(AuditLog)

        conditions = []
        if filters.risk_level:
            conditions.append(AuditLog.risk_level == filters.risk_level)
        if filters.resource_type:
            conditions.append(AuditLog.resource_type == filters.resource_type)
        if filters.action:
            conditions.append(AuditLog.action == filters.action)
        if filters.resource_id is not None:
            conditions.append(AuditLog.resource_id == filters.resource_id)
        if filters.start_date:
            conditions.append(AuditLog.timestamp >= filters.start_date)
        if filters.end_date:
            conditions.append(AuditLog.timestamp <= filters.end_date)

        if conditions:
            query = query.where(and_(*conditions))

        # Count
        count_query = select(func.count(AuditLog.id))
        if conditions:
            count_query = count_query.where(and_(*conditions))
        count_result = await self.db.execute(count_query)
        total = count_result.scalar() or 0

        # Get results
        query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).offset(filters.offset).limit(filters.limit)
        result = await self.db.execute(query)
        logs = list(result.scalars().all())

        return logs, total
