import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    @staticmethod
    async def log(
        db: AsyncSession,
        event_type: str,
        source: str,
        status: str,
        user_id: Optional[str] = None,
        reference: Optional[str] = None,
        details: Optional[str] = None
    ) -> Optional[AuditLog]:
        """Record a billing side effect. A failed write never fails the caller."""
        log_entry = AuditLog(
            id=str(uuid.uuid4()),
            user_id=user_id,
            event_type=event_type,
            source=source,
            status=status,
            reference=reference,
            details=details
        )
        try:
            db.add(log_entry)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("[AUDIT_WRITE_ERROR] %s %s: %r", event_type, user_id, e)
            return None
        return log_entry


audit_service = AuditService()
