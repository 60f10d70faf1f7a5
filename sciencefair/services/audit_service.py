"""
sciencefair/services/audit_service.py
Audit trail for administrative actions.

Entries are append-only. Logging is best effort: a failed append is
logged and reported to the caller, never raised.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.orm.audit_log import AuditLog

logger = logging.getLogger(__name__)


def actor_scope(actor) -> dict:
    """Jurisdiction of the acting admin, recorded with every entry."""
    return {
        "region": actor.region,
        "county": actor.county,
        "sub_county": actor.sub_county,
    }


async def append_audit_log(
    db: AsyncSession,
    actor,
    action: str,
    edition_id: Optional[int]
) -> Optional[AuditLog]:
    """
    Record an administrative action.

    The actor is both performer and target; admins holding the actor's
    current role are the audience of the entry.

    Args:
        db: Database session
        actor: User who performed the action
        action: Human-readable description
        edition_id: Edition the action applies to

    Returns:
        Created AuditLog entry, or None if it could not be written
    """
    try:
        entry = AuditLog(
            performing_admin_id=actor.id,
            performing_admin_name=actor.name,
            target_user_id=actor.id,
            target_user_name=actor.name,
            action=action,
            notified_admin_role=actor.current_role,
            scope=actor_scope(actor),
            edition_id=edition_id,
        )
        db.add(entry)
        await db.commit()

        logger.info(f"Audit: {actor.name} (ID: {actor.id}) - {action}")
        return entry

    except SQLAlchemyError as e:
        logger.error(f"Failed to append audit log '{action}': {str(e)}")
        await db.rollback()
        return None
