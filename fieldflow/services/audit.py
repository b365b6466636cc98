"""Append-only audit trail for cross-service workflows.

Writes go through a dedicated session so an entry survives whatever happens
to the caller's transaction, including a rollback after a failed step.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldflow.db import DeploymentSessionLocal
from fieldflow.models.deployment import AuditLog
from fieldflow.schemas.deployment import AuditLogCreate
from fieldflow.services.common import apply_ordering, apply_pagination
from fieldflow.services.query_builders import apply_optional_equals, apply_optional_range

logger = logging.getLogger(__name__)


class AuditLogs:
    def __init__(self, session_factory=DeploymentSessionLocal):
        self.session_factory = session_factory

    def log_action(self, actor_id, action_type: str, description: str | None = None) -> AuditLog | None:
        """Record one entry in its own unit of work; failures are logged only."""
        db = self.session_factory()
        try:
            entry = AuditLog(
                actor_id=str(actor_id) if actor_id else None,
                action_type=action_type,
                description=description,
            )
            db.add(entry)
            db.commit()
            db.refresh(entry)
            return entry
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to write audit entry %s: %s", action_type, description)
            return None
        finally:
            db.close()

    @staticmethod
    def create(db: Session, payload: AuditLogCreate) -> AuditLog:
        entry = AuditLog(**payload.model_dump())
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def list(
        db: Session,
        actor_id: str | None = None,
        action_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        order_dir: str = "desc",
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLog]:
        query = db.query(AuditLog)
        query = apply_optional_equals(
            query, {AuditLog.actor_id: actor_id, AuditLog.action_type: action_type}
        )
        query = apply_optional_range(query, AuditLog.created_at, start, end)
        query = apply_ordering(query, "created_at", order_dir, {"created_at": AuditLog.created_at})
        return apply_pagination(query, limit, offset).all()


audit_logs = AuditLogs()
