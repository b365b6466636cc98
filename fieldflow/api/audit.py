from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldflow.api.deps import get_deployment_db, require_operator
from fieldflow.schemas.common import ListResponse
from fieldflow.schemas.deployment import AuditLogCreate, AuditLogRead
from fieldflow.services.audit import audit_logs
from fieldflow.services.common import list_response

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get(
    "",
    response_model=ListResponse[AuditLogRead],
    dependencies=[Depends(require_operator)],
)
def list_audit_logs(
    actor_id: str | None = None,
    action_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_deployment_db),
):
    items = audit_logs.list(db, actor_id, action_type, start, end, order_dir, limit, offset)
    return list_response(items, limit, offset)


@router.post(
    "",
    response_model=AuditLogRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operator)],
)
def create_audit_log(payload: AuditLogCreate, db: Session = Depends(get_deployment_db)):
    return audit_logs.create(db, payload)
