"""Read access to the dispatch audit trail."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..audit import AuditLogger
from ..dependencies import get_audit_logger
from ..schemas import AuditEntryResponse, AuditLogListResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    action: str | None = None,
    user_id: str | None = Query(default=None, alias="userId"),
    audit_logger: AuditLogger | None = Depends(get_audit_logger),
) -> AuditLogListResponse:
    if audit_logger is None:
        return AuditLogListResponse(items=[], total=0)
    if action is not None:
        entries = audit_logger.get_logs_by_action(action)
    elif user_id is not None:
        entries = audit_logger.get_logs_by_user(user_id)
    else:
        entries = audit_logger.get_logs()
    if action is not None and user_id is not None:
        entries = [entry for entry in entries if entry.user_id == user_id]
    items = [
        AuditEntryResponse.model_validate(
            {
                "userId": entry.user_id,
                "action": entry.action,
                "resource": entry.resource,
                "details": entry.details,
                "success": entry.success,
                "errorMessage": entry.error_message,
                "timestamp": entry.timestamp,
            }
        )
        for entry in entries
    ]
    return AuditLogListResponse(items=items, total=len(items))
