"""Audit log service."""

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import get_real_ip
from .models import AuditLog


def audit(db: Session, request: Request, action: str, entity_id=None, detail: str = "") -> None:
    """Write an audit log entry. Committed together with the caller's transaction."""
    db.add(
        AuditLog(
            action=action,
            entity_id=str(entity_id) if entity_id is not None else None,
            detail=detail,
            ip_address=get_real_ip(request),
        )
    )
