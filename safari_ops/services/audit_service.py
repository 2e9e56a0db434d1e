from typing import Optional

from sqlalchemy.orm import Session

from safari_ops.models import AuditLog, User


def log_action(
    db: Session,
    user: User,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    details: Optional[str] = None,
):
    """Record an audit log entry. The caller commits."""
    entry = AuditLog(
        user_id=user.id,
        username=user.email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    db.flush()
    return entry
