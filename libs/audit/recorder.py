from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from libs.audit.models import AuditLog
from libs.common.logging import get_request_id
from sqlalchemy.ext.asyncio import AsyncSession

SYSTEM_ACTOR = "system"


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def record_audit(
    db: AsyncSession,
    *,
    entity_type: str,
    entity_id: Any,
    action: str,
    actor: Optional[str],
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    reason: Optional[str] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction.

    Nothing is flushed here; the row commits or rolls back with the change it
    describes.
    """
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or SYSTEM_ACTOR,
        before=_plain(before) if before is not None else None,
        after=_plain(after) if after is not None else None,
        reason=reason,
        request_id=get_request_id(),
    )
    db.add(entry)
    return entry
