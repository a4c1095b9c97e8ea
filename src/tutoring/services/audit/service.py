from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.tutoring.security import get_current_subject
from src.tutoring.tenancy import get_current_tenant

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Carries ids, types and high-level actions only; free-text fields such as
    session notes or reviews never go into the audit trail.
    """

    timestamp: str
    action: str
    resource_type: str
    tenant_id: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Log a structured audit event as one JSON line on the ``audit`` logger.

        - `action`: high-level verb, e.g. "create_session", "cancel_session".
        - `resource_type`: coarse type, e.g. "tutoring_session", "user".
        - `resource_id`: stable identifier (UUID string) when available.
        - `subject`: caller identifier; defaults to the hashed API-key subject
          of the current request, if any.
        - `extra`: small dict of metadata (user id, role, counts, flags).
        """

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            tenant_id=get_current_tenant(),
            resource_id=resource_id,
            subject=subject if subject is not None else get_current_subject(),
            extra=extra,
        )

        payload = asdict(event)
        try:
            logger.info(json.dumps(payload))
        except TypeError:
            # Something in extra is not JSON serializable; keep the envelope.
            payload["extra"] = None
            logger.info(json.dumps(payload))
        return event


audit_service = AuditService()
