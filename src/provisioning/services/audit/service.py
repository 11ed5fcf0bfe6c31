from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")

# Keys that must never be written to the audit trail even if a caller passes
# them in ``extra``.
_REDACTED_KEYS = frozenset({"password", "token", "access_token"})


@dataclass
class AuditEvent:
    """One line of the audit trail for whitelist and provisioning actions."""

    timestamp: str
    action: str
    resource_type: str
    outcome: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        outcome: str = "success",
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write an audit event as a JSON line on the ``audit`` logger.

        ``outcome`` is "success" or the error kind that ended the operation.
        ``subject`` is the account id of the caller that ran it.
        """

        if extra:
            extra = {k: v for k, v in extra.items() if k not in _REDACTED_KEYS}

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            outcome=outcome,
            resource_id=resource_id,
            subject=subject,
            extra=extra or None,
        )
        payload = asdict(event)
        try:
            line = json.dumps(payload)
        except TypeError:
            payload["extra"] = None
            line = json.dumps(payload)
        logger.info(line)


audit_service = AuditService()
