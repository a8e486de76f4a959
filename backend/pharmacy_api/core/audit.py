"""
Audit trail for security-relevant events.

Each event is one JSON object on the "audit" logger: sign-ins and
registrations, admin and owner changes to drugs, orders, doctors, reports
and prescriptions, and refused access. Passwords and tokens never appear
in an event.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pharmacy_api.core.security import TokenClaims

audit_logger = logging.getLogger("audit")


def _emit(level: int, event_type: str, **fields: Any) -> Dict[str, Any]:
    event = {"timestamp": datetime.now(timezone.utc).isoformat(), "event_type": event_type}
    event.update((key, value) for key, value in fields.items() if value is not None)
    audit_logger.log(level, json.dumps(event, default=str))
    return event


class AuditLog:

    @staticmethod
    def log_authentication(action: str, email: str, ip_address: str, success: bool, reason: str = ""):
        """action is one of "login", "admin_login", "register"."""
        _emit(
            logging.INFO if success else logging.WARNING,
            f"auth.{action}",
            email=email,
            ip_address=ip_address,
            success=success,
            reason=None if success else (reason or None),
        )

    @staticmethod
    def log_action(
        action: str,
        resource_type: str,
        resource_id: int,
        actor: TokenClaims,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Record who changed which resource.

        Example:
            AuditLog.log_action("status_change", "order", 12, admin, changes={"from": "pending", "to": "processing"})
        """
        _emit(
            logging.INFO,
            f"{resource_type}.{action}",
            actor_id=actor.id,
            actor_role=actor.role,
            resource_id=resource_id,
            changes=changes or None,
        )

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        resource_id: Optional[int],
        user_id: Optional[int],
        reason: str,
    ):
        _emit(
            logging.WARNING,
            "access_denied",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            reason=reason,
        )
