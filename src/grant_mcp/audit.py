"""Structured JSON audit trail for permission grant decisions."""

import json
import os
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .config import Config

AUDIT_RETENTION_DAYS = int(os.getenv("AUDIT_RETENTION_DAYS", "30"))
AUDIT_ROTATION_BYTES = int(os.getenv("AUDIT_ROTATION_BYTES", str(10 * 1024 * 1024)))
MAX_CONTENT_LENGTH = 1000  # Truncate large content to prevent log bloat


class AuditEvent(str, Enum):
    """Audit event types for the grant lifecycle."""

    PERMISSION_REQUESTED = "permission_requested"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_REJECTED = "permission_rejected"
    PERMISSION_FAILED = "permission_failed"
    ADJUSTMENT_REJECTED = "adjustment_rejected"


class AuditLogger:
    """
    Structured JSON audit logger for grant decisions.

    Features:
    - JSON Lines format (one JSON object per line)
    - ISO 8601 UTC timestamps
    - Automatic content truncation
    - Size-based rotation with timestamped backups
    - Retention cleanup based on AUDIT_RETENTION_DAYS
    """

    def __init__(self, log_path: Optional[str] = None):
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file (defaults to Config.AUDIT_LOG_PATH)
        """
        self.log_path = Path(log_path or Config.AUDIT_LOG_PATH)
        self.retention_days = AUDIT_RETENTION_DAYS
        self.rotation_bytes = AUDIT_ROTATION_BYTES
        self._last_cleanup: Optional[datetime] = None
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._cleanup_old_logs()

    def _rotate_if_needed(self) -> None:
        """Rotate the audit log if it exceeds the configured size."""
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self.rotation_bytes:
            return

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        rotated_path = self.log_path.with_name(f"{self.log_path.name}.{timestamp}")
        counter = 1
        while rotated_path.exists():
            rotated_path = self.log_path.with_name(f"{self.log_path.name}.{timestamp}.{counter}")
            counter += 1
        self.log_path.replace(rotated_path)

    def _cleanup_old_logs(self) -> None:
        """Remove rotated audit files older than the retention window."""
        if self.retention_days <= 0:
            return
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)
        for path in self.log_path.parent.glob(f"{self.log_path.name}*"):
            if not path.is_file():
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
            if modified < cutoff:
                path.unlink()
        self._last_cleanup = datetime.now(timezone.utc)

    def _maybe_cleanup(self) -> None:
        if self.retention_days <= 0:
            return
        now = datetime.now(timezone.utc)
        if self._last_cleanup is None or now - self._last_cleanup >= timedelta(days=1):
            self._cleanup_old_logs()

    @staticmethod
    def _truncate_content(value: Any, max_length: int = MAX_CONTENT_LENGTH) -> Any:
        if isinstance(value, str) and len(value) > max_length:
            return value[:max_length] + f"... [truncated, {len(value)} total chars]"
        elif isinstance(value, dict):
            return {k: AuditLogger._truncate_content(v, max_length) for k, v in value.items()}
        elif isinstance(value, list):
            return [AuditLogger._truncate_content(item, max_length) for item in value]
        return value

    def log(self, event: AuditEvent, interface_id: Optional[str] = None, **kwargs) -> None:
        """
        Write one audit record.

        Args:
            event: Audit event type
            interface_id: Confirmation interface for correlation
            **kwargs: Additional fields to include in the record
        """
        audit_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event.value,
            "interface_id": interface_id,
            **self._truncate_content(kwargs),
        }
        json_line = json.dumps(audit_record, ensure_ascii=False, default=str)

        self._maybe_cleanup()
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json_line + "\n")

    def log_requested(self, origin: str, permission_type: str, chain_id: int, interface_id: str) -> None:
        self.log(
            AuditEvent.PERMISSION_REQUESTED,
            interface_id=interface_id,
            origin=origin,
            permission_type=permission_type,
            chain_id=chain_id,
        )

    def log_decision(
        self,
        origin: str,
        permission_type: str,
        interface_id: Optional[str],
        approved: bool,
        reason: Optional[str] = None,
        delegate: Optional[str] = None,
        expiry: Optional[int] = None,
    ) -> None:
        """
        Log the terminal decision of a request.

        Args:
            origin: Requesting site
            permission_type: Permission type identifier
            interface_id: Confirmation interface
            approved: Whether the permission was granted
            reason: Rejection reason (if rejected)
            delegate: Grantee address (if granted)
            expiry: Granted expiry timestamp (if granted)
        """
        log_data: Dict[str, Any] = {"origin": origin, "permission_type": permission_type}
        if approved:
            if delegate is not None:
                log_data["delegate"] = delegate
            if expiry is not None:
                log_data["expiry"] = expiry
            self.log(AuditEvent.PERMISSION_GRANTED, interface_id=interface_id, **log_data)
        else:
            if reason is not None:
                log_data["reason"] = reason
            self.log(AuditEvent.PERMISSION_REJECTED, interface_id=interface_id, **log_data)

    def log_failure(self, origin: str, permission_type: str, interface_id: Optional[str], error: str) -> None:
        self.log(
            AuditEvent.PERMISSION_FAILED,
            interface_id=interface_id,
            origin=origin,
            permission_type=permission_type,
            error=error,
        )

    def log_adjustment_rejected(self, interface_id: str, element_name: str) -> None:
        self.log(AuditEvent.ADJUSTMENT_REJECTED, interface_id=interface_id, element_name=element_name)


# Module-level singleton
audit_logger = AuditLogger()
