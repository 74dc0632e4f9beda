"""Tests for the grant decision audit trail."""

import os
from datetime import datetime, timedelta, timezone

from src.grant_mcp import audit as audit_module
from src.grant_mcp.audit import AuditEvent, AuditLogger
from tests.test_utils import SITE_ORIGIN, read_audit_log


def test_requested_and_granted_records(audit, audit_log_path):
    audit.log_requested(SITE_ORIGIN, "native-token-stream", 11155111, "iface-1")
    audit.log_decision(
        SITE_ORIGIN, "native-token-stream", "iface-1", approved=True, delegate="0xdelegate", expiry=1900000000
    )

    requested, granted = read_audit_log(audit_log_path)
    assert requested["event"] == "permission_requested"
    assert requested["interface_id"] == "iface-1"
    assert requested["chain_id"] == 11155111
    assert granted["event"] == "permission_granted"
    assert granted["delegate"] == "0xdelegate"
    assert granted["expiry"] == 1900000000
    assert "reason" not in granted
    assert datetime.fromisoformat(granted["timestamp"]).tzinfo is not None


def test_rejected_record_carries_reason(audit, audit_log_path):
    audit.log_decision(SITE_ORIGIN, "native-token-stream", "iface-2", approved=False, reason="Permission request denied")

    (entry,) = read_audit_log(audit_log_path)
    assert entry["event"] == "permission_rejected"
    assert entry["reason"] == "Permission request denied"
    assert "delegate" not in entry


def test_failure_and_adjustment_records(audit, audit_log_path):
    audit.log_failure(SITE_ORIGIN, "native-token-stream", None, "Chain 5 is not supported")
    audit.log_adjustment_rejected("iface-3", "native-token-stream-max-amount")

    failure, adjustment = read_audit_log(audit_log_path)
    assert failure["event"] == AuditEvent.PERMISSION_FAILED.value
    assert failure["interface_id"] is None
    assert failure["error"] == "Chain 5 is not supported"
    assert adjustment["event"] == AuditEvent.ADJUSTMENT_REJECTED.value
    assert adjustment["element_name"] == "native-token-stream-max-amount"


def test_large_content_is_truncated(audit, audit_log_path):
    audit.log(AuditEvent.PERMISSION_FAILED, error="x" * 5000, nested={"items": ["y" * 2000]})

    (entry,) = read_audit_log(audit_log_path)
    assert entry["error"].startswith("x" * audit_module.MAX_CONTENT_LENGTH)
    assert "[truncated, 5000 total chars]" in entry["error"]
    assert "[truncated, 2000 total chars]" in entry["nested"]["items"][0]


def test_audit_log_rotation_and_cleanup(tmp_path, monkeypatch):
    """Ensure audit logs rotate by size and cleanup respects retention days."""
    log_file = tmp_path / "audit.jsonl"
    rotation_bytes = 50
    retention_days = 1

    monkeypatch.setattr(audit_module, "AUDIT_ROTATION_BYTES", rotation_bytes)
    monkeypatch.setattr(audit_module, "AUDIT_RETENTION_DAYS", retention_days)

    logger = AuditLogger(str(log_file))

    # Seed log file with data to trigger rotation on next write.
    log_file.write_text("x" * (rotation_bytes + 1))
    logger.log_adjustment_rejected("iface-rotate", "native-token-stream-expiry")

    rotated_files = list(tmp_path.glob("audit.jsonl.*"))
    assert rotated_files, "Expected rotated audit log file to be created."
    assert len(read_audit_log(log_file)) == 1

    # Create an old rotated file for cleanup
    old_file = tmp_path / "audit.jsonl.20000101000000"
    old_file.write_text("old log")
    old_timestamp = (datetime.now(timezone.utc) - timedelta(days=retention_days + 1)).timestamp()
    os.utime(old_file, (old_timestamp, old_timestamp))

    logger._cleanup_old_logs()
    assert not old_file.exists(), "Expected old audit log file to be cleaned up."
    assert all(path.exists() for path in rotated_files)
