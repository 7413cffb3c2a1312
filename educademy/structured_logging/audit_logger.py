"""
Audit sink for security and business events.

Security events cover every authentication outcome on the realtime gateway.
Business events cover state-changing operations such as grading, enrollment
and room membership changes. Both are emitted on dedicated structlog loggers
and, when an audit directory is configured, appended to a daily JSONL file.
Inside a running event loop the append runs on a worker thread, in call
order, so the sink never blocks the loop on disk I/O.
"""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from anyio import Lock, to_thread

from ..error_types import ErrorSeverity
from .enhanced_logging_config import get_logger

logger = get_logger(__name__)

security_logger = get_logger("educademy.audit.security")
business_logger = get_logger("educademy.audit.business")


class AuditLogger:
    """
    Structured audit trail for the realtime server.

    The sink never raises into its caller: a failure to write the JSONL copy is
    logged and the structlog entry still goes out.
    """

    def __init__(self, log_directory: str | None = None):
        """
        Initialize the audit logger.

        Args:
            log_directory: Directory for JSONL audit files. ``None`` disables the
                file copy and keeps audit events in the structured log only.
        """
        self.log_directory = Path(log_directory) if log_directory else None
        if self.log_directory is not None:
            self.log_directory.mkdir(parents=True, exist_ok=True)
        self._pending: set[asyncio.Task[None]] = set()
        self._write_lock = Lock()
        logger.info("AuditLogger initialized", log_directory=str(self.log_directory) if self.log_directory else None)

    def _get_log_file_path(self) -> Path | None:
        if self.log_directory is None:
            return None
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        return self.log_directory / f"audit_{today}.jsonl"

    def log_security_event(
        self,
        kind: str,
        severity: ErrorSeverity | str,
        context: dict[str, Any] | None = None,
        subject_user_id: int | None = None,
    ) -> None:
        """
        Record a security event such as a failed or successful authentication.

        Args:
            kind: Event kind (for example ``socket_auth_failed``)
            severity: Event severity
            context: Source IP, user agent, reason and similar details
            subject_user_id: User the event concerns, when known
        """
        severity_value = severity.value if isinstance(severity, ErrorSeverity) else str(severity)
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": "security",
            "kind": kind,
            "severity": severity_value,
            "subject_user_id": subject_user_id,
            "context": context or {},
        }
        log_method = security_logger.warning if severity_value in ("high", "critical") else security_logger.info
        log_method("Security event", kind=kind, severity=severity_value, subject_user_id=subject_user_id, **(context or {}))
        self._write_entry(entry)

    def log_business_operation(
        self,
        operation: str,
        entity_type: str,
        entity_id: Any,
        outcome: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Record a business operation.

        Args:
            operation: Operation name (for example ``ASSIGNMENT_GRADED``)
            entity_type: Type of the affected entity
            entity_id: Identifier of the affected entity
            outcome: ``SUCCESS`` or ``FAILURE``
            context: Additional details
        """
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event_type": "business",
            "operation": operation,
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id is not None else None,
            "outcome": outcome,
            "context": context or {},
        }
        business_logger.info(
            "Business operation",
            operation=operation,
            entity_type=entity_type,
            entity_id=entry["entity_id"],
            outcome=outcome,
            **(context or {}),
        )
        self._write_entry(entry)

    def _write_entry(self, entry: dict[str, Any]) -> None:
        log_file = self._get_log_file_path()
        if log_file is None:
            return
        line = json.dumps(entry, default=str) + "\n"
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._append(log_file, line)
            return
        task = loop.create_task(self._append_off_loop(log_file, line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _append_off_loop(self, log_file: Path, line: str) -> None:
        async with self._write_lock:
            await to_thread.run_sync(self._append, log_file, line)

    def _append(self, log_file: Path, line: str) -> None:
        try:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit log entry", error=str(e), log_file=str(log_file))

    async def flush(self) -> None:
        """Wait until every entry handed to the writer thread is on disk."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
