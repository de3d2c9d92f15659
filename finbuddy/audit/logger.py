"""
Audit Logger

DESIGN DECISION: Writes to financial records, advisor calls, rejected
sessions and awarded achievements each leave an audit event, so a
user's history can be reconstructed from the audit sheet alone.

Events go to the structured log first and then to audit storage.
A storage failure is logged and swallowed: losing an audit row must
never fail the user's request. Events carry the owning user id when
one is known.
"""

import logging
import sys
from typing import Optional

import structlog

from finbuddy.models.audit import AuditEvent, AuditEventBuilder
from finbuddy.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output to stderr at the configured level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Writes audit events to the structured log and, when configured,
    to audit storage (the AuditLog worksheet, or memory in tests).
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are persisted. Without one, events
                only reach the structured log.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finbuddy.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when a configured storage rejected the write.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(self, user_id: str, table: str, record_id: str) -> None:
        """Log a row insert."""
        await self.log(AuditEventBuilder.record_created(user_id, table, record_id))

    async def log_record_updated(
        self,
        user_id: str,
        table: str,
        record_id: str,
        fields: list[str],
    ) -> None:
        """Log a row update."""
        await self.log(AuditEventBuilder.record_updated(user_id, table, record_id, fields))

    async def log_record_deleted(self, user_id: str, table: str, record_id: str) -> None:
        """Log a row delete."""
        await self.log(AuditEventBuilder.record_deleted(user_id, table, record_id))

    async def log_write_failed(
        self,
        user_id: str,
        table: str,
        operation: str,
        error_message: str,
    ) -> None:
        """Log a failed write."""
        await self.log(AuditEventBuilder.write_failed(user_id, table, operation, error_message))

    async def log_achievement_awarded(
        self,
        user_id: str,
        achievement_type: str,
        title: str,
        points: int,
    ) -> None:
        """Log a newly earned achievement."""
        await self.log(AuditEventBuilder.achievement_awarded(
            user_id=user_id,
            achievement_type=achievement_type,
            title=title,
            points=points,
        ))

    async def log_milestone_reached(
        self,
        user_id: str,
        goal_id: str,
        milestone: str,
        progress: float,
    ) -> None:
        """Log a goal crossing a progress band."""
        await self.log(AuditEventBuilder.milestone_reached(
            user_id=user_id,
            goal_id=goal_id,
            milestone=milestone,
            progress=progress,
        ))

    async def log_advisor_requested(self, user_id: str, advisor: str) -> None:
        await self.log(AuditEventBuilder.advisor_requested(user_id, advisor))

    async def log_advisor_completed(
        self,
        user_id: str,
        advisor: str,
        processing_time_ms: int,
    ) -> None:
        await self.log(AuditEventBuilder.advisor_completed(user_id, advisor, processing_time_ms))

    async def log_advisor_failed(self, user_id: str, advisor: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.advisor_failed(user_id, advisor, error_message))

    async def log_validation_failed(
        self,
        user_id: Optional[str],
        advisor: str,
        issues: list[dict],
    ) -> None:
        """Log an AI response that failed validation."""
        await self.log(AuditEventBuilder.validation_failed(user_id, advisor, issues))

    async def log_auth_failed(self, reason: str) -> None:
        await self.log(AuditEventBuilder.auth_failed(reason))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Unexpected failure while serving a request."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            user_id=user_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> None:
        """A backing service (spreadsheet, AI gateway) failed."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
        ))
