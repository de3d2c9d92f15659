"""
Audit Models for FinBuddy

One event per row write, advisor call, rejected session, awarded
achievement and goal milestone. Events are keyed by the owning user id
so one user's history can be pulled from the AuditLog worksheet.

DESIGN DECISION: The audit log is append-only. Nothing edits or removes
an event once written.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finbuddy.models.records import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Record writes
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    WRITE_FAILED = "write_failed"

    # Gamification
    ACHIEVEMENT_AWARDED = "achievement_awarded"
    MILESTONE_REACHED = "milestone_reached"
    GOAL_COMPLETED = "goal_completed"

    # Advisors
    ADVISOR_REQUESTED = "advisor_requested"
    ADVISOR_COMPLETED = "advisor_completed"
    ADVISOR_FAILED = "advisor_failed"
    RESPONSE_VALIDATION_FAILED = "response_validation_failed"

    # Sessions
    AUTH_FAILED = "auth_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One audited occurrence. entity_type names the table or advisor
    involved; entity_id the row, when there is one.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the affected data, when known"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Table or feature this is about (e.g. 'expenses', 'budget-optimizer')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the row this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        One AuditLog worksheet row, columns:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods for each event FinBuddy records.
        event = AuditEventBuilder.record_created(user_id, "expenses", row_id)
        event = AuditEventBuilder.advisor_failed(user_id, "tax-optimizer", "Rate limited")
    """

    @staticmethod
    def record_created(user_id: str, table: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_id,
            description=f"Row created in {table}",
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        user_id: str,
        table: str,
        record_id: str,
        fields: list[str]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_id,
            description=f"Row updated in {table}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(user_id: str, table: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_id,
            description=f"Row deleted from {table}",
            is_user_action=True,
        )

    @staticmethod
    def write_failed(
        user_id: str,
        table: str,
        operation: str,
        error_message: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type=table,
            description=f"Failed to {operation} row in {table}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def achievement_awarded(
        user_id: str,
        achievement_type: str,
        title: str,
        points: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACHIEVEMENT_AWARDED,
            user_id=user_id,
            entity_type="user_achievements",
            description=f"Achievement unlocked: {title} (+{points} points)",
            details={
                "achievement_type": achievement_type,
                "points": points,
            },
        )

    @staticmethod
    def milestone_reached(
        user_id: str,
        goal_id: str,
        milestone: str,
        progress: float
    ) -> AuditEvent:
        event_type = (
            AuditEventType.GOAL_COMPLETED
            if milestone == "completed"
            else AuditEventType.MILESTONE_REACHED
        )
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="financial_goals",
            entity_id=goal_id,
            description=f"Goal milestone reached: {milestone}",
            details={
                "milestone": milestone,
                "progress_percent": round(progress, 2),
            },
        )

    @staticmethod
    def advisor_requested(user_id: str, advisor: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVISOR_REQUESTED,
            user_id=user_id,
            entity_type=advisor,
            description=f"Advisor requested: {advisor}",
            is_user_action=True,
        )

    @staticmethod
    def advisor_completed(
        user_id: str,
        advisor: str,
        processing_time_ms: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVISOR_COMPLETED,
            user_id=user_id,
            entity_type=advisor,
            description=f"Advisor completed: {advisor}",
            details={"processing_time_ms": processing_time_ms},
        )

    @staticmethod
    def advisor_failed(
        user_id: str,
        advisor: str,
        error_message: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVISOR_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type=advisor,
            description=f"Advisor failed: {advisor}",
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        user_id: Optional[str],
        advisor: str,
        issues: list[dict]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESPONSE_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=advisor,
            description=f"AI response validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def auth_failed(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            description="Session verification failed",
            error_message=reason,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
