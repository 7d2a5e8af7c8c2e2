"""
Operation Event Models for Finance Tracker

Every significant action in the system is described by an event.
This provides:
1. Traceability of every balance mutation in the logs
2. Debugging information when a commit fails half-way
3. A clear record of which persistence step needs reconciliation

DESIGN DECISION: Events are log records. They are written to the
structured log and never persisted as a ledger of their own.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we record.

    Every mutating operation of the session has its own event type.
    """
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"
    DELETE_NOT_FOUND = "delete_not_found"

    # Budget
    BUDGET_WARNING = "budget_warning"
    BUDGET_EXCEEDED = "budget_exceeded"
    SETTINGS_UPDATED = "settings_updated"
    SETTINGS_REJECTED = "settings_rejected"

    # Savings goals
    GOAL_CREATED = "goal_created"
    GOAL_DELETED = "goal_deleted"
    GOAL_SYNCED = "goal_synced"

    # Session
    SESSION_LOADED = "session_loaded"
    DATA_RESET = "data_reset"

    # Persistence
    PERSISTENCE_FAILED = "persistence_failed"
    PARTIAL_COMMIT = "partial_commit"
    RECONCILED = "reconciled"


class AuditSeverity(str, Enum):
    """Severity level for events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single operation event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'settings')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one add)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction, correlation_id)
        event = AuditEventBuilder.partial_commit("add_transaction", ...)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        transaction_type: str,
        amount: int,
        account: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {transaction_type} {amount} ({account})",
            details={
                "type": transaction_type,
                "amount": amount,
                "account": account,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        transaction_type: str,
        amount: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted: {transaction_type} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        reason: str,
        error_message: str,
        details: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected: {reason}",
            error_code=reason,
            error_message=error_message,
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def delete_not_found(
        transaction_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_NOT_FOUND,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Delete requested for an unknown transaction",
            is_user_action=True,
        )

    @staticmethod
    def budget_evaluated(
        status: str,
        projected_total: int,
        daily_cash_limit: int,
        correlation_id: UUID
    ) -> AuditEvent:
        exceeded = status == "hard_block"
        return AuditEvent(
            event_type=(
                AuditEventType.BUDGET_EXCEEDED
                if exceeded
                else AuditEventType.BUDGET_WARNING
            ),
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            correlation_id=correlation_id,
            description=(
                f"Daily cash budget {'exceeded' if exceeded else 'nearly reached'}: "
                f"{projected_total} of {daily_cash_limit}"
            ),
            details={
                "status": status,
                "projected_total": projected_total,
                "daily_cash_limit": daily_cash_limit,
            },
        )

    @staticmethod
    def settings_updated(
        settings: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            correlation_id=correlation_id,
            description="Budget settings updated",
            details=settings,
            is_user_action=True,
        )

    @staticmethod
    def settings_rejected(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="settings",
            correlation_id=correlation_id,
            description="Budget settings rejected",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def goal_created(
        goal_id: str,
        name: str,
        target_amount: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Savings goal created: {name}",
            details={
                "name": name,
                "target_amount": target_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_deleted(
        goal_id: str,
        found: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=(
                "Savings goal deleted" if found else "Delete requested for an unknown goal"
            ),
            details={"found": found},
            is_user_action=True,
        )

    @staticmethod
    def goal_synced(
        goal_id: str,
        current_amount: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_SYNCED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Savings goal progress synced to {current_amount}",
            details={"current_amount": current_amount},
        )

    @staticmethod
    def session_loaded(
        transaction_count: int,
        goal_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_LOADED,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Session loaded with {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "goal_count": goal_count,
            },
        )

    @staticmethod
    def data_reset(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            correlation_id=correlation_id,
            description="All finance data reset",
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        failed_step: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            correlation_id=correlation_id,
            description=f"Persistence failed during {operation} at step {failed_step}",
            error_message=error_message,
            details={
                "operation": operation,
                "failed_step": failed_step,
            },
        )

    @staticmethod
    def partial_commit(
        operation: str,
        failed_step: str,
        completed_steps: list[str],
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_COMMIT,
            severity=AuditSeverity.CRITICAL,
            entity_type="storage",
            correlation_id=correlation_id,
            description=(
                f"Remote store inconsistent after {operation}: "
                f"{failed_step} failed after {', '.join(completed_steps)}"
            ),
            error_message=error_message,
            details={
                "operation": operation,
                "failed_step": failed_step,
                "completed_steps": completed_steps,
            },
        )

    @staticmethod
    def reconciled(
        balances: dict,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILED,
            entity_type="storage",
            correlation_id=correlation_id,
            description=f"Balances rebuilt from {transaction_count} transactions",
            details={
                "balances": balances,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )
