"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of every balance mutation
2. Debugging capability when a commit fails half-way
3. The information needed to decide on a reconciliation pass

The audit logger:
- Writes structured JSON records through structlog
- Never raises (logging must not break a mutation)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder
from finance_tracker.models.finance import BudgetEvaluation, SavingsGoal, Transaction


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


def get_logger(name: Optional[str] = None):
    """Module-level structured logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central event logging service for the finance session.
    """

    def __init__(self, logger=None):
        self._logger = logger or structlog.get_logger("finance_tracker.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("operation_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("operation_event", **log_dict)
        else:
            self._logger.info("operation_event", **log_dict)

    def log_transaction_added(
        self,
        transaction: Transaction,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=transaction.amount,
            account=transaction.account.value,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        transaction: Transaction,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=transaction.amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_rejected(
        self,
        reason: str,
        error_message: str,
        details: dict,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_rejected(
            reason=reason,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_delete_not_found(
        self,
        transaction_id: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.delete_not_found(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    def log_budget_evaluation(
        self,
        evaluation: BudgetEvaluation,
        correlation_id: UUID,
    ) -> None:
        """Log only evaluations that are not plain ok."""
        if evaluation.is_ok:
            return
        self.log(AuditEventBuilder.budget_evaluated(
            status=evaluation.status.value,
            projected_total=evaluation.projected_total,
            daily_cash_limit=evaluation.daily_cash_limit,
            correlation_id=correlation_id,
        ))

    def log_settings_updated(self, settings: dict, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.settings_updated(
            settings=settings,
            correlation_id=correlation_id,
        ))

    def log_settings_rejected(self, error_message: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.settings_rejected(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_goal_created(self, goal: SavingsGoal, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.goal_created(
            goal_id=goal.id,
            name=goal.name,
            target_amount=goal.target_amount,
            correlation_id=correlation_id,
        ))

    def log_goal_deleted(self, goal_id: str, found: bool, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.goal_deleted(
            goal_id=goal_id,
            found=found,
            correlation_id=correlation_id,
        ))

    def log_goal_synced(self, goal: SavingsGoal, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.goal_synced(
            goal_id=goal.id,
            current_amount=goal.current_amount,
            correlation_id=correlation_id,
        ))

    def log_session_loaded(
        self,
        transaction_count: int,
        goal_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.session_loaded(
            transaction_count=transaction_count,
            goal_count=goal_count,
            correlation_id=correlation_id,
        ))

    def log_data_reset(self, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.data_reset(correlation_id=correlation_id))

    def log_persistence_failed(
        self,
        operation: str,
        failed_step: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.persistence_failed(
            operation=operation,
            failed_step=failed_step,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_partial_commit(
        self,
        operation: str,
        failed_step: str,
        completed_steps: list[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.partial_commit(
            operation=operation,
            failed_step=failed_step,
            completed_steps=completed_steps,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_reconciled(
        self,
        balances: dict,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.reconciled(
            balances=balances,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
