"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (dbconsole)
- component: Component name (STORE, ACTIONS, WIZARD, LOGS, USERS, CLIENT)
- event: Event type (action_started, load_failed, etc.)
- trace_id: Operation trace ID (inside operation_context)
- action: Lifecycle action of the bound operation
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- instance_id: Instance ID
- username: Database user name
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Store events
    LOAD_COMPLETE = "load_complete"
    LOAD_FAILED = "load_failed"
    LOAD_DISCARDED = "load_discarded"
    INSTANCE_REMOVED = "instance_removed"

    # Lifecycle action events
    STATE_CHANGED = "state_changed"
    ACTION_STARTED = "action_started"
    ACTION_SUCCESS = "action_success"
    ACTION_FAILED = "action_failed"
    ACTION_REJECTED = "action_rejected"

    # Wizard events
    VALIDATION_FAILED = "validation_failed"
    CREATE_SUBMITTED = "create_submitted"
    CREATE_FAILED = "create_failed"

    # Log viewer events
    LOGS_FETCHED = "logs_fetched"
    LOGS_FETCH_FAILED = "logs_fetch_failed"
    LOGS_DOWNLOADED = "logs_downloaded"
    AUTO_REFRESH_CHANGED = "auto_refresh_changed"

    # Database user events
    USER_CHANGED = "user_changed"
    USER_OPERATION_FAILED = "user_operation_failed"

    # Remote call events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"

    # Console lifecycle
    CONSOLE_STARTED = "console_started"
    CONSOLE_STOPPED = "console_stopped"


class ErrorClass(StrEnum):
    """Error classification for structured error logging."""

    TRANSIENT = "transient"  # Retryable (network timeout, 5xx)
    PERMANENT = "permanent"  # Not retryable (invalid input, not found)
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"


class Component(StrEnum):
    """Component identifiers for log filtering."""

    STORE = "store"  # InstanceStore
    ACTIONS = "actions"  # ActionCoordinator
    WIZARD = "wizard"  # CreateInstanceWizard
    LOGS = "logs"  # LogStreamAggregator
    USERS = "users"  # DatabaseUserManager
    CLIENT = "client"  # HTTP control plane client
