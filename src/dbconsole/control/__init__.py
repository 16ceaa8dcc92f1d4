"""Lifecycle controller components."""

from dbconsole.control.actions import ActionCoordinator
from dbconsole.control.logs import LogFilters, LogStreamAggregator
from dbconsole.control.store import InstanceStore
from dbconsole.control.wizard import (
    STEP_FIELDS,
    STEP_TITLES,
    CreateInstanceWizard,
    FieldState,
    FieldStatus,
    WizardDraft,
    WizardStep,
)

__all__ = [
    "ActionCoordinator",
    "CreateInstanceWizard",
    "FieldState",
    "FieldStatus",
    "InstanceStore",
    "LogFilters",
    "LogStreamAggregator",
    "STEP_FIELDS",
    "STEP_TITLES",
    "WizardDraft",
    "WizardStep",
]
