"""Core components for the WeepHub control plane"""

from .database import ActivityLogger, Database
from .credentials import CredentialStore
from .routines import RoutineStore
from .settings_store import RuntimeSettingsStore
from .vault import SecretVault, get_vault
from .models import (
    Routine,
    TimeTrigger,
    IntervalTrigger,
    ToggleAction,
    CommandAction,
    CredentialEntry,
    Source,
    DispatchResult,
)

__all__ = [
    "Database",
    "ActivityLogger",
    "CredentialStore",
    "RoutineStore",
    "RuntimeSettingsStore",
    "SecretVault",
    "get_vault",
    "Routine",
    "TimeTrigger",
    "IntervalTrigger",
    "ToggleAction",
    "CommandAction",
    "CredentialEntry",
    "Source",
    "DispatchResult",
]
