"""
Pydantic Models

Type-safe data models for persisted state, API requests/responses and dispatch results.
Persisted and wire field names are camelCase; Python attributes are snake_case.
"""

import math
import re
import time
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel


TIME_PATTERN = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")

MIN_EVERY_MINUTES = 1
MAX_EVERY_MINUTES = 1440
MAX_ACTIONS = 20
MAX_NAME_LENGTH = 120

MIN_INTERVAL_MS = 5000
MAX_INTERVAL_MS = 300000
DEFAULT_INTERVAL_MS = 30000


def clamp_every_minutes(value: int) -> int:
    return int(min(max(value, MIN_EVERY_MINUTES), MAX_EVERY_MINUTES))


def clamp_interval_ms(value: int) -> int:
    return int(min(max(value, MIN_INTERVAL_MS), MAX_INTERVAL_MS))


def now_ms() -> int:
    return int(time.time() * 1000)


def new_action_id() -> str:
    return uuid4().hex[:12]


# =============================================================================
# Enums
# =============================================================================

class TriggerType(str, Enum):
    TIME = "time"
    INTERVAL = "interval"


class ActionType(str, Enum):
    TOGGLE = "toggle"
    COMMAND = "command"


# =============================================================================
# Base Models
# =============================================================================

class CamelModel(BaseModel):
    """Base model serialized with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Trigger Models
# =============================================================================

class TimeTrigger(CamelModel):
    """Fires at a wall-clock HH:MM, optionally only on some weekdays (0=Sunday)"""
    type: Literal["time"] = "time"
    time: str = Field(..., description="Fire time (HH:MM)")
    weekdays: List[int] = Field(default_factory=list, description="Empty means every day")

    @field_validator("time", mode="before")
    @classmethod
    def validate_time_format(cls, v: Any) -> str:
        """Validate time format HH:MM"""
        if not isinstance(v, str) or not TIME_PATTERN.fullmatch(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @field_validator("weekdays", mode="before")
    @classmethod
    def validate_weekdays(cls, v: Any) -> List[int]:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("weekdays must be a list")
        days = set()
        for day in v:
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise ValueError("weekdays must be integers 0-6")
            days.add(day)
        return sorted(days)


class IntervalTrigger(CamelModel):
    """Fires every N minutes measured from the last run"""
    type: Literal["interval"] = "interval"
    every_minutes: int = Field(..., description="Minutes between runs (1-1440)")

    @field_validator("every_minutes", mode="before")
    @classmethod
    def validate_every_minutes(cls, v: Any) -> int:
        if v is None or isinstance(v, bool):
            raise ValueError("everyMinutes is required")
        try:
            minutes = float(v)
        except (TypeError, ValueError):
            raise ValueError("everyMinutes must be a number")
        if math.isnan(minutes) or minutes == 0:
            raise ValueError("everyMinutes must be a non-zero number")
        return clamp_every_minutes(minutes)


Trigger = Annotated[Union[TimeTrigger, IntervalTrigger], Field(discriminator="type")]


# =============================================================================
# Action Models
# =============================================================================

class ActionBase(CamelModel):
    """Fields shared by every routine action"""
    id: str = Field(default_factory=new_action_id)
    device_id: str = Field(..., description="Target device")
    device_name: Optional[str] = Field(None, description="Display name for the activity log")
    source_id: Optional[str] = Field(None, description="Credential source; first enabled if unset")

    @field_validator("device_id", mode="before")
    @classmethod
    def validate_device_id(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("deviceId is required")
        return v.strip()


class ToggleAction(ActionBase):
    """Switch a device on or off"""
    type: Literal["toggle"] = "toggle"
    on: StrictBool = Field(..., description="Desired on/off state")

    @property
    def descriptor(self) -> str:
        return "on" if self.on else "off"


class CommandAction(ActionBase):
    """Raw capability/command invocation"""
    type: Literal["command"] = "command"
    component: str = Field(default="main")
    capability: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    arguments: List[Any] = Field(default_factory=list)

    @field_validator("capability", "command", mode="before")
    @classmethod
    def strip_required(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def descriptor(self) -> str:
        return f"{self.capability}:{self.command}"


Action = Annotated[Union[ToggleAction, CommandAction], Field(discriminator="type")]


# =============================================================================
# Routine Models
# =============================================================================

class Routine(CamelModel):
    """A trigger plus an ordered list of actions, with run bookkeeping"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    enabled: bool = True
    trigger: Trigger
    actions: List[Action] = Field(..., min_length=1, max_length=MAX_ACTIONS)
    created_at: int = Field(..., description="Epoch milliseconds")
    updated_at: int = Field(..., description="Epoch milliseconds")
    last_run_at: Optional[int] = None
    last_slot_key: Optional[str] = Field(None, description="Last time-trigger slot that fired")


# =============================================================================
# Credential Models
# =============================================================================

class CredentialEntry(CamelModel):
    """Stored credential; the token is only ever held encrypted"""
    id: str
    label: str
    enabled: bool = True
    encrypted_token: str
    updated_at: int


class Source(CamelModel):
    """Decrypted credential ready for dispatch"""
    id: str
    label: str
    token: str = Field(..., repr=False)
    enabled: bool = True


class SourceUpsert(CamelModel):
    """Create or update a credential source"""
    id: Optional[str] = None
    label: Optional[str] = Field(None, max_length=120)
    token: Optional[str] = None
    enabled: Optional[bool] = None


class SourceView(CamelModel):
    """Credential source as returned by the API (token masked)"""
    id: str
    label: str
    enabled: bool
    updated_at: int
    token_hint: Optional[str] = None


# =============================================================================
# Dispatch Models
# =============================================================================

class DeviceState(CamelModel):
    on: bool = False
    online: bool = False


class DispatchResult(CamelModel):
    """Outcome of one routine action"""
    ok: bool
    action_id: str
    state: Optional[DeviceState] = None
    error: Optional[str] = None


class DeviceToggleRequest(CamelModel):
    on: StrictBool
    device_name: Optional[str] = None
    source_id: Optional[str] = None


class RoutineRunResponse(CamelModel):
    success: bool = True
    results: List[DispatchResult] = Field(default_factory=list)


# =============================================================================
# Activity & Settings Models
# =============================================================================

class ActivityEntry(CamelModel):
    device: str
    action: str
    timestamp: int


class ActivityCreate(CamelModel):
    device: Optional[str] = None
    action: Optional[str] = None
    timestamp: Optional[float] = None


class RoutineIntervalSetting(CamelModel):
    routine_check_interval_ms: int = Field(default=DEFAULT_INTERVAL_MS)


# =============================================================================
# API Response Models
# =============================================================================

class APIResponse(BaseModel):
    """Standard API response wrapper"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
