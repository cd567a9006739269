"""
Routine Store

Durable collection of routine definitions persisted as {"routines": [...]}.
Validates and normalizes create/update payloads before anything is written.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, ValidationError
from .models import (
    MAX_ACTIONS,
    MAX_NAME_LENGTH,
    CommandAction,
    IntervalTrigger,
    Routine,
    TimeTrigger,
    ToggleAction,
    new_action_id,
    now_ms,
)
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "enabled", "trigger", "actions")


# =============================================================================
# Payload Validation
# =============================================================================

def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    error = errors[0]
    message = error.get("msg", "invalid value")
    return message.removeprefix("Value error, ")


def validate_name(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("name is required")
    name = raw.strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        raise ValidationError(f"name must be 1-{MAX_NAME_LENGTH} characters")
    return name


def normalize_trigger(raw: Any) -> TimeTrigger | IntervalTrigger:
    """Parse a trigger payload; the variant is inferred when type is absent."""
    if not isinstance(raw, dict):
        raise ValidationError("trigger is required")

    kind = raw.get("type")
    if kind is None:
        if "time" in raw:
            kind = "time"
        elif "everyMinutes" in raw or "every_minutes" in raw:
            kind = "interval"

    model = {"time": TimeTrigger, "interval": IntervalTrigger}.get(kind)
    if model is None:
        raise ValidationError("trigger must be a time or interval trigger")

    try:
        return model.model_validate({**raw, "type": kind})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid trigger: {_first_error(e)}") from e


def normalize_action(raw: Any) -> Optional[ToggleAction | CommandAction]:
    """Parse one action payload, returning None if it is unusable."""
    if not isinstance(raw, dict):
        return None

    kind = raw.get("type")
    if kind is None:
        kind = "command" if "capability" in raw or "command" in raw else "toggle"

    model = {"toggle": ToggleAction, "command": CommandAction}.get(kind)
    if model is None:
        return None

    data = {**raw, "type": kind}
    if not isinstance(data.get("id"), str) or not data["id"].strip():
        data.pop("id", None)

    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        logger.debug(f"Dropping invalid {kind} action: {_first_error(e)}")
        return None


def normalize_actions(raw: Any) -> List[ToggleAction | CommandAction]:
    """Drop unusable actions, cap the list and guarantee unique action ids."""
    if not isinstance(raw, list):
        raise ValidationError("actions must be a list")

    actions = [a for a in (normalize_action(item) for item in raw) if a is not None]
    if not actions:
        raise ValidationError("at least one valid action is required")

    if len(actions) > MAX_ACTIONS:
        logger.info(f"Truncating {len(actions)} actions to {MAX_ACTIONS}")
        actions = actions[:MAX_ACTIONS]

    seen = set()
    for index, action in enumerate(actions):
        if action.id in seen:
            action = action.model_copy(update={"id": new_action_id()})
            actions[index] = action
        seen.add(action.id)

    return actions


def validate_enabled(raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise ValidationError("enabled must be a boolean")
    return raw


# =============================================================================
# Store
# =============================================================================

class RoutineStore:
    """Whole-file JSON store of routines"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._routines: List[Routine] = self._load()

    def _load(self) -> List[Routine]:
        payload = read_json(self.path, {"routines": []})
        routines = []
        for raw in payload.get("routines", []):
            try:
                routines.append(Routine.model_validate(raw))
            except PydanticValidationError as e:
                logger.error(
                    f"Skipping unreadable routine {raw.get('id') if isinstance(raw, dict) else raw!r}: "
                    f"{_first_error(e)}"
                )
        logger.info(f"Loaded {len(routines)} routines from {self.path}")
        return routines

    def _commit(self, routines: List[Routine]) -> None:
        """Persist the new collection, then adopt it in memory"""
        write_json_atomic(self.path, {
            "routines": [r.model_dump(by_alias=True, mode="json") for r in routines]
        })
        self._routines = routines

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self) -> List[Routine]:
        return list(self._routines)

    def list_enabled(self) -> List[Routine]:
        return [r for r in self._routines if r.enabled]

    def get(self, routine_id: str) -> Routine:
        routine = next((r for r in self._routines if r.id == routine_id), None)
        if routine is None:
            raise NotFoundError(f"Routine {routine_id} not found")
        return routine

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, payload: Dict[str, Any]) -> Routine:
        """Validate a payload and add it as a new routine"""
        if not isinstance(payload, dict):
            raise ValidationError("routine payload must be an object")

        timestamp = now_ms()
        routine = Routine(
            id=str(uuid4()),
            name=validate_name(payload.get("name")),
            enabled=validate_enabled(payload["enabled"]) if "enabled" in payload else True,
            trigger=normalize_trigger(payload.get("trigger")),
            actions=normalize_actions(payload.get("actions")),
            created_at=timestamp,
            updated_at=timestamp,
        )

        self._commit([*self._routines, routine])
        logger.info(f"Created routine '{routine.name}' ({routine.id})")
        return routine

    def update(self, routine_id: str, payload: Dict[str, Any]) -> Routine:
        """Replace only the top-level fields present in the payload"""
        current = self.get(routine_id)
        if not isinstance(payload, dict):
            raise ValidationError("routine payload must be an object")

        updates: Dict[str, Any] = {}
        if "name" in payload:
            updates["name"] = validate_name(payload["name"])
        if "enabled" in payload:
            updates["enabled"] = validate_enabled(payload["enabled"])
        if "trigger" in payload:
            updates["trigger"] = normalize_trigger(payload["trigger"])
            # A new trigger starts with a clean time slot
            updates["last_slot_key"] = None
        if "actions" in payload:
            updates["actions"] = normalize_actions(payload["actions"])

        updates["updated_at"] = max(now_ms(), current.updated_at + 1)
        routine = current.model_copy(update=updates)

        self._commit([routine if r.id == routine_id else r for r in self._routines])
        logger.info(
            f"Updated routine '{routine.name}' ({routine.id}): "
            f"{', '.join(k for k in EDITABLE_FIELDS if k in payload) or 'no fields'}"
        )
        return routine

    def delete(self, routine_id: str) -> None:
        routine = self.get(routine_id)
        self._commit([r for r in self._routines if r.id != routine_id])
        logger.info(f"Deleted routine '{routine.name}' ({routine_id})")

    def mark_run(self, stamps: Dict[str, Dict[str, Any]]) -> None:
        """
        Record run bookkeeping for several routines in one rewrite.

        Args:
            stamps: routine_id -> {"last_run_at": int, "last_slot_key": str (optional)}
        """
        if not stamps:
            return

        routines = [
            r.model_copy(update=stamps[r.id]) if r.id in stamps else r
            for r in self._routines
        ]
        self._commit(routines)
