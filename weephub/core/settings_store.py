"""
Runtime Settings Store

Settings that can change while the server runs, persisted as
{"routineCheckIntervalMs": number}.
"""

import logging
import math
from pathlib import Path
from typing import Any

from .errors import ValidationError
from .models import DEFAULT_INTERVAL_MS, RoutineIntervalSetting, clamp_interval_ms
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class RuntimeSettingsStore:
    """Holds the scheduler polling interval"""

    def __init__(self, path: Path, default_interval_ms: int = DEFAULT_INTERVAL_MS):
        self.path = Path(path)
        payload = read_json(self.path, {})
        raw = payload.get("routineCheckIntervalMs", default_interval_ms)
        try:
            self._interval_ms = self._coerce(raw)
        except ValidationError:
            logger.warning(f"Ignoring invalid routineCheckIntervalMs {raw!r} in {self.path}")
            self._interval_ms = clamp_interval_ms(default_interval_ms)

    @staticmethod
    def _coerce(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("routineCheckIntervalMs must be a number")
        if math.isnan(value) or math.isinf(value):
            raise ValidationError("routineCheckIntervalMs must be finite")
        return clamp_interval_ms(int(value))

    @property
    def routine_check_interval_ms(self) -> int:
        return self._interval_ms

    def set_routine_check_interval_ms(self, value: Any) -> int:
        """Clamp, persist and return the new interval"""
        interval = self._coerce(value)
        write_json_atomic(
            self.path,
            RoutineIntervalSetting(routine_check_interval_ms=interval).model_dump(by_alias=True)
        )
        self._interval_ms = interval
        logger.info(f"Routine check interval set to {interval} ms")
        return interval
