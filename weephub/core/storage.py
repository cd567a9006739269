"""
JSON File Persistence

Whole-file read and atomic rewrite used by the routine, credential and
settings stores. Single-process only; there is no cross-process locking.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from .errors import PersistenceError

logger = logging.getLogger(__name__)


def read_json(path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
    """Read a JSON object from disk, returning a copy of default if the file is absent"""
    path = Path(path)
    if not path.exists():
        return json.loads(json.dumps(default))

    try:
        payload = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Could not parse {path}: {e}") from e

    if not isinstance(payload, dict):
        raise PersistenceError(f"Expected a JSON object in {path}")
    return payload


def write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    """Rewrite the whole file via a temp file and rename"""
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        raise PersistenceError(f"Failed to write {path}: {e}") from e
