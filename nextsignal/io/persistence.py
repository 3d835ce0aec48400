"""JSON encoding and file I/O for NextSignal.

Everything that leaves the process as JSON (handler responses, CLI output,
JsonFileStore collection files) goes through encode_json, so datetimes are
always ISO-8601 UTC strings and enums are always their values.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from nextsignal.utils.date_utils import to_iso

logger = logging.getLogger(__name__)


class _DataclassEncoder(json.JSONEncoder):
    """Encodes dataclasses, datetimes, enums and paths."""

    def default(self, obj: Any) -> Any:
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        if isinstance(obj, datetime):
            return to_iso(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def encode_json(data: Any, indent: Optional[int] = None) -> str:
    """Serialize ``data`` with the NextSignal encoder.

    Raises:
        TypeError: If a value has no JSON representation.
    """
    return json.dumps(data, indent=indent, ensure_ascii=False, cls=_DataclassEncoder)


def to_jsonable(data: Any) -> Any:
    """Return a copy of ``data`` made only of JSON types (dict, list, str, numbers)."""
    return json.loads(encode_json(data))


def save_json(data: Any, path: str | Path, indent: int = 2) -> None:
    """Write ``data`` to ``path`` so readers never see a half-written file.

    The text goes to a sibling ``*.tmp`` file first and is moved over the
    target with os.replace. Missing parent directories are created.

    Raises:
        TypeError, ValueError: ``data`` is not serializable; nothing is written.
        OSError: The temp file could not be written or moved into place.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        text = encode_json(data, indent=indent)
    except (TypeError, ValueError) as exc:
        logger.error("Cannot encode %s as JSON: %s", path.name, exc)
        raise

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except OSError as exc:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        logger.error("Writing %s failed: %s", path, exc)
        raise

    logger.debug("Wrote %s (%d chars)", path, len(text))


def load_json(
    path: str | Path,
    object_hook: Optional[Callable[[Dict[str, Any]], Any]] = None,
) -> Optional[Any]:
    """Read a JSON file.

    Args:
        path: File to read.
        object_hook: Applied to every decoded object, innermost first.

    Returns:
        The decoded value, or None when the file is missing or not valid JSON.
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle, object_hook=object_hook)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Could not read JSON from %s: %s", path, exc)
        return None
