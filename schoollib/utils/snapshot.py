import enum
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import inspect


def snapshot(instance, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Capture the column values of an ORM instance as a JSON-safe dict."""
    skipped = set(exclude)
    state: Dict[str, Any] = {}
    for column in inspect(instance).mapper.column_attrs:
        if column.key in skipped:
            continue
        state[column.key] = _json_safe(getattr(instance, column.key))
    return state


def _json_safe(value: Any) -> Optional[Any]:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value
