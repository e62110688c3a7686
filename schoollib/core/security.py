import secrets
from typing import Optional

from fastapi import Header

from schoollib.core.config import settings
from schoollib.core.exceptions import InvalidCapability


def require_capability(x_library_pin: Optional[str] = Header(default=None)) -> None:
    """Gate destructive endpoints behind the shared library PIN.

    This is a UI-level check, not an authentication boundary. The gate is open
    when LIBRARY_PIN is not configured.
    """
    expected = settings.LIBRARY_PIN
    if not expected:
        return
    if not x_library_pin or not secrets.compare_digest(x_library_pin, expected):
        raise InvalidCapability()
