"""
Diagnostic sink for schema deviations found in platform responses.

Errors mark data that changed the outcome of an operation (a dropped record,
a failed page); warnings mark lenient-mode coercions.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, List, Literal, Mapping, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 500


class Diagnostic(BaseModel):
    """One recorded message."""

    level: Literal["error", "warning"]
    message: str


class DiagnosticLog:
    """
    Collect diagnostics for a platform connection and mirror them to logging.

    Only the most recent ``max_messages`` entries are kept; older ones remain
    in the log output.
    """

    def __init__(
        self, *, strict_mode: bool = False, max_messages: int = DEFAULT_MAX_MESSAGES
    ) -> None:
        self.strict_mode = strict_mode
        self._messages: Deque[Diagnostic] = deque(maxlen=max(1, max_messages))

    @property
    def messages(self) -> List[Diagnostic]:
        return list(self._messages)

    @property
    def errors(self) -> List[str]:
        return [item.message for item in self._messages if item.level == "error"]

    @property
    def warnings(self) -> List[str]:
        return [item.message for item in self._messages if item.level == "warning"]

    def error(self, message: str) -> None:
        self._messages.append(Diagnostic(level="error", message=message))
        logger.error(message)

    def warning(self, message: str) -> None:
        self._messages.append(Diagnostic(level="warning", message=message))
        logger.warning(message)

    def deviation(self, message: str) -> bool:
        """
        Record a malformed optional value.

        Returns True when the caller should reject the enclosing record
        (strict mode), False when it should coerce and carry on.
        """
        if self.strict_mode:
            self.error(message)
            return True
        self.warning(message)
        return False

    def clear(self) -> None:
        self._messages.clear()


def check_string(
    obj: Mapping[str, Any],
    name: str,
    diagnostics: DiagnosticLog,
    *,
    required: bool = False,
    context: str = "",
) -> Optional[str]:
    """Return ``obj[name]`` when it is a non-empty string, recording problems."""
    label = f"{context}/{name}" if context else name
    if name not in obj or obj[name] is None:
        if required:
            diagnostics.error(f"The '{label}' element is missing")
        return None
    value = obj[name]
    if isinstance(value, str):
        if not value and required:
            diagnostics.error(f"The '{label}' element must not be empty")
            return None
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Some platforms send numeric user ids.
        if diagnostics.deviation(
            f"The '{label}' element must be a string ({type(value).__name__} found)"
        ):
            return None
        return str(value)
    diagnostics.error(f"The '{label}' element must be a string ({type(value).__name__} found)")
    return None


__all__ = ["DEFAULT_MAX_MESSAGES", "Diagnostic", "DiagnosticLog", "check_string"]
