"""Scheduling error taxonomy and lightweight error logging for diagnostics."""

from __future__ import annotations

from datetime import datetime, UTC
from pathlib import Path
import traceback

from flask import current_app


class SchedulingError(Exception):
    """Base exception for scheduling operations."""

    kind = "SCHEDULING_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.kind.lower())
        self.message = message or self.kind.lower()

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class SlotConflict(SchedulingError):
    """The requested interval cannot be admitted; re-query availability and retry."""

    http_status = 409


class SlotTaken(SlotConflict):
    kind = "SLOT_TAKEN"


class SlotBlackedOut(SlotConflict):
    kind = "BLACKED_OUT"


class OutsideWorkingHours(SlotConflict):
    kind = "OUTSIDE_WORKING_HOURS"


class NotFound(SchedulingError):
    kind = "NOT_FOUND"
    http_status = 404


class AppointmentNotFound(NotFound):
    """Raised when an appointment cannot be located."""


class DoctorNotFound(NotFound):
    """Raised when a doctor id is not in the directory."""


class TimeOffNotFound(NotFound):
    pass


class InvalidConfiguration(SchedulingError):
    """Malformed working hours, time-off window or slot period."""

    kind = "INVALID_CONFIGURATION"


class InvalidRequest(SchedulingError):
    """Malformed date, time or status in a request."""

    kind = "INVALID_REQUEST"


class SlotInPast(SchedulingError):
    kind = "SLOT_IN_PAST"


def record_exception(context: str, exc: BaseException) -> None:
    """Append exception details to data/logs/app_errors.log for offline inspection."""

    try:
        root = Path(current_app.config["DATA_ROOT"]) / "logs"
        root.mkdir(parents=True, exist_ok=True)
        log_path = root / "app_errors.log"
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{datetime.now(UTC).isoformat()}Z] {context}\n")
            handle.write("".join(traceback.format_exception(exc)))
            handle.write("\n")
    except Exception:
        # Never let logging failures break the request cycle.
        current_app.logger.exception("Could not write %s to the error log", context)
