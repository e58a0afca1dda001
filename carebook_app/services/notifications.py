"""Signals fired after scheduling changes commit.

Receivers (live dashboards, push channels) are fire-and-forget: a failing
receiver is logged and never changes the outcome of the admission that fired it.
"""

from __future__ import annotations

from typing import Any

from blinker import Namespace, NamedSignal
from flask import current_app

_signals = Namespace()

appointment_booked = _signals.signal("appointment-booked")
appointment_updated = _signals.signal("appointment-updated")
appointment_cancelled = _signals.signal("appointment-cancelled")
schedule_changed = _signals.signal("schedule-changed")


def notify(signal: NamedSignal, doctor_id: str, **payload: Any) -> None:
    """Call each receiver on its own; one failing receiver never skips the rest."""
    sender = current_app._get_current_object()
    for receiver in signal.receivers_for(sender):
        try:
            receiver(sender, doctor_id=doctor_id, **payload)
        except Exception:
            current_app.logger.exception(f"Receiver for {signal.name} failed (doctor={doctor_id})")
